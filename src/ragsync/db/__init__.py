"""ragsync database layer."""

from ragsync.db.availability import DatastoreAvailability, TableStatus
from ragsync.db.chunk_tables import chunk_table_name, ensure_chunk_table
from ragsync.db.chunks import ChunkStore
from ragsync.db.connection import Database
from ragsync.db.datastore import SqliteDatastore
from ragsync.db.documents import DocumentStateStore
from ragsync.db.errors import DatastoreError, MissingRelationError, TransientDatastoreError
from ragsync.db.migrations import MIGRATIONS, run_migrations
from ragsync.db.retry import RetryPolicy
from ragsync.db.runs import RunLedger
from ragsync.db.schema import initialize

__all__ = [
    "ChunkStore",
    "Database",
    "DatastoreAvailability",
    "DatastoreError",
    "DocumentStateStore",
    "MIGRATIONS",
    "MissingRelationError",
    "RetryPolicy",
    "RunLedger",
    "SqliteDatastore",
    "TableStatus",
    "TransientDatastoreError",
    "chunk_table_name",
    "ensure_chunk_table",
    "initialize",
    "run_migrations",
]
