"""Table names and schema initialization."""

from __future__ import annotations

import sqlite3

DOCUMENTS_TABLE = "documents"
INGEST_RUNS_TABLE = "ingest_runs"


def initialize(conn: sqlite3.Connection) -> None:
    """Initialize the database schema via the migration runner (idempotent)."""
    from ragsync.db.migrations import run_migrations

    run_migrations(conn)
