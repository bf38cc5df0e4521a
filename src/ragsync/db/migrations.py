"""Forward-only migration runner for the ragsync schema.

Chunk tables (rag_chunks_*) are NOT migration-managed — use ensure_chunk_table().
"""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS documents (
    doc_id              TEXT PRIMARY KEY,
    raw_doc_id          TEXT,
    source_url          TEXT NOT NULL,
    content_hash        TEXT NOT NULL,
    last_ingested_at    TEXT NOT NULL,
    last_source_update  TEXT,
    chunk_count         INTEGER,
    total_characters    INTEGER,
    metadata            TEXT
);

CREATE TABLE IF NOT EXISTS ingest_runs (
    id                  TEXT PRIMARY KEY,
    source              TEXT NOT NULL,
    ingestion_type      TEXT NOT NULL CHECK (ingestion_type IN ('full', 'partial')),
    status              TEXT NOT NULL CHECK (
        status IN ('in_progress', 'success', 'completed_with_errors', 'failed')
    ),
    started_at          TEXT NOT NULL,
    ended_at            TEXT,
    duration_ms         INTEGER,
    documents_processed INTEGER NOT NULL DEFAULT 0,
    documents_added     INTEGER NOT NULL DEFAULT 0,
    documents_updated   INTEGER NOT NULL DEFAULT 0,
    documents_skipped   INTEGER NOT NULL DEFAULT 0,
    chunks_added        INTEGER NOT NULL DEFAULT 0,
    chunks_updated      INTEGER NOT NULL DEFAULT 0,
    characters_added    INTEGER NOT NULL DEFAULT 0,
    characters_updated  INTEGER NOT NULL DEFAULT 0,
    error_count         INTEGER NOT NULL DEFAULT 0,
    error_logs          TEXT NOT NULL DEFAULT '[]',
    metadata            TEXT
);

CREATE INDEX IF NOT EXISTS idx_ingest_runs_started_at ON ingest_runs (started_at);
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    Chunk tables are NOT managed here — use ensure_chunk_table() instead.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()
