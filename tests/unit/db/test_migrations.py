"""Tests for the forward-only migration runner."""

from __future__ import annotations

import sqlite3

import pytest

from ragsync.db.connection import Database
from ragsync.db.migrations import MIGRATIONS, run_migrations


def _fresh_conn(tmp_path):
    """Open a new connection without running migrations."""
    db = Database(tmp_path / "test.db")
    return db.connect()


def _table_exists(conn, name: str) -> bool:
    return conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (name,)
    ).fetchone() is not None


# --- Bootstrap ---

def test_run_migrations_creates_schema_version(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    assert _table_exists(conn, "schema_version")
    conn.close()


def test_run_migrations_records_version(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    version = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()[0]
    assert version == MIGRATIONS[-1][0]
    conn.close()


# --- Idempotency ---

def test_run_migrations_idempotent(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    run_migrations(conn)
    count = conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    assert count == len(MIGRATIONS)
    conn.close()


# --- Tables created ---

def test_run_migrations_creates_documents(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    assert _table_exists(conn, "documents")
    conn.close()


def test_run_migrations_creates_ingest_runs(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    assert _table_exists(conn, "ingest_runs")
    conn.close()


def test_run_migrations_does_not_create_chunk_tables(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name LIKE 'rag_chunks_%'"
    ).fetchall()
    assert rows == []
    conn.close()


def test_ingest_runs_rejects_unknown_status(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(
            "INSERT INTO ingest_runs (id, source, ingestion_type, status, started_at) "
            "VALUES ('r1', 'web', 'partial', 'exploded', '2024-01-01')"
        )
    conn.close()


# --- Connection ---

def test_connect_loads_sqlite_vec(tmp_path):
    conn = _fresh_conn(tmp_path)
    version = conn.execute("SELECT vec_version()").fetchone()[0]
    assert version
    conn.close()


def test_database_context_manager_closes(tmp_path):
    db = Database(tmp_path / "ctx.db")
    with db as conn:
        run_migrations(conn)
        assert _table_exists(conn, "documents")
    assert db._conn is None
