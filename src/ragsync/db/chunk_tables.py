"""Per-embedding-space chunk table management.

Each embedding space (provider + model + version) owns a disjoint table named
``rag_chunks_<embedding_space_id>``. Tables are created on demand, outside the
migration runner, because the set of spaces is configuration-driven.
"""

from __future__ import annotations

import re

from ragsync.db.datastore import SqliteDatastore

_TABLE_PREFIX = "rag_chunks_"


def normalize_space_slug(value: str) -> str:
    """Lower-case *value* and collapse non-alphanumeric runs to ``_``.

    Examples:
        "text-embedding-3-small" -> "text_embedding_3_small"
        "openai_te3s_v1"         -> "openai_te3s_v1"
    """
    return re.sub(r"[^a-z0-9]+", "_", value.lower()).strip("_")


def chunk_table_name(embedding_space_id: str) -> str:
    """Return the chunk table name for an embedding space id."""
    slug = normalize_space_slug(embedding_space_id)
    if not slug:
        raise ValueError(f"Invalid embedding space id: {embedding_space_id!r}")
    return f"{_TABLE_PREFIX}{slug}"


def ensure_chunk_table(datastore: SqliteDatastore, embedding_space_id: str) -> str:
    """Create the chunk table for *embedding_space_id* if it does not exist.

    Returns:
        The table name.
    """
    table = chunk_table_name(embedding_space_id)
    datastore.execute_script(
        table,
        f"""
        CREATE TABLE IF NOT EXISTS {table} (
            doc_id       TEXT NOT NULL,
            source_url   TEXT NOT NULL,
            title        TEXT NOT NULL,
            chunk        TEXT NOT NULL,
            chunk_hash   TEXT NOT NULL,
            embedding    BLOB NOT NULL,
            ingested_at  TEXT NOT NULL,
            UNIQUE (doc_id, chunk_hash)
        );
        CREATE INDEX IF NOT EXISTS idx_{table}_doc_id ON {table} (doc_id);
        """,
    )
    return table
