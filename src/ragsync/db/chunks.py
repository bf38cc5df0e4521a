"""Chunk store reconciliation for one embedding space."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Sequence

import sqlite_vec

from ragsync.db.chunk_tables import chunk_table_name, ensure_chunk_table
from ragsync.db.datastore import SqliteDatastore
from ragsync.db.models import ChunkRow
from ragsync.db.retry import RetryPolicy


@dataclass(frozen=True)
class ReplaceResult:
    deleted: int
    upserted: int


class ChunkStore:
    """Reads and reconciles chunk rows in ``rag_chunks_<space>`` tables.

    Chunk tables are created on first use per embedding space; the store
    remembers which tables it has already ensured.
    """

    def __init__(self, datastore: SqliteDatastore, retry: RetryPolicy | None = None) -> None:
        self._datastore = datastore
        self._retry = retry or RetryPolicy()
        self._ensured: set[str] = set()
        self._lock = threading.Lock()

    def table_for(self, embedding_space_id: str) -> str:
        """Return (creating if needed) the chunk table for a space."""
        table = chunk_table_name(embedding_space_id)
        with self._lock:
            if table not in self._ensured:
                ensure_chunk_table(self._datastore, embedding_space_id)
                self._ensured.add(table)
        return table

    def list_hashes(self, doc_id: str, embedding_space_id: str) -> set[str]:
        """Return the chunk hashes stored for *doc_id* in the space."""
        table = self.table_for(embedding_space_id)
        rows = self._retry.run(
            lambda: self._datastore.select(table, ["chunk_hash"], where={"doc_id": doc_id}),
            f"select {table}",
        )
        return {row["chunk_hash"] for row in rows}

    def has_chunks(self, doc_id: str, embedding_space_id: str) -> bool:
        """True if the space already holds at least one chunk for *doc_id*."""
        table = self.table_for(embedding_space_id)
        count = self._retry.run(
            lambda: self._datastore.count(table, where={"doc_id": doc_id}),
            f"count {table}",
        )
        return count > 0

    def replace_chunks(
        self,
        doc_id: str,
        rows: Sequence[ChunkRow],
        embedding_space_id: str,
    ) -> ReplaceResult:
        """Make the stored chunk set for *doc_id* equal to *rows*.

        Stale hashes are deleted (scoped by ``doc_id``), then every row is
        upserted on ``(doc_id, chunk_hash)``. Re-running with the same rows
        leaves the row set unchanged.

        Raises:
            ValueError: If a row belongs to a different document.
        """
        for row in rows:
            if row.doc_id != doc_id:
                raise ValueError(
                    f"Chunk row for {row.doc_id!r} passed to replace_chunks({doc_id!r})"
                )

        table = self.table_for(embedding_space_id)
        existing = self.list_hashes(doc_id, embedding_space_id)
        incoming = {row.chunk_hash for row in rows}
        stale = sorted(existing - incoming)

        deleted = 0
        if stale:
            deleted = self._retry.run(
                lambda: self._datastore.delete(
                    table, where={"doc_id": doc_id}, where_in={"chunk_hash": stale}
                ),
                f"delete {table}",
            )

        payload = _dedupe([_to_record(row) for row in rows])
        upserted = 0
        if payload:
            self._retry.run(
                lambda: self._datastore.upsert(
                    table, payload, on_conflict=("doc_id", "chunk_hash")
                ),
                f"upsert {table}",
            )
            upserted = len(payload)
        return ReplaceResult(deleted=deleted, upserted=upserted)


def _to_record(row: ChunkRow) -> dict:
    ingested_at = row.ingested_at or datetime.now(timezone.utc).isoformat()
    return {
        "doc_id": row.doc_id,
        "source_url": row.source_url,
        "title": row.title,
        "chunk": row.chunk,
        "chunk_hash": row.chunk_hash,
        "embedding": sqlite_vec.serialize_float32(list(row.embedding)),
        "ingested_at": ingested_at,
    }


def _dedupe(records: list[dict]) -> list[dict]:
    # Repeated chunk text in one document hashes identically; keep the first.
    seen: set[str] = set()
    unique = []
    for record in records:
        if record["chunk_hash"] in seen:
            continue
        seen.add(record["chunk_hash"])
        unique.append(record)
    return unique
