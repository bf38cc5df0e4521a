"""Per-document state persistence with missing-table degradation."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from ragsync.db.availability import DatastoreAvailability
from ragsync.db.datastore import SqliteDatastore
from ragsync.db.errors import MissingRelationError
from ragsync.db.models import DocumentState
from ragsync.db.retry import RetryPolicy
from ragsync.db.schema import DOCUMENTS_TABLE
from ragsync.ingest.metadata import normalize_metadata
from ragsync.logging import get_logger

_LOGGER = get_logger(__name__, component="document-state")

_COLUMNS = (
    "doc_id",
    "raw_doc_id",
    "source_url",
    "content_hash",
    "last_ingested_at",
    "last_source_update",
    "chunk_count",
    "total_characters",
    "metadata",
)

# Optional fields: only the ones passed to upsert() are written.
_OPTIONAL_FIELDS = frozenset(
    {"last_source_update", "chunk_count", "total_characters", "metadata"}
)


class DocumentStateStore:
    """Last-known hash, metadata and identifiers per canonical document.

    When the ``documents`` table is absent the store logs one warning, marks
    the table missing in the shared ``DatastoreAvailability`` and turns every
    later call into a no-op (``get`` returns None, ``upsert`` does nothing).
    """

    def __init__(
        self,
        datastore: SqliteDatastore,
        availability: DatastoreAvailability,
        retry: RetryPolicy | None = None,
        table: str = DOCUMENTS_TABLE,
    ) -> None:
        self._datastore = datastore
        self._availability = availability
        self._retry = retry or RetryPolicy()
        self._table = table

    @property
    def degraded(self) -> bool:
        return self._availability.is_missing(self._table)

    def get(self, doc_id: str) -> DocumentState | None:
        """Return the stored state for *doc_id*, or None if unknown."""
        if self.degraded:
            return None
        try:
            row = self._retry.run(
                lambda: self._datastore.select_one(
                    self._table, _COLUMNS, where={"doc_id": doc_id}
                ),
                "get document state",
            )
        except MissingRelationError:
            self._degrade()
            return None
        self._availability.mark_available(self._table)
        return _row_to_state(row) if row else None

    def upsert(
        self,
        doc_id: str,
        *,
        source_url: str,
        content_hash: str,
        raw_doc_id: str | None = None,
        **optional: Any,
    ) -> None:
        """Insert or update the state row for *doc_id*.

        Keyword args in ``optional`` (``last_source_update``, ``chunk_count``,
        ``total_characters``, ``metadata``) are written only when given, so a
        metadata-only update leaves chunk counters untouched. A differing
        ``raw_doc_id`` for the same ``doc_id`` is logged as drift and written.

        Raises:
            TypeError: If ``optional`` contains an unknown field.
        """
        unknown = set(optional) - _OPTIONAL_FIELDS
        if unknown:
            raise TypeError(f"Unknown document state fields: {sorted(unknown)}")
        if self.degraded:
            return

        payload: dict[str, Any] = {
            "doc_id": doc_id,
            "source_url": source_url,
            "content_hash": content_hash,
            "last_ingested_at": _now_iso(),
        }
        if raw_doc_id is not None:
            payload["raw_doc_id"] = raw_doc_id
        for key, value in optional.items():
            if key == "metadata":
                normalized = normalize_metadata(value)
                value = json.dumps(normalized, sort_keys=True, default=str) if normalized else None
            payload[key] = value

        try:
            if raw_doc_id is not None:
                self._check_drift(doc_id, raw_doc_id)
            self._retry.run(
                lambda: self._datastore.upsert(
                    self._table, [payload], on_conflict=("doc_id",)
                ),
                "upsert document state",
            )
        except MissingRelationError:
            self._degrade()
            return
        self._availability.mark_available(self._table)

    def _check_drift(self, doc_id: str, raw_doc_id: str) -> None:
        row = self._retry.run(
            lambda: self._datastore.select_one(
                self._table, ("raw_doc_id",), where={"doc_id": doc_id}
            ),
            "read raw document id",
        )
        previous = row["raw_doc_id"] if row else None
        if previous and previous != raw_doc_id:
            _LOGGER.warning(
                "doc-id-drift",
                canonical_id=doc_id,
                previous=previous,
                incoming=raw_doc_id,
            )

    def _degrade(self) -> None:
        if self._availability.mark_missing(self._table):
            _LOGGER.warning(
                "document-state-table-missing",
                table=self._table,
                detail="Document state tracking will be skipped; every document is fully ingested.",
            )


def _row_to_state(row: dict[str, Any]) -> DocumentState:
    metadata = json.loads(row["metadata"]) if row.get("metadata") else None
    return DocumentState(
        doc_id=row["doc_id"],
        raw_doc_id=row.get("raw_doc_id"),
        source_url=row["source_url"],
        content_hash=row["content_hash"],
        last_ingested_at=row.get("last_ingested_at"),
        last_source_update=row.get("last_source_update"),
        chunk_count=row.get("chunk_count"),
        total_characters=row.get("total_characters"),
        metadata=metadata,
    )


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
