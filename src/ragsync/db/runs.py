"""Run ledger: one auditable record per ingestion run."""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from ragsync.db.availability import DatastoreAvailability
from ragsync.db.datastore import SqliteDatastore
from ragsync.db.errors import DatastoreError, MissingRelationError
from ragsync.db.models import (
    MAX_ERROR_LOGS,
    IngestionType,
    IngestRun,
    IngestRunHandle,
    RunErrorLog,
    RunStats,
    TerminalRunStatus,
)
from ragsync.db.retry import RetryPolicy
from ragsync.db.schema import INGEST_RUNS_TABLE
from ragsync.logging import get_logger

_LOGGER = get_logger(__name__, component="run-ledger")

_STAT_COLUMNS = tuple(RunStats().to_dict())
_RUN_COLUMNS = (
    "id",
    "source",
    "ingestion_type",
    "status",
    "started_at",
    "ended_at",
    "duration_ms",
    *_STAT_COLUMNS,
    "error_logs",
    "metadata",
)


def derive_run_status(*, raised: bool, error_count: int) -> TerminalRunStatus:
    """Terminal status from whether the run itself raised and its error count."""
    if raised:
        return "failed"
    if error_count > 0:
        return "completed_with_errors"
    return "success"


class RunLedger:
    """Opens and closes ``ingest_runs`` records.

    A missing ``ingest_runs`` table is not fatal: ``start`` returns None, and
    ``finish`` with a None handle is a no-op, so ingestion proceeds unlogged.
    """

    def __init__(
        self,
        datastore: SqliteDatastore,
        availability: DatastoreAvailability,
        retry: RetryPolicy | None = None,
        table: str = INGEST_RUNS_TABLE,
    ) -> None:
        self._datastore = datastore
        self._availability = availability
        self._retry = retry or RetryPolicy()
        self._table = table

    def start(
        self,
        source: str,
        ingestion_type: IngestionType,
        metadata: Mapping[str, Any] | None = None,
    ) -> IngestRunHandle | None:
        """Insert an ``in_progress`` run and return its handle."""
        if self._availability.is_missing(self._table):
            return None
        run_id = str(uuid.uuid4())
        row = {
            "id": run_id,
            "source": source,
            "ingestion_type": ingestion_type,
            "status": "in_progress",
            "started_at": _now_iso(),
            "metadata": json.dumps(dict(metadata), sort_keys=True) if metadata else None,
        }
        try:
            self._retry.run(lambda: self._datastore.insert(self._table, row), "start ingest run")
        except MissingRelationError:
            self._degrade()
            return None
        self._availability.mark_available(self._table)
        return IngestRunHandle(id=run_id)

    def finish(
        self,
        handle: IngestRunHandle | None,
        *,
        status: TerminalRunStatus,
        duration_ms: int,
        totals: RunStats,
        error_logs: Iterable[RunErrorLog] = (),
    ) -> None:
        """Write the terminal status, counters and first 50 error logs.

        Failures here are logged rather than raised: ``finish`` runs on the
        cleanup path and must not mask the run's own outcome.
        """
        if handle is None or self._availability.is_missing(self._table):
            return
        logs = [entry.to_dict() for entry in list(error_logs)[:MAX_ERROR_LOGS]]
        values: dict[str, Any] = {
            "status": status,
            "ended_at": _now_iso(),
            "duration_ms": int(duration_ms),
            **totals.to_dict(),
            "error_logs": json.dumps(logs),
        }
        try:
            self._retry.run(
                lambda: self._datastore.update(self._table, values, where={"id": handle.id}),
                "finish ingest run",
            )
        except MissingRelationError:
            self._degrade()
        except DatastoreError as exc:
            _LOGGER.error("ingest-run-finish-failed", run_id=handle.id, error=str(exc))

    def get(self, run_id: str) -> IngestRun | None:
        if self._availability.is_missing(self._table):
            return None
        try:
            row = self._datastore.select_one(self._table, _RUN_COLUMNS, where={"id": run_id})
        except MissingRelationError:
            self._degrade()
            return None
        return _row_to_run(row) if row else None

    def list_recent(self, limit: int = 10) -> list[IngestRun]:
        """Return the newest runs first."""
        if self._availability.is_missing(self._table):
            return []
        try:
            rows = self._datastore.select(
                self._table,
                _RUN_COLUMNS,
                order_by="started_at",
                descending=True,
                limit=limit,
            )
        except MissingRelationError:
            self._degrade()
            return []
        return [_row_to_run(r) for r in rows]

    def _degrade(self) -> None:
        if self._availability.mark_missing(self._table):
            _LOGGER.warning(
                "ingest-runs-table-missing",
                table=self._table,
                detail="Run-level logging will be skipped.",
            )


def _row_to_run(row: dict[str, Any]) -> IngestRun:
    logs = json.loads(row["error_logs"] or "[]")
    return IngestRun(
        id=row["id"],
        source=row["source"],
        ingestion_type=row["ingestion_type"],
        status=row["status"],
        started_at=row["started_at"],
        ended_at=row["ended_at"],
        duration_ms=row["duration_ms"],
        stats=RunStats(**{col: row[col] for col in _STAT_COLUMNS}),
        error_logs=[
            RunErrorLog(message=e["message"], context=e.get("context"), doc_id=e.get("doc_id"))
            for e in logs
        ],
        metadata=json.loads(row["metadata"]) if row["metadata"] else None,
    )


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
