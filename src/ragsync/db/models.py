"""Domain models for the ragsync datastore layer."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

IngestionType = Literal["full", "partial"]
RunStatus = Literal["in_progress", "success", "completed_with_errors", "failed"]
TerminalRunStatus = Literal["success", "completed_with_errors", "failed"]

MAX_ERROR_LOGS = 50


@dataclass
class DocumentState:
    """Last-known state of one canonical document."""

    doc_id: str
    source_url: str
    content_hash: str
    raw_doc_id: str | None = None
    last_ingested_at: str | None = None
    last_source_update: str | None = None
    chunk_count: int | None = None
    total_characters: int | None = None
    metadata: dict[str, Any] | None = None


@dataclass
class ChunkRow:
    """One embedded chunk, unique per (doc_id, chunk_hash) within a space."""

    doc_id: str
    source_url: str
    title: str
    chunk: str
    chunk_hash: str
    embedding: list[float]
    ingested_at: str | None = None


@dataclass(frozen=True)
class IngestRunHandle:
    id: str


@dataclass
class RunErrorLog:
    message: str
    context: str | None = None
    doc_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"context": self.context, "doc_id": self.doc_id, "message": self.message}


@dataclass
class RunStats:
    """Aggregate counters for one ingest run."""

    documents_processed: int = 0
    documents_added: int = 0
    documents_updated: int = 0
    documents_skipped: int = 0
    chunks_added: int = 0
    chunks_updated: int = 0
    characters_added: int = 0
    characters_updated: int = 0
    error_count: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class IngestRun:
    """A ledger record as read back from the datastore."""

    id: str
    source: str
    ingestion_type: IngestionType
    status: RunStatus
    started_at: str
    ended_at: str | None = None
    duration_ms: int | None = None
    stats: RunStats = field(default_factory=RunStats)
    error_logs: list[RunErrorLog] = field(default_factory=list)
    metadata: dict[str, Any] | None = None
