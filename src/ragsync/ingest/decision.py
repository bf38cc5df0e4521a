"""Per-document change decision: skip, metadata-only or full ingest.

``decide_ingest_action`` is the only place skip logic lives; every ingestion
entry point calls it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ragsync.db.models import DocumentState, IngestionType
from ragsync.ingest.timestamps import TimestampLike, timestamps_equal


class IngestDecision(str, Enum):
    SKIP = "skip"
    METADATA_ONLY = "metadata-only"
    FULL = "full"


class FullIngestReason(str, Enum):
    REQUESTED = "Full ingestion requested"
    EMBEDDING_REFRESH = "Embedding refresh required for this provider"
    CONTENT_CHANGED = "Content hash changed"


@dataclass(frozen=True)
class DecisionInput:
    content_unchanged: bool
    metadata_unchanged: bool
    ingestion_type: IngestionType
    provider_has_chunks: bool


def is_unchanged(
    existing: DocumentState | None,
    *,
    content_hash: str,
    last_source_update: TimestampLike = None,
) -> bool:
    """True when *existing* matches the hash and (if given) the source timestamp."""
    if existing is None:
        return False
    if existing.content_hash != content_hash:
        return False
    if last_source_update is None:
        return True
    return timestamps_equal(existing.last_source_update, last_source_update)


def decide_ingest_action(decision: DecisionInput) -> IngestDecision:
    if decision.ingestion_type == "full":
        return IngestDecision.FULL
    if decision.content_unchanged:
        if not decision.metadata_unchanged:
            return IngestDecision.METADATA_ONLY
        if decision.provider_has_chunks:
            return IngestDecision.SKIP
        return IngestDecision.FULL
    return IngestDecision.FULL


def full_ingest_reason(decision: DecisionInput) -> FullIngestReason:
    """Explain why ``decide_ingest_action`` returned FULL (for logs)."""
    if decision.ingestion_type == "full":
        return FullIngestReason.REQUESTED
    if decision.content_unchanged:
        return FullIngestReason.EMBEDDING_REFRESH
    return FullIngestReason.CONTENT_CHANGED
