"""Tests for the per-document change decision."""

from __future__ import annotations

import pytest

from ragsync.db.models import DocumentState
from ragsync.ingest.decision import (
    DecisionInput,
    FullIngestReason,
    IngestDecision,
    decide_ingest_action,
    full_ingest_reason,
    is_unchanged,
)


def _state(**kwargs) -> DocumentState:
    kwargs.setdefault("doc_id", "d1")
    kwargs.setdefault("source_url", "https://example.com")
    kwargs.setdefault("content_hash", "h1")
    return DocumentState(**kwargs)


# ---------------------------------------------------------------------------
# decide_ingest_action
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("content", "metadata", "ingestion_type", "has_chunks", "expected"),
    [
        (True, True, "partial", True, IngestDecision.SKIP),
        (True, True, "partial", False, IngestDecision.FULL),
        (True, False, "partial", True, IngestDecision.METADATA_ONLY),
        (True, False, "partial", False, IngestDecision.METADATA_ONLY),
        (False, True, "partial", True, IngestDecision.FULL),
        (False, False, "partial", False, IngestDecision.FULL),
        (True, True, "full", True, IngestDecision.FULL),
        (True, False, "full", True, IngestDecision.FULL),
        (False, True, "full", False, IngestDecision.FULL),
    ],
)
def test_decide_ingest_action(content, metadata, ingestion_type, has_chunks, expected) -> None:
    decision = DecisionInput(
        content_unchanged=content,
        metadata_unchanged=metadata,
        ingestion_type=ingestion_type,
        provider_has_chunks=has_chunks,
    )
    assert decide_ingest_action(decision) is expected


def test_decision_values_are_wire_strings() -> None:
    assert [d.value for d in IngestDecision] == ["skip", "metadata-only", "full"]


@pytest.mark.parametrize(
    ("content", "ingestion_type", "expected"),
    [
        (True, "full", FullIngestReason.REQUESTED),
        (True, "partial", FullIngestReason.EMBEDDING_REFRESH),
        (False, "partial", FullIngestReason.CONTENT_CHANGED),
    ],
)
def test_full_ingest_reason(content, ingestion_type, expected) -> None:
    decision = DecisionInput(content, True, ingestion_type, False)
    assert full_ingest_reason(decision) is expected


# ---------------------------------------------------------------------------
# is_unchanged
# ---------------------------------------------------------------------------


def test_is_unchanged_no_prior_state() -> None:
    assert not is_unchanged(None, content_hash="h1")


def test_is_unchanged_hash_differs() -> None:
    assert not is_unchanged(_state(), content_hash="h2")


def test_is_unchanged_hash_matches_without_timestamp() -> None:
    assert is_unchanged(_state(last_source_update="2024-01-01T00:00:00.000Z"), content_hash="h1")


def test_is_unchanged_timestamp_formats_compare_equal() -> None:
    existing = _state(last_source_update="2024-03-01T10:00:00.000Z")
    assert is_unchanged(
        existing, content_hash="h1", last_source_update="Fri, 01 Mar 2024 10:00:00 GMT"
    )


def test_is_unchanged_timestamp_differs() -> None:
    existing = _state(last_source_update="2024-03-01T10:00:00.000Z")
    assert not is_unchanged(
        existing, content_hash="h1", last_source_update="2024-03-02T10:00:00Z"
    )


def test_is_unchanged_prior_without_timestamp() -> None:
    assert not is_unchanged(_state(), content_hash="h1", last_source_update="2024-03-02T10:00:00Z")
