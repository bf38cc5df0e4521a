"""Tests for run counters, the run summary and the event stream."""

from __future__ import annotations

import threading

import pytest

from ragsync.db.models import RunStats
from ragsync.pipeline.events import Complete, EventStream, Log, NullEventStream, Progress
from ragsync.pipeline.stats import RunAccumulator, format_run_summary

# ---------------------------------------------------------------------------
# RunAccumulator
# ---------------------------------------------------------------------------


def test_increment_named_counters() -> None:
    acc = RunAccumulator()
    acc.increment(documents_added=1, chunks_added=3)
    acc.increment(documents_added=1)
    snap = acc.snapshot()
    assert snap.documents_added == 2
    assert snap.chunks_added == 3


def test_increment_unknown_counter() -> None:
    with pytest.raises(AttributeError):
        RunAccumulator().increment(documents_exploded=1)


def test_snapshot_is_a_copy() -> None:
    acc = RunAccumulator()
    snap = acc.snapshot()
    acc.increment(documents_processed=1)
    assert snap.documents_processed == 0


def test_error_log_capped_but_counted() -> None:
    acc = RunAccumulator()
    for i in range(60):
        acc.record_error(f"e{i}", context=f"item-{i}")
    assert acc.snapshot().error_count == 60
    assert len(acc.error_logs) == 50
    assert acc.error_logs[0].context == "item-0"


def test_concurrent_increments_are_not_lost() -> None:
    acc = RunAccumulator()

    def work() -> None:
        for _ in range(1000):
            acc.increment(documents_processed=1)

    threads = [threading.Thread(target=work) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert acc.snapshot().documents_processed == 8000


# ---------------------------------------------------------------------------
# format_run_summary
# ---------------------------------------------------------------------------


def test_summary_lists_every_counter() -> None:
    stats = RunStats(
        documents_processed=5,
        documents_added=2,
        documents_updated=1,
        documents_skipped=1,
        chunks_added=7,
        chunks_updated=3,
        characters_added=700,
        characters_updated=300,
        error_count=1,
    )
    summary = format_run_summary("completed_with_errors", stats, duration_ms=1500)
    lines = summary.splitlines()
    assert lines[0] == "Status: completed_with_errors"
    assert "Duration: 1.50s" in lines
    assert "  - Processed: 5" in lines
    assert "  - Skipped:   1" in lines
    assert lines[-1] == "Errors: 1"


def test_summary_without_duration() -> None:
    assert "Duration" not in format_run_summary("success", RunStats())


# ---------------------------------------------------------------------------
# EventStream
# ---------------------------------------------------------------------------


def test_stream_iterates_until_closed() -> None:
    stream = EventStream()
    stream.emit(Progress(step="a", percent=1.0))
    stream.emit(Log(level="info", message="hi"))
    stream.close()
    assert [e.type for e in stream] == ["progress", "log"]


def test_emit_after_close_raises() -> None:
    stream = EventStream()
    stream.close()
    assert stream.closed
    with pytest.raises(RuntimeError):
        stream.emit(Progress(step="late", percent=0.0))


def test_drain_does_not_block() -> None:
    stream = EventStream()
    assert stream.drain() == []
    stream.emit(Complete(status="success", stats=RunStats(), run_id=None, duration_ms=0))
    assert [e.type for e in stream.drain()] == ["complete"]


def test_null_stream_discards() -> None:
    stream = NullEventStream()
    stream.emit(Progress(step="x", percent=0.0))
    assert stream.drain() == []
