"""Thread-safe run counters and the human-readable run summary."""

from __future__ import annotations

import threading
from dataclasses import replace

from ragsync.db.models import MAX_ERROR_LOGS, RunErrorLog, RunStats, TerminalRunStatus


class RunAccumulator:
    """Aggregate counters and error log shared by concurrent document workers.

    Every mutation happens under one lock. The error log keeps only the first
    ``MAX_ERROR_LOGS`` entries; ``error_count`` counts all of them.
    """

    def __init__(self) -> None:
        self._stats = RunStats()
        self._errors: list[RunErrorLog] = []
        self._lock = threading.Lock()

    def increment(self, **counters: int) -> None:
        """Add to named counters, e.g. ``increment(documents_added=1, chunks_added=3)``."""
        with self._lock:
            for name, amount in counters.items():
                if not hasattr(self._stats, name):
                    raise AttributeError(f"Unknown run counter: {name}")
                setattr(self._stats, name, getattr(self._stats, name) + amount)

    def record_error(self, message: str, *, context: str | None = None, doc_id: str | None = None) -> None:
        with self._lock:
            self._stats.error_count += 1
            if len(self._errors) < MAX_ERROR_LOGS:
                self._errors.append(RunErrorLog(message=message, context=context, doc_id=doc_id))

    def snapshot(self) -> RunStats:
        with self._lock:
            return replace(self._stats)

    @property
    def error_logs(self) -> list[RunErrorLog]:
        with self._lock:
            return list(self._errors)


def format_run_summary(
    status: TerminalRunStatus, stats: RunStats, duration_ms: int | None = None
) -> str:
    """One-paragraph summary of a finished run."""
    lines = [f"Status: {status}"]
    if duration_ms is not None:
        lines.append(f"Duration: {duration_ms / 1000:.2f}s")
    lines.extend(
        [
            "Documents:",
            f"  - Processed: {stats.documents_processed}",
            f"  - Added:     {stats.documents_added}",
            f"  - Updated:   {stats.documents_updated}",
            f"  - Skipped:   {stats.documents_skipped}",
            "Chunks:",
            f"  - Added:     {stats.chunks_added}",
            f"  - Updated:   {stats.chunks_updated}",
            "Characters:",
            f"  - Added:     {stats.characters_added}",
            f"  - Updated:   {stats.characters_updated}",
            f"Errors: {stats.error_count}",
        ]
    )
    return "\n".join(lines)
