"""Typed run lifecycle events and the one-way stream that carries them.

The pipeline only ever pushes; consumers (CLI renderers, tests) drain the
stream at their own pace. ``EventStream.close`` marks the end of a run.
"""

from __future__ import annotations

import queue
from dataclasses import dataclass, field
from typing import Iterator, Literal, Union

from ragsync.db.models import RunStats, TerminalRunStatus

LogLevel = Literal["debug", "info", "warn", "error"]


@dataclass(frozen=True)
class RunStarted:
    run_id: str | None
    source: str
    ingestion_type: str
    type: str = field(default="run-started", init=False)


@dataclass(frozen=True)
class Progress:
    step: str
    percent: float
    type: str = field(default="progress", init=False)


@dataclass(frozen=True)
class Log:
    level: LogLevel
    message: str
    type: str = field(default="log", init=False)


@dataclass(frozen=True)
class QueueItem:
    current: int
    total: int
    item_id: str
    title: str | None = None
    type: str = field(default="queue", init=False)


@dataclass(frozen=True)
class Complete:
    status: TerminalRunStatus
    stats: RunStats
    run_id: str | None
    duration_ms: int
    type: str = field(default="complete", init=False)


RunEvent = Union[RunStarted, Progress, Log, QueueItem, Complete]

_CLOSED = object()


class EventStream:
    """Thread-safe FIFO of ``RunEvent`` objects."""

    def __init__(self) -> None:
        self._queue: queue.Queue = queue.Queue()
        self._closed = False

    def emit(self, event: RunEvent) -> None:
        if self._closed:
            raise RuntimeError("Event stream is closed")
        self._queue.put(event)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put(_CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[RunEvent]:
        """Yield events until the stream is closed."""
        while True:
            item = self._queue.get()
            if item is _CLOSED:
                return
            yield item

    def drain(self) -> list[RunEvent]:
        """Return every event queued so far without blocking."""
        events: list[RunEvent] = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return events
            if item is not _CLOSED:
                events.append(item)


class NullEventStream(EventStream):
    """Discards every event."""

    def emit(self, event: RunEvent) -> None:
        return None
