"""Exponential backoff for low-level datastore calls.

Only ``TransientDatastoreError`` is retried. Missing relations and every other
error surface immediately so the caller can degrade or record a failure.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from ragsync.db.errors import TransientDatastoreError
from ragsync.logging import get_logger

T = TypeVar("T")

_LOGGER = get_logger(__name__, component="datastore-retry")


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt cap and backoff base for datastore operations."""

    attempts: int = 4
    base_delay: float = 0.5
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False)

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("attempts must be >= 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number *attempt* (1-based)."""
        return self.base_delay * (2 ** (attempt - 1))

    def run(self, operation: Callable[[], T], description: str) -> T:
        """Call *operation*, retrying transient failures up to ``attempts`` times."""
        attempt = 1
        while True:
            try:
                return operation()
            except TransientDatastoreError as exc:
                if attempt >= self.attempts:
                    raise
                delay = self.delay_for(attempt)
                _LOGGER.warning(
                    "datastore-retry",
                    operation=description,
                    attempt=attempt,
                    max_attempts=self.attempts,
                    retry_delay=delay,
                    error=str(exc),
                )
                self.sleep(delay)
                attempt += 1
