"""Per-table availability tracking for graceful degradation.

A ``DatastoreAvailability`` instance is created once per process (or per test)
and handed to the stores that may run against a database where some tables
were never migrated. Once a table is found missing it stays missing for the
lifetime of the instance; stores consult it before every call.
"""

from __future__ import annotations

import threading
from enum import Enum


class TableStatus(str, Enum):
    UNKNOWN = "unknown"
    AVAILABLE = "available"
    MISSING = "missing"


class DatastoreAvailability:
    """Thread-safe map of table name -> ``TableStatus``."""

    def __init__(self) -> None:
        self._status: dict[str, TableStatus] = {}
        self._lock = threading.Lock()

    def status(self, table: str) -> TableStatus:
        with self._lock:
            return self._status.get(table, TableStatus.UNKNOWN)

    def is_missing(self, table: str) -> bool:
        return self.status(table) is TableStatus.MISSING

    def mark_available(self, table: str) -> None:
        with self._lock:
            if self._status.get(table) is not TableStatus.MISSING:
                self._status[table] = TableStatus.AVAILABLE

    def mark_missing(self, table: str) -> bool:
        """Flag *table* as missing. Returns True only on the first transition."""
        with self._lock:
            first = self._status.get(table) is not TableStatus.MISSING
            self._status[table] = TableStatus.MISSING
            return first
