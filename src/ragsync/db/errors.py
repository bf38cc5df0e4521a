"""Typed errors raised at the datastore boundary."""

from __future__ import annotations

import sqlite3

__all__ = [
    "DatastoreError",
    "MissingRelationError",
    "TransientDatastoreError",
    "translate_sqlite_error",
]

_MISSING_MARKERS = ("no such table",)
_TRANSIENT_MARKERS = ("database is locked", "database table is locked", "database is busy")


class DatastoreError(RuntimeError):
    """Base error for datastore failures."""


class MissingRelationError(DatastoreError):
    """Raised when a table the caller relies on does not exist."""

    def __init__(self, table: str, message: str | None = None) -> None:
        self.table = table
        super().__init__(message or f'relation "{table}" does not exist')


class TransientDatastoreError(DatastoreError):
    """Raised for lock/busy conditions that are worth retrying."""


def translate_sqlite_error(exc: sqlite3.Error, table: str) -> Exception:
    """Map a raw sqlite3 error to the datastore hierarchy.

    Returns *exc* itself when the error is neither a missing relation nor a
    transient lock, so callers can ``raise translate_sqlite_error(...) from exc``
    uniformly.
    """
    message = str(exc).lower()
    if isinstance(exc, sqlite3.OperationalError):
        if any(marker in message for marker in _MISSING_MARKERS):
            return MissingRelationError(table, str(exc))
        if any(marker in message for marker in _TRANSIENT_MARKERS):
            return TransientDatastoreError(str(exc))
    return exc
