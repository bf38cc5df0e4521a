"""Row-level datastore over a shared SQLite connection.

Single interface for select / insert / update / upsert / delete with equality
and ``IN`` filters. sqlite3 errors are translated into the datastore error
hierarchy so callers can tell a missing table from a busy database.
"""

from __future__ import annotations

import re
import sqlite3
import threading
from typing import Any, Iterable, Mapping, Sequence

from ragsync.db.errors import translate_sqlite_error

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _ident(name: str) -> str:
    if not _IDENTIFIER_RE.fullmatch(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


class SqliteDatastore:
    """Thread-safe wrapper around one ``sqlite3.Connection``.

    Worker threads share the connection; every statement runs under a
    re-entrant lock and write statements commit (or roll back) before the lock
    is released. The connection is owned by the caller.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.RLock()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def select(
        self,
        table: str,
        columns: Sequence[str],
        *,
        where: Mapping[str, Any] | None = None,
        where_in: Mapping[str, Sequence[Any]] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return matching rows as plain dicts."""
        cols = ", ".join(_ident(c) for c in columns)
        clause, params = _where_clause(where, where_in)
        sql = f"SELECT {cols} FROM {_ident(table)}{clause}"
        if order_by:
            sql += f" ORDER BY {_ident(order_by)} {'DESC' if descending else 'ASC'}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        rows = self._query(table, sql, params)
        return [dict(r) for r in rows]

    def select_one(
        self,
        table: str,
        columns: Sequence[str],
        *,
        where: Mapping[str, Any],
    ) -> dict[str, Any] | None:
        rows = self.select(table, columns, where=where, limit=1)
        return rows[0] if rows else None

    def count(self, table: str, *, where: Mapping[str, Any] | None = None) -> int:
        clause, params = _where_clause(where, None)
        rows = self._query(table, f"SELECT COUNT(*) FROM {_ident(table)}{clause}", params)
        return int(rows[0][0])

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, table: str, row: Mapping[str, Any]) -> None:
        cols = list(row)
        sql = (
            f"INSERT INTO {_ident(table)} ({', '.join(_ident(c) for c in cols)}) "
            f"VALUES ({', '.join('?' for _ in cols)})"
        )
        self._write(table, sql, [[row[c] for c in cols]])

    def update(
        self,
        table: str,
        values: Mapping[str, Any],
        *,
        where: Mapping[str, Any],
    ) -> int:
        if not where:
            raise ValueError("update() requires a where filter")
        assignments = ", ".join(f"{_ident(c)} = ?" for c in values)
        clause, params = _where_clause(where, None)
        sql = f"UPDATE {_ident(table)} SET {assignments}{clause}"
        return self._write(table, sql, [[*values.values(), *params]])

    def upsert(
        self,
        table: str,
        rows: Sequence[Mapping[str, Any]],
        *,
        on_conflict: Sequence[str],
        update_columns: Iterable[str] | None = None,
    ) -> int:
        """Insert *rows*; rows that collide on *on_conflict* are updated in place.

        All rows must share the same keys. ``update_columns`` defaults to every
        non-conflict column.
        """
        if not rows:
            return 0
        cols = list(rows[0])
        conflict = [_ident(c) for c in on_conflict]
        updates = [
            _ident(c)
            for c in (update_columns if update_columns is not None else cols)
            if c not in on_conflict
        ]
        sql = (
            f"INSERT INTO {_ident(table)} ({', '.join(_ident(c) for c in cols)}) "
            f"VALUES ({', '.join('?' for _ in cols)}) "
            f"ON CONFLICT({', '.join(conflict)}) "
        )
        if updates:
            sql += "DO UPDATE SET " + ", ".join(f"{c} = excluded.{c}" for c in updates)
        else:
            sql += "DO NOTHING"
        return self._write(table, sql, [[r[c] for c in cols] for r in rows])

    def delete(
        self,
        table: str,
        *,
        where: Mapping[str, Any],
        where_in: Mapping[str, Sequence[Any]] | None = None,
    ) -> int:
        if not where and not where_in:
            raise ValueError("delete() requires a filter")
        clause, params = _where_clause(where, where_in)
        return self._write(table, f"DELETE FROM {_ident(table)}{clause}", [params])

    def execute_script(self, table: str, sql: str) -> None:
        """Run DDL for *table* (used by on-demand table creation)."""
        with self._lock:
            try:
                self._conn.executescript(sql)
            except sqlite3.Error as exc:
                _reraise(exc, table)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _query(self, table: str, sql: str, params: Sequence[Any]) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(sql, list(params)).fetchall()
            except sqlite3.Error as exc:
                _reraise(exc, table)

    def _write(self, table: str, sql: str, param_rows: list[list[Any]]) -> int:
        with self._lock:
            try:
                if len(param_rows) == 1:
                    cur = self._conn.execute(sql, param_rows[0])
                else:
                    cur = self._conn.executemany(sql, param_rows)
                self._conn.commit()
                return cur.rowcount
            except sqlite3.Error as exc:
                self._conn.rollback()
                _reraise(exc, table)


def _where_clause(
    where: Mapping[str, Any] | None,
    where_in: Mapping[str, Sequence[Any]] | None,
) -> tuple[str, list[Any]]:
    parts: list[str] = []
    params: list[Any] = []
    for col, value in (where or {}).items():
        if value is None:
            parts.append(f"{_ident(col)} IS NULL")
        else:
            parts.append(f"{_ident(col)} = ?")
            params.append(value)
    for col, values in (where_in or {}).items():
        values = list(values)
        if not values:
            # Empty IN list matches nothing.
            parts.append("0")
            continue
        parts.append(f"{_ident(col)} IN ({', '.join('?' for _ in values)})")
        params.extend(values)
    if not parts:
        return "", params
    return " WHERE " + " AND ".join(parts), params


def _reraise(exc: sqlite3.Error, table: str) -> None:
    translated = translate_sqlite_error(exc, table)
    if translated is exc:
        raise exc
    raise translated from exc
