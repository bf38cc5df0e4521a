"""Timestamp normalization for source-reported modification times."""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Union

TimestampLike = Union[str, int, float, datetime, None]


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _format(value: datetime) -> str:
    return _to_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def normalize_timestamp(value: TimestampLike) -> str | None:
    """Return *value* as an ISO-8601 UTC string with millisecond precision.

    Accepts ISO strings (``Z`` or offset suffix), RFC 2822 / HTTP dates,
    epoch milliseconds and ``datetime`` objects. Unparseable strings are
    returned stripped so that they still compare by value.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _format(value)
    if isinstance(value, bool):
        raise TypeError("bool is not a timestamp")
    if isinstance(value, (int, float)):
        return _format(datetime.fromtimestamp(value / 1000, tz=timezone.utc))

    text = value.strip()
    if not text:
        return None
    try:
        return _format(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        pass
    try:
        return _format(parsedate_to_datetime(text))
    except (TypeError, ValueError, IndexError):
        return text


def timestamps_equal(a: TimestampLike, b: TimestampLike) -> bool:
    return normalize_timestamp(a) == normalize_timestamp(b)
