"""Order-independent document metadata normalization and comparison.

Normalized metadata is a key-sorted dict with ``None`` values dropped and
``tags`` trimmed, de-duplicated and sorted. Empty metadata normalizes to
None, so "no metadata" and "empty metadata" compare equal.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

Metadata = Mapping[str, Any]
NormalizedMetadata = dict[str, Any]


def _normalize_tags(tags: Any) -> list[str] | None:
    if not isinstance(tags, (list, tuple, set, frozenset)):
        return None
    cleaned: set[str] = set()
    for tag in tags:
        if isinstance(tag, bool):
            continue
        if isinstance(tag, str):
            tag = tag.strip()
        elif isinstance(tag, (int, float)):
            tag = str(tag)
        else:
            continue
        if tag:
            cleaned.add(tag)
    return sorted(cleaned)


def normalize_metadata(metadata: Metadata | None) -> NormalizedMetadata | None:
    """Return the canonical form of *metadata*, or None when it is empty."""
    if not metadata:
        return None

    entries: dict[str, Any] = {}
    for raw_key, value in metadata.items():
        if value is None:
            continue
        key = str(raw_key)
        if key == "tags":
            tags = _normalize_tags(value)
            if tags is not None:
                entries[key] = tags
            continue
        entries[key] = value

    if not entries:
        return None
    return {key: entries[key] for key in sorted(entries)}


def stable_serialize(value: Any) -> str:
    """Serialize *value* with object keys sorted at every depth.

    Lists keep their order; ``None`` members of mappings are omitted.
    """
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(stable_serialize(item) for item in value) + "]"
    if isinstance(value, Mapping):
        items = sorted((str(k), v) for k, v in value.items() if v is not None)
        return "{" + ",".join(f"{k}:{stable_serialize(v)}" for k, v in items) + "}"
    return json.dumps(value, sort_keys=True, default=str)


def metadata_equals(a: Metadata | None, b: Metadata | None) -> bool:
    """Compare two metadata maps after normalization."""
    left = normalize_metadata(a)
    right = normalize_metadata(b)
    if left is None and right is None:
        return True
    if left is None or right is None:
        return False
    return stable_serialize(left) == stable_serialize(right)


def merge_metadata(
    existing: Metadata | None, incoming: Metadata | None
) -> NormalizedMetadata | None:
    """Shallow merge where *incoming* wins per key; result is renormalized."""
    merged: dict[str, Any] = {}
    merged.update(normalize_metadata(existing) or {})
    merged.update(normalize_metadata(incoming) or {})
    return normalize_metadata(merged)


def apply_default_metadata(
    metadata: Metadata | None, defaults: Metadata | None
) -> NormalizedMetadata | None:
    """Fill keys from *defaults* that *metadata* does not define."""
    return merge_metadata(defaults, metadata)
