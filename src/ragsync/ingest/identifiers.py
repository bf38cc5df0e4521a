"""Two-part document identity: canonical id for storage, raw id for drift checks."""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlsplit, urlunsplit

from ragsync.logging import get_logger

_LOGGER = get_logger(__name__, component="doc-identifiers")

_CANONICAL_PAGE_ID_RE = re.compile(r"^[0-9a-f]{32}$")


@dataclass(frozen=True)
class DocIdentifiers:
    canonical_id: str
    raw_id: str


def derive_page_identifiers(raw_id: str) -> DocIdentifiers:
    """Canonical page id is the raw id lower-cased with dashes removed.

    Ids that do not come out as 32 lowercase hex characters are still
    returned, with a warning.
    """
    raw = raw_id.strip()
    canonical = raw.replace("-", "").lower()
    if not _CANONICAL_PAGE_ID_RE.fullmatch(canonical):
        _LOGGER.warning("non-canonical-page-id", raw_id=raw, canonical_id=canonical)
    return DocIdentifiers(canonical_id=canonical, raw_id=raw)


def canonicalize_url(url: str) -> str:
    """Lower-case scheme and host and drop the fragment.

    Raises:
        ValueError: If *url* has no scheme or host.
    """
    parts = urlsplit(url.strip())
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"Not an absolute URL: {url!r}")
    path = parts.path or "/"
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, parts.query, ""))


def derive_url_identifiers(url: str) -> DocIdentifiers:
    return DocIdentifiers(canonical_id=canonicalize_url(url), raw_id=url.strip())
