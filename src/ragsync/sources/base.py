"""Source collaborator contract.

A source hands the pipeline one ``SourceDocument`` per identifier; it never
hashes, chunks or stores anything itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from ragsync.ingest.identifiers import DocIdentifiers
from ragsync.ingest.timestamps import TimestampLike


class SourceFetchError(RuntimeError):
    """A source could not produce a document for an identifier."""


@dataclass
class SourceDocument:
    title: str
    plain_text: str
    source_url: str
    last_modified: TimestampLike = None
    source_metadata: dict[str, Any] = field(default_factory=dict)


class PageSource(Protocol):
    """A workspace of pages addressed by raw page id."""

    def list_pages(self, root_page_id: str | None = None) -> list[str]:
        """Raw ids of the pages reachable from *root_page_id* (or the whole workspace)."""
        ...

    def identify(self, page_id: str) -> DocIdentifiers:
        ...

    def fetch(self, page_id: str) -> SourceDocument:
        ...


class UrlSource(Protocol):
    def fetch(self, url: str) -> SourceDocument:
        ...
