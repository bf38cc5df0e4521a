"""Source collaborators: web pages and directory workspaces."""

from ragsync.sources.base import PageSource, SourceDocument, SourceFetchError, UrlSource
from ragsync.sources.files import DirectoryPageSource
from ragsync.sources.web import SsrfError, WebSource, build_url_metadata

__all__ = [
    "DirectoryPageSource",
    "PageSource",
    "SourceDocument",
    "SourceFetchError",
    "SsrfError",
    "UrlSource",
    "WebSource",
    "build_url_metadata",
]
