"""Directory-backed page workspace.

Each ``.md`` / ``.markdown`` / ``.txt`` file under the root is one page,
addressed by its POSIX path relative to the root. A page may carry YAML front
matter; an ``id`` key there gives the page a stable identity that survives
renames. Markdown links between pages are used for linked-page discovery.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any

import yaml

from ragsync.ingest.identifiers import DocIdentifiers, derive_page_identifiers
from ragsync.sources.base import SourceDocument, SourceFetchError

PAGE_EXTS = {".md", ".markdown", ".txt"}

_FRONT_MATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
_HEADING_RE = re.compile(r"^#\s+(.+?)\s*#*\s*$", re.MULTILINE)
_LINK_RE = re.compile(r"\[[^\]]*\]\(\s*<?([^)\s>#?]+)")
# Front matter keys that describe the page itself rather than its metadata.
_IDENTITY_KEYS = {"id", "title"}


def split_front_matter(text: str) -> tuple[dict[str, Any], str]:
    """Return ``(front_matter, body)``; front matter is {} when absent.

    Raises:
        SourceFetchError: If the front matter is not a YAML mapping.
    """
    match = _FRONT_MATTER_RE.match(text)
    if not match:
        return {}, text
    try:
        data = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as exc:
        raise SourceFetchError(f"Invalid front matter: {exc}") from exc
    if not isinstance(data, dict):
        raise SourceFetchError("Front matter must be a mapping")
    return data, text[match.end():]


class DirectoryPageSource:
    """Pages are files under *root*.

    Args:
        root: Workspace directory.
        max_depth: Maximum directory nesting scanned by ``list_pages``.
    """

    def __init__(self, root: str | Path, *, max_depth: int = 10) -> None:
        self._root = Path(root).expanduser().resolve()
        self._max_depth = max_depth
        if not self._root.is_dir():
            raise SourceFetchError(f"Workspace directory not found: {self._root}")

    @property
    def root(self) -> Path:
        return self._root

    def list_pages(self, root_page_id: str | None = None) -> list[str]:
        """All pages, or *root_page_id* plus the pages it links to (transitively)."""
        if root_page_id is None:
            return [self._page_id(p) for p in self._scan_dir(self._root, depth=0)]

        ordered: list[str] = []
        seen: set[str] = set()
        pending = [self._page_id(self._resolve(root_page_id))]
        while pending:
            page_id = pending.pop(0)
            if page_id in seen:
                continue
            seen.add(page_id)
            ordered.append(page_id)
            pending.extend(self._links(page_id))
        return ordered

    def identify(self, page_id: str) -> DocIdentifiers:
        """Front matter ``id`` wins; otherwise a UUID derived from the path."""
        path = self._resolve(page_id)
        front, _ = split_front_matter(self._read(path))
        raw = front.get("id")
        if raw is not None and str(raw).strip():
            return derive_page_identifiers(str(raw))
        rel = self._page_id(path)
        canonical = uuid.uuid5(uuid.NAMESPACE_URL, self._root.joinpath(rel).as_uri()).hex
        return DocIdentifiers(canonical_id=canonical, raw_id=rel)

    def fetch(self, page_id: str) -> SourceDocument:
        path = self._resolve(page_id)
        front, body = split_front_matter(self._read(path))
        title = str(front.get("title") or "").strip() or _first_heading(body) or path.stem
        metadata = {k: v for k, v in front.items() if k not in _IDENTITY_KEYS}
        metadata.setdefault("source_kind", "page")
        metadata["title"] = title
        mtime = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
        return SourceDocument(
            title=title,
            plain_text=body.strip(),
            source_url=path.as_uri(),
            last_modified=mtime,
            source_metadata=metadata,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _resolve(self, page_id: str) -> Path:
        path = (self._root / page_id).resolve()
        if self._root not in path.parents:
            raise SourceFetchError(f"Page outside workspace: {page_id}")
        if not path.is_file() or path.suffix.lower() not in PAGE_EXTS:
            raise SourceFetchError(f"Page not found: {page_id}")
        return path

    def _page_id(self, path: Path) -> str:
        return path.relative_to(self._root).as_posix()

    @staticmethod
    def _read(path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise SourceFetchError(f"Cannot read page {path}: {exc}") from exc

    def _links(self, page_id: str) -> list[str]:
        path = self._resolve(page_id)
        base = PurePosixPath(page_id).parent
        found = []
        for target in _LINK_RE.findall(self._read(path)):
            if "://" in target or target.startswith("mailto:"):
                continue
            candidate = (self._root / base / target).resolve()
            if (
                self._root in candidate.parents
                and candidate.is_file()
                and candidate.suffix.lower() in PAGE_EXTS
            ):
                found.append(self._page_id(candidate))
        return found

    def _scan_dir(self, directory: Path, depth: int) -> list[Path]:
        if depth > self._max_depth:
            return []
        files: list[Path] = []
        try:
            entries = sorted(directory.iterdir())
        except PermissionError:
            return []
        for entry in entries:
            if entry.name.startswith("."):
                continue
            if entry.is_file() and entry.suffix.lower() in PAGE_EXTS:
                files.append(entry)
            elif entry.is_dir() and depth < self._max_depth:
                files.extend(self._scan_dir(entry, depth=depth + 1))
        return files


def _first_heading(body: str) -> str | None:
    match = _HEADING_RE.search(body)
    return match.group(1).strip() if match else None
