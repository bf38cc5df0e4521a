"""Tests for the directory-backed page workspace."""

from __future__ import annotations

import uuid
from datetime import datetime
from pathlib import Path

import pytest

from ragsync.sources.base import SourceFetchError
from ragsync.sources.files import DirectoryPageSource, split_front_matter


def _write(root: Path, rel: str, text: str) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    _write(tmp_path, "index.md", "# Home\n\nSee [setup](guide/setup.md) and [faq](faq.md).\n")
    _write(tmp_path, "guide/setup.md", "# Setup\n\nBack to [home](../index.md).\n")
    _write(tmp_path, "faq.md", "---\nid: 1A2B3C4D-5E6F-7A8B-9C0D-1E2F3A4B5C6D\ntitle: FAQ\ntags: [help, faq]\n---\nQuestions.\n")
    _write(tmp_path, "orphan.txt", "Nobody links here.")
    _write(tmp_path, ".hidden/secret.md", "# no")
    _write(tmp_path, "image.png", "not a page")
    return tmp_path


# ---------------------------------------------------------------------------
# Front matter
# ---------------------------------------------------------------------------


def test_split_front_matter_absent():
    assert split_front_matter("# Title\nbody") == ({}, "# Title\nbody")


def test_split_front_matter_present():
    front, body = split_front_matter("---\ntitle: X\n---\nbody\n")
    assert front == {"title": "X"}
    assert body == "body\n"


def test_split_front_matter_not_mapping():
    with pytest.raises(SourceFetchError, match="mapping"):
        split_front_matter("---\n- a\n- b\n---\nbody")


def test_split_front_matter_invalid_yaml():
    with pytest.raises(SourceFetchError, match="Invalid front matter"):
        split_front_matter("---\nkey: [unclosed\n---\nbody")


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


def test_missing_root_raises(tmp_path: Path):
    with pytest.raises(SourceFetchError):
        DirectoryPageSource(tmp_path / "nope")


def test_list_all_pages_sorted_skips_hidden(workspace: Path):
    pages = DirectoryPageSource(workspace).list_pages()
    assert pages == ["faq.md", "guide/setup.md", "index.md", "orphan.txt"]


def test_list_linked_pages_from_root(workspace: Path):
    pages = DirectoryPageSource(workspace).list_pages("index.md")
    assert pages == ["index.md", "guide/setup.md", "faq.md"]


def test_list_linked_pages_handles_cycles(workspace: Path):
    pages = DirectoryPageSource(workspace).list_pages("guide/setup.md")
    assert pages == ["guide/setup.md", "index.md", "faq.md"]


def test_list_pages_unknown_root_raises(workspace: Path):
    with pytest.raises(SourceFetchError, match="not found"):
        DirectoryPageSource(workspace).list_pages("missing.md")


def test_max_depth_limits_scan(tmp_path: Path):
    _write(tmp_path, "a/b/c/deep.md", "deep")
    _write(tmp_path, "top.md", "top")
    assert DirectoryPageSource(tmp_path, max_depth=1).list_pages() == ["top.md"]


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


def test_identify_front_matter_id(workspace: Path):
    ids = DirectoryPageSource(workspace).identify("faq.md")
    assert ids.canonical_id == "1a2b3c4d5e6f7a8b9c0d1e2f3a4b5c6d"
    assert ids.raw_id == "1A2B3C4D-5E6F-7A8B-9C0D-1E2F3A4B5C6D"


def test_identify_path_derived(workspace: Path):
    source = DirectoryPageSource(workspace)
    ids = source.identify("guide/setup.md")
    expected = uuid.uuid5(uuid.NAMESPACE_URL, (source.root / "guide/setup.md").as_uri()).hex
    assert ids.canonical_id == expected
    assert ids.raw_id == "guide/setup.md"


def test_path_escape_rejected(tmp_path: Path):
    _write(tmp_path, "outside.md", "x")
    _write(tmp_path, "ws/inside.md", "x")
    with pytest.raises(SourceFetchError, match="outside"):
        DirectoryPageSource(tmp_path / "ws").fetch("../outside.md")


# ---------------------------------------------------------------------------
# Fetch
# ---------------------------------------------------------------------------


def test_fetch_title_from_heading(workspace: Path):
    doc = DirectoryPageSource(workspace).fetch("guide/setup.md")
    assert doc.title == "Setup"
    assert doc.plain_text.startswith("# Setup")
    assert doc.source_url.startswith("file://")
    assert isinstance(doc.last_modified, datetime)
    assert doc.source_metadata == {"source_kind": "page", "title": "Setup"}


def test_fetch_front_matter_metadata(workspace: Path):
    doc = DirectoryPageSource(workspace).fetch("faq.md")
    assert doc.title == "FAQ"
    assert doc.plain_text == "Questions."
    assert doc.source_metadata == {"tags": ["help", "faq"], "source_kind": "page", "title": "FAQ"}


def test_fetch_title_falls_back_to_stem(workspace: Path):
    assert DirectoryPageSource(workspace).fetch("orphan.txt").title == "orphan"


def test_fetch_non_page_rejected(workspace: Path):
    with pytest.raises(SourceFetchError):
        DirectoryPageSource(workspace).fetch("image.png")
