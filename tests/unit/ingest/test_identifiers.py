"""Tests for canonical/raw document identifiers."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from ragsync.ingest.identifiers import (
    DocIdentifiers,
    canonicalize_url,
    derive_page_identifiers,
    derive_url_identifiers,
)

_DASHED = "1A2B3C4D-5E6F-7A8B-9C0D-1E2F3A4B5C6D"


def test_page_id_dashes_and_case_removed() -> None:
    ids = derive_page_identifiers(_DASHED)
    assert ids == DocIdentifiers(canonical_id="1a2b3c4d5e6f7a8b9c0d1e2f3a4b5c6d", raw_id=_DASHED)


def test_page_id_formats_share_canonical_id() -> None:
    dashed = derive_page_identifiers(_DASHED)
    compact = derive_page_identifiers(_DASHED.replace("-", "").lower())
    assert dashed.canonical_id == compact.canonical_id
    assert dashed.raw_id != compact.raw_id


def test_non_canonical_page_id_warns() -> None:
    with patch("ragsync.ingest.identifiers._LOGGER") as logger:
        ids = derive_page_identifiers("docs/intro.md")
    assert ids.canonical_id == "docs/intro.md"
    assert logger.warning.call_args.args[0] == "non-canonical-page-id"


def test_canonicalize_url_lowercases_scheme_and_host() -> None:
    assert canonicalize_url("HTTPS://Example.COM/Path?q=1#frag") == "https://example.com/Path?q=1"


def test_canonicalize_url_empty_path() -> None:
    assert canonicalize_url(" https://example.com ") == "https://example.com/"


def test_canonicalize_url_rejects_relative() -> None:
    with pytest.raises(ValueError):
        canonicalize_url("/just/a/path")


def test_url_identifiers_keep_raw() -> None:
    ids = derive_url_identifiers("https://Example.com/a#top")
    assert ids.canonical_id == "https://example.com/a"
    assert ids.raw_id == "https://Example.com/a#top"
