"""Tests for text normalization and content fingerprints."""

from __future__ import annotations

import hashlib

from ragsync.ingest.hashing import hash_chunk, hash_content, normalize_text


def test_normalize_text_unifies_newlines() -> None:
    assert normalize_text("a\r\nb\rc") == "a\nb\nc"


def test_normalize_text_collapses_spaces_and_blank_lines() -> None:
    assert normalize_text("  a \t  b  \n\n\n\n c ") == "a b\n\nc"


def test_hash_content_is_sha256_of_id_and_text() -> None:
    expected = hashlib.sha256(b"doc1:hello world").hexdigest()
    assert hash_content("doc1", "hello world") == expected


def test_hash_content_ignores_whitespace_noise() -> None:
    assert hash_content("d", "hello   world\r\n") == hash_content("d", "hello world")


def test_hash_content_scoped_to_document() -> None:
    assert hash_content("d1", "same") != hash_content("d2", "same")


def test_hash_content_detects_change() -> None:
    assert hash_content("d", "version one") != hash_content("d", "version two")


def test_hash_chunk_scoped_to_document() -> None:
    assert hash_chunk("d1", "chunk") != hash_chunk("d2", "chunk")
    assert len(hash_chunk("d1", "chunk")) == 64
