"""Content and chunk fingerprints."""

from __future__ import annotations

import hashlib
import re

_WHITESPACE_RE = re.compile(r"[ \t\f\v]+")
_BLANK_LINES_RE = re.compile(r"\n{3,}")


def normalize_text(text: str) -> str:
    """Canonical plain text: unified newlines, collapsed runs of spaces, stripped."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    lines = [_WHITESPACE_RE.sub(" ", line).strip() for line in text.split("\n")]
    return _BLANK_LINES_RE.sub("\n\n", "\n".join(lines)).strip()


def _sha256(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def hash_content(doc_id: str, text: str) -> str:
    """Fingerprint of a document's normalized text, scoped to its id."""
    return _sha256(f"{doc_id}:{normalize_text(text)}")


def hash_chunk(doc_id: str, chunk: str) -> str:
    """Fingerprint of one chunk, scoped to its document."""
    return _sha256(f"{doc_id}:{chunk}")
