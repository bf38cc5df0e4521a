"""Deterministic word-based chunking with token-bounded windows."""

from __future__ import annotations

from typing import Callable

TokenCounter = Callable[[str], int]

DEFAULT_MAX_TOKENS = 450
DEFAULT_OVERLAP = 75


def estimate_tokens(text: str) -> int:
    """Approximate token count: 4 characters ≈ 1 token (minimum 1)."""
    return max(1, len(text) // 4)


def chunk_by_tokens(
    text: str,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    overlap: int = DEFAULT_OVERLAP,
    count_tokens: TokenCounter = estimate_tokens,
) -> list[str]:
    """Split *text* into overlapping chunks of at most *max_tokens* tokens.

    Words are accumulated while the running token count (each word counted
    with a trailing space) stays within *max_tokens*. On overflow the chunk is
    emitted and the next one is seeded with the trailing words of the emitted
    chunk totalling at least *overlap* tokens. A single word larger than
    *max_tokens* is emitted as its own chunk.

    Returns:
        Chunks in document order; empty for blank input.
    """
    if max_tokens < 1:
        raise ValueError("max_tokens must be >= 1")
    if overlap < 0:
        raise ValueError("overlap must be >= 0")

    words = text.split()
    if not words:
        return []

    chunks: list[str] = []
    current: list[str] = []
    current_tokens = 0
    # Number of leading words in ``current`` carried over from the last chunk.
    seeded = 0

    for word in words:
        word_tokens = count_tokens(f"{word} ")
        if current and current_tokens + word_tokens > max_tokens:
            if len(current) > seeded:
                chunks.append(" ".join(current))
                current, current_tokens = _overlap_tail(current, overlap, count_tokens)
                seeded = len(current)
            if current and current_tokens + word_tokens > max_tokens:
                # Overlap alone leaves no room for the next word.
                current, current_tokens, seeded = [], 0, 0
        current.append(word)
        current_tokens += word_tokens

    if len(current) > seeded:
        chunks.append(" ".join(current))
    return chunks


def _overlap_tail(
    words: list[str], overlap: int, count_tokens: TokenCounter
) -> tuple[list[str], int]:
    if overlap <= 0:
        return [], 0
    tail: list[str] = []
    tokens = 0
    for word in reversed(words):
        tokens += count_tokens(f"{word} ")
        tail.append(word)
        if tokens >= overlap:
            break
    tail.reverse()
    return tail, tokens
