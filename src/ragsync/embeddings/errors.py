"""Embedding error hierarchy."""

from __future__ import annotations


class EmbeddingError(RuntimeError):
    """Base error for embedding failures."""


class EmbeddingProviderNotFoundError(EmbeddingError):
    """No registered provider or space matches the selector."""


class EmbeddingAlignmentError(EmbeddingError):
    """The provider returned a different number of vectors than texts."""
