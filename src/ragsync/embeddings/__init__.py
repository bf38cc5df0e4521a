"""Embedding spaces, provider bindings and the batching adapter."""

from ragsync.embeddings.adapter import EmbeddingAdapter
from ragsync.embeddings.errors import (
    EmbeddingAlignmentError,
    EmbeddingError,
    EmbeddingProviderNotFoundError,
)
from ragsync.embeddings.providers import ProviderRegistry, default_registry
from ragsync.embeddings.spaces import (
    EMBEDDING_SPACES,
    EmbeddingSelection,
    EmbeddingSpace,
    resolve_embedding_space,
)

__all__ = [
    "EMBEDDING_SPACES",
    "EmbeddingAdapter",
    "EmbeddingAlignmentError",
    "EmbeddingError",
    "EmbeddingProviderNotFoundError",
    "EmbeddingSelection",
    "EmbeddingSpace",
    "ProviderRegistry",
    "default_registry",
    "resolve_embedding_space",
]
