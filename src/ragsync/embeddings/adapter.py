"""Embedding adapter: selector resolution, batching and alignment checks."""

from __future__ import annotations

from typing import Mapping, Sequence

from ragsync.embeddings.errors import EmbeddingAlignmentError
from ragsync.embeddings.providers import ProviderRegistry
from ragsync.embeddings.spaces import (
    DEFAULT_REGISTRY,
    EmbeddingSelection,
    EmbeddingSpace,
    EmbeddingSpaceRegistry,
    resolve_embedding_space,
)
from ragsync.logging import get_logger

_LOGGER = get_logger(__name__, component="embeddings")


class EmbeddingAdapter:
    """Produce vectors aligned index-for-index with the input texts.

    Provider errors propagate unchanged; there is no fallback to another
    provider, since a vector must belong to the space that was resolved.
    """

    def __init__(
        self,
        providers: ProviderRegistry,
        *,
        batch_size: int = 96,
        spaces: EmbeddingSpaceRegistry = DEFAULT_REGISTRY,
        env: Mapping[str, str] | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._providers = providers
        self._batch_size = batch_size
        self._spaces = spaces
        self._env = env

    def resolve(self, selection: EmbeddingSelection | None = None) -> EmbeddingSpace:
        return resolve_embedding_space(selection, env=self._env, registry=self._spaces)

    def embed(
        self,
        texts: Sequence[str],
        selection: EmbeddingSelection | EmbeddingSpace | None = None,
    ) -> list[list[float]]:
        """Embed *texts* in the resolved space.

        Raises:
            EmbeddingProviderNotFoundError: If the space or its provider is unknown.
            EmbeddingAlignmentError: If a batch returns the wrong number of vectors.
        """
        if not texts:
            return []
        space = selection if isinstance(selection, EmbeddingSpace) else self.resolve(selection)
        provider = self._providers.get(space.provider)

        vectors: list[list[float]] = []
        for start in range(0, len(texts), self._batch_size):
            batch = list(texts[start : start + self._batch_size])
            result = provider.embed(batch, space.model)
            if len(result) != len(batch):
                raise EmbeddingAlignmentError(
                    f"{space.provider} returned {len(result)} vectors for {len(batch)} texts"
                )
            vectors.extend(result)
        _LOGGER.debug(
            "embedded-batch",
            embedding_space_id=space.embedding_space_id,
            texts=len(texts),
        )
        return vectors
