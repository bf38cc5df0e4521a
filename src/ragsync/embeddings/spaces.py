"""Embedding spaces and selector resolution.

An embedding space is provider + model + version; each space owns its own
chunk table. ``resolve_embedding_space`` turns a possibly-partial selector
into exactly one registered space using a fixed precedence:

1. explicit ``embedding_space_id`` / model id (aliases accepted)
2. explicit provider
3. ``EMBEDDING_MODEL`` then ``EMBEDDING_PROVIDER`` / ``LLM_PROVIDER``
4. ``EMBEDDING_SPACE_ID``
5. the first registered space
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from ragsync.db.chunk_tables import chunk_table_name, normalize_space_slug
from ragsync.embeddings.errors import EmbeddingProviderNotFoundError


@dataclass(frozen=True)
class EmbeddingSpace:
    provider: str
    model: str
    version: str
    slug: str
    label: str
    aliases: tuple[str, ...] = ()

    @property
    def embedding_space_id(self) -> str:
        return f"{self.provider}_{normalize_space_slug(self.slug)}_{normalize_space_slug(self.version)}"

    @property
    def table(self) -> str:
        return chunk_table_name(self.embedding_space_id)

    def keys(self) -> set[str]:
        return {
            key.lower().strip()
            for key in (self.embedding_space_id, self.model, self.label, self.table, *self.aliases)
        }


@dataclass(frozen=True)
class EmbeddingSelection:
    """A possibly-partial request for an embedding space."""

    provider: str | None = None
    model: str | None = None
    embedding_space_id: str | None = None
    version: str | None = None


EMBEDDING_SPACES: tuple[EmbeddingSpace, ...] = (
    EmbeddingSpace(
        provider="openai",
        model="text-embedding-3-small",
        version="v1",
        slug="te3s",
        label="OpenAI text-embedding-3-small (v1)",
        aliases=("openai text-embedding-3-small", "openai/text-embedding-3-small"),
    ),
    EmbeddingSpace(
        provider="gemini",
        model="text-embedding-004",
        version="v1",
        slug="te4",
        label="Gemini text-embedding-004 (v1)",
        aliases=("gemini text-embedding-004", "gemini/text-embedding-004"),
    ),
)


@dataclass
class EmbeddingSpaceRegistry:
    spaces: tuple[EmbeddingSpace, ...] = EMBEDDING_SPACES
    _lookup: dict[str, EmbeddingSpace] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.spaces:
            raise ValueError("At least one embedding space must be registered")
        self._lookup = {}
        for space in self.spaces:
            for key in space.keys():
                self._lookup.setdefault(key, space)

    def find(self, value: str | None) -> EmbeddingSpace | None:
        """Look up a space by id, model, label, table name or alias."""
        if not value or not value.strip():
            return None
        return self._lookup.get(value.lower().strip())

    def find_by_provider(self, provider: str | None) -> EmbeddingSpace | None:
        if not provider or not provider.strip():
            return None
        wanted = provider.lower().strip()
        return next((s for s in self.spaces if s.provider == wanted), None)

    @property
    def default(self) -> EmbeddingSpace:
        return self.spaces[0]


DEFAULT_REGISTRY = EmbeddingSpaceRegistry()


def resolve_embedding_space(
    selection: EmbeddingSelection | None = None,
    *,
    env: Mapping[str, str] | None = None,
    registry: EmbeddingSpaceRegistry = DEFAULT_REGISTRY,
) -> EmbeddingSpace:
    """Resolve *selection* to a single registered ``EmbeddingSpace``.

    Raises:
        EmbeddingProviderNotFoundError: If the selection names a space, model
            or provider explicitly and nothing matches, or if the resolved
            space does not have the requested version.
    """
    selection = selection or EmbeddingSelection()
    env = os.environ if env is None else env

    space = _resolve_explicit(selection, registry)
    if space is None:
        space = (
            registry.find(env.get("EMBEDDING_MODEL"))
            or registry.find_by_provider(env.get("EMBEDDING_PROVIDER") or env.get("LLM_PROVIDER"))
            or registry.find(env.get("EMBEDDING_SPACE_ID"))
            or registry.default
        )

    if selection.version and normalize_space_slug(selection.version) != normalize_space_slug(
        space.version
    ):
        raise EmbeddingProviderNotFoundError(
            f"No embedding space {space.provider}/{space.model} with version {selection.version!r}"
        )
    return space


def _resolve_explicit(
    selection: EmbeddingSelection, registry: EmbeddingSpaceRegistry
) -> EmbeddingSpace | None:
    requested = [v for v in (selection.embedding_space_id, selection.model) if v and v.strip()]
    for value in requested:
        space = registry.find(value)
        if space is not None:
            return space
    if requested:
        raise EmbeddingProviderNotFoundError(f"Unknown embedding space or model: {requested[0]!r}")

    if selection.provider and selection.provider.strip():
        space = registry.find_by_provider(selection.provider)
        if space is None:
            raise EmbeddingProviderNotFoundError(
                f"Unknown embedding provider: {selection.provider!r}"
            )
        return space
    return None
