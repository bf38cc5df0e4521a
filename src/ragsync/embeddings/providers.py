"""Concrete embedding provider bindings (LiteLLM).

Each provider turns ``(texts, model)`` into vectors for one vendor. Providers
are looked up by name through ``ProviderRegistry``; orchestration code never
calls vendor SDKs directly.
"""

from __future__ import annotations

import os
from typing import Mapping, Protocol, Sequence

import litellm

from ragsync.embeddings.errors import (
    EmbeddingAlignmentError,
    EmbeddingError,
    EmbeddingProviderNotFoundError,
)

__all__ = [
    "EmbeddingAlignmentError",
    "EmbeddingError",
    "EmbeddingProvider",
    "EmbeddingProviderNotFoundError",
    "GeminiEmbeddingProvider",
    "LiteLLMEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "ProviderRegistry",
    "default_registry",
]


class EmbeddingProvider(Protocol):
    name: str

    def embed(self, texts: Sequence[str], model: str) -> list[list[float]]:
        ...


class LiteLLMEmbeddingProvider:
    """Embed through ``litellm.embedding`` using ``<prefix>/<model>`` ids.

    Args:
        name: Provider name as used in embedding spaces (``openai``, ``gemini``).
        api_key_env: Environment variable that must hold the vendor API key.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        name: str,
        api_key_env: str,
        *,
        timeout: float = 60.0,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.name = name
        self._api_key_env = api_key_env
        self._timeout = timeout
        self._env = env

    def embed(self, texts: Sequence[str], model: str) -> list[list[float]]:
        if not texts:
            return []
        self._check_api_key()
        response = litellm.embedding(
            model=f"{self.name}/{model}",
            input=list(texts),
            timeout=self._timeout,
        )
        return [list(item["embedding"]) for item in response.data]

    def _check_api_key(self) -> None:
        env = os.environ if self._env is None else self._env
        if not env.get(self._api_key_env):
            raise EmbeddingError(
                f"No API key found for provider '{self.name}'. "
                f"Set the {self._api_key_env} environment variable."
            )


class OpenAIEmbeddingProvider(LiteLLMEmbeddingProvider):
    def __init__(self, *, timeout: float = 60.0, env: Mapping[str, str] | None = None) -> None:
        super().__init__("openai", "OPENAI_API_KEY", timeout=timeout, env=env)


class GeminiEmbeddingProvider(LiteLLMEmbeddingProvider):
    def __init__(self, *, timeout: float = 60.0, env: Mapping[str, str] | None = None) -> None:
        super().__init__("gemini", "GEMINI_API_KEY", timeout=timeout, env=env)


class ProviderRegistry:
    """Name -> provider map."""

    def __init__(self, providers: Sequence[EmbeddingProvider] = ()) -> None:
        self._providers: dict[str, EmbeddingProvider] = {}
        for provider in providers:
            self.register(provider)

    def register(self, provider: EmbeddingProvider) -> None:
        self._providers[provider.name.lower()] = provider

    def get(self, name: str) -> EmbeddingProvider:
        try:
            return self._providers[name.lower()]
        except KeyError:
            raise EmbeddingProviderNotFoundError(
                f"No embedding provider registered for '{name}'"
            ) from None

    def names(self) -> list[str]:
        return sorted(self._providers)


def default_registry(*, timeout: float = 60.0) -> ProviderRegistry:
    return ProviderRegistry(
        [OpenAIEmbeddingProvider(timeout=timeout), GeminiEmbeddingProvider(timeout=timeout)]
    )
