"""Shared pytest fixtures."""

from __future__ import annotations

from dataclasses import replace
from typing import Callable

import pytest

from ragsync.db.availability import DatastoreAvailability
from ragsync.db.chunks import ChunkStore
from ragsync.db.connection import Database
from ragsync.db.datastore import SqliteDatastore
from ragsync.db.documents import DocumentStateStore
from ragsync.db.retry import RetryPolicy
from ragsync.db.runs import RunLedger
from ragsync.db.schema import initialize
from ragsync.embeddings.adapter import EmbeddingAdapter
from ragsync.embeddings.providers import ProviderRegistry
from ragsync.embeddings.spaces import EMBEDDING_SPACES
from ragsync.ingest.identifiers import DocIdentifiers, derive_page_identifiers
from ragsync.pipeline.events import EventStream
from ragsync.pipeline.runner import IngestionRunner, IngestSettings
from ragsync.sources.base import SourceDocument, SourceFetchError


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".ragsync.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def datastore(tmp_db):
    return SqliteDatastore(tmp_db)


@pytest.fixture
def availability():
    return DatastoreAvailability()


@pytest.fixture
def fast_retry():
    """Retry policy that never sleeps."""
    return RetryPolicy(attempts=3, base_delay=0.0, sleep=lambda _: None)


# ------------------------------------------------------------------
# Embedding fakes
# ------------------------------------------------------------------


class FakeEmbeddingProvider:
    """Deterministic offline provider: one small vector per text."""

    def __init__(self, name: str = "openai", fail_with: Exception | None = None) -> None:
        self.name = name
        self.calls: list[tuple[list[str], str]] = []
        self._fail_with = fail_with

    def embed(self, texts, model):
        self.calls.append((list(texts), model))
        if self._fail_with is not None:
            raise self._fail_with
        return [[float(len(t)), float(i), 1.0] for i, t in enumerate(texts)]


@pytest.fixture
def fake_provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def fake_registry(fake_provider):
    return ProviderRegistry([fake_provider, FakeEmbeddingProvider(name="gemini")])


@pytest.fixture
def adapter(fake_registry):
    return EmbeddingAdapter(fake_registry, batch_size=2, env={})


@pytest.fixture
def space():
    return EMBEDDING_SPACES[0]


# ------------------------------------------------------------------
# Source fakes
# ------------------------------------------------------------------


class FakeWebSource:
    """URL -> SourceDocument (or an exception to raise)."""

    def __init__(self, pages: dict | None = None) -> None:
        self.pages: dict = dict(pages or {})
        self.fetched: list[str] = []

    def fetch(self, url: str) -> SourceDocument:
        self.fetched.append(url)
        page = self.pages.get(url)
        if page is None:
            raise SourceFetchError(f"404 for {url}")
        if isinstance(page, Exception):
            raise page
        return replace(page, source_metadata=dict(page.source_metadata))


class FakePageSource:
    """Page id -> SourceDocument, with optional linked-page map."""

    def __init__(
        self,
        pages: dict | None = None,
        links: dict | None = None,
        list_error: Exception | None = None,
    ) -> None:
        self.pages: dict = dict(pages or {})
        self.links: dict = dict(links or {})
        self.list_error = list_error

    def list_pages(self, root_page_id: str | None = None) -> list[str]:
        if self.list_error is not None:
            raise self.list_error
        if root_page_id is None:
            return list(self.pages)
        return [root_page_id, *self.links.get(root_page_id, [])]

    def identify(self, page_id: str) -> DocIdentifiers:
        return derive_page_identifiers(page_id)

    def fetch(self, page_id: str) -> SourceDocument:
        page = self.pages.get(page_id)
        if page is None:
            raise SourceFetchError(f"Page not found: {page_id}")
        if isinstance(page, Exception):
            raise page
        return replace(page, source_metadata=dict(page.source_metadata))


@pytest.fixture
def fake_web():
    return FakeWebSource()


@pytest.fixture
def fake_pages():
    return FakePageSource()


# ------------------------------------------------------------------
# Runner wiring
# ------------------------------------------------------------------


@pytest.fixture
def stores(datastore, availability, fast_retry):
    """(documents, chunks, ledger) sharing one datastore and availability map."""
    return (
        DocumentStateStore(datastore, availability, fast_retry),
        ChunkStore(datastore, fast_retry),
        RunLedger(datastore, availability, fast_retry),
    )


@pytest.fixture
def make_runner(stores, adapter, space) -> Callable[..., IngestionRunner]:
    documents, chunks, ledger = stores

    def _make(
        events: EventStream | None = None, *, embedding_space=None, **settings
    ) -> IngestionRunner:
        settings.setdefault("concurrency", 1)
        return IngestionRunner(
            documents=documents,
            chunks=chunks,
            ledger=ledger,
            embeddings=adapter,
            space=embedding_space or space,
            settings=IngestSettings(**settings),
            events=events,
        )

    return _make


# ------------------------------------------------------------------
# CLI isolation
# ------------------------------------------------------------------

_EMBEDDING_ENV = (
    "EMBEDDING_SPACE_ID",
    "EMBEDDING_MODEL",
    "EMBEDDING_PROVIDER",
    "EMBEDDING_VERSION",
    "LLM_PROVIDER",
    "INGEST_CONCURRENCY",
    "RAGSYNC_DB",
    "RAGSYNC_LOG_LEVEL",
)


@pytest.fixture
def cli_env(tmp_path, monkeypatch, fake_registry):
    """Run CLI commands from tmp_path with offline providers and no global config."""
    for name in _EMBEDDING_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("ragsync.config._GLOBAL_CONFIG_PATH", tmp_path / "global" / "config.yaml")
    monkeypatch.setattr("ragsync.cli.runtime.configure_logging", lambda **_: None)
    monkeypatch.setattr("ragsync.cli.runtime.default_registry", lambda **_: fake_registry)
    monkeypatch.setattr("ragsync.cli.runtime.console.width", 200)
    return tmp_path
