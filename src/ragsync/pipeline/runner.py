"""Ingestion orchestrator.

Every entry point (workspace sync, single URL, manual trigger) funnels each
candidate document through ``IngestionRunner.ingest_document``:

    fetch -> hash -> look up state -> decide -> chunk -> embed -> reconcile -> persist

Documents run concurrently up to ``IngestSettings.concurrency``; a failure in
one document is recorded in the run's error log and never stops its siblings.
The run ledger record is always closed, whatever happens.
"""

from __future__ import annotations

import concurrent.futures
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Literal, Mapping, Sequence

from ragsync.db.chunks import ChunkStore
from ragsync.db.documents import DocumentStateStore
from ragsync.db.models import ChunkRow, IngestionType, RunErrorLog, RunStats, TerminalRunStatus
from ragsync.db.runs import RunLedger, derive_run_status
from ragsync.embeddings.adapter import EmbeddingAdapter
from ragsync.embeddings.spaces import EmbeddingSpace
from ragsync.ingest.chunker import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_OVERLAP,
    TokenCounter,
    chunk_by_tokens,
    estimate_tokens,
)
from ragsync.ingest.decision import (
    DecisionInput,
    IngestDecision,
    decide_ingest_action,
    full_ingest_reason,
    is_unchanged,
)
from ragsync.ingest.hashing import hash_chunk, hash_content, normalize_text
from ragsync.ingest.identifiers import DocIdentifiers, derive_url_identifiers
from ragsync.ingest.metadata import apply_default_metadata, merge_metadata, metadata_equals
from ragsync.ingest.timestamps import normalize_timestamp
from ragsync.logging import get_logger
from ragsync.pipeline.events import (
    Complete,
    EventStream,
    Log,
    LogLevel,
    NullEventStream,
    Progress,
    QueueItem,
    RunStarted,
)
from ragsync.pipeline.stats import RunAccumulator
from ragsync.sources.base import PageSource, SourceDocument, UrlSource

_LOGGER = get_logger(__name__, component="ingest")

DocumentAction = Literal["added", "updated", "metadata-only", "skipped"]
Loader = Callable[[], tuple[DocIdentifiers, SourceDocument]]


@dataclass
class IngestSettings:
    concurrency: int = 2
    max_tokens: int = DEFAULT_MAX_TOKENS
    overlap: int = DEFAULT_OVERLAP
    default_metadata: Mapping[str, Any] | None = None
    count_tokens: TokenCounter = estimate_tokens

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError("concurrency must be >= 1")


@dataclass(frozen=True)
class WorkItem:
    """One candidate document: a display id and a loader that fetches it."""

    item_id: str
    load: Loader


@dataclass(frozen=True)
class DocumentOutcome:
    doc_id: str
    action: DocumentAction
    chunk_count: int = 0
    characters: int = 0
    reason: str | None = None


@dataclass
class RunResult:
    run_id: str | None
    status: TerminalRunStatus
    stats: RunStats
    duration_ms: int
    error_logs: list[RunErrorLog] = field(default_factory=list)
    error: BaseException | None = None


@dataclass(frozen=True)
class ManualIngestionRequest:
    """Ad hoc trigger for a single URL or a single page (optionally with linked pages)."""

    mode: Literal["url", "page"]
    target: str
    ingestion_type: IngestionType = "partial"
    include_linked_pages: bool = False


class IngestionRunner:
    """Runs ingestion over documents for one embedding space.

    Args:
        documents: Document state store (may be degraded).
        chunks: Chunk store for the embedding space.
        ledger: Run ledger (may be degraded).
        embeddings: Adapter used to embed chunk text.
        space: The resolved embedding space all vectors are written to.
        settings: Chunking, concurrency and metadata defaults.
        events: Stream that receives run lifecycle events.
    """

    def __init__(
        self,
        *,
        documents: DocumentStateStore,
        chunks: ChunkStore,
        ledger: RunLedger,
        embeddings: EmbeddingAdapter,
        space: EmbeddingSpace,
        settings: IngestSettings | None = None,
        events: EventStream | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._documents = documents
        self._chunks = chunks
        self._ledger = ledger
        self._embeddings = embeddings
        self._space = space
        self._settings = settings or IngestSettings()
        self._events = events or NullEventStream()
        self._clock = clock

    @property
    def space(self) -> EmbeddingSpace:
        return self._space

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run_pages(
        self,
        pages: PageSource,
        *,
        root_page_id: str | None = None,
        include_linked_pages: bool = True,
        ingestion_type: IngestionType = "partial",
        source: str = "pages",
    ) -> RunResult:
        """Sync a workspace of pages, or one root page and its linked pages.

        Failing to enumerate the whole workspace aborts the run. When started
        from a root page, enumeration failure falls back to the root alone.
        """

        def plan() -> list[WorkItem]:
            if root_page_id is None:
                page_ids = pages.list_pages()
            elif include_linked_pages:
                try:
                    page_ids = pages.list_pages(root_page_id)
                except Exception as exc:
                    self._log(
                        "warn",
                        f"Linked page discovery failed for {root_page_id}; ingesting root page only: {exc}",
                    )
                    page_ids = [root_page_id]
            else:
                page_ids = [root_page_id]
            return [
                WorkItem(item_id=pid, load=_page_loader(pages, pid))
                for pid in dict.fromkeys(page_ids)
            ]

        return self._execute(
            source=source,
            ingestion_type=ingestion_type,
            run_metadata={"root_page_id": root_page_id, "include_linked_pages": include_linked_pages},
            plan=plan,
        )

    def run_urls(
        self,
        urls: Sequence[str],
        web: UrlSource,
        *,
        ingestion_type: IngestionType = "partial",
        source: str = "web",
    ) -> RunResult:
        targets = [u.strip() for u in urls if u and u.strip()]

        def plan() -> list[WorkItem]:
            return [WorkItem(item_id=url, load=_url_loader(web, url)) for url in dict.fromkeys(targets)]

        return self._execute(
            source=source,
            ingestion_type=ingestion_type,
            run_metadata={"url_count": len(targets)},
            plan=plan,
        )

    def run_url(
        self, url: str, web: UrlSource, *, ingestion_type: IngestionType = "partial"
    ) -> RunResult:
        return self.run_urls([url], web, ingestion_type=ingestion_type)

    def run_manual(
        self,
        request: ManualIngestionRequest,
        *,
        web: UrlSource | None = None,
        pages: PageSource | None = None,
    ) -> RunResult:
        """Ad hoc trigger; shares every per-document step with the other entry points."""
        if request.mode == "url":
            if web is None:
                raise ValueError("A URL source is required for manual URL ingestion")
            return self.run_urls(
                [request.target], web, ingestion_type=request.ingestion_type, source="manual/url"
            )
        if pages is None:
            raise ValueError("A page source is required for manual page ingestion")
        return self.run_pages(
            pages,
            root_page_id=request.target,
            include_linked_pages=request.include_linked_pages,
            ingestion_type=request.ingestion_type,
            source="manual/page",
        )

    # ------------------------------------------------------------------
    # Per-document pipeline
    # ------------------------------------------------------------------

    def ingest_document(
        self,
        identifiers: DocIdentifiers,
        document: SourceDocument,
        *,
        ingestion_type: IngestionType,
        stats: RunAccumulator,
    ) -> DocumentOutcome:
        """Decide and apply the ingest action for one fetched document."""
        doc_id = identifiers.canonical_id
        log = _LOGGER.bind(doc_id=doc_id, title=document.title)

        text = normalize_text(document.plain_text or "")
        if not text:
            stats.increment(documents_skipped=1)
            self._log("warn", f"No readable text for {document.title or doc_id}; skipping")
            log.info("document-skipped", reason="no-text")
            return DocumentOutcome(doc_id, "skipped", reason="no-text")

        content_hash = hash_content(doc_id, text)
        last_source_update = normalize_timestamp(document.last_modified)
        existing = self._documents.get(doc_id)
        existing_metadata = existing.metadata if existing else None

        next_metadata = apply_default_metadata(
            merge_metadata(existing_metadata, document.source_metadata),
            self._settings.default_metadata,
        )
        content_unchanged = is_unchanged(
            existing, content_hash=content_hash, last_source_update=last_source_update
        )
        decision_input = DecisionInput(
            content_unchanged=content_unchanged,
            metadata_unchanged=metadata_equals(existing_metadata, next_metadata),
            ingestion_type=ingestion_type,
            provider_has_chunks=content_unchanged
            and self._chunks.has_chunks(doc_id, self._space.embedding_space_id),
        )
        decision = decide_ingest_action(decision_input)

        if decision is IngestDecision.SKIP:
            stats.increment(documents_skipped=1)
            self._log("info", f"No changes detected for {document.title or doc_id}; skipping")
            log.info("document-skipped", reason="unchanged")
            return DocumentOutcome(doc_id, "skipped", reason="unchanged")

        if decision is IngestDecision.METADATA_ONLY:
            self._documents.upsert(
                doc_id,
                source_url=document.source_url,
                content_hash=content_hash,
                raw_doc_id=identifiers.raw_id,
                last_source_update=last_source_update,
                metadata=next_metadata,
            )
            stats.increment(documents_updated=1)
            self._log("info", f"Updated metadata for {document.title or doc_id}")
            log.info("document-metadata-updated")
            return DocumentOutcome(doc_id, "metadata-only")

        reason = full_ingest_reason(decision_input).value
        log.info("document-full-ingest", reason=reason)

        chunks = chunk_by_tokens(
            text,
            self._settings.max_tokens,
            self._settings.overlap,
            count_tokens=self._settings.count_tokens,
        )
        if not chunks:
            stats.increment(documents_skipped=1)
            self._log("warn", f"Content for {document.title or doc_id} produced no chunks; skipping")
            log.info("document-skipped", reason="no-chunks")
            return DocumentOutcome(doc_id, "skipped", reason="no-chunks")

        # Repeated chunk text hashes identically; embed and count each hash once.
        unique: dict[str, str] = {}
        for chunk in chunks:
            unique.setdefault(hash_chunk(doc_id, chunk), chunk)
        vectors = self._embeddings.embed(list(unique.values()), self._space)
        ingested_at = datetime.now(timezone.utc).isoformat()
        rows = [
            ChunkRow(
                doc_id=doc_id,
                source_url=document.source_url,
                title=document.title,
                chunk=chunk,
                chunk_hash=chunk_hash,
                embedding=vector,
                ingested_at=ingested_at,
            )
            for (chunk_hash, chunk), vector in zip(unique.items(), vectors)
        ]
        chunk_count = len(rows)
        characters = sum(len(row.chunk) for row in rows)

        self._chunks.replace_chunks(doc_id, rows, self._space.embedding_space_id)
        self._documents.upsert(
            doc_id,
            source_url=document.source_url,
            content_hash=content_hash,
            raw_doc_id=identifiers.raw_id,
            last_source_update=last_source_update,
            chunk_count=chunk_count,
            total_characters=characters,
            metadata=next_metadata,
        )

        if existing is not None:
            stats.increment(documents_updated=1, chunks_updated=chunk_count, characters_updated=characters)
            action: DocumentAction = "updated"
        else:
            stats.increment(documents_added=1, chunks_added=chunk_count, characters_added=characters)
            action = "added"
        self._log("info", f"Stored {chunk_count} chunk(s) for {document.title or doc_id} [{action}]")
        log.info("document-ingested", action=action, chunks=chunk_count, characters=characters)
        return DocumentOutcome(doc_id, action, chunk_count, characters, reason)

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    def _execute(
        self,
        *,
        source: str,
        ingestion_type: IngestionType,
        run_metadata: Mapping[str, Any],
        plan: Callable[[], list[WorkItem]],
    ) -> RunResult:
        stats = RunAccumulator()
        started = self._clock()
        handle = self._ledger.start(
            source,
            ingestion_type,
            {
                **run_metadata,
                "embedding_provider": self._space.provider,
                "embedding_space_id": self._space.embedding_space_id,
                "embedding_model": self._space.model,
                "embedding_version": self._space.version,
            },
        )
        run_id = handle.id if handle else None
        self._events.emit(RunStarted(run_id=run_id, source=source, ingestion_type=ingestion_type))
        self._events.emit(Progress(step="initializing", percent=0.0))
        _LOGGER.info("ingest-run-started", run_id=run_id, source=source, ingestion_type=ingestion_type)

        error: BaseException | None = None
        try:
            items = plan()
            self._events.emit(Progress(step="planned", percent=5.0))
            self._process_all(items, ingestion_type, stats)
        except Exception as exc:
            error = exc
            stats.record_error(str(exc) or type(exc).__name__, context="fatal")
            self._log("error", f"Ingestion run failed: {exc}")
            _LOGGER.exception("ingest-run-failed", run_id=run_id, source=source)
        finally:
            duration_ms = int((self._clock() - started) * 1000)
            totals = stats.snapshot()
            status = derive_run_status(raised=error is not None, error_count=totals.error_count)
            self._ledger.finish(
                handle,
                status=status,
                duration_ms=duration_ms,
                totals=totals,
                error_logs=stats.error_logs,
            )
            self._events.emit(Progress(step="complete", percent=100.0))
            self._events.emit(
                Complete(status=status, stats=totals, run_id=run_id, duration_ms=duration_ms)
            )
            _LOGGER.info(
                "ingest-run-finished",
                run_id=run_id,
                status=status,
                duration_ms=duration_ms,
                **totals.to_dict(),
            )
        return RunResult(
            run_id=run_id,
            status=status,
            stats=totals,
            duration_ms=duration_ms,
            error_logs=stats.error_logs,
            error=error,
        )

    def _process_all(
        self, items: list[WorkItem], ingestion_type: IngestionType, stats: RunAccumulator
    ) -> None:
        tracker = _RunTracker(total=len(items))
        if not items:
            self._log("info", "Nothing to ingest")
            return

        workers = min(self._settings.concurrency, len(items))
        if workers == 1:
            for index, item in enumerate(items, start=1):
                self._process_item(index, item, ingestion_type, stats, tracker)
            return

        with concurrent.futures.ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="ingest"
        ) as executor:
            futures = [
                executor.submit(self._process_item, index, item, ingestion_type, stats, tracker)
                for index, item in enumerate(items, start=1)
            ]
            for future in concurrent.futures.as_completed(futures):
                # _process_item records its own failures; this surfaces bugs.
                future.result()

    def _process_item(
        self,
        index: int,
        item: WorkItem,
        ingestion_type: IngestionType,
        stats: RunAccumulator,
        tracker: _RunTracker,
    ) -> None:
        stats.increment(documents_processed=1)
        self._events.emit(QueueItem(current=index, total=tracker.total, item_id=item.item_id))
        doc_id: str | None = None
        try:
            identifiers, document = item.load()
            doc_id = identifiers.canonical_id
            if not tracker.claim(doc_id):
                stats.increment(documents_skipped=1)
                self._log("info", f"Duplicate document {doc_id} already processed in this run")
            else:
                self.ingest_document(
                    identifiers, document, ingestion_type=ingestion_type, stats=stats
                )
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            stats.record_error(message, context=item.item_id, doc_id=doc_id)
            self._log("error", f"Failed to ingest {item.item_id}: {message}")
            _LOGGER.error(
                "document-failed",
                item_id=item.item_id,
                doc_id=doc_id,
                error=message,
                error_type=type(exc).__name__,
            )
        finally:
            done = tracker.complete_one()
            self._events.emit(Progress(step="ingesting", percent=5.0 + 90.0 * done / tracker.total))

    def _log(self, level: LogLevel, message: str) -> None:
        self._events.emit(Log(level=level, message=message))


class _RunTracker:
    """Completion count and canonical-id de-duplication for one run."""

    def __init__(self, total: int) -> None:
        self.total = total
        self._done = 0
        self._seen: set[str] = set()
        self._lock = threading.Lock()

    def claim(self, doc_id: str) -> bool:
        with self._lock:
            if doc_id in self._seen:
                return False
            self._seen.add(doc_id)
            return True

    def complete_one(self) -> int:
        with self._lock:
            self._done += 1
            return self._done


def _page_loader(pages: PageSource, page_id: str) -> Loader:
    def load() -> tuple[DocIdentifiers, SourceDocument]:
        return pages.identify(page_id), pages.fetch(page_id)

    return load


def _url_loader(web: UrlSource, url: str) -> Loader:
    def load() -> tuple[DocIdentifiers, SourceDocument]:
        identifiers = derive_url_identifiers(url)
        document = web.fetch(url)
        document.source_url = identifiers.canonical_id
        return identifiers, document

    return load
