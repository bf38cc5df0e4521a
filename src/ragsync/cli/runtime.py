"""Shared CLI plumbing: config bootstrap, runner wiring and event rendering."""

from __future__ import annotations

import os
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from ragsync.cli.errors import (
    PROVIDER_KEY_ENV,
    err_config,
    err_no_api_key,
    err_unknown_embedding_space,
    warn_run_errors,
)
from ragsync.config import ConfigError, RagsyncConfig, load_config
from ragsync.db.availability import DatastoreAvailability
from ragsync.db.chunks import ChunkStore
from ragsync.db.connection import Database
from ragsync.db.datastore import SqliteDatastore
from ragsync.db.documents import DocumentStateStore
from ragsync.db.retry import RetryPolicy
from ragsync.db.runs import RunLedger
from ragsync.db.schema import initialize
from ragsync.embeddings.adapter import EmbeddingAdapter
from ragsync.embeddings.errors import EmbeddingProviderNotFoundError
from ragsync.embeddings.providers import ProviderRegistry, default_registry
from ragsync.embeddings.spaces import EMBEDDING_SPACES
from ragsync.logging import configure_logging
from ragsync.pipeline.events import Complete, EventStream, Log, Progress as ProgressEvent, QueueItem
from ragsync.pipeline.runner import IngestionRunner, IngestSettings, RunResult
from ragsync.pipeline.stats import format_run_summary

console = Console()

_LOG_STYLES = {"debug": "dim", "info": "", "warn": "yellow", "error": "red"}


def load_config_or_exit() -> RagsyncConfig:
    """Load layered config and configure logging; exit 1 on invalid config."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)
    try:
        configure_logging(level=cfg.logging.level, log_dir=cfg.logging.log_dir)
    except ValueError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)
    return cfg


def open_database(db_path: Path) -> sqlite3.Connection:
    conn = Database(db_path).connect()
    initialize(conn)
    return conn


@dataclass
class RunnerBundle:
    runner: IngestionRunner
    ledger: RunLedger
    conn: sqlite3.Connection


def build_runner(
    cfg: RagsyncConfig,
    *,
    db_path: Path,
    events: EventStream,
    concurrency: int | None = None,
    providers: ProviderRegistry | None = None,
) -> RunnerBundle:
    """Wire stores, embedding adapter and runner for one CLI invocation.

    Exits with an actionable message when the embedding space cannot be
    resolved or its provider has no API key.
    """
    adapter = EmbeddingAdapter(
        providers or default_registry(timeout=cfg.embedding.timeout),
        batch_size=cfg.embedding.batch_size,
        env=os.environ,
    )
    try:
        space = adapter.resolve(cfg.embedding.selection())
    except EmbeddingProviderNotFoundError as exc:
        console.print(
            err_unknown_embedding_space(str(exc), [s.embedding_space_id for s in EMBEDDING_SPACES])
        )
        raise typer.Exit(1)

    key_env = PROVIDER_KEY_ENV.get(space.provider)
    if key_env and not os.environ.get(key_env):
        console.print(err_no_api_key(space.provider))
        raise typer.Exit(1)

    conn = open_database(db_path)
    datastore = SqliteDatastore(conn)
    availability = DatastoreAvailability()
    retry = RetryPolicy(
        attempts=cfg.datastore.retry_attempts, base_delay=cfg.datastore.retry_base_delay
    )
    ledger = RunLedger(datastore, availability, retry)
    runner = IngestionRunner(
        documents=DocumentStateStore(datastore, availability, retry),
        chunks=ChunkStore(datastore, retry),
        ledger=ledger,
        embeddings=adapter,
        space=space,
        settings=IngestSettings(
            concurrency=max(1, concurrency or cfg.ingest.concurrency),
            max_tokens=cfg.ingest.max_tokens,
            overlap=cfg.ingest.overlap,
            default_metadata=cfg.ingest.default_metadata or None,
        ),
        events=events,
    )
    return RunnerBundle(runner=runner, ledger=ledger, conn=conn)


def run_in_background(job: Callable[[], RunResult], events: EventStream) -> RunResult:
    """Run *job* on a worker thread while rendering *events* on this one."""
    outcome: dict[str, object] = {}

    def _worker() -> None:
        try:
            outcome["result"] = job()
        except BaseException as exc:  # re-raised on the main thread below
            outcome["error"] = exc
        finally:
            events.close()

    thread = threading.Thread(target=_worker, name="ragsync-run", daemon=True)
    thread.start()
    render_events(events)
    thread.join()

    if "error" in outcome:
        raise outcome["error"]  # type: ignore[misc]
    return outcome["result"]  # type: ignore[return-value]


def render_events(events: EventStream) -> None:
    """Consume the stream until it closes, drawing a progress bar and log lines."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        transient=True,
        console=console,
    ) as prog:
        task = prog.add_task("Starting…", total=100)
        for event in events:
            if isinstance(event, ProgressEvent):
                prog.update(task, completed=event.percent)
            elif isinstance(event, QueueItem):
                prog.update(task, description=f"[{event.current}/{event.total}] {event.item_id}")
            elif isinstance(event, Log):
                style = _LOG_STYLES.get(event.level, "")
                prog.console.print(f"  [{style}]{event.message}[/]" if style else f"  {event.message}")
            elif isinstance(event, Complete):
                prog.update(task, completed=100, description="Done")


def print_run_result(result: RunResult) -> None:
    """Print the summary table; exit 1 unless the run fully succeeded."""
    table = Table(title="Ingestion run", show_header=False, expand=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for line in format_run_summary(result.status, result.stats, result.duration_ms).splitlines():
        label, _, value = line.partition(":")
        table.add_row(label.strip(" -"), value.strip())
    if result.run_id:
        table.add_row("Run id", result.run_id)
    console.print(table)

    colour = {"success": "green", "completed_with_errors": "yellow"}.get(result.status, "red")
    console.print(f"[{colour}]{result.status}[/]")
    for entry in result.error_logs:
        where = entry.context or entry.doc_id or "-"
        console.print(f"  [red]✗[/] {where}: {entry.message}")
    if result.status == "completed_with_errors":
        console.print(warn_run_errors(result.stats.error_count))
    if result.status != "success":
        raise typer.Exit(1)
