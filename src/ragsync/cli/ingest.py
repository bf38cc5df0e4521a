"""ragsync ingest-url / sync-pages — run the ingestion pipeline from the CLI."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from ragsync.cli.errors import err_workspace_not_found
from ragsync.cli.runtime import (
    build_runner,
    console,
    load_config_or_exit,
    print_run_result,
    run_in_background,
)
from ragsync.pipeline.events import EventStream
from ragsync.sources.base import SourceFetchError
from ragsync.sources.files import DirectoryPageSource
from ragsync.sources.web import WebSource


def ingest_url_cmd(
    urls: Annotated[list[str], typer.Argument(help="One or more http(s) URLs.")],
    full: Annotated[
        bool,
        typer.Option("--full", help="Re-ingest even when nothing changed."),
    ] = False,
    concurrency: Annotated[
        int | None,
        typer.Option("--concurrency", "-c", min=1, help="Documents processed in parallel."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the ragsync database (default from config)."),
    ] = None,
) -> None:
    """Ingest web pages into the chunk index."""
    cfg = load_config_or_exit()
    events = EventStream()
    bundle = build_runner(
        cfg,
        db_path=db or Path(cfg.datastore.path),
        events=events,
        concurrency=concurrency or cfg.ingest.url_concurrency,
    )
    ingestion_type = "full" if full else "partial"
    console.print(f"[bold]Ingesting {len(urls)} URL(s)[/] → {bundle.runner.space.embedding_space_id}")
    try:
        result = run_in_background(
            lambda: bundle.runner.run_urls(urls, WebSource(), ingestion_type=ingestion_type),
            events,
        )
    finally:
        bundle.conn.close()
    print_run_result(result)


def sync_pages_cmd(
    workspace: Annotated[Path, typer.Argument(help="Directory of .md / .markdown / .txt pages.")],
    page: Annotated[
        str | None,
        typer.Option("--page", "-p", help="Sync only this page (path relative to the workspace)."),
    ] = None,
    linked: Annotated[
        bool,
        typer.Option("--linked/--no-linked", help="With --page, also sync pages it links to."),
    ] = True,
    full: Annotated[
        bool,
        typer.Option("--full", help="Re-ingest even when nothing changed."),
    ] = False,
    concurrency: Annotated[
        int | None,
        typer.Option("--concurrency", "-c", min=1, help="Documents processed in parallel."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the ragsync database (default from config)."),
    ] = None,
) -> None:
    """Sync a workspace of pages (or one page and its linked pages)."""
    cfg = load_config_or_exit()
    try:
        pages = DirectoryPageSource(workspace)
    except SourceFetchError:
        console.print(err_workspace_not_found(str(workspace)))
        raise typer.Exit(1)

    events = EventStream()
    bundle = build_runner(
        cfg,
        db_path=db or Path(cfg.datastore.path),
        events=events,
        concurrency=concurrency,
    )
    ingestion_type = "full" if full else "partial"
    scope = f"page {page}" if page else f"workspace {pages.root}"
    console.print(f"[bold]Syncing {scope}[/] → {bundle.runner.space.embedding_space_id}")
    try:
        result = run_in_background(
            lambda: bundle.runner.run_pages(
                pages,
                root_page_id=page,
                include_linked_pages=linked,
                ingestion_type=ingestion_type,
            ),
            events,
        )
    finally:
        bundle.conn.close()
    print_run_result(result)
