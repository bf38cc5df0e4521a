"""ragsync runs — list recent ingestion runs from the ledger."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from ragsync.cli.errors import err_no_db
from ragsync.cli.runtime import console, load_config_or_exit, open_database
from ragsync.db.availability import DatastoreAvailability
from ragsync.db.datastore import SqliteDatastore
from ragsync.db.runs import RunLedger

_STATUS_STYLE = {
    "success": "green",
    "completed_with_errors": "yellow",
    "failed": "red",
    "in_progress": "cyan",
}


def runs_cmd(
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", min=1, help="Number of runs to show."),
    ] = 10,
    errors: Annotated[
        bool,
        typer.Option("--errors", help="Also print each run's error log."),
    ] = False,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the ragsync database (default from config)."),
    ] = None,
) -> None:
    """Show the most recent ingestion runs."""
    cfg = load_config_or_exit()
    db_path = db or Path(cfg.datastore.path)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    conn = open_database(db_path)
    try:
        runs = RunLedger(SqliteDatastore(conn), DatastoreAvailability()).list_recent(limit)
    finally:
        conn.close()

    if not runs:
        console.print("[dim]No ingestion runs recorded yet.[/]")
        return

    table = Table(title="Recent ingestion runs")
    table.add_column("Started")
    table.add_column("Source")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Docs", justify="right")
    table.add_column("Added", justify="right")
    table.add_column("Updated", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Duration", justify="right")
    for run in runs:
        style = _STATUS_STYLE.get(run.status, "")
        duration = f"{run.duration_ms / 1000:.1f}s" if run.duration_ms is not None else "-"
        table.add_row(
            run.started_at[:19].replace("T", " "),
            run.source,
            run.ingestion_type,
            f"[{style}]{run.status}[/]",
            str(run.stats.documents_processed),
            str(run.stats.documents_added),
            str(run.stats.documents_updated),
            str(run.stats.documents_skipped),
            str(run.stats.error_count),
            duration,
        )
    console.print(table)

    if errors:
        for run in runs:
            for entry in run.error_logs:
                where = entry.context or entry.doc_id or "-"
                console.print(f"  [red]✗[/] {run.id[:8]} {where}: {entry.message}")
