"""ragsync CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from ragsync.cli.ingest import ingest_url_cmd, sync_pages_cmd
from ragsync.cli.init import init_cmd
from ragsync.cli.runs import runs_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("ragsync")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"ragsync {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="ragsync",
    help=(
        "ragsync — keep a chunk-level search index in sync with its sources.\n\n"
        "  ragsync ingest-url  Ingest web pages.\n"
        "  ragsync sync-pages  Sync a directory workspace of pages."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """ragsync — keep a chunk-level search index in sync with its sources."""


app.command("init")(init_cmd)
app.command("ingest-url")(ingest_url_cmd)
app.command("sync-pages")(sync_pages_cmd)
app.command("runs")(runs_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed ragsync version."""
    typer.echo(f"ragsync {_installed_version()}")


if __name__ == "__main__":
    app()
