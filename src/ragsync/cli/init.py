"""ragsync init — create the database and a project config.

Creates:
  .ragsync.db             — database with documents / ingest_runs schema
  ragsync.yaml            — project config template
  ~/.ragsync/config.yaml  — global defaults (created once, mode 0o600)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from ragsync.cli.runtime import console, open_database
from ragsync.config import PROJECT_CONFIG_NAME, ensure_global_config

_DEFAULT_PROJECT_DIR = Path(".")

_PROJECT_TEMPLATE = """\
# ragsync project configuration.
# API keys belong in environment variables (OPENAI_API_KEY, GEMINI_API_KEY).

embedding:
  provider: openai          # or: gemini
  # space_id: openai_te3s_v1
  batch_size: 96

ingest:
  concurrency: 2            # page syncs
  url_concurrency: 4        # URL runs
  max_tokens: 450
  overlap: 75
  default_metadata: {}

datastore:
  path: .ragsync.db

logging:
  level: INFO
  # log_dir: .ragsync/logs
"""


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = _DEFAULT_PROJECT_DIR,
    global_config: Annotated[
        Path | None,
        typer.Option("--global-config", hidden=True, help="Override global config path (for testing)."),
    ] = None,
) -> None:
    """Initialize a ragsync project (database + config)."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)

    db_path = project_dir / ".ragsync.db"
    existed = db_path.exists()
    conn = open_database(db_path)
    conn.close()
    if existed:
        console.print(f"  [dim]↷ {db_path.name} already exists — schema up to date[/]")
    else:
        console.print(f"  [green]✓[/] {db_path.name}")

    cfg_path = project_dir / PROJECT_CONFIG_NAME
    if cfg_path.exists():
        console.print(f"  [dim]↷ {PROJECT_CONFIG_NAME} already exists — left unchanged[/]")
    else:
        cfg_path.write_text(_PROJECT_TEMPLATE, encoding="utf-8")
        console.print(f"  [green]✓[/] {PROJECT_CONFIG_NAME}")

    global_path = ensure_global_config(global_config)
    console.print(f"  [green]✓[/] {global_path}")
    console.print("\n[bold]Next:[/]  ragsync ingest-url https://example.com  or  ragsync sync-pages ./notes")
