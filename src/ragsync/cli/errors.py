"""ragsync rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from ragsync.cli.errors import err_no_api_key
    console.print(err_no_api_key("openai"))
    raise typer.Exit(1)
"""

from __future__ import annotations

PROVIDER_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
}


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_var = PROVIDER_KEY_ENV.get(provider.lower(), f"{provider.upper()}_API_KEY")
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=..."
    )


def err_no_db(db_path: str = ".ragsync.db") -> str:
    """No database found at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  ragsync init"
    )


def err_config(message: str) -> str:
    """Configuration could not be loaded."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {message}\n"
        "  Fix ragsync.yaml (or ~/.ragsync/config.yaml) and retry."
    )


def err_unknown_embedding_space(message: str, known: list[str]) -> str:
    """Embedding selector matched no registered space."""
    return (
        f"[red]Error:[/] {message}\n"
        f"  Known embedding spaces: {', '.join(known)}\n"
        "  Set embedding.space_id in ragsync.yaml or export EMBEDDING_SPACE_ID=<id>"
    )


def err_workspace_not_found(path: str) -> str:
    return (
        f"[red]Error:[/] Workspace directory not found: '{path}'\n"
        "  Pass an existing directory of .md / .txt pages."
    )


def warn_run_errors(error_count: int) -> str:
    return (
        f"[yellow]⚠[/] {error_count} document(s) failed.\n"
        "  Run:  ragsync runs  to inspect the error log of this run."
    )
