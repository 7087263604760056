"""dashrag rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from dashrag.cli.errors import render_error
    console.print(render_error(exc))
    raise typer.Exit(1)
"""

from __future__ import annotations

from rich.markup import escape

from dashrag.errors import (
    ConfigurationError,
    DashragError,
    MissingApiKeyError,
    ProviderError,
    StorageError,
    ValidationError,
)


def err_no_api_key(provider: str, env_var: str | None = None) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_var = env_var or f"{provider.upper()}_API_KEY"
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_no_db(db_path: str = ".dashrag.db") -> str:
    """No database file at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  dashrag ingest <file>  to create it."
    )


def err_file_not_found(path: str) -> str:
    return (
        f"[red]Error:[/] File not found: '{path}'\n"
        "  Check the path and try again."
    )


def err_source_not_found(source: str) -> str:
    """Source not found in database."""
    return (
        f"[yellow]Source not found:[/] '{source}' is not in the knowledge base.\n"
        "  Run:  dashrag data  to see ingested tables."
    )


def err_validation(message: str) -> str:
    return f"[red]Invalid input:[/] {escape(message)}"


def err_provider(message: str) -> str:
    return (
        f"[red]Provider error:[/] {escape(message)}\n"
        "  The call was retried with backoff and still failed.\n"
        "  Check your network, API key, and provider status, then retry."
    )


def err_storage(message: str) -> str:
    return (
        f"[red]Storage error:[/] {escape(message)}\n"
        "  Check that the database file is writable and not locked by another process."
    )


def err_config(message: str) -> str:
    return (
        f"[red]Configuration error:[/] {escape(message)}\n"
        "  Fix dashrag.yaml (or the DASHRAG_* environment variables) and retry."
    )


def render_error(exc: DashragError) -> str:
    """Map an exception from the core to its actionable message."""
    if isinstance(exc, ValidationError):
        return err_validation(str(exc))
    if isinstance(exc, ProviderError):
        return err_provider(str(exc))
    if isinstance(exc, StorageError):
        return err_storage(str(exc))
    if isinstance(exc, MissingApiKeyError):
        return err_no_api_key(exc.provider, exc.env_var)
    if isinstance(exc, ConfigurationError):
        return err_config(str(exc))
    return f"[red]Error:[/] {escape(str(exc))}"


def warn_format_fallback(filename: str) -> str:
    return (
        f"[yellow]⚠[/] '{filename}' could not be parsed as a table — ingested as plain text."
    )
