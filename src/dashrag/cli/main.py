"""dashrag CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from dashrag.cli.data import data_cmd
from dashrag.cli.history import history_cmd
from dashrag.cli.ingest import ingest_cmd
from dashrag.cli.query import query_cmd
from dashrag.cli.remove import remove_cmd
from dashrag.cli.status import status_cmd
from dashrag.log import setup_logging


def _version() -> str:
    try:
        return importlib.metadata.version("dashrag")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"dashrag {_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="dashrag",
    help=(
        "dashrag — question answering over ingested documents and spreadsheets.\n\n"
        "  dashrag ingest FILE      Chunk, embed and store a CSV / XLSX / text file.\n"
        "  dashrag query QUESTION   Hybrid retrieval + grounded answer."
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
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="debug | info | warning | error."),
    ] = None,
) -> None:
    """dashrag — question answering over ingested documents and spreadsheets."""
    # Without the flag, commands apply logging.level from the loaded config.
    if log_level is None:
        return
    try:
        setup_logging(log_level)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--log-level") from exc


app.command("ingest")(ingest_cmd)
app.command("query")(query_cmd)
app.command("data")(data_cmd)
app.command("remove")(remove_cmd)
app.command("history")(history_cmd)
app.command("status")(status_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed dashrag version."""
    typer.echo(f"dashrag {_version()}")


if __name__ == "__main__":
    app()
