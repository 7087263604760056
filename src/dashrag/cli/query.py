"""dashrag query — answer a question from the ingested knowledge base."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from dashrag.cli.common import console, exit_on_error, load_cli_config, open_repository
from dashrag.rag.llm_client import validate_api_key
from dashrag.service import RagService

_PREVIEW_CHARS = 80


def query_cmd(
    question: Annotated[str, typer.Argument(help="Natural-language question.")],
    k: Annotated[
        int | None,
        typer.Option("-k", "--top-k", help="Number of contexts to retrieve.", min=1),
    ] = None,
    source: Annotated[
        str | None,
        typer.Option("--source", "-s", help="Restrict retrieval to one source."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to .dashrag.db."),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print {answer, contexts} as JSON."),
    ] = False,
) -> None:
    """Ask a question; prints the answer and the contexts it was grounded on."""
    cfg = load_cli_config(db)

    with exit_on_error():
        validate_api_key(cfg.embedding.model)
        validate_api_key(cfg.generation.model)
        conn, repo = open_repository(cfg)
        try:
            result = RagService(repo, cfg).query(question, k=k, source=source)
        finally:
            conn.close()

    if as_json:
        typer.echo(json.dumps(result.to_dict(), ensure_ascii=False))
        return

    console.print(Panel(escape(result.answer) or "[dim](no answer)[/]", title="Answer"))

    if not result.contexts:
        console.print("[dim]No contexts retrieved.[/]")
        return

    table = Table(title="Contexts")
    table.add_column("#", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Via")
    table.add_column("Source")
    table.add_column("Content")
    for i, sc in enumerate(result.contexts, start=1):
        preview = sc.chunk.content.replace("\n", " ⏎ ")
        if len(preview) > _PREVIEW_CHARS:
            preview = preview[: _PREVIEW_CHARS - 1] + "…"
        table.add_row(
            str(i), f"{sc.score:.3f}", sc.channel, escape(sc.chunk.source), escape(preview)
        )
    console.print(table)
