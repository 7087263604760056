"""dashrag history — show recent question/answer turns."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.table import Table

from dashrag.cli.common import console, exit_on_error, load_cli_config, open_repository
from dashrag.cli.errors import err_no_db
from dashrag.rag.conversation import ConversationLog


def history_cmd(
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Number of turns to show.", min=1),
    ] = 10,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to .dashrag.db."),
    ] = None,
) -> None:
    """List the most recent conversation turns, newest first."""
    cfg = load_cli_config(db)
    if not Path(cfg.database.path).exists():
        console.print(err_no_db(cfg.database.path))
        raise typer.Exit(1)

    with exit_on_error():
        conn, repo = open_repository(cfg)
        try:
            turns = ConversationLog(repo).recent(limit)
        finally:
            conn.close()

    if not turns:
        console.print("[dim]No conversation history yet.[/]")
        return

    table = Table(title="Recent questions")
    table.add_column("When")
    table.add_column("Question")
    table.add_column("Answer")
    for turn in turns:
        table.add_row(turn.created_at or "", escape(turn.query), escape(turn.response or ""))
    console.print(table)
