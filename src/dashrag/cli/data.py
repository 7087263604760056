"""dashrag data — dump stored table snapshots as JSON (newest first)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer

from dashrag.cli.common import console, exit_on_error, load_cli_config, open_repository
from dashrag.cli.errors import err_no_db
from dashrag.service import RagService


def data_cmd(
    source: Annotated[
        str | None,
        typer.Option("--source", "-s", help="Only snapshots of this source."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to .dashrag.db."),
    ] = None,
) -> None:
    """Print {data: [{id, source, table_data, created_at}]} for ingested tables."""
    cfg = load_cli_config(db)
    if not Path(cfg.database.path).exists():
        console.print(err_no_db(cfg.database.path))
        raise typer.Exit(1)

    with exit_on_error():
        conn, repo = open_repository(cfg)
        try:
            result = RagService(repo, cfg).get_data(source)
        finally:
            conn.close()

    typer.echo(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
