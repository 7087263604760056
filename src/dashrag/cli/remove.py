"""dashrag remove — purge a source from the knowledge base.

Removes every chunk (+ its vector) and every table snapshot stored under
the source key. Conversation history is kept.

Usage:
  dashrag remove --source report.csv
  dashrag remove --source report.csv --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from dashrag.cli.common import console, exit_on_error, load_cli_config, open_repository
from dashrag.cli.errors import err_no_db, err_source_not_found
from dashrag.service import RagService


def remove_cmd(
    source: Annotated[
        str,
        typer.Option("--source", "-s", help="Source key to remove."),
    ],
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to .dashrag.db."),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove a source's chunks and table snapshots."""
    cfg = load_cli_config(db)
    if not Path(cfg.database.path).exists():
        console.print(err_no_db(cfg.database.path))
        raise typer.Exit(1)

    with exit_on_error():
        conn, repo = open_repository(cfg)
        try:
            chunk_count = repo.count_chunks(source)
            snapshot_count = len(repo.list_snapshots(source))

            if chunk_count == 0 and snapshot_count == 0:
                console.print(err_source_not_found(source))
                raise typer.Exit(0)

            console.print(f"\nRemove source: [bold]{source}[/]")
            console.print(f"  Chunks: {chunk_count}  |  Table snapshots: {snapshot_count}")

            if not yes and not typer.confirm("Confirm removal?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)

            chunks, snapshots = RagService(repo, cfg).delete_source(source)
        finally:
            conn.close()

    console.print(f"\n[green]✓[/] Removed: {source}")
    console.print(f"  {chunks} chunks, {snapshots} table snapshots deleted")
