"""dashrag ingest — ingest a file into the knowledge base.

Format dispatch by MIME type / extension:
  .csv                  → whole-table chunk + per-column chunks + table snapshot
  .xlsx .xlsm .xls      → the same, once per sheet (prefixed "Sheet: <name>")
  anything else         → sentence-bounded text chunks
"""

from __future__ import annotations

import json
import mimetypes
from pathlib import Path
from typing import Annotated

import typer
from rich.progress import Progress, SpinnerColumn, TextColumn

from dashrag.cli.common import console, exit_on_error, load_cli_config, open_repository
from dashrag.cli.errors import err_file_not_found, warn_format_fallback
from dashrag.ingest.parsers import detect_format
from dashrag.rag.llm_client import validate_api_key
from dashrag.service import RagService


def ingest_cmd(
    file: Annotated[Path, typer.Argument(help="File to ingest (CSV, XLSX, or text).")],
    source: Annotated[
        str | None,
        typer.Option("--source", "-s", help="Source key (defaults to the file name)."),
    ] = None,
    policy: Annotated[
        str | None,
        typer.Option("--policy", help="replace (purge source first) or append."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to .dashrag.db (created if missing)."),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print {inserted, graphDataInserted} as JSON."),
    ] = False,
) -> None:
    """Ingest one file into the dashrag knowledge base."""
    if not file.is_file():
        console.print(err_file_not_found(str(file)))
        raise typer.Exit(1)

    cfg = load_cli_config(db)
    mime_type, _ = mimetypes.guess_type(file.name)
    data = file.read_bytes()

    with exit_on_error():
        validate_api_key(cfg.embedding.model)
        conn, repo = open_repository(cfg)
        try:
            service = RagService(repo, cfg)
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                TextColumn("[dim]{task.fields[chunks]} chunks stored[/dim]"),
                transient=True,
                console=console,
            ) as prog:
                task = prog.add_task(f"Embedding {file.name}…", total=None, chunks=0)

                def _on_chunk(idx: int) -> None:
                    prog.update(task, chunks=idx + 1)

                result = service.ingest_file(
                    data,
                    file.name,
                    source=source,
                    mime_type=mime_type,
                    policy=policy,
                    on_progress=_on_chunk,
                )
        finally:
            conn.close()

    if as_json:
        typer.echo(json.dumps(result.to_dict()))
        return

    key = source or file.name
    if detect_format(file.name, mime_type) != "text" and result.format == "text":
        console.print(warn_format_fallback(file.name))
    if result.purged:
        console.print(f"  [dim]↻ Replaced {result.purged} existing chunks for '{key}'[/]")
    console.print(
        f"[green]✓[/] {key}: {result.inserted} chunks, {result.snapshots} table snapshots "
        f"([dim]{result.format}[/])"
    )
