"""dashrag status command.

Shows the store overview: database file, configured models and policies,
schema version, and per-source chunk / snapshot counts.
"""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from dashrag.cli.common import console, exit_on_error, load_cli_config, open_repository
from dashrag.config import DashragConfig
from dashrag.db.migrations import current_version
from dashrag.db.repository import Repository


def status_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to .dashrag.db."),
    ] = None,
) -> None:
    """Show configuration and knowledge-base contents."""
    cfg = load_cli_config(db)
    db_path = Path(cfg.database.path)

    _show_config_panel(db_path, cfg)

    if not db_path.exists():
        console.print(
            Panel(
                "[yellow]No database found.[/]\n"
                "  Run:  dashrag ingest <file>",
                title="[bold]Knowledge Base[/]",
                expand=False,
            )
        )
        return

    with exit_on_error():
        conn, repo = open_repository(cfg)
        try:
            console.print(f"Schema version: {current_version(conn)}")
            _show_knowledge_table(repo)
        finally:
            conn.close()


def _show_config_panel(db_path: Path, cfg: DashragConfig) -> None:
    db_info = str(db_path)
    if db_path.exists():
        size_mb = db_path.stat().st_size / (1024 * 1024)
        db_info = f"{db_path} ({size_mb:.1f} MB)"

    r = cfg.retrieval
    lines = [
        f"Database:    {db_info}",
        f"Embedding:   {cfg.embedding.model} ({cfg.embedding.dimensions} dims)",
        f"Generation:  {cfg.generation.model}",
        f"Retrieval:   top_k={r.top_k}  policy={r.fallback_policy}  history={r.history_turns}",
        f"Ingest:      chunk_tokens={cfg.ingest.chunk_tokens}  policy={cfg.ingest.policy}",
    ]
    console.print(Panel("\n".join(lines), title="[bold]dashrag[/]", expand=False))


def _show_knowledge_table(repo: Repository) -> None:
    sources = repo.list_sources()
    snapshots = Counter(s.source for s in repo.list_snapshots())

    if not sources and not snapshots:
        console.print("[dim]Knowledge base is empty.[/]")
        return

    table = Table(title="Knowledge Base")
    table.add_column("Source")
    table.add_column("Chunks", justify="right")
    table.add_column("Tables", justify="right")
    chunk_counts = dict(sources)
    for name in sorted(set(chunk_counts) | set(snapshots)):
        table.add_row(escape(name), str(chunk_counts.get(name, 0)), str(snapshots.get(name, 0)))
    console.print(table)
