"""Shared CLI plumbing: config loading, database opening, error exit."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from rich.console import Console

from dashrag.cli.errors import render_error
from dashrag.config import DashragConfig, load_config
from dashrag.db.connection import Database
from dashrag.db.repository import Repository
from dashrag.db.schema import initialize
from dashrag.errors import DashragError
from dashrag.log import is_configured, setup_logging

console = Console()


def load_cli_config(db: Path | None = None) -> DashragConfig:
    """load_config() from CWD with the --db flag applied on top."""
    try:
        cfg = load_config()
    except DashragError as exc:
        console.print(render_error(exc))
        raise typer.Exit(1) from exc
    if db is not None:
        cfg.database.path = str(db)
    if not is_configured():
        setup_logging(cfg.logging.level)
    return cfg


def open_repository(cfg: DashragConfig) -> tuple[sqlite3.Connection, Repository]:
    """Open (or create) the database, run migrations, ensure the vec table."""
    conn = Database(cfg.database.path).connect()
    try:
        vec_table = initialize(conn, cfg.embedding.model, cfg.embedding.dimensions)
    except Exception:
        conn.close()
        raise
    return conn, Repository(conn, vec_table, cfg.embedding.dimensions)


@contextmanager
def exit_on_error() -> Iterator[None]:
    """Print any DashragError as an actionable message and exit 1."""
    try:
        yield
    except DashragError as exc:
        console.print(render_error(exc))
        raise typer.Exit(1) from exc
