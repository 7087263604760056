"""Schema initialization entry point."""

from __future__ import annotations

import sqlite3

from dashrag.db.migrations import run_migrations
from dashrag.db.vectors import ensure_vec_table, model_to_slug


def initialize(
    conn: sqlite3.Connection,
    embedding_model: str | None = None,
    dimensions: int | None = None,
) -> str | None:
    """Run migrations and, when a model is given, ensure its vec table (idempotent).

    Returns:
        The vec table name when *embedding_model* and *dimensions* are given,
        otherwise None.
    """
    run_migrations(conn)
    if embedding_model is None or dimensions is None:
        return None
    return ensure_vec_table(conn, model_to_slug(embedding_model), dimensions)
