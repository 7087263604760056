"""dashrag storage layer."""

from dashrag.db.connection import Database
from dashrag.db.migrations import MIGRATIONS, run_migrations
from dashrag.db.repository import Repository
from dashrag.db.schema import initialize
from dashrag.db.vectors import ensure_vec_table, model_to_slug, vec_table_name

__all__ = [
    "Database",
    "Repository",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "ensure_vec_table",
    "model_to_slug",
    "vec_table_name",
]
