"""Tests for the forward-only migration runner and schema initialize()."""

from __future__ import annotations

import pytest

import dashrag.db.migrations as migrations_mod
from dashrag.db.connection import Database
from dashrag.db.migrations import MIGRATIONS, current_version, run_migrations
from dashrag.db.schema import initialize


def _fresh_conn(tmp_path):
    """Open a new connection without running migrations."""
    return Database(tmp_path / "test.db").connect()


def _table_exists(conn, name: str) -> bool:
    return conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (name,)
    ).fetchone() is not None


# --- Bootstrap ---

def test_current_version_fresh_file_is_zero(tmp_path):
    conn = _fresh_conn(tmp_path)
    assert current_version(conn) == 0
    conn.close()


def test_run_migrations_records_version(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    assert current_version(conn) == MIGRATIONS[-1][0]
    conn.close()


def test_run_migrations_idempotent(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    run_migrations(conn)
    count = conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    assert count == len(MIGRATIONS)
    conn.close()


# --- Tables created ---

@pytest.mark.parametrize("table", ["chunks", "table_snapshots", "conversation_turns"])
def test_run_migrations_creates_tables(tmp_path, table):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    assert _table_exists(conn, table)
    conn.close()


def test_created_at_default_has_milliseconds(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    conn.execute("INSERT INTO chunks (id, source, content) VALUES ('c1', 's', 'x')")
    created = conn.execute("SELECT created_at FROM chunks").fetchone()[0]
    conn.close()
    # 2024-01-01T12:00:00.123Z
    assert created.endswith("Z")
    assert "." in created


def test_run_migrations_does_not_create_vec_tables(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    vec_tables = conn.execute(
        "SELECT name FROM sqlite_master WHERE name LIKE 'vec_chunks_%'"
    ).fetchall()
    assert vec_tables == []
    conn.close()


# --- Incremental application ---

def test_run_migrations_applies_only_pending(tmp_path, monkeypatch):
    conn = _fresh_conn(tmp_path)
    conn.execute(
        "CREATE TABLE IF NOT EXISTS schema_version "
        "(version INTEGER NOT NULL, applied_at DATETIME NOT NULL DEFAULT (datetime('now')))"
    )
    conn.execute("INSERT INTO schema_version (version) VALUES (1)")
    conn.commit()

    monkeypatch.setattr(
        migrations_mod,
        "MIGRATIONS",
        [(1, "CREATE TABLE v1_marker (x INTEGER);"), (2, "CREATE TABLE v2_marker (x INTEGER);")],
    )
    run_migrations(conn)

    assert _table_exists(conn, "v2_marker")
    assert not _table_exists(conn, "v1_marker")
    versions = [r[0] for r in conn.execute("SELECT version FROM schema_version ORDER BY version")]
    assert versions == [1, 2]
    conn.close()


# --- initialize() ---

def test_initialize_without_model_returns_none(tmp_path):
    conn = _fresh_conn(tmp_path)
    assert initialize(conn) is None
    assert current_version(conn) == MIGRATIONS[-1][0]
    conn.close()


def test_initialize_with_model_creates_vec_table(tmp_path):
    conn = _fresh_conn(tmp_path)
    table = initialize(conn, "openai/text-embedding-3-small", 8)
    assert table == "vec_chunks_openai_text_embedding_3_small"
    assert _table_exists(conn, table)
    conn.close()
