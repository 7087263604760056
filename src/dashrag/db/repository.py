"""Repository pattern for all dashrag storage operations.

Single interface for: chunks + their vectors, similarity and lexical search,
table snapshots, and conversation turns. The vec table is model-managed
(ensure_vec_table); the repository reads and writes it.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from collections.abc import Iterator, Sequence
from contextlib import contextmanager, suppress
from datetime import datetime, timezone

from dashrag.db.models import Chunk, ConversationTurn, TableSnapshot
from dashrag.errors import ConfigurationError, StorageError, ValidationError

# Keeps IN (...) lists well under SQLITE_MAX_VARIABLE_NUMBER.
_DELETE_BATCH = 500

# sqlite-vec rejects KNN queries with k above this; larger k uses the exact scan.
_KNN_MAX_K = 4096


class Repository:
    """Data access layer for chunks, snapshots and conversation turns.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use. Every sqlite3.Error surfaces as StorageError.
    """

    def __init__(self, conn: sqlite3.Connection, vec_table: str, dimensions: int) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see dashrag.db.schema.initialize).
            vec_table: Name of the vec0 table holding chunk embeddings.
            dimensions: Width every stored and queried vector must have.
        """
        self._conn = conn
        self._vec_table = vec_table
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @contextmanager
    def _storage(self, operation: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as exc:
            with suppress(sqlite3.Error):
                self._conn.rollback()
            raise StorageError(f"{operation} failed: {exc}") from exc

    def _check_width(self, vector: Sequence[float]) -> None:
        if len(vector) != self._dimensions:
            raise ConfigurationError(
                f"Embedding has {len(vector)} dimensions; the store expects {self._dimensions}. "
                "Check embedding.model and embedding.dimensions."
            )

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def put_chunk(self, chunk: Chunk) -> Chunk:
        """Insert *chunk* and its embedding. Returns the chunk with id/created_at/rowid set.

        Raises:
            ValidationError: If content is empty or whitespace-only.
            ConfigurationError: If the embedding width does not match the store.
        """
        if not chunk.content or not chunk.content.strip():
            raise ValidationError(f"Refusing to store empty chunk for source '{chunk.source}'")
        self._check_width(chunk.embedding)

        chunk.id = chunk.id or str(uuid.uuid4())
        chunk.created_at = chunk.created_at or _now()

        with self._storage("put_chunk"):
            cur = self._conn.execute(
                "INSERT INTO chunks (id, source, content, created_at) VALUES (?, ?, ?, ?)",
                (chunk.id, chunk.source, chunk.content, chunk.created_at),
            )
            chunk.rowid = cur.lastrowid
            self._conn.execute(
                f"INSERT INTO {self._vec_table}(rowid, embedding) VALUES (?, ?)",
                (chunk.rowid, json.dumps(chunk.embedding)),
            )
            self._conn.commit()
        return chunk

    def count_chunks(self, source: str | None = None) -> int:
        with self._storage("count_chunks"):
            if source is None:
                return self._conn.execute("SELECT COUNT(*) FROM chunks").fetchone()[0]
            return self._conn.execute(
                "SELECT COUNT(*) FROM chunks WHERE source = ?", (source,)
            ).fetchone()[0]

    def list_sources(self) -> list[tuple[str, int]]:
        """Return [(source, chunk_count), ...] ordered by source name."""
        with self._storage("list_sources"):
            rows = self._conn.execute(
                "SELECT source, COUNT(*) AS n FROM chunks GROUP BY source ORDER BY source"
            ).fetchall()
        return [(r["source"], r["n"]) for r in rows]

    # ------------------------------------------------------------------
    # Similarity search
    # ------------------------------------------------------------------

    def nearest_by_similarity(
        self,
        query_vector: Sequence[float],
        k: int,
        source: str | None = None,
    ) -> list[tuple[Chunk, float]]:
        """Return up to *k* (chunk, score) pairs, best first.

        score = 1 - cosine_distance, so 1.0 means identical direction.
        With *source* set, only chunks of that source are considered. The vec0
        KNN index is used when there is no source filter and k fits its limit;
        otherwise an exact vec_distance_cosine scan ranks every candidate.
        """
        self._check_width(query_vector)
        if k < 1:
            return []
        query = json.dumps(list(query_vector))

        with self._storage("nearest_by_similarity"):
            if source is None and k <= _KNN_MAX_K:
                vec_rows = self._conn.execute(
                    f"SELECT rowid, distance FROM {self._vec_table} "
                    "WHERE embedding MATCH ? AND k = ? ORDER BY distance",
                    (query, k),
                ).fetchall()
                results: list[tuple[Chunk, float]] = []
                for vec_row in vec_rows:
                    chunk = self._get_chunk_by_rowid(vec_row["rowid"])
                    if chunk is not None:
                        results.append((chunk, 1.0 - vec_row["distance"]))
                return results

            rows = self._conn.execute(
                f"""
                SELECT c.rowid, c.id, c.source, c.content, c.created_at,
                       vec_distance_cosine(v.embedding, ?) AS distance
                FROM chunks c
                JOIN {self._vec_table} v ON v.rowid = c.rowid
                WHERE ? IS NULL OR c.source = ?
                ORDER BY distance, c.rowid DESC
                LIMIT ?
                """,
                (query, source, source, k),
            ).fetchall()
        return [(_row_to_chunk(r), 1.0 - r["distance"]) for r in rows]

    # ------------------------------------------------------------------
    # Lexical search
    # ------------------------------------------------------------------

    def lexical_match(
        self,
        tokens: Sequence[str],
        k: int,
        source: str | None = None,
    ) -> list[Chunk]:
        """Return up to *k* chunks containing ALL *tokens* (case-insensitive), newest first.

        An empty token list is an empty conjunction: the newest *k* chunks
        (within *source* when given).
        """
        if k < 1:
            return []
        conditions: list[str] = []
        params: list[object] = []
        for token in tokens:
            conditions.append("content LIKE ? ESCAPE '\\'")
            params.append(f"%{_escape_like(token)}%")
        if source is not None:
            conditions.append("source = ?")
            params.append(source)

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        params.append(k)
        with self._storage("lexical_match"):
            rows = self._conn.execute(
                f"""
                SELECT rowid, id, source, content, created_at FROM chunks
                {where}
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                params,
            ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    # ------------------------------------------------------------------
    # Source lifecycle
    # ------------------------------------------------------------------

    def delete_by_source(self, source: str) -> tuple[int, int]:
        """Delete every chunk (+ vector) and snapshot of *source*.

        Conversation turns are not touched.

        Returns:
            (chunks_deleted, snapshots_deleted)
        """
        with self._storage("delete_by_source"):
            rowids = [
                r[0]
                for r in self._conn.execute(
                    "SELECT rowid FROM chunks WHERE source = ?", (source,)
                ).fetchall()
            ]
            for start in range(0, len(rowids), _DELETE_BATCH):
                batch = rowids[start : start + _DELETE_BATCH]
                placeholders = ",".join("?" * len(batch))
                self._conn.execute(
                    f"DELETE FROM {self._vec_table} WHERE rowid IN ({placeholders})",  # noqa: S608
                    batch,
                )
            chunks = self._conn.execute("DELETE FROM chunks WHERE source = ?", (source,)).rowcount
            snapshots = self._conn.execute(
                "DELETE FROM table_snapshots WHERE source = ?", (source,)
            ).rowcount
            self._conn.commit()
        return chunks, snapshots

    # ------------------------------------------------------------------
    # Table snapshots
    # ------------------------------------------------------------------

    def add_snapshot(self, snapshot: TableSnapshot) -> TableSnapshot:
        snapshot.id = snapshot.id or str(uuid.uuid4())
        snapshot.created_at = snapshot.created_at or _now()
        with self._storage("add_snapshot"):
            self._conn.execute(
                "INSERT INTO table_snapshots (id, source, table_data, created_at) VALUES (?, ?, ?, ?)",
                (snapshot.id, snapshot.source, snapshot.table_json, snapshot.created_at),
            )
            self._conn.commit()
        return snapshot

    def list_snapshots(self, source: str | None = None) -> list[TableSnapshot]:
        """Return snapshots newest first, optionally restricted to *source*."""
        sql = "SELECT id, source, table_data, created_at FROM table_snapshots"
        params: tuple = ()
        if source is not None:
            sql += " WHERE source = ?"
            params = (source,)
        sql += " ORDER BY created_at DESC, rowid DESC"
        with self._storage("list_snapshots"):
            rows = self._conn.execute(sql, params).fetchall()
        return [
            TableSnapshot(
                id=r["id"],
                source=r["source"],
                table_data=json.loads(r["table_data"]),
                created_at=r["created_at"],
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Conversation turns
    # ------------------------------------------------------------------

    def add_turn(self, turn: ConversationTurn) -> ConversationTurn:
        turn.id = turn.id or str(uuid.uuid4())
        turn.created_at = turn.created_at or _now()
        with self._storage("add_turn"):
            self._conn.execute(
                "INSERT INTO conversation_turns (id, query, response, created_at) VALUES (?, ?, ?, ?)",
                (turn.id, turn.query, turn.response, turn.created_at),
            )
            self._conn.commit()
        return turn

    def recent_turns(self, limit: int) -> list[ConversationTurn]:
        """Return up to *limit* turns, most recent first."""
        if limit < 1:
            return []
        with self._storage("recent_turns"):
            rows = self._conn.execute(
                """
                SELECT id, query, response, created_at FROM conversation_turns
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [
            ConversationTurn(
                id=r["id"], query=r["query"], response=r["response"], created_at=r["created_at"]
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_chunk_by_rowid(self, rowid: int) -> Chunk | None:
        row = self._conn.execute(
            "SELECT rowid, id, source, content, created_at FROM chunks WHERE rowid = ?",
            (rowid,),
        ).fetchone()
        return _row_to_chunk(row) if row else None


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _now() -> str:
    """UTC timestamp in the same shape as the schema default."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def _escape_like(token: str) -> str:
    return token.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        rowid=row["rowid"],
        id=row["id"],
        source=row["source"],
        content=row["content"],
        created_at=row["created_at"],
    )
