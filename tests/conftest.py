"""Shared pytest fixtures."""

from __future__ import annotations

import logging
import re

import pytest

from dashrag.db.connection import Database
from dashrag.db.repository import Repository
from dashrag.db.schema import initialize

TEST_MODEL = "test/fake-embed"
TEST_VOCAB = ("value", "b", "column")
TEST_DIMS = len(TEST_VOCAB) + 1

_WORD_RE = re.compile(r"[a-z0-9]+")


class FakeEmbedder:
    """Deterministic keyword-count embedder.

    One component per vocabulary word plus a constant bias component, so no
    text ever maps to the zero vector.
    """

    def __init__(self, vocab: tuple[str, ...] = TEST_VOCAB) -> None:
        self.vocab = vocab
        self.dimensions = len(vocab) + 1
        self.calls: list[str] = []

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        words = _WORD_RE.findall(text.lower())
        return [float(words.count(w)) for w in self.vocab] + [1.0]

    def embed_many(self, texts, concurrency: int = 4):
        for text in texts:
            yield self.embed(text)


class FakeCompleter:
    """Records prompts and returns a canned answer."""

    def __init__(self, answer: str = "2") -> None:
        self.answer = answer
        self.prompts: list[tuple[str, str]] = []

    def complete(self, system: str, user: str) -> str:
        self.prompts.append((system, user))
        return self.answer


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".dashrag.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def vec_table(tmp_db):
    return initialize(tmp_db, TEST_MODEL, TEST_DIMS)


@pytest.fixture
def repo(tmp_db, vec_table):
    return Repository(tmp_db, vec_table, TEST_DIMS)


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def completer():
    return FakeCompleter()


@pytest.fixture(autouse=True)
def _reset_dashrag_logger():
    """Undo setup_logging() so handlers never leak between tests."""
    yield
    logger = logging.getLogger("dashrag")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
