"""Tests for per-model sqlite-vec virtual tables."""

from __future__ import annotations

import pytest

from dashrag.db.vectors import (
    ensure_vec_table,
    model_to_slug,
    vec_table_dimensions,
    vec_table_name,
)
from dashrag.errors import ConfigurationError


# --- model_to_slug ---

@pytest.mark.parametrize("model,expected", [
    ("openai/text-embedding-3-small", "openai_text_embedding_3_small"),
    ("cohere/embed-english-v3.0", "cohere_embed_english_v3_0"),
    ("local/all-MiniLM-L6-v2", "local_all_minilm_l6_v2"),
])
def test_model_to_slug(model, expected):
    assert model_to_slug(model) == expected


def test_vec_table_name():
    slug = model_to_slug("openai/text-embedding-3-small")
    assert vec_table_name(slug) == "vec_chunks_openai_text_embedding_3_small"


# --- ensure_vec_table ---

def test_ensure_vec_table_creates_table(tmp_db):
    table = ensure_vec_table(tmp_db, "openai_text_embedding_3_small", dimensions=1536)
    assert table == "vec_chunks_openai_text_embedding_3_small"
    assert vec_table_dimensions(tmp_db, table) == 1536


def test_ensure_vec_table_idempotent(tmp_db):
    t1 = ensure_vec_table(tmp_db, "m", dimensions=8)
    t2 = ensure_vec_table(tmp_db, "m", dimensions=8)
    assert t1 == t2


def test_ensure_vec_table_uses_cosine_metric(tmp_db):
    table = ensure_vec_table(tmp_db, "m", dimensions=4)
    sql = tmp_db.execute(
        "SELECT sql FROM sqlite_master WHERE name=?", (table,)
    ).fetchone()[0]
    assert "distance_metric=cosine" in sql


def test_ensure_vec_table_width_mismatch_raises(tmp_db):
    ensure_vec_table(tmp_db, "m", dimensions=4)
    with pytest.raises(ConfigurationError, match="4-dimensional"):
        ensure_vec_table(tmp_db, "m", dimensions=8)


def test_ensure_vec_table_rejects_unsanitized_slug(tmp_db):
    with pytest.raises(ValueError, match="model_to_slug"):
        ensure_vec_table(tmp_db, "openai/text-embedding-3-small", dimensions=4)


def test_ensure_vec_table_rejects_zero_dimensions(tmp_db):
    with pytest.raises(ValueError, match="dimensions"):
        ensure_vec_table(tmp_db, "m", dimensions=0)


def test_vec_table_dimensions_missing_table(tmp_db):
    assert vec_table_dimensions(tmp_db, "vec_chunks_nope") is None
