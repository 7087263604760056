"""Tests for context assembly and grounded answer synthesis."""

from __future__ import annotations

from dashrag.db.models import Chunk, ConversationTurn
from dashrag.rag.assembler import (
    CONTEXT_DELIMITER,
    SYSTEM_PROMPT,
    build_context,
    build_user_prompt,
    synthesize,
)
from dashrag.rag.retriever import ScoredChunk


def _turns(n: int) -> list[ConversationTurn]:
    """n turns, most recent first (as the conversation log returns them)."""
    return [ConversationTurn(query=f"q{i}", response=f"r{i}") for i in reversed(range(n))]


def test_build_context_joins_chunks_in_rank_order():
    chunks = [Chunk(source="s", content="first"), Chunk(source="s", content="second")]
    assert build_context(chunks) == f"first{CONTEXT_DELIMITER}second"


def test_build_context_accepts_scored_chunks():
    scored = [ScoredChunk(chunk=Chunk(source="s", content="hit"), score=0.9)]
    assert build_context(scored) == "hit"


def test_build_context_history_first_oldest_first():
    context = build_context([Chunk(source="s", content="chunk")], history=_turns(2))
    assert context.split(CONTEXT_DELIMITER) == ["Q: q0\nA: r0", "Q: q1\nA: r1", "chunk"]


def test_build_context_caps_history_at_most_recent():
    blocks = build_context([], history=_turns(5), history_turns=3).split(CONTEXT_DELIMITER)
    assert blocks == ["Q: q2\nA: r2", "Q: q3\nA: r3", "Q: q4\nA: r4"]


def test_build_context_history_disabled():
    assert build_context([Chunk(source="s", content="c")], history=_turns(2), history_turns=0) == "c"


def test_build_context_null_response():
    context = build_context([], history=[ConversationTurn(query="q")])
    assert context == "Q: q\nA: "


def test_build_context_empty():
    assert build_context([]) == ""


def test_build_user_prompt():
    assert build_user_prompt("why?", "ctx") == "Context:\nctx\n\nQuestion: why?"


def test_synthesize_sends_grounded_prompt(completer):
    chunks = [Chunk(source="report.csv", content="Name: A; Value: 1\nName: B; Value: 2")]
    answer = synthesize("what is the value of B", chunks, completer)

    assert answer == "2"
    [(system, user)] = completer.prompts
    assert system == SYSTEM_PROMPT
    assert "Name: B; Value: 2" in user
    assert user.endswith("Question: what is the value of B")


def test_synthesize_with_no_chunks_still_asks(completer):
    completer.answer = "I don't know."
    assert synthesize("anything?", [], completer) == "I don't know."
    assert completer.prompts[0][1] == "Context:\n\n\nQuestion: anything?"


def test_system_prompt_requires_grounding():
    assert "ONLY" in SYSTEM_PROMPT
    assert "do not know" in SYSTEM_PROMPT
