"""Answer synthesizer: context assembly + grounded completion.

Context layout (blocks joined by CONTEXT_DELIMITER):

  Q: <older query>\\nA: <older response>      up to history_turns, oldest first
  Q: <newer query>\\nA: <newer response>
  <chunk 1 content>
  <chunk 2 content>
  ...
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from dashrag.db.models import Chunk, ConversationTurn
from dashrag.rag.retriever import ScoredChunk

CONTEXT_DELIMITER = "\n---\n"
DEFAULT_HISTORY_TURNS = 3

SYSTEM_PROMPT = (
    "You are a data analyst. Answer based ONLY on the provided context from the "
    "ingested documents and datasets. If the context does not contain the answer "
    "or you are uncertain, say that you do not know instead of guessing."
)


class Completer(Protocol):
    def complete(self, system: str, user: str) -> str: ...


def build_context(
    chunks: Sequence[Chunk | ScoredChunk],
    history: Sequence[ConversationTurn] | None = None,
    history_turns: int = DEFAULT_HISTORY_TURNS,
) -> str:
    """Join history blocks and chunk contents with CONTEXT_DELIMITER.

    Args:
        chunks: Retrieved chunks, already in rank order.
        history: Turns most-recent-first (as ConversationLog.recent returns them).
        history_turns: Cap on how many of *history* to include.
    """
    blocks: list[str] = []
    if history and history_turns > 0:
        for turn in reversed(list(history)[:history_turns]):
            blocks.append(f"Q: {turn.query}\nA: {turn.response or ''}")
    for item in chunks:
        chunk = item.chunk if isinstance(item, ScoredChunk) else item
        blocks.append(chunk.content)
    return CONTEXT_DELIMITER.join(blocks)


def build_user_prompt(question: str, context: str) -> str:
    return f"Context:\n{context}\n\nQuestion: {question}"


def synthesize(
    question: str,
    chunks: Sequence[Chunk | ScoredChunk],
    client: Completer,
    history: Sequence[ConversationTurn] | None = None,
    history_turns: int = DEFAULT_HISTORY_TURNS,
) -> str:
    """Generate an answer to *question* grounded in *chunks* (and optional history).

    Returns the provider text verbatim; "" if it produced no content.
    """
    context = build_context(chunks, history=history, history_turns=history_turns)
    return client.complete(SYSTEM_PROMPT, build_user_prompt(question, context))
