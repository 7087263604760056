"""Append-only conversation log used as short-term memory for answer synthesis."""

from __future__ import annotations

from dashrag.db.models import ConversationTurn
from dashrag.db.repository import Repository
from dashrag.errors import ValidationError


class ConversationLog:
    """Records (query, response) turns; never consulted by retrieval scoring."""

    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    def append(self, query: str, response: str | None) -> ConversationTurn:
        if not query or not query.strip():
            raise ValidationError("Conversation turn needs a non-empty query")
        return self._repo.add_turn(ConversationTurn(query=query, response=response))

    def recent(self, limit: int) -> list[ConversationTurn]:
        """Return up to *limit* turns, most recent first."""
        return self._repo.recent_turns(limit)
