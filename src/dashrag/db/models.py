"""Domain models for the dashrag storage layer."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Chunk:
    source: str
    content: str
    embedding: list[float] = field(default_factory=list)
    id: str | None = None  # generated on insert when absent
    created_at: str | None = None
    rowid: int | None = None  # vec table key; None for unsaved chunks


@dataclass
class TableSnapshot:
    source: str
    table_data: list[dict[str, Any]]
    id: str | None = None
    created_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "table_data": self.table_data,
            "created_at": self.created_at,
        }

    @property
    def table_json(self) -> str:
        return json.dumps(self.table_data, ensure_ascii=False, default=str)


@dataclass
class ConversationTurn:
    query: str
    response: str | None = None
    id: str | None = None
    created_at: str | None = None
