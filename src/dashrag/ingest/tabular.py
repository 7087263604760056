"""Tabular deriver — row records to whole-table, per-column and snapshot views.

For a table with m columns (taken from the first row) the deriver yields
m + 1 text chunks:

  - one whole-table chunk, each row as ``field: value; field: value``
  - one ``Column: <field>`` chunk per column, values newline-joined, so
    aggregate questions ("sum of Value") have a chunk to match against

plus one JSON-safe snapshot of the raw rows for structured consumers.
"""

from __future__ import annotations

import datetime as _dt
import decimal
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any


class _Missing:
    """Sentinel for a field absent from a row (or an empty cell)."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()

Row = Mapping[str, Any]


@dataclass
class TabularDerivation:
    chunks: list[str] = field(default_factory=list)
    snapshot: list[dict[str, Any]] | None = None


def derive(
    source: str,
    rows: Sequence[Row],
    prefix: str | None = None,
    missing_value: str = "",
) -> TabularDerivation:
    """Derive text chunks and a snapshot from *rows*.

    Args:
        source: Source key the views belong to (used only by callers/logging).
        rows: Row mappings; headers come from the first row.
        prefix: Optional leading line (e.g. ``Sheet: Q1``) for every chunk.
        missing_value: Text rendered for MISSING / absent fields.

    Returns:
        TabularDerivation with ``[]`` / ``None`` for empty input, including
        rows whose first row has no keys.
    """
    if not rows:
        return TabularDerivation()

    headers = list(rows[0].keys())
    if not headers:
        return TabularDerivation()
    lead = f"{prefix}\n" if prefix else ""

    lines = [
        "; ".join(f"{h}: {_render(row.get(h, MISSING), missing_value)}" for h in headers)
        for row in rows
    ]
    chunks = [lead + "\n".join(lines)]

    for h in headers:
        values = "\n".join(_render(row.get(h, MISSING), missing_value) for row in rows)
        chunks.append(f"{lead}Column: {h}\n{values}")

    return TabularDerivation(chunks=chunks, snapshot=snapshot_rows(rows))


def snapshot_rows(rows: Sequence[Row]) -> list[dict[str, Any]]:
    """Copy *rows* into JSON-serialisable dicts; MISSING becomes None."""
    return [{str(k): _json_value(v) for k, v in row.items()} for row in rows]


def _render(value: Any, missing_value: str) -> str:
    if value is MISSING or value is None:
        return missing_value
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _json_value(value: Any) -> Any:
    if value is MISSING:
        return None
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (_dt.datetime, _dt.date, _dt.time)):
        return value.isoformat()
    if isinstance(value, decimal.Decimal):
        return float(value)
    return str(value)
