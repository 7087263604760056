"""Sentence-bounded text segmentation with a soft token budget."""

from __future__ import annotations

import re

_SENTENCE_END_RE = re.compile(r"(?<=[.!?])\s+")

DEFAULT_TARGET_TOKENS = 120


def split_sentences(text: str) -> list[str]:
    """Split on ``.``/``!``/``?`` followed by whitespace; drop empty pieces."""
    return [s.strip() for s in _SENTENCE_END_RE.split(text) if s.strip()]


def segment(text: str, target_tokens: int = DEFAULT_TARGET_TOKENS) -> list[str]:
    """Greedily pack sentences into chunks of at most *target_tokens* whitespace tokens.

    The budget is soft: a sentence that alone exceeds it is emitted whole
    rather than truncated. Pure function, no state between calls.

    Raises:
        ValueError: If target_tokens < 1.
    """
    if target_tokens < 1:
        raise ValueError("target_tokens must be >= 1")

    chunks: list[str] = []
    current = ""
    for sentence in split_sentences(text):
        candidate = f"{current} {sentence}" if current else sentence
        if current and len(candidate.split()) > target_tokens:
            chunks.append(current)
            current = sentence
        else:
            current = candidate
    if current:
        chunks.append(current)
    return chunks
