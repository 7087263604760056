"""Hybrid retriever: cosine similarity (sqlite-vec) + conjunctive keyword fallback.

Trigger policies (exactly one applies per RetrieverConfig):

  merge       lexical channel always runs; hits not already returned by the
              semantic channel join at a fixed ``lexical_score`` (0.75)
  empty_only  lexical channel runs only when the semantic channel is empty;
              its hits carry ``fallback_score`` (0.0)

Merge is keyed on chunk id (semantic wins), sorted by descending score with
semantic ahead of lexical on ties, then truncated to top_k.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol

from dashrag.config import FALLBACK_POLICIES
from dashrag.db.models import Chunk
from dashrag.db.repository import Repository
from dashrag.errors import ConfigurationError, ValidationError
from dashrag.log import get_logger, log_event

logger = get_logger(__name__)

STOPWORDS: frozenset[str] = frozenset(
    [
        "what", "is", "the", "of", "for", "a", "an", "and", "or", "to", "me",
        "data", "give", "provide", "show", "please", "about",
    ]
)

_NON_KEYWORD_RE = re.compile(r"[^a-z0-9()\s.-]")
_MIN_TOKEN_LEN = 2


class Embedder(Protocol):
    def embed(self, text: str) -> list[float]: ...


@dataclass
class RetrieverConfig:
    """Configuration for the hybrid retriever.

    Attributes:
        top_k: Maximum number of chunks returned after merge.
        fallback_policy: 'merge' or 'empty_only' (see module docstring).
        lexical_score: Score of lexical-only hits under 'merge'.
        fallback_score: Score of fallback hits under 'empty_only'.
    """

    top_k: int = 5
    fallback_policy: str = "merge"
    lexical_score: float = 0.75
    fallback_score: float = 0.0


@dataclass
class ScoredChunk:
    """A retrieved chunk with its final score and the channel that produced it.

    Attributes:
        chunk: The Chunk instance from the store.
        score: 1 - cosine distance for semantic hits, the fixed policy score otherwise.
        channel: 'semantic', 'lexical' (merge policy) or 'fallback' (empty_only policy).
    """

    chunk: Chunk
    score: float
    channel: str = "semantic"

    def to_context(self) -> dict:
        return {
            "id": self.chunk.id,
            "source": self.chunk.source,
            "content": self.chunk.content,
            "score": self.score,
        }


def retrieve(
    question: str,
    repo: Repository,
    embedder: Embedder,
    config: RetrieverConfig,
    source: str | None = None,
) -> list[ScoredChunk]:
    """Run hybrid retrieval for *question*, best-first, at most ``config.top_k`` results.

    Raises:
        ValidationError: Empty question or top_k < 1.
        ConfigurationError: Unknown fallback policy.
        ProviderError / StorageError: Propagated from the embedder / store.
    """
    if not question or not question.strip():
        raise ValidationError("Question must not be empty")
    if config.top_k < 1:
        raise ValidationError(f"k must be >= 1, got {config.top_k}")
    if config.fallback_policy not in FALLBACK_POLICIES:
        raise ConfigurationError(
            f"Unknown fallback policy '{config.fallback_policy}'. "
            f"Use one of: {', '.join(sorted(FALLBACK_POLICIES))}"
        )

    k = config.top_k
    query_vector = embedder.embed(question)
    semantic = repo.nearest_by_similarity(query_vector, k, source=source)
    keywords = tokenize_question(question)

    lexical: list[Chunk] = []
    if config.fallback_policy == "empty_only":
        if semantic:
            results = [ScoredChunk(chunk=c, score=s, channel="semantic") for c, s in semantic]
        else:
            lexical = repo.lexical_match(keywords, k, source=source)
            results = [
                ScoredChunk(chunk=c, score=config.fallback_score, channel="fallback")
                for c in lexical
            ]
    else:
        lexical = repo.lexical_match(keywords, k, source=source)
        results = merge_results(semantic, lexical, config.lexical_score, k)

    log_event(
        logger,
        "debug",
        "retrieved",
        policy=config.fallback_policy,
        semantic=len(semantic),
        lexical=len(lexical),
        keywords=",".join(keywords) or "-",
        returned=len(results),
    )
    return results


def tokenize_question(question: str) -> list[str]:
    """Lower-case, strip everything but ``a-z0-9().-``, drop stopwords and 1-char tokens."""
    normalized = _NON_KEYWORD_RE.sub(" ", question.lower())
    return [
        token
        for token in normalized.split()
        if token not in STOPWORDS and len(token) >= _MIN_TOKEN_LEN
    ]


def merge_results(
    semantic: list[tuple[Chunk, float]],
    lexical: list[Chunk],
    lexical_score: float,
    top_k: int,
) -> list[ScoredChunk]:
    """Merge both channels by chunk id (semantic wins), sort by score, truncate."""
    merged: dict[str, ScoredChunk] = {}
    for chunk, score in semantic:
        key = _key(chunk)
        if key not in merged:
            merged[key] = ScoredChunk(chunk=chunk, score=score, channel="semantic")
    for chunk in lexical:
        key = _key(chunk)
        if key not in merged:
            merged[key] = ScoredChunk(chunk=chunk, score=lexical_score, channel="lexical")

    # sorted() is stable: equal (score, channel) keeps channel order.
    ranked = sorted(merged.values(), key=lambda s: (-s.score, s.channel != "semantic"))
    return ranked[:top_k]


def _key(chunk: Chunk) -> str:
    return chunk.id if chunk.id is not None else f"rowid:{chunk.rowid}"
