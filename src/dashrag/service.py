"""RagService — the query / data / ingest flows behind the CLI (and any HTTP adapter).

Response shapes:

  query       {answer, contexts: [{id, source, content, score}]}
  get_data    {data: [{id, source, table_data, created_at}]}     newest first
  ingest_file {inserted, graphDataInserted}
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from dashrag.config import DashragConfig
from dashrag.db.models import TableSnapshot
from dashrag.db.repository import Repository
from dashrag.errors import ValidationError
from dashrag.ingest.pipeline import IngestResult, Ingestor
from dashrag.log import get_logger, log_event
from dashrag.rag.assembler import Completer, synthesize
from dashrag.rag.conversation import ConversationLog
from dashrag.rag.llm_client import CompletionClient, EmbeddingClient
from dashrag.rag.retriever import RetrieverConfig, ScoredChunk, retrieve

logger = get_logger(__name__)


@dataclass
class QueryResult:
    answer: str
    contexts: list[ScoredChunk] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"answer": self.answer, "contexts": [c.to_context() for c in self.contexts]}


@dataclass
class DataResult:
    data: list[TableSnapshot] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"data": [s.to_dict() for s in self.data]}


class RagService:
    """Wires repository, provider clients and config into the three request flows.

    Args:
        repo: Open Repository (connection owned by the caller).
        config: Loaded DashragConfig.
        embedder: Embedding client; built from config when omitted.
        completer: Completion client; built from config when omitted.
    """

    def __init__(
        self,
        repo: Repository,
        config: DashragConfig,
        embedder: EmbeddingClient | None = None,
        completer: Completer | None = None,
    ) -> None:
        self._repo = repo
        self._config = config
        self._embedder = embedder or EmbeddingClient(
            config.embedding.model,
            config.embedding.dimensions,
            num_retries=config.embedding.num_retries,
        )
        self._completer = completer or CompletionClient(
            config.generation.model,
            max_tokens=config.generation.max_tokens,
            temperature=0.0,
            num_retries=config.generation.num_retries,
        )
        self._log = ConversationLog(repo)

    def query(self, q: str | None, k: int | None = None, source: str | None = None) -> QueryResult:
        """Retrieve contexts for *q*, synthesize an answer, and record the turn.

        Raises:
            ValidationError: Missing/empty question or k < 1.
        """
        if q is None or not q.strip():
            raise ValidationError("Query parameter 'q' is required")
        retrieval = self._config.retrieval
        rconfig = RetrieverConfig(
            top_k=k if k is not None else retrieval.top_k,
            fallback_policy=retrieval.fallback_policy,
            lexical_score=retrieval.lexical_score,
            fallback_score=retrieval.fallback_score,
        )
        contexts = retrieve(q, self._repo, self._embedder, rconfig, source=source)

        history = self._log.recent(retrieval.history_turns) if retrieval.history_turns else []
        answer = synthesize(
            q, contexts, self._completer, history=history, history_turns=retrieval.history_turns
        )
        self._log.append(q, answer)

        log_event(
            logger, "info", "query_answered",
            k=rconfig.top_k, source=source or "*", contexts=len(contexts),
            history=len(history), answer_chars=len(answer),
        )
        return QueryResult(answer=answer, contexts=contexts)

    def get_data(self, source: str | None = None) -> DataResult:
        return DataResult(data=self._repo.list_snapshots(source))

    def ingest_file(
        self,
        data: bytes | None,
        filename: str,
        source: str | None = None,
        mime_type: str | None = None,
        policy: str | None = None,
        on_progress: Callable[[int], None] | None = None,
    ) -> IngestResult:
        ingestor = Ingestor(self._repo, self._embedder, self._config.ingest, on_progress=on_progress)
        return ingestor.ingest_file(source, filename, data, mime_type=mime_type, policy=policy)

    def delete_source(self, source: str) -> tuple[int, int]:
        chunks, snapshots = self._repo.delete_by_source(source)
        log_event(logger, "info", "source_deleted", source=source, chunks=chunks, snapshots=snapshots)
        return chunks, snapshots
