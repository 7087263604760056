"""Embedding writer — concurrent embeddings, sequential store writes.

For a batch of chunk texts belonging to one source:
1. Embed every text through ``EmbeddingClient.embed_many()`` (bounded thread
   pool; results come back in input order).
2. Store each chunk via ``Repository.put_chunk()`` on the calling thread as
   soon as its vector is available — the sqlite3 connection is not shared
   with the pool.

If an embedding call fails, chunks already stored stay stored; the
ProviderError propagates to the caller.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from dashrag.db.models import Chunk
from dashrag.db.repository import Repository
from dashrag.log import get_logger, log_event
from dashrag.rag.llm_client import EmbeddingClient

logger = get_logger(__name__)


class EmbeddingWriter:
    """Embed chunk texts and persist them for one source.

    Args:
        repo:     Open Repository instance.
        embedder: Client producing vectors of ``repo.dimensions`` width.
        concurrency: Maximum embedding calls in flight.
    """

    def __init__(self, repo: Repository, embedder: EmbeddingClient, concurrency: int = 4) -> None:
        self._repo = repo
        self._embedder = embedder
        self._concurrency = concurrency

    def write(
        self,
        source: str,
        texts: Sequence[str],
        on_progress: Callable[[int], None] | None = None,
    ) -> list[Chunk]:
        """Embed *texts* and store them under *source*. Returns the stored chunks.

        Blank texts are skipped (the store never holds empty content).
        """
        texts = [t for t in texts if t and t.strip()]
        stored: list[Chunk] = []
        vectors = self._embedder.embed_many(texts, concurrency=self._concurrency)
        for idx, (text, vector) in enumerate(zip(texts, vectors)):
            stored.append(self._repo.put_chunk(Chunk(source=source, content=text, embedding=vector)))
            if on_progress is not None:
                on_progress(idx)

        log_event(logger, "info", "chunks_written", source=source, count=len(stored))
        return stored
