"""Ingest pipeline — route a file to the segmenter or the tabular deriver, then embed.

Format dispatch (see dashrag.ingest.parsers.detect_format):
  csv       → rows → derive() → chunks + one snapshot
  workbook  → per sheet: rows → derive(prefix="Sheet: <name>") → chunks + snapshot
  text      → segment() → chunks

A csv/workbook file that fails to parse degrades to text ingestion.
Re-ingest policy: 'replace' purges the source first, 'append' keeps prior data.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from dashrag.config import INGEST_POLICIES, IngestCfg
from dashrag.db.models import TableSnapshot
from dashrag.db.repository import Repository
from dashrag.errors import ConfigurationError, UnsupportedFormatError, ValidationError
from dashrag.ingest.embedding_writer import EmbeddingWriter
from dashrag.ingest.parsers import decode_text, detect_format, parse_csv, parse_workbook
from dashrag.ingest.segmenter import segment
from dashrag.ingest.tabular import Row, derive
from dashrag.log import get_logger, log_event
from dashrag.rag.llm_client import EmbeddingClient

logger = get_logger(__name__)


@dataclass
class IngestResult:
    inserted: int = 0
    snapshots: int = 0
    format: str = "text"
    purged: int = 0

    def __iadd__(self, other: IngestResult) -> IngestResult:
        self.inserted += other.inserted
        self.snapshots += other.snapshots
        return self

    def to_dict(self) -> dict[str, int]:
        return {"inserted": self.inserted, "graphDataInserted": self.snapshots}


class Ingestor:
    """Turn uploaded files, raw text, or row sequences into stored chunks.

    Args:
        repo:     Open Repository instance.
        embedder: Embedding client whose width matches the repository.
        config:   Ingest settings (chunk size, policy, concurrency, missing value).
        on_progress: Optional callback receiving the index of each stored chunk.
    """

    def __init__(
        self,
        repo: Repository,
        embedder: EmbeddingClient,
        config: IngestCfg | None = None,
        on_progress: Callable[[int], None] | None = None,
    ) -> None:
        self._repo = repo
        self._config = config or IngestCfg()
        self._writer = EmbeddingWriter(repo, embedder, concurrency=self._config.embed_concurrency)
        self._on_progress = on_progress

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def ingest_file(
        self,
        source: str | None,
        filename: str,
        data: bytes | None,
        mime_type: str | None = None,
        policy: str | None = None,
    ) -> IngestResult:
        """Ingest one uploaded file under *source* (defaults to *filename*).

        Raises:
            ValidationError: No file name or no file body.
            ConfigurationError: Unknown policy.
        """
        if not filename:
            raise ValidationError("No file provided: filename is missing")
        if data is None:
            raise ValidationError(f"No file provided: '{filename}' has no content")
        source = source or filename
        policy = policy or self._config.policy
        if policy not in INGEST_POLICIES:
            raise ConfigurationError(
                f"Unknown ingest policy '{policy}'. Use one of: {', '.join(sorted(INGEST_POLICIES))}"
            )

        purged = 0
        if policy == "replace":
            purged, _ = self._repo.delete_by_source(source)

        fmt = detect_format(filename, mime_type)
        try:
            if fmt == "csv":
                result = self.ingest_rows(source, parse_csv(data))
            elif fmt == "workbook":
                result = IngestResult(format=fmt)
                for sheet_name, rows in parse_workbook(data):
                    result += self.ingest_rows(source, rows, prefix=f"Sheet: {sheet_name}")
            else:
                result = self.ingest_text(source, decode_text(data))
        except UnsupportedFormatError as exc:
            log_event(
                logger, "warning", "format_fallback_to_text",
                source=source, filename=filename, detected=fmt, reason=str(exc),
            )
            result = self.ingest_text(source, decode_text(data))
        else:
            result.format = fmt

        result.purged = purged
        log_event(
            logger, "info", "file_ingested",
            source=source, format=result.format, policy=policy,
            inserted=result.inserted, snapshots=result.snapshots, purged=purged,
        )
        return result

    def ingest_text(self, source: str, text: str) -> IngestResult:
        chunks = segment(text, self._config.chunk_tokens)
        stored = self._writer.write(source, chunks, on_progress=self._on_progress)
        return IngestResult(inserted=len(stored), format="text")

    def ingest_rows(
        self, source: str, rows: Sequence[Row], prefix: str | None = None
    ) -> IngestResult:
        """Store the whole-table and per-column chunks plus one snapshot for *rows*."""
        derivation = derive(source, rows, prefix=prefix, missing_value=self._config.missing_value)
        if derivation.snapshot is None:
            return IngestResult(format="csv")

        stored = self._writer.write(source, derivation.chunks, on_progress=self._on_progress)
        self._repo.add_snapshot(TableSnapshot(source=source, table_data=derivation.snapshot))
        return IngestResult(inserted=len(stored), snapshots=1, format="csv")
