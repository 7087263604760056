"""dashrag ingest pipeline — segmenter, tabular deriver, parsers, embedding writer."""

from dashrag.ingest.embedding_writer import EmbeddingWriter
from dashrag.ingest.pipeline import IngestResult, Ingestor
from dashrag.ingest.segmenter import segment, split_sentences
from dashrag.ingest.tabular import MISSING, TabularDerivation, derive

__all__ = [
    "EmbeddingWriter",
    "IngestResult",
    "Ingestor",
    "MISSING",
    "TabularDerivation",
    "derive",
    "segment",
    "split_sentences",
]
