"""Ingestion: normalize, classify, validate, chunk, embed and commit."""

from kbdrops.ingest.chunker import SentenceChunker
from kbdrops.ingest.classify import SourceType, classify_source
from kbdrops.ingest.embedding import EmbeddingCache, EmbeddingGateway, build_gateway
from kbdrops.ingest.lock import IngestLock
from kbdrops.ingest.normalize import normalize_url
from kbdrops.ingest.pipeline import IngestOutcome, IngestPipeline, IngestStatus
from kbdrops.ingest.validate import ValidationResult, truncate_content, validate_content

__all__ = [
    "EmbeddingCache",
    "EmbeddingGateway",
    "IngestLock",
    "IngestOutcome",
    "IngestPipeline",
    "IngestStatus",
    "SentenceChunker",
    "SourceType",
    "ValidationResult",
    "build_gateway",
    "classify_source",
    "normalize_url",
    "truncate_content",
    "validate_content",
]
