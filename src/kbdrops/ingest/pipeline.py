"""Ingestion orchestrator: one URL (or text note) → one Source + its Chunks.

States, in order::

    lock → normalize → URL dedup → extract → truncate → validate
         → content-hash dedup → chunk → embed → commit → unlock

Expected terminations (duplicates, invalid content, pending transcripts) are
returned as an IngestOutcome. Hard failures (ExtractionError,
EmbeddingError, sqlite3.Error, LockBusyError) propagate with the lock
released and nothing written.
"""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from kbdrops.config import ValidationCfg
from kbdrops.db.models import Chunk, Source
from kbdrops.db.repository import Repository
from kbdrops.extract.base import Extracted
from kbdrops.ingest.chunker import SentenceChunker
from kbdrops.ingest.classify import SourceType, classify_source
from kbdrops.ingest.embedding import EmbeddingGateway
from kbdrops.ingest.lock import IngestLock
from kbdrops.ingest.normalize import is_http_url, normalize_url
from kbdrops.ingest.validate import truncate_content, validate_content

logger = logging.getLogger(__name__)


class IngestStatus(str, Enum):
    OK = "ok"
    PENDING_TRANSCRIPT = "pending_transcript"
    DUPLICATE_URL = "duplicate_url"
    DUPLICATE_CONTENT = "duplicate_content"
    INVALID = "invalid"


@dataclass
class IngestOutcome:
    """Discriminated result of one ingestion."""

    status: IngestStatus
    message: str = ""
    source_id: str | None = None
    title: str | None = None
    source_type: str | None = None
    url: str | None = None
    chunks: int = 0
    provider: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def stored(self) -> bool:
        return self.status in (IngestStatus.OK, IngestStatus.PENDING_TRANSCRIPT)


class ContentExtractor(Protocol):
    def extract(self, url: str, source_type: str) -> Extracted: ...


def content_hash(content: str) -> str:
    """SHA-256 hex digest of *content* encoded as UTF-8."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class IngestPipeline:
    """Runs the ingestion state machine under the ingestion lock.

    Args:
        repo: Repository over an initialised database connection.
        gateway: Embedding gateway used for chunk vectors.
        extractor: Content extractor (``extract(url, source_type)``).
        lock: Process-level ingestion lock.
        chunker: Sentence chunker; defaults to 800/200/100.
        validation_cfg: Validator thresholds and content ceiling.
    """

    def __init__(
        self,
        repo: Repository,
        gateway: EmbeddingGateway,
        extractor: ContentExtractor,
        lock: IngestLock,
        chunker: SentenceChunker | None = None,
        validation_cfg: ValidationCfg | None = None,
    ) -> None:
        self._repo = repo
        self._gateway = gateway
        self._extractor = extractor
        self._lock = lock
        self._chunker = chunker or SentenceChunker()
        self._validation = validation_cfg or ValidationCfg()

    def ingest(self, raw_url: str) -> IngestOutcome:
        """Ingest the resource at *raw_url*.

        Input that is not an http(s) URL and has no scheme at all is taken
        as a text note (see ingest_text).
        """
        if not raw_url or (not is_http_url(raw_url) and "://" not in raw_url):
            return self.ingest_text(raw_url or "")
        with self._lock:
            return self._ingest_url(raw_url)

    def ingest_text(self, text: str, title: str | None = None) -> IngestOutcome:
        """Store *text* itself as a ``text`` source with no URL."""
        with self._lock:
            extracted = Extracted(title=title or "Text note", content=text.strip())
            logger.debug("Ingesting text note (%d chars)", len(extracted.content))
            return self._process(None, SourceType.TEXT.value, extracted)

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    def _ingest_url(self, raw_url: str) -> IngestOutcome:
        url = normalize_url(raw_url)
        source_type = classify_source(url).value
        logger.info("Ingesting %s as %s", url, source_type)

        existing = self._repo.get_source_by_url(url)
        if existing is not None:
            return IngestOutcome(
                status=IngestStatus.DUPLICATE_URL,
                message=f'Already ingested: "{existing.title}" ({existing.id})',
                source_id=existing.id,
                title=existing.title,
                source_type=existing.source_type,
                url=url,
            )

        extracted = self._extractor.extract(url, source_type)
        return self._process(url, source_type, extracted)

    def _process(self, url: str | None, source_type: str, extracted: Extracted) -> IngestOutcome:
        content = truncate_content(extracted.content or "", self._validation.max_content_chars)
        metadata = dict(extracted.metadata or {})
        title = extracted.title or ""

        if content:
            verdict = validate_content(content, source_type, metadata, self._validation)
            if not verdict.valid:
                logger.info("Rejected %s: %s", url or "text note", verdict.reason)
                return IngestOutcome(
                    status=IngestStatus.INVALID,
                    message=verdict.reason,
                    title=title,
                    source_type=source_type,
                    url=url,
                    metadata=metadata,
                )
        elif source_type == SourceType.TEXT.value:
            return IngestOutcome(
                status=IngestStatus.INVALID,
                message="Nothing to ingest: text is empty",
                source_type=source_type,
            )

        digest: str | None = None
        if content:
            digest = content_hash(content)
            dup = self._repo.get_source_by_hash(digest)
            if dup is not None:
                return IngestOutcome(
                    status=IngestStatus.DUPLICATE_CONTENT,
                    message=f'Same content exists: "{dup.title}" ({dup.url or dup.id})',
                    source_id=dup.id,
                    title=dup.title,
                    source_type=dup.source_type,
                    url=dup.url,
                )

        texts = self._chunker.split(content) if content else []
        logger.debug("%d chunk(s)", len(texts))

        embeddings: list[list[float]] = []
        dim = 0
        provider: str | None = None
        model: str | None = None
        if texts:
            result = self._gateway.embed_texts(texts)
            embeddings, dim = result.embeddings, result.dim
            provider, model = result.provider, result.model
            logger.info("Embedded %d chunk(s) with %s/%s (%dd)", len(texts), provider, model, dim)

        source = Source(
            id=str(uuid.uuid4()),
            url=url,
            title=title,
            source_type=source_type,
            raw_content=content,
            content_hash=digest,
            metadata=json.dumps(metadata),
        )
        chunks = [
            Chunk(
                id=str(uuid.uuid4()),
                source_id=source.id,
                chunk_index=i,
                content=text,
                embedding=vector,
                embedding_dim=dim,
                embedding_provider=provider,
                embedding_model=model,
            )
            for i, (text, vector) in enumerate(zip(texts, embeddings))
        ]
        self._repo.add_source_with_chunks(source, chunks)

        status = IngestStatus.OK if content else IngestStatus.PENDING_TRANSCRIPT
        if status is IngestStatus.OK:
            message = f'Ingested: "{title}"'
        else:
            message = f'Stored without content, waiting for a transcript: "{title}"'
        logger.info("%s %s (%s)", status.value, source.id, url or "text note")
        return IngestOutcome(
            status=status,
            message=message,
            source_id=source.id,
            title=title,
            source_type=source_type,
            url=url,
            chunks=len(chunks),
            provider=f"{provider}/{model}" if model else None,
            metadata=metadata,
        )
