"""Brute-force cosine retriever over every stored chunk of the query's dimensionality.

Only chunks whose ``embedding_dim`` equals the query vector's dim are scored;
chunks from another embedding generation are invisible to the query. Results
keep the best chunk per source.

Ties: candidates are sorted with Python's stable sort, so chunks with equal
scores keep the row order returned by the database (insertion order). No
explicit tie-break field exists.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from kbdrops.db.repository import Repository
from kbdrops.ingest.embedding import EmbeddingGateway

logger = logging.getLogger(__name__)

EXCERPT_CHARS = 2_500
ELLIPSIS = "…"


@dataclass
class SearchResult:
    """The best-matching chunk of one source.

    Attributes:
        source_id: Owning source ID.
        chunk_id: ID of the winning chunk.
        chunk_index: Ordinal of the winning chunk within its source.
        score: Cosine similarity between query and chunk vectors.
        excerpt: Chunk text, capped and ellipsized when cut.
        url: Source URL (None for text notes).
        title: Source title.
        source_type: Source type tag.
        metadata: Extraction metadata of the source.
    """

    source_id: str
    chunk_id: str
    chunk_index: int
    score: float
    excerpt: str
    url: str | None
    title: str
    source_type: str
    metadata: dict[str, Any] = field(default_factory=dict)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between *a* and *b*; 0.0 when either has zero magnitude.

    Raises:
        ValueError: If the vectors differ in length.
    """
    if len(a) != len(b):
        raise ValueError(f"vector length mismatch: {len(a)} != {len(b)}")
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


def make_excerpt(text: str, limit: int = EXCERPT_CHARS) -> str:
    return text if len(text) <= limit else text[:limit] + ELLIPSIS


def retrieve(
    question: str,
    repo: Repository,
    gateway: EmbeddingGateway,
    top_k: int = 10,
    excerpt_chars: int = EXCERPT_CHARS,
) -> list[SearchResult]:
    """Rank stored chunks against *question*, one result per source, best first.

    Raises:
        EmbeddingError: If the question cannot be embedded.
    """
    if top_k < 1:
        return []
    query = gateway.embed_query(question)
    candidates = repo.list_chunks_by_dim(query.dim)
    logger.debug(
        "Scoring %d chunk(s) of dim %d against query (%s/%s)",
        len(candidates), query.dim, query.provider, query.model,
    )

    scored = [
        (cosine_similarity(query.embedding, chunk.embedding), chunk, source)
        for chunk, source in candidates
    ]
    scored.sort(key=lambda item: item[0], reverse=True)

    results: list[SearchResult] = []
    seen: set[str] = set()
    for score, chunk, source in scored:
        if source.id in seen:
            continue
        seen.add(source.id)
        results.append(
            SearchResult(
                source_id=source.id,
                chunk_id=chunk.id,
                chunk_index=chunk.chunk_index,
                score=score,
                excerpt=make_excerpt(chunk.content, excerpt_chars),
                url=source.url,
                title=source.title,
                source_type=source.source_type,
                metadata=source.metadata_dict,
            )
        )
        if len(results) >= top_k:
            break
    return results
