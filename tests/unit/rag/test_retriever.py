"""Tests for the cosine retriever."""

from __future__ import annotations

import json
import math

import pytest

from kbdrops.db.models import Chunk, Source
from kbdrops.ingest.embedding import QueryEmbedding
from kbdrops.rag.retriever import cosine_similarity, make_excerpt, retrieve


class FakeGateway:
    def __init__(self, vector: list[float]) -> None:
        self.vector = vector
        self.queries: list[str] = []

    def embed_query(self, text: str) -> QueryEmbedding:
        self.queries.append(text)
        return QueryEmbedding(self.vector, len(self.vector), "google", "fake")


def _add(repo, sid: str, vectors: list[list[float]], contents: list[str] | None = None, **kw) -> None:
    contents = contents or [f"{sid} chunk {i}" for i in range(len(vectors))]
    source = Source(
        id=sid,
        url=kw.get("url", f"https://example.com/{sid}"),
        title=kw.get("title", sid.upper()),
        source_type=kw.get("source_type", "article"),
        raw_content=" ".join(contents),
        content_hash=f"h-{sid}",
        metadata=json.dumps(kw.get("metadata", {})),
    )
    chunks = [
        Chunk(id=f"{sid}-{i}", source_id=sid, chunk_index=i, content=text,
              embedding=vec, embedding_dim=len(vec), embedding_provider="google",
              embedding_model="fake")
        for i, (vec, text) in enumerate(zip(vectors, contents))
    ]
    repo.add_source_with_chunks(source, chunks)


# ------------------------------------------------------------------
# cosine_similarity
# ------------------------------------------------------------------


def test_cosine_identical_and_orthogonal():
    assert cosine_similarity([1.0, 2.0], [1.0, 2.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 3.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 0.0], [-2.0, 0.0]) == pytest.approx(-1.0)


def test_cosine_known_angle():
    assert cosine_similarity([1.0, 0.0], [1.0, 1.0]) == pytest.approx(1 / math.sqrt(2))


def test_cosine_zero_magnitude_is_zero():
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0
    assert cosine_similarity([1.0, 1.0], [0.0, 0.0]) == 0.0


def test_cosine_length_mismatch():
    with pytest.raises(ValueError):
        cosine_similarity([1.0], [1.0, 2.0])


def test_make_excerpt():
    assert make_excerpt("short", 10) == "short"
    assert make_excerpt("x" * 12, 10) == "x" * 10 + "…"


# ------------------------------------------------------------------
# retrieve
# ------------------------------------------------------------------


def test_ranks_sources_by_best_chunk(repo):
    _add(repo, "a", [[0.0, 1.0, 0.0], [0.6, 0.8, 0.0]])
    _add(repo, "b", [[1.0, 0.0, 0.0]])
    _add(repo, "c", [[0.0, 0.0, 1.0]])
    gateway = FakeGateway([1.0, 0.0, 0.0])

    results = retrieve("question", repo, gateway, top_k=10)

    assert [r.source_id for r in results] == ["b", "a", "c"]
    assert results[0].score == pytest.approx(1.0)
    assert results[1].chunk_id == "a-1"
    assert results[1].chunk_index == 1
    assert results[1].score == pytest.approx(0.6)
    assert gateway.queries == ["question"]


def test_one_result_per_source(repo):
    _add(repo, "a", [[1.0, 0.0], [0.9, 0.1], [0.8, 0.2]])
    results = retrieve("q", repo, FakeGateway([1.0, 0.0]))
    assert len(results) == 1
    assert results[0].chunk_id == "a-0"


def test_top_k_limits_sources(repo):
    for i in range(5):
        _add(repo, f"s{i}", [[1.0, float(i)]])
    results = retrieve("q", repo, FakeGateway([1.0, 0.0]), top_k=2)
    assert [r.source_id for r in results] == ["s0", "s1"]


def test_other_dimensions_invisible(repo):
    _add(repo, "small", [[1.0, 0.0]])
    _add(repo, "big", [[1.0, 0.0, 0.0]])
    results = retrieve("q", repo, FakeGateway([1.0, 0.0, 0.0]))
    assert [r.source_id for r in results] == ["big"]


def test_ties_keep_insertion_order(repo):
    _add(repo, "first", [[1.0, 0.0]])
    _add(repo, "second", [[2.0, 0.0]])
    results = retrieve("q", repo, FakeGateway([1.0, 0.0]))
    assert [r.source_id for r in results] == ["first", "second"]


def test_result_carries_source_fields_and_excerpt(repo):
    long_text = "word " * 700
    _add(repo, "a", [[1.0, 0.0]], [long_text], title="Paper", source_type="pdf",
         metadata={"author": "ada"})
    result = retrieve("q", repo, FakeGateway([1.0, 0.0]))[0]
    assert result.title == "Paper"
    assert result.url == "https://example.com/a"
    assert result.source_type == "pdf"
    assert result.metadata == {"author": "ada"}
    assert len(result.excerpt) == 2_501
    assert result.excerpt.endswith("…")


def test_empty_store_returns_nothing(repo):
    assert retrieve("q", repo, FakeGateway([1.0, 0.0])) == []


def test_zero_query_vector_scores_zero(repo):
    _add(repo, "a", [[1.0, 0.0]])
    assert retrieve("q", repo, FakeGateway([0.0, 0.0]))[0].score == 0.0
