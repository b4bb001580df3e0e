"""Domain models for the knowledge-base database layer."""

from __future__ import annotations

import json
from dataclasses import dataclass, field


@dataclass
class Source:
    id: str
    url: str | None
    title: str
    source_type: str
    raw_content: str = ""
    content_hash: str | None = None
    metadata: str = field(default_factory=lambda: "{}")
    created_at: str | None = None
    updated_at: str | None = None
    chunk_count: int | None = None  # populated by list_sources() only

    @property
    def metadata_dict(self) -> dict:
        return json.loads(self.metadata) if self.metadata else {}


@dataclass
class Chunk:
    id: str
    source_id: str
    chunk_index: int
    content: str
    embedding: list[float]
    embedding_dim: int
    embedding_provider: str | None = None
    embedding_model: str | None = None
    created_at: str | None = None
