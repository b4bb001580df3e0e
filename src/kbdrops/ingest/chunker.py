"""Sentence-aware chunker with trailing-context overlap.

Sizes are in characters:
  chunk_size  target length of a chunk (~800)
  overlap     tail of the closed chunk carried into the next one (~200)
  min_chunk   floor below which a buffer is never emitted on its own (~100)
"""

from __future__ import annotations

import re

# A sentence ends at whitespace that follows '.', '!' or '?'.
_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+")


class SentenceChunker:
    """Split text into overlapping, bounded-length chunks on sentence boundaries.

    Deterministic: identical input always yields identical chunk boundaries.
    """

    def __init__(self, chunk_size: int = 800, overlap: int = 200, min_chunk: int = 100) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if not 0 <= overlap < chunk_size:
            raise ValueError("overlap must be in [0, chunk_size)")
        if min_chunk < 0:
            raise ValueError("min_chunk must be >= 0")
        self.chunk_size = chunk_size
        self.overlap = overlap
        self.min_chunk = min_chunk

    def split(self, text: str) -> list[str]:
        """Return the ordered chunk texts for *text* (empty text → [])."""
        if not text:
            return []
        if len(text) < self.min_chunk:
            return [text]

        sentences = [s for s in _SENTENCE_RE.split(text) if s.strip()]
        if not sentences:
            return [text]

        chunks: list[str] = []
        current = ""
        for sentence in sentences:
            if len(current) + len(sentence) > self.chunk_size and len(current) >= self.min_chunk:
                chunks.append(current.strip())
                carry = current[-self.overlap:] if self.overlap else ""
                current = f"{carry} {sentence}" if carry else sentence
            else:
                current = f"{current} {sentence}" if current else sentence

        tail = current.strip()
        if tail:
            if len(tail) < self.min_chunk and chunks:
                chunks[-1] = f"{chunks[-1]} {tail}"
            else:
                chunks.append(tail)
        return chunks
