"""Repository pattern for all knowledge-base database operations.

Single interface for sources and their embedded chunks. Chunk embeddings are
stored inline as float32 BLOBs; see kbdrops.db.vectors.
"""

from __future__ import annotations

import logging
import sqlite3

from kbdrops.db.models import Chunk, Source
from kbdrops.db.vectors import deserialize_embedding, serialize_embedding

logger = logging.getLogger(__name__)

_SOURCE_COLUMNS = (
    "id, url, title, source_type, raw_content, content_hash, metadata, created_at, updated_at"
)


class Repository:
    """Data access layer for sources and chunks.

    Wraps an open sqlite3.Connection. The connection is owned by the caller and
    must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see Database.open).
        """
        self._conn = conn

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def add_source_with_chunks(self, source: Source, chunks: list[Chunk]) -> None:
        """Insert *source* and all of its *chunks* in a single transaction.

        Either every row commits or none does; any error rolls back and is
        re-raised.

        Args:
            source: Source row to persist.
            chunks: Chunk rows belonging to *source* (may be empty).
        """
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO sources (
                    id, url, title, source_type, raw_content, content_hash, metadata
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    source.id,
                    source.url,
                    source.title,
                    source.source_type,
                    source.raw_content,
                    source.content_hash,
                    source.metadata,
                ),
            )
            self._conn.executemany(
                """
                INSERT INTO chunks (
                    id, source_id, chunk_index, content, embedding,
                    embedding_dim, embedding_provider, embedding_model
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        c.id,
                        c.source_id,
                        c.chunk_index,
                        c.content,
                        serialize_embedding(c.embedding),
                        c.embedding_dim,
                        c.embedding_provider,
                        c.embedding_model,
                    )
                    for c in chunks
                ],
            )
        logger.debug("Committed source %s with %d chunk(s)", source.id, len(chunks))

    def get_source(self, source_id: str) -> Source | None:
        """Return a source by ID, or None if not found."""
        row = self._conn.execute(
            f"SELECT {_SOURCE_COLUMNS} FROM sources WHERE id = ?", (source_id,)
        ).fetchone()
        return _row_to_source(row) if row else None

    def get_source_by_url(self, url: str) -> Source | None:
        """Return the source stored under the exact normalized *url*, or None."""
        row = self._conn.execute(
            f"SELECT {_SOURCE_COLUMNS} FROM sources WHERE url = ?", (url,)
        ).fetchone()
        return _row_to_source(row) if row else None

    def get_source_by_hash(self, content_hash: str) -> Source | None:
        """Return the source whose content hashes to *content_hash*, or None."""
        row = self._conn.execute(
            f"SELECT {_SOURCE_COLUMNS} FROM sources WHERE content_hash = ?",
            (content_hash,),
        ).fetchone()
        return _row_to_source(row) if row else None

    def find_sources_by_prefix(self, prefix: str) -> list[Source]:
        """Return sources whose id equals *prefix* or starts with it.

        An exact id match is returned alone even if it also prefixes others.
        """
        exact = self.get_source(prefix)
        if exact is not None:
            return [exact]
        escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        rows = self._conn.execute(
            f"SELECT {_SOURCE_COLUMNS} FROM sources WHERE id LIKE ? ESCAPE '\\' ORDER BY id",
            (escaped + "%",),
        ).fetchall()
        return [_row_to_source(r) for r in rows]

    def list_sources(self) -> list[Source]:
        """Return all sources, newest first, with ``chunk_count`` populated."""
        rows = self._conn.execute(
            f"""
            SELECT {_SOURCE_COLUMNS},
                   (SELECT COUNT(*) FROM chunks c WHERE c.source_id = sources.id) AS chunk_count
            FROM sources
            ORDER BY created_at DESC, rowid DESC
            """
        ).fetchall()
        sources = []
        for row in rows:
            source = _row_to_source(row)
            source.chunk_count = row["chunk_count"]
            sources.append(source)
        return sources

    def delete_source(self, source_id: str) -> int:
        """Delete a source; its chunks are removed by ON DELETE CASCADE.

        Returns:
            Number of source rows deleted (0 or 1).
        """
        with self._conn:
            cur = self._conn.execute("DELETE FROM sources WHERE id = ?", (source_id,))
        if cur.rowcount:
            logger.debug("Deleted source %s", source_id)
        return cur.rowcount

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def count_chunks_by_source(self, source_id: str) -> int:
        """Return the number of chunks belonging to *source_id*."""
        return self._conn.execute(
            "SELECT COUNT(*) FROM chunks WHERE source_id = ?", (source_id,)
        ).fetchone()[0]

    def list_chunks_by_source(self, source_id: str) -> list[Chunk]:
        """Return the chunks of *source_id* ordered by chunk_index."""
        rows = self._conn.execute(
            """
            SELECT id, source_id, chunk_index, content, embedding, embedding_dim,
                   embedding_provider, embedding_model, created_at
            FROM chunks WHERE source_id = ? ORDER BY chunk_index
            """,
            (source_id,),
        ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def list_chunks_by_dim(self, dim: int) -> list[tuple[Chunk, Source]]:
        """Return every chunk with ``embedding_dim == dim`` joined with its source.

        Rows come back in insertion order; the retriever relies on a stable
        order so that equal scores rank the same way across runs.
        The joined Source carries no raw_content.
        """
        rows = self._conn.execute(
            """
            SELECT c.id, c.source_id, c.chunk_index, c.content, c.embedding,
                   c.embedding_dim, c.embedding_provider, c.embedding_model, c.created_at,
                   s.url, s.title, s.source_type, s.content_hash, s.metadata,
                   s.created_at AS source_created_at, s.updated_at AS source_updated_at
            FROM chunks c
            JOIN sources s ON c.source_id = s.id
            WHERE c.embedding_dim = ?
            ORDER BY c.rowid
            """,
            (dim,),
        ).fetchall()
        results: list[tuple[Chunk, Source]] = []
        for row in rows:
            source = Source(
                id=row["source_id"],
                url=row["url"],
                title=row["title"],
                source_type=row["source_type"],
                content_hash=row["content_hash"],
                metadata=row["metadata"],
                created_at=row["source_created_at"],
                updated_at=row["source_updated_at"],
            )
            results.append((_row_to_chunk(row), source))
        return results


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

def _row_to_source(row: sqlite3.Row) -> Source:
    return Source(
        id=row["id"],
        url=row["url"],
        title=row["title"],
        source_type=row["source_type"],
        raw_content=row["raw_content"],
        content_hash=row["content_hash"],
        metadata=row["metadata"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        id=row["id"],
        source_id=row["source_id"],
        chunk_index=row["chunk_index"],
        content=row["content"],
        embedding=deserialize_embedding(row["embedding"]),
        embedding_dim=row["embedding_dim"],
        embedding_provider=row["embedding_provider"],
        embedding_model=row["embedding_model"],
        created_at=row["created_at"],
    )
