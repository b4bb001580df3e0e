"""Versioned schema for the knowledge-base database.

Versions only move forward. Each entry in MIGRATIONS is applied once, in
order, and recorded in the schema_version table.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

_BOOTSTRAP = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

# url and content_hash are nullable: raw-text notes have no URL and pending
# sources have no content. SQLite UNIQUE ignores NULLs.
_SOURCES_AND_CHUNKS = """
CREATE TABLE IF NOT EXISTS sources (
    id              TEXT PRIMARY KEY,
    url             TEXT UNIQUE,
    title           TEXT NOT NULL DEFAULT '',
    source_type     TEXT NOT NULL,
    raw_content     TEXT NOT NULL DEFAULT '',
    content_hash    TEXT UNIQUE,
    metadata        TEXT NOT NULL DEFAULT '{}',
    created_at      DATETIME NOT NULL DEFAULT (datetime('now')),
    updated_at      DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS chunks (
    id                  TEXT PRIMARY KEY,
    source_id           TEXT NOT NULL REFERENCES sources(id) ON DELETE CASCADE,
    chunk_index         INTEGER NOT NULL,
    content             TEXT NOT NULL,
    embedding           BLOB NOT NULL,
    embedding_dim       INTEGER NOT NULL,
    embedding_provider  TEXT,
    embedding_model     TEXT,
    created_at          DATETIME NOT NULL DEFAULT (datetime('now')),
    UNIQUE (source_id, chunk_index)
);

CREATE INDEX IF NOT EXISTS idx_chunks_source_id ON chunks(source_id);
CREATE INDEX IF NOT EXISTS idx_chunks_embedding_dim ON chunks(embedding_dim);
CREATE INDEX IF NOT EXISTS idx_sources_source_type ON sources(source_type);
"""

# Append new versions at the end; never edit an applied one.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _SOURCES_AND_CHUNKS),
]

SCHEMA_VERSION = MIGRATIONS[-1][0]


def current_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied version, 0 for an empty database."""
    conn.execute(_BOOTSTRAP)
    (version,) = conn.execute("SELECT COALESCE(MAX(version), 0) FROM schema_version").fetchone()
    return version


def migrate(conn: sqlite3.Connection) -> list[int]:
    """Bring *conn* up to SCHEMA_VERSION and return the versions applied.

    Safe to call on every connection; an up-to-date database applies nothing.
    """
    start = current_version(conn)
    conn.commit()
    applied: list[int] = []
    for version, script in MIGRATIONS:
        if version <= start:
            continue
        # executescript() commits any pending transaction before it runs.
        conn.executescript(script)
        with conn:
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))
        applied.append(version)
    if applied:
        logger.debug("Applied schema version(s) %s", applied)
    return applied
