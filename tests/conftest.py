"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from kbdrops.db.connection import Database
from kbdrops.db.repository import Repository


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    conn = Database(tmp_path / "kb.db").open()
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


@pytest.fixture(autouse=True)
def _no_provider_keys(monkeypatch):
    """Tests never see real API keys from the developer's shell."""
    for var in ("GEMINI_API_KEY", "OPENAI_API_KEY", "KB_DATA_DIR",
                "KB_PRIMARY_EMBEDDING_MODEL", "KB_SECONDARY_EMBEDDING_MODEL"):
        monkeypatch.delenv(var, raising=False)
