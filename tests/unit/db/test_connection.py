"""Tests for the Database connection layer."""

from __future__ import annotations

from pathlib import Path

import pytest

from kbdrops.db.connection import Database


def test_connect_creates_file(tmp_path):
    db_path = tmp_path / "kb.db"
    conn = Database(db_path).connect()
    conn.close()
    assert db_path.exists()


def test_connect_creates_missing_data_dir(tmp_path):
    db_path = tmp_path / "nested" / "data" / "kb.db"
    conn = Database(db_path).connect()
    conn.close()
    assert db_path.exists()


def test_foreign_keys_enabled(tmp_path):
    conn = Database(tmp_path / "kb.db").connect()
    result = conn.execute("PRAGMA foreign_keys").fetchone()[0]
    conn.close()
    assert result == 1


def test_wal_journal_mode(tmp_path):
    conn = Database(tmp_path / "kb.db").connect()
    mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
    conn.close()
    assert mode == "wal"


def test_busy_timeout_set(tmp_path):
    conn = Database(tmp_path / "kb.db").connect()
    timeout = conn.execute("PRAGMA busy_timeout").fetchone()[0]
    conn.close()
    assert timeout == 30000


def test_row_factory_set(tmp_path):
    conn = Database(tmp_path / "kb.db").connect()
    conn.execute("CREATE TABLE t (x INTEGER)")
    conn.execute("INSERT INTO t VALUES (42)")
    row = conn.execute("SELECT x FROM t").fetchone()
    conn.close()
    assert row["x"] == 42


def test_context_manager_closes_connection(tmp_path):
    db = Database(tmp_path / "kb.db")
    with db as conn:
        conn.execute("CREATE TABLE t (x INTEGER)")
    with pytest.raises(Exception):
        conn.execute("SELECT 1")


def test_context_manager_accepts_path_str(tmp_path):
    db = Database(str(tmp_path / "kb.db"))
    assert isinstance(db.db_path, Path)
    with db as conn:
        assert conn.execute("SELECT 1").fetchone()[0] == 1


def test_exists_tracks_file(tmp_path):
    db = Database(tmp_path / "kb.db")
    assert not db.exists
    db.connect().close()
    assert db.exists


def test_connect_does_not_migrate(tmp_path):
    conn = Database(tmp_path / "kb.db").connect()
    tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
    conn.close()
    assert "sources" not in tables


def test_open_migrates(tmp_path):
    conn = Database(tmp_path / "kb.db").open()
    tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
    conn.close()
    assert {"sources", "chunks", "schema_version"} <= tables
