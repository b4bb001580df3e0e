"""SQLite connection handling for the data directory."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from kbdrops.db.migrations import migrate

# Writers wait this long (ms) for a concurrent writer before SQLITE_BUSY.
BUSY_TIMEOUT_MS = 30_000

_PRAGMAS = (
    "PRAGMA foreign_keys = ON",
    "PRAGMA journal_mode = WAL",
    f"PRAGMA busy_timeout = {BUSY_TIMEOUT_MS}",
)


class Database:
    """The knowledge-base database file.

    ``connect()`` returns a raw connection; using the object as a context
    manager also brings the schema up to date and closes on exit.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    @property
    def exists(self) -> bool:
        return self.db_path.is_file()

    def connect(self) -> sqlite3.Connection:
        """Open the file (creating its directory) with the standard pragmas."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        for pragma in _PRAGMAS:
            conn.execute(pragma)
        return conn

    def open(self) -> sqlite3.Connection:
        """Connect and migrate the schema to the latest version."""
        conn = self.connect()
        try:
            migrate(conn)
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    def __enter__(self) -> sqlite3.Connection:
        self._conn = self.open()
        return self._conn

    def __exit__(self, *args: object) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
