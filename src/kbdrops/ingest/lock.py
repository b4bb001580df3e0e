"""Process-level ingestion lock.

At most one ingestion writes to a data directory at a time. The lock is a
small JSON marker file ``{"pid": ..., "ts": ...}`` created with
``O_CREAT | O_EXCL`` so two racing acquirers cannot both succeed. A marker
left behind by a dead process, or one older than ``stale_after`` seconds, is
treated as stale and replaced.
"""

from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path

from kbdrops.errors import LockBusyError, LockError

logger = logging.getLogger(__name__)

BUSY_MESSAGE = "Another ingestion is running. Try again later."


class IngestLock:
    """Exclusive marker-file lock around one ingestion.

    Usage::

        with IngestLock(cfg.lock_path, stale_after=cfg.lock.stale_after):
            ...
    """

    def __init__(self, path: Path, stale_after: float = 900.0) -> None:
        self.path = Path(path)
        self.stale_after = stale_after
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> None:
        """Take the lock or raise.

        Raises:
            LockBusyError: A live, non-stale holder owns the marker.
            LockError: The marker cannot be written.
        """
        if self._held:
            return
        self._clear_stale()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise LockError(f"Cannot create lock directory {self.path.parent}: {exc}") from exc
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            raise LockBusyError(BUSY_MESSAGE) from None
        except OSError as exc:
            raise LockError(f"Cannot create lock file {self.path}: {exc}") from exc
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump({"pid": os.getpid(), "ts": time.time()}, fh)
        self._held = True
        logger.debug("Acquired ingestion lock %s", self.path)

    def release(self) -> None:
        """Remove the marker if this instance holds it. Never raises."""
        if not self._held:
            return
        self._held = False
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Could not remove lock file %s: %s", self.path, exc)
        else:
            logger.debug("Released ingestion lock %s", self.path)

    def __enter__(self) -> IngestLock:
        self.acquire()
        return self

    def __exit__(self, *_: object) -> None:
        self.release()

    # ------------------------------------------------------------------
    # Stale marker handling
    # ------------------------------------------------------------------

    def _clear_stale(self) -> None:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return
        except OSError as exc:
            raise LockError(f"Cannot read lock file {self.path}: {exc}") from exc

        try:
            data = json.loads(raw)
            pid = int(data["pid"])
            ts = float(data["ts"])
        except (ValueError, KeyError, TypeError):
            logger.warning("Removing unreadable lock file %s", self.path)
            self._remove_marker()
            return

        age = time.time() - ts
        if _pid_alive(pid) and age < self.stale_after:
            raise LockBusyError(BUSY_MESSAGE)

        logger.warning(
            "Removing stale lock file %s (pid %d, %.0fs old)", self.path, pid, age
        )
        self._remove_marker()

    def _remove_marker(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise LockError(f"Cannot remove stale lock file {self.path}: {exc}") from exc


def _pid_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except (OSError, OverflowError):
        return False
    return True
