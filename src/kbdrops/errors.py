"""Exception hierarchy for kbdrops.

Expected ingestion outcomes (duplicates, invalid content, pending transcripts)
are reported through ``IngestOutcome`` and never raised. The classes below are
reserved for hard failures that must reach the caller.
"""

from __future__ import annotations


class KbError(Exception):
    """Base class for all kbdrops failures."""


class ExtractionError(KbError):
    """No extraction strategy produced content for a URL."""


class EmbeddingError(KbError):
    """Every configured embedding provider failed for a batch."""


class LockError(KbError):
    """The ingestion lock could not be read or written."""


class LockBusyError(LockError):
    """Another live ingestion holds a fresh lock."""
