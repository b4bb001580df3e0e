"""Common result type returned by every extractor."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Extracted:
    """What an extractor found at a URL.

    ``content`` may be empty when nothing is available yet (e.g. a video
    without a transcript); ``metadata`` then explains why.
    """

    title: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
