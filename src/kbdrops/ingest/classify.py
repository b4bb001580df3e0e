"""Source type classification from a normalized URL."""

from __future__ import annotations

import re
from enum import Enum
from urllib.parse import urlsplit

from kbdrops.ingest.normalize import is_http_url


class SourceType(str, Enum):
    """Extraction strategy tag stored on every Source row."""

    TEXT = "text"
    TWEET = "tweet"
    VIDEO = "video"
    PDF = "pdf"
    ARTICLE = "article"
    OTHER = "other"


_TWEET_RE = re.compile(r"^https?://(www\.)?(twitter\.com|x\.com)/.+/status/\d+", re.IGNORECASE)
_VIDEO_RE = re.compile(
    r"^https?://(www\.)?(youtube\.com/watch\?|youtu\.be/|youtube\.com/shorts/)",
    re.IGNORECASE,
)


def classify_source(url: str | None) -> SourceType:
    """Map *url* to a SourceType; first match wins.

    Order: empty → text, tweet permalink, video, ``.pdf`` path, other http(s)
    → article, anything else → other. Tweet and video patterns are checked
    before the extension so a PDF-looking path on those hosts keeps the
    platform type.
    """
    if not url:
        return SourceType.TEXT
    if _TWEET_RE.match(url):
        return SourceType.TWEET
    if _VIDEO_RE.match(url):
        return SourceType.VIDEO
    if not is_http_url(url):
        return SourceType.OTHER
    try:
        path = urlsplit(url).path
    except ValueError:
        path = url.split("?", 1)[0].split("#", 1)[0]
    if path.lower().endswith(".pdf"):
        return SourceType.PDF
    return SourceType.ARTICLE
