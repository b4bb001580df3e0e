"""Dispatch a URL to the extractor for its source type."""

from __future__ import annotations

import logging
from collections.abc import Callable

from kbdrops.extract.base import Extracted
from kbdrops.extract.pdf import extract_pdf
from kbdrops.extract.tweet import extract_tweet
from kbdrops.extract.video import extract_video
from kbdrops.extract.web import extract_article

logger = logging.getLogger(__name__)

TEXT_TITLE = "Text note"


class Extractor:
    """``extract(url, source_type) -> Extracted``; unknown types are read as articles."""

    def __init__(self) -> None:
        self._handlers: dict[str, Callable[[str], Extracted]] = {
            "tweet": extract_tweet,
            "video": extract_video,
            "pdf": extract_pdf,
            "article": extract_article,
        }

    def extract(self, url: str, source_type: str) -> Extracted:
        if source_type == "text":
            return Extracted(title=TEXT_TITLE, content=url)
        handler = self._handlers.get(source_type, extract_article)
        logger.debug("Extracting %s as %s", url, source_type)
        return handler(url)
