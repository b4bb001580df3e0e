"""YouTube extraction: caption track from the watch page, else the description.

A video with neither is not an error: it comes back with empty content and
``has_transcript=False`` so it can be stored as pending and backfilled later.
"""

from __future__ import annotations

import html
import json
import logging
import re
from typing import Any

from bs4 import BeautifulSoup

from kbdrops.errors import ExtractionError
from kbdrops.extract.base import Extracted
from kbdrops.extract.fetch import fetch

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "YouTube Video"
NO_TRANSCRIPT_PREFIX = "[No transcript available]\n\n"

_VIDEO_ID_PATTERNS = (
    re.compile(r"v=([A-Za-z0-9_-]{11})"),
    re.compile(r"youtu\.be/([A-Za-z0-9_-]{11})"),
    re.compile(r"(?:embed|shorts)/([A-Za-z0-9_-]{11})"),
)
_CAPTION_TRACKS_RE = re.compile(r'"captionTracks":\s*(\[.*?\])', re.DOTALL)
_MIN_TEXT_CHARS = 50


def video_id_from_url(url: str) -> str | None:
    for pattern in _VIDEO_ID_PATTERNS:
        m = pattern.search(url)
        if m:
            return m.group(1)
    return None


def extract_video(url: str) -> Extracted:
    """Extract a transcript (or description) for the YouTube video at *url*.

    Raises:
        ExtractionError: The watch page itself could not be fetched.
    """
    page = fetch(url, headers={"Accept-Language": "en-US,en;q=0.8"})
    soup = BeautifulSoup(page.text, "html.parser")
    title = _page_title(soup)
    metadata: dict[str, Any] = {"video_id": video_id_from_url(url)}

    transcript = _caption_transcript(page.text)
    if len(transcript) > _MIN_TEXT_CHARS:
        metadata.update(
            has_transcript=True,
            transcript_source="captions",
            transcript_length=len(transcript),
        )
        return Extracted(title=title, content=transcript, metadata=metadata)

    metadata["has_transcript"] = False
    description = _description(soup)
    if len(description) > _MIN_TEXT_CHARS:
        metadata["transcript_source"] = "description"
        return Extracted(title=title, content=NO_TRANSCRIPT_PREFIX + description, metadata=metadata)

    logger.info("No transcript or description for %s; storing as pending", url)
    return Extracted(title=title, content="", metadata=metadata)


def _page_title(soup: BeautifulSoup) -> str:
    if soup.title is None:
        return DEFAULT_TITLE
    title = soup.title.get_text(strip=True).removesuffix("- YouTube").strip()
    return title or DEFAULT_TITLE


def _description(soup: BeautifulSoup) -> str:
    tag = soup.find("meta", attrs={"name": "description"})
    return str(tag.get("content", "")).strip() if tag else ""


def _caption_transcript(page_html: str) -> str:
    """Return caption text for the English track (or the first track), or ''."""
    m = _CAPTION_TRACKS_RE.search(page_html)
    if not m:
        return ""
    try:
        tracks = json.loads(m.group(1))
    except ValueError:
        logger.debug("captionTracks JSON did not parse")
        return ""
    if not tracks:
        return ""
    track = next((t for t in tracks if t.get("languageCode") == "en"), tracks[0])
    base_url = track.get("baseUrl")
    if not base_url:
        return ""

    try:
        captions = fetch(base_url)
    except ExtractionError as exc:
        logger.warning("Caption track fetch failed: %s", exc)
        return ""
    text = BeautifulSoup(captions.text, "html.parser").get_text(" ")
    return " ".join(html.unescape(text).split())
