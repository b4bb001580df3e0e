"""Article extraction: HTML → plain text with BeautifulSoup + html2text.

Responses served as ``application/pdf`` are routed to the PDF extractor, so
PDF links without a ``.pdf`` suffix still ingest correctly.
"""

from __future__ import annotations

import logging

import html2text
from bs4 import BeautifulSoup

from kbdrops.errors import ExtractionError
from kbdrops.extract.base import Extracted
from kbdrops.extract.fetch import fetch
from kbdrops.extract.pdf import PDF_MAX_BYTES, pdf_from_bytes

logger = logging.getLogger(__name__)

_HTML_TYPES = {"text/html", "application/xhtml+xml"}
_STRIP_TAGS = ["script", "style", "nav", "footer", "head", "noscript", "aside"]
# Less readable text than this means no strategy found the article body.
MIN_ARTICLE_CHARS = 50

# html2text converter
_h2t = html2text.HTML2Text()
_h2t.ignore_links = True
_h2t.ignore_images = True
_h2t.body_width = 0


def extract_article(url: str) -> Extracted:
    """Fetch *url* and convert it to readable text."""
    result = fetch(
        url,
        headers={"Accept": "text/html,application/xhtml+xml,application/pdf;q=0.9,*/*;q=0.8"},
        max_bytes=PDF_MAX_BYTES,
    )

    if result.content_type == "application/pdf":
        logger.debug("%s served as PDF, switching extractor", url)
        return pdf_from_bytes(result.body)
    if result.content_type == "text/plain":
        return Extracted(title="", content=_require_text(url, result.text.strip()))
    if result.content_type not in _HTML_TYPES:
        raise ExtractionError(
            f"Unsupported Content-Type '{result.content_type}' for URL '{url}'."
        )

    title, text = html_to_text(result.text)
    return Extracted(title=title, content=_require_text(url, text))


def _require_text(url: str, text: str) -> str:
    if len(text) <= MIN_ARTICLE_CHARS:
        raise ExtractionError(
            f"Failed to extract article content from '{url}' "
            f"({len(text)} readable chars; the page may need JavaScript)."
        )
    return text


def html_to_text(html: str) -> tuple[str, str]:
    """Return ``(title, body_text)`` for an HTML document."""
    soup = BeautifulSoup(html, "html.parser")
    title = soup.title.get_text(strip=True) if soup.title else ""
    for tag in soup.find_all(_STRIP_TAGS):
        tag.decompose()
    return title, _h2t.handle(str(soup)).strip()
