"""Tests for HTML article extraction."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from kbdrops.errors import ExtractionError
from kbdrops.extract.base import Extracted
from kbdrops.extract.fetch import FetchResult
from kbdrops.extract.web import extract_article, html_to_text

_HTML = """
<html>
  <head><title>Understanding WAL Mode</title><style>p { color: red; }</style></head>
  <body>
    <nav>Home | About | Login</nav>
    <script>var tracking = true;</script>
    <h1>Understanding WAL Mode</h1>
    <p>Write-ahead logging lets readers proceed while a writer appends to the log.</p>
    <footer>Copyright 2024</footer>
  </body>
</html>
"""


def _result(body: bytes, content_type: str) -> FetchResult:
    return FetchResult(url="https://example.com/a", status=200, content_type=content_type, body=body)


def test_html_to_text_strips_chrome():
    title, text = html_to_text(_HTML)
    assert title == "Understanding WAL Mode"
    assert "Write-ahead logging lets readers proceed" in text
    assert "tracking" not in text
    assert "Home | About" not in text
    assert "Copyright" not in text
    assert "color: red" not in text


def test_extract_article_html():
    with patch("kbdrops.extract.web.fetch", return_value=_result(_HTML.encode(), "text/html")):
        extracted = extract_article("https://example.com/a")
    assert extracted.title == "Understanding WAL Mode"
    assert "Write-ahead logging" in extracted.content
    assert extracted.metadata == {}


def test_pdf_content_type_routed_to_pdf_extractor():
    pdf = Extracted("Paper", "pdf text", {"pages": 3})
    with patch("kbdrops.extract.web.fetch", return_value=_result(b"%PDF-1.7", "application/pdf")), \
         patch("kbdrops.extract.web.pdf_from_bytes", return_value=pdf) as from_bytes:
        extracted = extract_article("https://example.com/download?id=7")
    from_bytes.assert_called_once_with(b"%PDF-1.7")
    assert extracted is pdf


_NOTES = "Checkpointing copies WAL frames back into the main database file."


def test_plain_text_passthrough():
    body = f"  {_NOTES} \n".encode()
    with patch("kbdrops.extract.web.fetch", return_value=_result(body, "text/plain")):
        extracted = extract_article("https://example.com/notes.txt")
    assert extracted == Extracted(title="", content=_NOTES)


def test_script_only_page_is_an_extraction_failure():
    html = b"<html><head><title>JS app</title></head><body><script>x()</script></body></html>"
    with patch("kbdrops.extract.web.fetch", return_value=_result(html, "text/html")):
        with pytest.raises(ExtractionError, match="Failed to extract article content"):
            extract_article("https://example.com/app")


def test_near_empty_plain_text_is_an_extraction_failure():
    with patch("kbdrops.extract.web.fetch", return_value=_result(b"  ok \n", "text/plain")):
        with pytest.raises(ExtractionError, match="2 readable chars"):
            extract_article("https://example.com/empty.txt")


def test_unsupported_content_type_rejected():
    with patch("kbdrops.extract.web.fetch", return_value=_result(b"\x89PNG", "image/png")):
        with pytest.raises(ExtractionError, match="image/png"):
            extract_article("https://example.com/pic")
