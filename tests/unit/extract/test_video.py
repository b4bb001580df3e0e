"""Tests for YouTube transcript extraction."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from kbdrops.errors import ExtractionError
from kbdrops.extract.fetch import FetchResult
from kbdrops.extract.video import extract_video, video_id_from_url

_URL = "https://youtube.com/watch?v=dQw4w9WgXcQ"
_CAPS = "https://www.youtube.com/api/timedtext?v=dQw4w9WgXcQ&lang=en"


def _page(body: str, url: str = _URL) -> FetchResult:
    return FetchResult(url=url, status=200, content_type="text/html", body=body.encode())


def _routes(mapping: dict):
    def fake_fetch(url, **_kwargs):
        value = mapping[url]
        if isinstance(value, Exception):
            raise value
        return value
    return fake_fetch


_DESCRIPTION = "A long description of the talk covering replication, consensus and failure modes."


def _watch_page(with_captions: bool = True, description: str = _DESCRIPTION) -> str:
    tracks = (
        '"captionTracks":[{"baseUrl":"https://www.youtube.com/api/timedtext?v=x&lang=de",'
        '"languageCode":"de"},{"baseUrl":"' + _CAPS + '","languageCode":"en"}],'
        if with_captions
        else ""
    )
    return (
        "<html><head><title>Distributed Systems Talk - YouTube</title>"
        f'<meta name="description" content="{description}"></head>'
        f"<body><script>var ytInitialPlayerResponse = {{{tracks}\"x\":1}};</script></body></html>"
    )


_CAPTION_XML = (
    '<?xml version="1.0" encoding="utf-8" ?><transcript>'
    '<text start="0.0" dur="2.0">Welcome to the talk about consensus</text>'
    '<text start="2.0" dur="2.0">and why leaders matter &amp;#39;a lot&amp;#39; in practice</text>'
    "</transcript>"
)


def test_video_id_patterns():
    assert video_id_from_url(_URL) == "dQw4w9WgXcQ"
    assert video_id_from_url("https://youtu.be/dQw4w9WgXcQ") == "dQw4w9WgXcQ"
    assert video_id_from_url("https://youtube.com/shorts/dQw4w9WgXcQ") == "dQw4w9WgXcQ"
    assert video_id_from_url("https://example.com") is None


def test_english_caption_track_used():
    routes = {_URL: _page(_watch_page()), _CAPS: _page(_CAPTION_XML, _CAPS)}
    with patch("kbdrops.extract.video.fetch", side_effect=_routes(routes)):
        extracted = extract_video(_URL)
    assert extracted.title == "Distributed Systems Talk"
    assert extracted.content == (
        "Welcome to the talk about consensus and why leaders matter 'a lot' in practice"
    )
    assert extracted.metadata == {
        "video_id": "dQw4w9WgXcQ",
        "has_transcript": True,
        "transcript_source": "captions",
        "transcript_length": len(extracted.content),
    }


def test_description_fallback_without_captions():
    with patch("kbdrops.extract.video.fetch", side_effect=_routes({_URL: _page(_watch_page(False))})):
        extracted = extract_video(_URL)
    assert extracted.content.startswith("[No transcript available]\n\n")
    assert _DESCRIPTION in extracted.content
    assert extracted.metadata["has_transcript"] is False
    assert extracted.metadata["transcript_source"] == "description"


def test_caption_fetch_failure_falls_back_to_description():
    routes = {_URL: _page(_watch_page()), _CAPS: ExtractionError("HTTP 429")}
    with patch("kbdrops.extract.video.fetch", side_effect=_routes(routes)):
        extracted = extract_video(_URL)
    assert extracted.metadata["transcript_source"] == "description"


def test_nothing_available_returns_empty_content():
    page = _watch_page(False, description="short")
    with patch("kbdrops.extract.video.fetch", side_effect=_routes({_URL: _page(page)})):
        extracted = extract_video(_URL)
    assert extracted.content == ""
    assert extracted.metadata == {"video_id": "dQw4w9WgXcQ", "has_transcript": False}


def test_watch_page_failure_is_hard_error():
    with patch("kbdrops.extract.video.fetch", side_effect=ExtractionError("HTTP 500")):
        with pytest.raises(ExtractionError):
            extract_video(_URL)
