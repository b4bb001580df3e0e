"""Tests for source-type dispatch."""

from __future__ import annotations

from unittest.mock import patch

from kbdrops.extract.base import Extracted
from kbdrops.extract.extractor import Extractor


def test_text_returns_input_as_content():
    extracted = Extractor().extract("remember this", "text")
    assert extracted == Extracted(title="Text note", content="remember this")


def test_dispatch_by_source_type():
    marker = Extracted("t", "c")
    with patch("kbdrops.extract.extractor.extract_tweet", return_value=marker) as tweet, \
         patch("kbdrops.extract.extractor.extract_video") as video:
        assert Extractor().extract("https://x.com/a/status/1", "tweet") is marker
    tweet.assert_called_once_with("https://x.com/a/status/1")
    video.assert_not_called()


def test_other_treated_as_article():
    marker = Extracted("a", "c")
    with patch("kbdrops.extract.extractor.extract_article", return_value=marker) as article:
        assert Extractor().extract("https://example.com/thing", "other") is marker
    article.assert_called_once()
