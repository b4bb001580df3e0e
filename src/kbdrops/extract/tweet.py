"""Tweet extraction through the FxTwitter JSON API, with a page-scrape fallback."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from bs4 import BeautifulSoup

from kbdrops.errors import ExtractionError
from kbdrops.extract.base import Extracted
from kbdrops.extract.fetch import fetch

logger = logging.getLogger(__name__)

FXTWITTER_API = "https://api.fxtwitter.com"

_STATUS_RE = re.compile(r"/status/(\d+)")
_USER_RE = re.compile(r"\.com/([^/]+)/")
_MIN_ARTICLE_CHARS = 100
_MIN_SCRAPE_CHARS = 20


def extract_tweet(url: str) -> Extracted:
    """Extract a tweet (or X long-form article) at *url*.

    Raises:
        ExtractionError: The URL has no status id, or neither the API nor the
            page scrape produced any text.
    """
    m = _STATUS_RE.search(url)
    if not m:
        raise ExtractionError("Cannot parse tweet ID from URL")
    tweet_id = m.group(1)
    user_match = _USER_RE.search(url)
    username = user_match.group(1) if user_match else "i"

    try:
        extracted = _from_api(username, tweet_id)
    except (ExtractionError, ValueError) as exc:
        logger.info("FxTwitter lookup for %s failed, falling back to scrape: %s", tweet_id, exc)
        extracted = None
    if extracted is not None:
        return extracted

    try:
        result = fetch(url)
        text = " ".join(BeautifulSoup(result.text, "html.parser").get_text(" ").split())
    except ExtractionError as exc:
        raise ExtractionError(f"Failed to extract tweet content: {exc}") from exc
    if len(text) > _MIN_SCRAPE_CHARS:
        return Extracted(title=f"Tweet {tweet_id}", content=text, metadata={"tweet_id": tweet_id})
    raise ExtractionError("Failed to extract tweet content")


def _from_api(username: str, tweet_id: str) -> Extracted | None:
    result = fetch(f"{FXTWITTER_API}/{username}/status/{tweet_id}")
    data = json.loads(result.text)
    tweet: dict[str, Any] = data.get("tweet") or {}
    author = tweet.get("author") or {}
    screen_name = author.get("screen_name") or username

    article = tweet.get("article") or {}
    blocks = (article.get("content") or {}).get("blocks") or []
    if blocks:
        article_text = "\n\n".join(b.get("text") for b in blocks if b.get("text"))
        if len(article_text) > _MIN_ARTICLE_CHARS:
            return Extracted(
                title=article.get("title") or f"Article by @{screen_name}",
                content=article_text,
                metadata={
                    "author": screen_name,
                    "author_name": author.get("name"),
                    "published_at": article.get("created_at"),
                    "is_article": True,
                    "tweet_id": tweet_id,
                },
            )

    main_text = _tweet_text(tweet)
    quote_text = _tweet_text(tweet.get("quote") or {})
    body = main_text
    if quote_text:
        body += f"\n\n[Quoted]\n{quote_text}"
    if not body:
        return None
    return Extracted(
        title=f"Tweet by @{screen_name}",
        content=body,
        metadata={
            "author": screen_name,
            "author_name": author.get("name"),
            "likes": tweet.get("likes"),
            "retweets": tweet.get("retweets"),
            "tweet_id": tweet_id,
        },
    )


def _tweet_text(tweet: dict[str, Any]) -> str:
    text = tweet.get("text") or (tweet.get("raw_text") or {}).get("text") or ""
    return text.strip()
