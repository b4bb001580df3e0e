"""Heuristic rejection of garbage, error-page, and too-short extractions."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from kbdrops.config import ValidationCfg

# Phrases typical of block pages, login walls, and HTTP error bodies.
ERROR_SIGNALS: tuple[str, ...] = (
    "access denied",
    "captcha",
    "please enable javascript",
    "cloudflare",
    "404",
    "sign in",
    "blocked",
    "rate limit",
)

_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: str = ""


def truncate_content(content: str, limit: int = ValidationCfg.max_content_chars) -> str:
    """Cut *content* to at most *limit* characters."""
    return content[:limit] if len(content) > limit else content


def prose_ratio(content: str, long_paragraph: int = ValidationCfg.long_paragraph) -> float | None:
    """Fraction of blank-line-separated paragraphs longer than *long_paragraph*.

    Consecutive non-blank lines form one paragraph (their newlines become
    spaces). Returns None when there are no non-empty paragraphs.
    """
    paragraphs = [
        p.replace("\n", " ").strip() for p in _PARAGRAPH_BREAK_RE.split(content)
    ]
    paragraphs = [p for p in paragraphs if p]
    if not paragraphs:
        return None
    long_count = sum(1 for p in paragraphs if len(p) > long_paragraph)
    return long_count / len(paragraphs)


def find_error_signals(content: str) -> list[str]:
    """Return every ERROR_SIGNALS phrase present in *content* (case-insensitive)."""
    lower = content.lower()
    return [signal for signal in ERROR_SIGNALS if signal in lower]


def validate_content(
    content: str | None,
    source_type: str,
    metadata: dict[str, Any] | None = None,
    cfg: ValidationCfg | None = None,
) -> ValidationResult:
    """Decide whether extracted *content* is worth storing.

    Tweets skip the minimum-length and prose checks; short transcripts of
    videos get a lower minimum. Two or more error signals reject anything.
    The input is never modified.
    """
    cfg = cfg or ValidationCfg()
    metadata = metadata or {}

    if not content or len(content) < cfg.min_chars:
        return ValidationResult(False, f"Content too short (< {cfg.min_chars} chars)")

    if source_type != "tweet":
        has_transcript = source_type == "video" and bool(metadata.get("has_transcript"))
        min_length = cfg.min_video_transcript_length if has_transcript else cfg.min_length
        if len(content) < min_length:
            return ValidationResult(
                False, f"Content too short for {source_type} (< {min_length} chars)"
            )

        ratio = prose_ratio(content, cfg.long_paragraph)
        if ratio is not None and ratio < cfg.prose_ratio:
            return ValidationResult(
                False,
                f"Low prose ratio ({ratio * 100:.1f}% < {cfg.prose_ratio * 100:.0f}%)",
            )

    hits = find_error_signals(content)
    if len(hits) >= cfg.error_signal_hits:
        return ValidationResult(
            False, f"Looks like an error page (signals: {', '.join(hits)})"
        )

    return ValidationResult(True)
