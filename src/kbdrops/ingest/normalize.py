"""URL canonicalization for deduplication.

Best-effort: anything that is not an http(s) URL, or that fails to parse, is
returned unchanged. Normalization must never block an ingest.
"""

from __future__ import annotations

import re
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

# Tracking / referrer keys that never change the addressed content.
TRACKING_PARAMS: frozenset[str] = frozenset(
    {
        "utm_source",
        "utm_medium",
        "utm_campaign",
        "utm_term",
        "utm_content",
        "fbclid",
        "igshid",
        "ref",
        "s",
        "t",
    }
)

# Hosts served under two domains; value is the canonical form.
HOST_ALIASES: dict[str, str] = {"twitter.com": "x.com"}

_HTTP_RE = re.compile(r"^https?://", re.IGNORECASE)
_DEFAULT_PORTS = {"http": 80, "https": 443}


def is_http_url(value: str | None) -> bool:
    """Return True if *value* starts with an http:// or https:// scheme."""
    return bool(value) and bool(_HTTP_RE.match(value))


def normalize_url(raw: str | None) -> str | None:
    """Return the canonical form of *raw* used as the URL dedup key.

    - host lower-cased, leading ``www.`` removed, aliases rewritten
    - tracking parameters dropped, remaining parameters sorted by key
    - fragment dropped
    - trailing slash removed from any path except ``/``

    Idempotent: ``normalize_url(normalize_url(u)) == normalize_url(u)``.
    """
    if not is_http_url(raw):
        return raw
    try:
        return _normalize(raw)
    except ValueError:
        return raw


def _normalize(raw: str) -> str:
    parts = urlsplit(raw.strip())
    host = parts.hostname
    if not host:
        return raw

    if host.startswith("www."):
        host = host[4:]
    host = HOST_ALIASES.get(host, host)
    if ":" in host:
        host = f"[{host}]"  # IPv6 literal

    scheme = parts.scheme.lower()
    port = parts.port  # raises ValueError on a malformed port
    netloc = host
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        netloc = f"{host}:{port}"
    userinfo = parts.netloc.rpartition("@")[0] if "@" in parts.netloc else ""
    if userinfo:
        netloc = f"{userinfo}@{netloc}"

    pairs = [
        (k, v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k not in TRACKING_PARAMS
    ]
    pairs.sort(key=lambda kv: kv[0])
    query = urlencode(pairs)

    path = parts.path or "/"
    if path != "/" and path.endswith("/"):
        path = path.rstrip("/") or "/"

    return urlunsplit((scheme, netloc, path, query, ""))
