"""HTTP fetch with SSRF protection, shared by all URL extractors.

Security requirements:
- SSRF guard: ipaddress module blocks private/loopback/link-local ranges before
  any connection is established, including on every redirect hop.
- Allowed URL schemes: https:// and http:// only.
- Max response body: 5 MB by default (callers may raise it, e.g. for PDFs).
- Timeout: 30 seconds (connect + read).
- Max redirects: 5.
- Transient connection errors (reset, timeout, temporary DNS failure) are
  retried once after 2 seconds.
"""

from __future__ import annotations

import errno
import ipaddress
import logging
import socket
import time
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from http.client import HTTPResponse

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from kbdrops.errors import ExtractionError

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; kbdrops/0.1; +https://github.com/kbdrops/kbdrops)"
MAX_BYTES = 5 * 1024 * 1024  # 5 MB
TIMEOUT = 30  # seconds
MAX_REDIRECTS = 5
RETRY_DELAY = 2.0  # seconds
_ALLOWED_SCHEMES = {"https", "http"}

_sleep = time.sleep


class SsrfError(ExtractionError):
    """Raised when a URL resolves to a private or reserved address."""


class _TransientFetchError(ExtractionError):
    """A connection-level failure worth one more attempt."""


@dataclass
class FetchResult:
    url: str
    status: int
    content_type: str
    body: bytes
    charset: str | None = None

    @property
    def text(self) -> str:
        return self.body.decode(self.charset or "utf-8", errors="replace")


def fetch(
    url: str,
    *,
    headers: dict[str, str] | None = None,
    max_bytes: int = MAX_BYTES,
    timeout: float = TIMEOUT,
) -> FetchResult:
    """GET *url* and return its body.

    Raises:
        SsrfError: The host resolves to a non-public address.
        ExtractionError: Bad scheme, HTTP error status, oversize body, too
            many redirects, or a network failure that survived the retry.
    """
    retrying = Retrying(
        retry=retry_if_exception_type(_TransientFetchError),
        stop=stop_after_attempt(2),
        wait=wait_fixed(RETRY_DELAY),
        sleep=_sleep,
        reraise=True,
        before_sleep=lambda state: logger.info(
            "Transient error fetching %s, retrying: %s",
            url,
            state.outcome.exception() if state.outcome else "unknown",
        ),
    )
    try:
        return retrying(_fetch_once, url, headers or {}, max_bytes, timeout)
    except _TransientFetchError as exc:
        raise ExtractionError(str(exc)) from exc


def check_ssrf(url: str) -> None:
    """Validate the scheme, resolve the hostname and block non-public IP ranges."""
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        raise ExtractionError(
            f"Unsupported URL scheme '{parsed.scheme}'. Only https:// and http:// are allowed."
        )
    hostname = parsed.hostname
    if not hostname:
        raise ExtractionError(f"URL has no hostname: {url}")

    try:
        addrinfos = socket.getaddrinfo(hostname, None)
    except socket.gaierror as exc:
        if exc.errno == socket.EAI_AGAIN:
            raise _TransientFetchError(f"DNS lookup for '{hostname}' failed: {exc}") from exc
        raise ExtractionError(f"DNS resolution failed for '{hostname}': {exc}") from exc

    for addrinfo in addrinfos:
        addr_str = addrinfo[4][0]
        try:
            ip = ipaddress.ip_address(addr_str)
        except ValueError:
            continue
        if (
            ip.is_private
            or ip.is_loopback
            or ip.is_link_local
            or ip.is_reserved
            or ip.is_multicast
            or ip.is_unspecified
        ):
            raise SsrfError(
                f"URL resolves to private address ({ip}). "
                "Access to internal network addresses is not allowed."
            )


def _fetch_once(url: str, headers: dict[str, str], max_bytes: int, timeout: float) -> FetchResult:
    check_ssrf(url)
    request = urllib.request.Request(url, headers={"User-Agent": USER_AGENT, **headers})
    opener = urllib.request.build_opener(_LimitedRedirectHandler(MAX_REDIRECTS))

    try:
        response: HTTPResponse = opener.open(request, timeout=timeout)
    except urllib.error.HTTPError as exc:
        raise ExtractionError(f"HTTP {exc.code} fetching '{url}'") from exc
    except urllib.error.URLError as exc:
        if _is_transient(exc.reason):
            raise _TransientFetchError(f"Failed to fetch URL '{url}': {exc.reason}") from exc
        raise ExtractionError(f"Failed to fetch URL '{url}': {exc.reason}") from exc
    except (TimeoutError, ConnectionResetError) as exc:
        raise _TransientFetchError(f"Failed to fetch URL '{url}': {exc}") from exc

    try:
        body = response.read(max_bytes + 1)
    except (TimeoutError, ConnectionResetError) as exc:
        raise _TransientFetchError(f"Failed reading '{url}': {exc}") from exc
    finally:
        response.close()

    if len(body) > max_bytes:
        raise ExtractionError(
            f"Response body exceeds {max_bytes // (1024 * 1024)} MB limit for URL '{url}'."
        )

    raw_ct = response.headers.get("Content-Type", "text/html")
    return FetchResult(
        url=response.geturl() or url,
        status=getattr(response, "status", 200),
        content_type=raw_ct.split(";")[0].strip().lower(),
        body=body,
        charset=response.headers.get_content_charset(),
    )


def _is_transient(reason: object) -> bool:
    if isinstance(reason, (TimeoutError, ConnectionResetError)):
        return True
    if isinstance(reason, socket.gaierror):
        return reason.errno == socket.EAI_AGAIN
    if isinstance(reason, OSError):
        return reason.errno in (errno.ECONNRESET, errno.ETIMEDOUT)
    return False


class _LimitedRedirectHandler(urllib.request.HTTPRedirectHandler):
    """Raise after more than *max_redirects* redirects; SSRF-check every hop."""

    def __init__(self, max_redirects: int) -> None:
        self._max_redirects = max_redirects
        self._count = 0

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        self._count += 1
        if self._count > self._max_redirects:
            raise ExtractionError(
                f"Too many redirects (>{self._max_redirects}) for URL '{req.full_url}'."
            )
        check_ssrf(newurl)
        return super().redirect_request(req, fp, code, msg, headers, newurl)
