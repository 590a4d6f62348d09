"""
Page fetcher.

Retrieves raw page markup with bounded timeouts and redirects, and maps
transport failures onto FetchError kinds with human-readable causes.
"""
import logging
import socket
import time
from dataclasses import dataclass, field
from urllib.parse import urlparse

import httpx

from seolens.config import settings
from seolens.core.exceptions import FetchError, FetchErrorKind

logger = logging.getLogger(__name__)

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}

DNS_FAILURE_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated with hostname",
)


@dataclass
class FetchedPage:
    """Markup and response metadata for one fetched page."""
    url: str
    final_url: str
    status_code: int
    html: str
    elapsed_ms: float
    headers: dict[str, str] = field(default_factory=dict)


def normalize_url(url: str) -> str:
    """Prefix https:// when the URL has no scheme."""
    url = url.strip()
    if not url.startswith(("http://", "https://")):
        url = f"https://{url}"
    return url


def _is_dns_failure(exc: Exception) -> bool:
    cause = exc.__cause__ or exc.__context__
    if isinstance(cause, socket.gaierror):
        return True
    message = str(exc).lower()
    return any(marker in message for marker in DNS_FAILURE_MARKERS)


def classify_fetch_error(exc: Exception, url: str) -> FetchError:
    """Translate an httpx exception into a FetchError."""
    host = urlparse(url).hostname or url

    if isinstance(exc, httpx.TimeoutException):
        return FetchError(FetchErrorKind.TIMEOUT, "Cannot access website: Request timeout", url)

    if isinstance(exc, httpx.TooManyRedirects):
        return FetchError(
            FetchErrorKind.TOO_MANY_REDIRECTS,
            "Cannot access website: Too many redirects",
            url,
        )

    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        return FetchError(
            FetchErrorKind.HTTP_STATUS,
            f"Cannot access website: HTTP {response.status_code} {response.reason_phrase}".rstrip(),
            url,
        )

    if isinstance(exc, httpx.ConnectError):
        if _is_dns_failure(exc):
            return FetchError(
                FetchErrorKind.DNS,
                f"Cannot access website: Domain not found ({host})",
                url,
            )
        return FetchError(
            FetchErrorKind.CONNECTION_REFUSED,
            "Cannot access website: Connection refused",
            url,
        )

    return FetchError(FetchErrorKind.OTHER, f"Cannot access website: {exc}", url)


class PageFetcher:
    """HTTP fetcher for audited pages."""

    def __init__(
        self,
        timeout: float | None = None,
        max_redirects: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout or settings.FETCH_TIMEOUT
        self.max_redirects = max_redirects or settings.FETCH_MAX_REDIRECTS
        self.transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            max_redirects=self.max_redirects,
            headers=BROWSER_HEADERS,
            transport=self.transport,
        )

    async def fetch(self, url: str) -> FetchedPage:
        """
        GET a page and return its markup.

        Raises:
            FetchError: on DNS, connection, timeout, redirect or non-2xx failures
        """
        url = normalize_url(url)
        start = time.monotonic()

        try:
            async with self._client(self.timeout) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            error = classify_fetch_error(e, url)
            logger.warning(f"[Fetch] {url} failed ({error.kind.value}): {error.message}")
            raise error from e

        elapsed_ms = (time.monotonic() - start) * 1000
        logger.info(f"[Fetch] {url} -> {response.status_code} in {elapsed_ms:.0f}ms")

        return FetchedPage(
            url=url,
            final_url=str(response.url),
            status_code=response.status_code,
            html=response.text,
            elapsed_ms=elapsed_ms,
            headers=dict(response.headers),
        )

    async def probe(self, url: str, timeout: float | None = None) -> float:
        """
        Time a lightweight HEAD request.

        Returns:
            Round-trip latency in milliseconds

        Raises:
            FetchError: if the probe fails
        """
        url = normalize_url(url)
        start = time.monotonic()
        try:
            async with self._client(timeout or settings.PROBE_TIMEOUT) as client:
                await client.head(url)
        except httpx.HTTPError as e:
            raise classify_fetch_error(e, url) from e
        return (time.monotonic() - start) * 1000
