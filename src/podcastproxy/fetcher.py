"""Live HTTP access for the resource cache.

All network I/O goes through a single Fetcher wrapping one shared
``httpx.Client``. The client is created once by the entry point and
injected here, the caller owns its lifecycle.

A GET is always followed by an independent HEAD on the same URL: the HEAD
headers are the canonical metadata stored with the resource. ``httpx``
transparently decodes gzip bodies, so the GET response's own
``Content-Length`` describes compressed bytes rather than the resource.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import structlog

from podcastproxy.errors import DecodeError, FetchError
from podcastproxy.models.cache import CacheEntry, Headers

if TYPE_CHECKING:
    from podcastproxy.config import FetcherSettings

log = structlog.get_logger()

METHODS = ("GET", "HEAD")


def build_http_client(settings: FetcherSettings) -> httpx.Client:
    """Create the shared httpx client. Called once at startup."""
    return httpx.Client(
        follow_redirects=True,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={"User-Agent": settings.user_agent},
    )


def headers_from_response(response: httpx.Response) -> Headers:
    """Collect response headers as a multi-valued, lower-cased mapping."""
    headers: Headers = {}
    for name, value in response.headers.multi_items():
        headers.setdefault(name.lower(), []).append(value)
    return headers


class Fetcher:
    """Performs the live requests behind a cache miss."""

    def __init__(self, client: httpx.Client) -> None:
        self._client = client

    def fetch(self, method: str, url: str) -> CacheEntry:
        """Fetch ``url`` live.

        GET returns the decoded body plus the headers of a follow-up HEAD.
        HEAD returns headers only. Raises FetchError on transport failures
        and HTTP error statuses, DecodeError on a corrupt compressed body.
        """
        if method not in METHODS:
            raise ValueError(f"invalid method {method!r}")

        content: bytes | None = None
        if method == "GET":
            response = self._send("GET", url)
            content = response.content
            if response.status_code >= 400:
                raise FetchError(
                    f"HTTP {response.status_code} fetching {url}",
                    url=url,
                    status_code=response.status_code,
                    content=content,
                    headers=headers_from_response(response),
                )

        response = self._send("HEAD", url, content=content)
        headers = headers_from_response(response)
        if response.status_code >= 400:
            raise FetchError(
                f"HTTP {response.status_code} on HEAD {url}",
                url=url,
                status_code=response.status_code,
                content=content,
                headers=headers,
            )

        log.info(
            "fetch_complete",
            method=method,
            url=url,
            status_code=response.status_code,
            content_length=len(content) if content is not None else None,
        )
        return CacheEntry(content=content, headers=headers)

    def _send(self, method: str, url: str, *, content: bytes | None = None) -> httpx.Response:
        try:
            return self._client.request(method, url)
        except httpx.DecodingError as exc:
            raise DecodeError(
                f"Corrupt encoded body from {url}: {exc}",
                suggestion="The server sent a malformed compressed response.",
            ) from exc
        except httpx.HTTPError as exc:
            log.warning("fetch_transport_error", method=method, url=url, error=str(exc))
            raise FetchError(
                f"Network error fetching {url}: {exc}",
                url=url,
                content=content,
            ) from exc
