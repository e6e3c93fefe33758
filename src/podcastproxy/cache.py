"""Disk-backed HTTP resource cache.

Every network access of the merge engine goes through ResourceCache. A
resource lives in its own directory::

    <root>/<host>/<path>[?<sorted query>]/<GET|HEAD>/{content,headers}

``content`` holds the raw (decoded) body, ``headers`` a JSON object mapping
lower-cased header names to lists of values. Each half is fresh while its
file modification time lies within the TTL window, and the halves are
checked independently.

Entries are never evicted: a stale half is silently re-fetched and
overwritten. There is no locking; concurrent writers of the same URL write
the same bytes. Write failures are logged and ignored so a fetched resource
is always returned to the caller.
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import parse_qsl, urlencode, urlsplit

import structlog

from podcastproxy.models.cache import CacheEntry, Headers

if TYPE_CHECKING:
    from podcastproxy.protocols import FetcherProtocol

log = structlog.get_logger()

CONTENT_FILE = "content"
HEADERS_FILE = "headers"


def _resource_dir(url: str) -> str:
    """Relative cache directory for ``url``, without the method component."""
    parts = urlsplit(url)
    segments = [s for s in parts.path.split("/") if s not in ("", ".", "..")]
    location = "/".join([parts.netloc, *segments])
    query = parse_qsl(parts.query, keep_blank_values=True)
    if query:
        location += "?" + urlencode(sorted(query))
    return location


def _read_headers(path: Path) -> Headers | None:
    """Load a headers file. Unreadable or malformed files count as a miss."""
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        log.debug("cache_headers_unreadable", path=str(path))
        return None
    if not isinstance(raw, dict) or not all(
        isinstance(values, list) and all(isinstance(v, str) for v in values)
        for values in raw.values()
    ):
        log.debug("cache_headers_unreadable", path=str(path), reason="bad_shape")
        return None
    return {str(name).lower(): values for name, values in raw.items()}


class ResourceCache:
    """Content/header cache with a per-half TTL, implementing CacheProtocol."""

    def __init__(self, root: Path, fetcher: FetcherProtocol, ttl_hours: float = 24) -> None:
        self.root = root
        self._fetcher = fetcher
        self.ttl_seconds = ttl_hours * 3600

    def location(self, method: str, url: str) -> Path:
        return self.root / _resource_dir(url) / method

    def is_fresh(self, path: Path) -> bool:
        try:
            mtime = path.stat().st_mtime
        except OSError:
            return False
        return mtime > time.time() - self.ttl_seconds

    def get(self, url: str) -> CacheEntry:
        """Return body and headers of ``url``, fetching whatever half is stale."""
        return self._request("GET", url)

    def head(self, url: str) -> CacheEntry:
        """Return headers of ``url``; content is always None."""
        return self._request("HEAD", url)

    def put(self, method: str, url: str, entry: CacheEntry) -> None:
        """Persist both halves of an entry. Non-fatal on failure."""
        directory = self.location(method, url)
        try:
            directory.mkdir(parents=True, exist_ok=True)
            if method == "GET":
                (directory / CONTENT_FILE).write_bytes(entry.content or b"")
            self._write_headers(directory, entry.headers)
        except OSError:
            log.warning("cache_write_error", method=method, url=url, exc_info=True)

    def _write_headers(self, directory: Path, headers: Headers) -> None:
        (directory / HEADERS_FILE).write_text(json.dumps(headers), encoding="utf-8")

    def _request(self, method: str, url: str) -> CacheEntry:
        directory = self.location(method, url)
        content_path = directory / CONTENT_FILE
        headers_path = directory / HEADERS_FILE

        content: bytes | None = None
        if method == "GET" and self.is_fresh(content_path):
            try:
                content = content_path.read_bytes()
            except OSError:
                content = None

        headers: Headers | None = None
        if self.is_fresh(headers_path):
            headers = _read_headers(headers_path)

        if method == "GET" and content is None:
            log.debug("cache_miss", method=method, url=url)
            entry = self._fetcher.fetch("GET", url)
            self.put(method, url, entry)
            return entry

        if headers is None:
            # Content (if any) is still fresh: only the header half needs a round trip.
            log.debug("cache_headers_miss", method=method, url=url)
            headers = self._fetcher.fetch("HEAD", url).headers
            try:
                directory.mkdir(parents=True, exist_ok=True)
                self._write_headers(directory, headers)
            except OSError:
                log.warning("cache_write_error", method=method, url=url, exc_info=True)

        log.debug("cache_hit", method=method, url=url)
        return CacheEntry(content=content, headers=headers)
