"""Protocol interfaces for swappable components.

The merge engine and the store reference these protocols, not the concrete
implementations, so tests can drive them with lightweight fakes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from podcastproxy.models.cache import CacheEntry


class CacheProtocol(Protocol):
    """Interface for the HTTP resource cache."""

    def get(self, url: str) -> CacheEntry: ...

    def head(self, url: str) -> CacheEntry: ...


class FetcherProtocol(Protocol):
    """Interface for live HTTP access."""

    def fetch(self, method: str, url: str) -> CacheEntry: ...
