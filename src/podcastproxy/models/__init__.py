from __future__ import annotations

from podcastproxy.models.cache import CacheEntry, Headers
from podcastproxy.models.feed import Enclosure, Feed, Image, Item, Program

__all__ = [
    # cache
    "CacheEntry",
    "Headers",
    # feed
    "Enclosure",
    "Feed",
    "Image",
    "Item",
    "Program",
]
