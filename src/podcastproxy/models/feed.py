from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class Enclosure(BaseModel):
    """Downloadable media of an episode."""

    url: str
    length: int = 0  # bytes, 0 when unknown
    type: str = ""


class Image(BaseModel):
    url: str = ""
    title: str = ""
    link: str = ""
    width: int = 0
    height: int = 0


class Item(BaseModel):
    """Single episode of a feed."""

    title: str = ""
    link: str = ""
    author: str = ""
    enclosure: Enclosure | None = None
    description: str = ""
    created: datetime | None = None


class Feed(BaseModel):
    """A channel plus its items, newest first."""

    title: str = ""
    description: str = ""
    copyright: str = ""
    link: str = ""
    image: Image | None = None
    updated: datetime | None = None
    items: list[Item] = Field(default_factory=list)


class Program(BaseModel):
    """A named show bound to one extraction strategy.

    Rebuilt on every access from the freshly merged feed; never persisted
    itself (the feed is).
    """

    name: str
    strategy: str
    feed: Feed

    def rss(self) -> str:
        from podcastproxy.rss import render_rss

        return render_rss(self.feed)
