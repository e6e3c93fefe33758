"""Page builders and an in-memory cache shared by the test suite.

Pages are small HTML snippets shaped like the Radio France listings the
built-in strategies target.
"""

from __future__ import annotations

from podcastproxy.errors import FetchError
from podcastproxy.models.cache import CacheEntry
from podcastproxy.models.feed import Enclosure, Item

BASE_URL = "https://www.franceinter.fr"
PROGRAM = "le-show"
LISTING_URL = f"{BASE_URL}/emissions/{PROGRAM}"


def page_url(page: int) -> str:
    return f"{LISTING_URL}?p={page}"


def media_url(key: str, ext: str = ".mp3") -> str:
    return f"https://media.radiofrance-podcast.net/podcast09/{key}{ext}"


def episode_link(key: str) -> str:
    return f"{BASE_URL}/emissions/{PROGRAM}/{key}"


def episode_html(
    key: str,
    *,
    ext: str = ".mp3",
    broadcast_type: str = "replay",
    aod: str = "1",
    start: int = 1_700_000_000,
) -> str:
    return (
        "<div>"
        f'<a href="/emissions/{PROGRAM}/{key}">Episode {key}</a>'
        '<button data-broadcast-type="live" data-is-aod="0"></button>'
        f'<button data-broadcast-type="{broadcast_type}" data-is-aod="{aod}" '
        f'data-diffusion-title="Episode {key}" data-url="{media_url(key, ext)}" '
        f'data-start-time="{start}"></button>'
        "</div>"
    )


def listing_html(episodes: list[str], *, pager_links: int = 0, feed_link: str = "") -> bytes:
    pager = "".join(
        f'<li class="pager-item"><a href="?p={n}">{n}</a></li>' for n in range(2, pager_links + 2)
    )
    rss_button = f'<a class="podcast-button rss" href="{feed_link}">RSS</a>' if feed_link else ""
    return (
        "<html><head><title>Le Show</title>"
        '<meta name="description" content="Le show du dimanche"></head><body>'
        f"{rss_button}"
        '<div class="cover-picture"><img data-dejavu-src="https://img.example/cover.jpg"></div>'
        f'<div class="podcast-list">{"".join(episodes)}</div>'
        f'<ul class="pager">{pager}</ul>'
        "</body></html>"
    ).encode()


def article_html(text: str) -> bytes:
    return f"<html><body><article><h1>T</h1><p>  {text}  </p></article></body></html>".encode()


def prior_item(key: str, description: str = "from history") -> Item:
    return Item(
        title=f"Episode {key}",
        link=episode_link(key),
        author="Radio France",
        enclosure=Enclosure(url=media_url(key), length=999, type="audio/mpeg"),
        description=description,
    )


class FakeCache:
    """In-memory stand-in for ResourceCache recording every request."""

    def __init__(self, resources: dict[str, CacheEntry] | None = None) -> None:
        self.resources: dict[str, CacheEntry] = resources or {}
        self.calls: list[tuple[str, str]] = []

    def add_page(self, url: str, content: bytes) -> None:
        self.resources[url] = CacheEntry(content=content, headers={})

    def add_media(self, key: str, length: int = 1234) -> None:
        self.resources[media_url(key)] = CacheEntry(headers={"content-length": [str(length)]})

    def add_episode(self, key: str, length: int = 1234) -> None:
        self.add_page(episode_link(key), article_html(f"About {key}"))
        self.add_media(key, length)

    def get(self, url: str) -> CacheEntry:
        self.calls.append(("GET", url))
        return self._lookup(url)

    def head(self, url: str) -> CacheEntry:
        self.calls.append(("HEAD", url))
        return CacheEntry(headers=self._lookup(url).headers)

    def _lookup(self, url: str) -> CacheEntry:
        try:
            return self.resources[url]
        except KeyError:
            raise FetchError(f"HTTP 404 fetching {url}", url=url, status_code=404) from None

    def requested(self, method: str, url: str) -> bool:
        return (method, url) in self.calls
