"""Integration test fixtures.

Provides a fake Radio France site behind respx so the real Fetcher,
ResourceCache and FeedStore run end to end without network access.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest
import respx

from tests.helpers import (
    LISTING_URL,
    article_html,
    episode_html,
    episode_link,
    listing_html,
    media_url,
    page_url,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


class FakeSite:
    """Serves registered pages for GET and HEAD, 404 for everything else."""

    def __init__(self) -> None:
        self.pages: dict[str, tuple[bytes, dict[str, str]]] = {}
        self.requests: list[tuple[str, str]] = []

    def add(self, url: str, content: bytes = b"", headers: dict[str, str] | None = None) -> None:
        self.pages[url] = (content, headers or {})

    def publish(self, keys: list[str]) -> None:
        """Publish a one-page listing of ``keys`` with their episode pages and media."""
        content = listing_html([episode_html(key) for key in keys])
        self.add(LISTING_URL, content)
        self.add(page_url(1), content)
        for key in keys:
            self.add(episode_link(key), article_html(f"About {key}"))
            self.add(media_url(key), headers={"Content-Length": "2048", "Content-Type": "audio/mpeg"})

    def handle(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append((request.method, url))
        page = self.pages.get(url)
        if page is None:
            return httpx.Response(404, content=b"not found")
        content, headers = page
        if request.method == "HEAD":
            return httpx.Response(200, headers=headers)
        return httpx.Response(200, content=content, headers=headers)


@pytest.fixture()
def site() -> Iterator[FakeSite]:
    fake = FakeSite()
    with respx.mock(assert_all_called=False) as router:
        router.route().mock(side_effect=fake.handle)
        yield fake


@pytest.fixture()
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every data path at ``tmp_path``."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PODCASTPROXY__DATA_DIR", str(tmp_path))
    return tmp_path
