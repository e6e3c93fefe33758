"""End-to-end tests: FeedStore over the real ResourceCache and Fetcher."""

from __future__ import annotations

import os
import time
from typing import TYPE_CHECKING

import httpx
import pytest

from podcastproxy.config import Settings
from podcastproxy.errors import FetchError
from podcastproxy.rss import parse_rss
from podcastproxy.store import build_store
from tests.helpers import LISTING_URL, PROGRAM, episode_link, media_url, page_url

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from podcastproxy.store import FeedStore
    from tests.integration.conftest import FakeSite


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(data_dir=str(tmp_path))


@pytest.fixture()
def store(settings: Settings, site: FakeSite) -> Iterator[FeedStore]:
    with httpx.Client(follow_redirects=True) as client:
        yield build_store(settings, client)


def _keys(program_items: list) -> list[str]:
    return [item.enclosure.url for item in program_items if item.enclosure is not None]


class TestFirstRun:
    def test_builds_feed_from_html(self, store: FeedStore, site: FakeSite) -> None:
        site.publish(["e1", "e2"])

        program = store.get("franceinter", PROGRAM)

        assert program.feed.title == "Le Show"
        assert _keys(program.feed.items) == [media_url("e1"), media_url("e2")]
        assert program.feed.items[0].description == "About e1"
        # Length comes from the media HEAD
        assert program.feed.items[0].enclosure.length == 2048
        persisted = parse_rss(store.path_for("franceinter", PROGRAM).read_bytes())
        assert _keys(persisted.items) == _keys(program.feed.items)

    def test_resources_land_in_cache_layout(
        self, store: FeedStore, site: FakeSite, settings: Settings
    ) -> None:
        site.publish(["e1"])
        store.get("franceinter", PROGRAM)

        listing = settings.cache_dir / "www.franceinter.fr" / "emissions" / "le-show"
        assert (listing / "GET" / "content").exists()
        assert (listing / "GET" / "headers").exists()
        media = settings.cache_dir / "media.radiofrance-podcast.net" / "podcast09" / "e1.mp3"
        assert (media / "HEAD" / "headers").exists()
        assert not (media / "HEAD" / "content").exists()


class TestRepeatRuns:
    def test_second_run_served_from_cache(self, store: FeedStore, site: FakeSite) -> None:
        site.publish(["e1", "e2"])
        first = store.get("franceinter", PROGRAM)
        network_calls = len(site.requests)

        second = store.get("franceinter", PROGRAM)

        assert len(site.requests) == network_calls
        assert [i.model_dump() for i in second.feed.items] == [
            i.model_dump() for i in first.feed.items
        ]

    def test_new_episode_merged_after_ttl(
        self, store: FeedStore, site: FakeSite, settings: Settings
    ) -> None:
        site.publish(["e1", "e2"])
        store.get("franceinter", PROGRAM)

        site.publish(["e0", "e1"])
        # Age the cached listing pages past the TTL
        stamp = time.time() - 25 * 3600
        for path in settings.cache_dir.rglob("*"):
            if path.is_file():
                os.utime(path, (stamp, stamp))
        site.requests.clear()

        program = store.get("franceinter", PROGRAM)

        assert _keys(program.feed.items) == [media_url("e0"), media_url("e1"), media_url("e2")]
        assert ("GET", LISTING_URL) in site.requests
        assert ("GET", page_url(1)) in site.requests
        # Known episodes are not re-enriched
        assert ("GET", episode_link("e1")) not in site.requests
        assert ("HEAD", media_url("e1")) not in site.requests


class TestFailures:
    def test_unreachable_listing(self, store: FeedStore, site: FakeSite) -> None:
        with pytest.raises(FetchError) as exc_info:
            store.get("franceinter", PROGRAM)
        assert exc_info.value.status_code == 404
        assert not store.path_for("franceinter", PROGRAM).exists()

    def test_missing_description_page_is_tolerated(self, store: FeedStore, site: FakeSite) -> None:
        site.publish(["e1"])
        del site.pages[episode_link("e1")]

        program = store.get("franceinter", PROGRAM)

        assert program.feed.items[0].description == ""
        assert program.feed.items[0].enclosure.length == 2048
