"""Shared test fixtures for the podcast-proxy test suite."""

from __future__ import annotations

import pytest

from podcastproxy.models.feed import Feed
from podcastproxy.strategies import FRANCE_INTER, ExtractionStrategy, StrategyRegistry, build_registry
from tests.helpers import LISTING_URL, FakeCache, prior_item


@pytest.fixture()
def fake_cache() -> FakeCache:
    return FakeCache()


@pytest.fixture()
def strategy() -> ExtractionStrategy:
    return FRANCE_INTER


@pytest.fixture()
def registry() -> StrategyRegistry:
    return build_registry()


@pytest.fixture()
def prior_feed() -> Feed:
    """Persisted history holding episodes e2 then e3."""
    return Feed(title="Le Show", link=LISTING_URL, items=[prior_item("e2"), prior_item("e3")])
