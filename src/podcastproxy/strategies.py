"""Extraction strategies and their registry.

A strategy is plain configuration: where a program's listing lives, which
XPath expressions locate episodes and pagination links, and how the page
advertises its native feed. All strategies share the same control flow,
implemented once by the merge engine.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, field_validator

from podcastproxy.engine import MergeEngine
from podcastproxy.errors import UnknownStrategy
from podcastproxy.markup import attribute, find_one

if TYPE_CHECKING:
    from lxml.html import HtmlElement

    from podcastproxy.models.feed import Feed, Item
    from podcastproxy.protocols import CacheProtocol


class ExtractionStrategy(BaseModel):
    """How to read one source's listing and episode markup."""

    name: str
    base_url: str
    program_path: str = "/emissions/{program}"

    # Episode discovery
    episode_selector: str = "//div[@class='podcast-list']/div"
    fallback_episode_selector: str = "//figure"
    # Fallback matches are figures nested two levels inside the episode block
    fallback_climbs_to_block: bool = False
    pager_selector: str = "//li[@class='pager-item']/a"
    page_param: str = "p"

    # Episode fields
    button_selector: str = ".//button"
    link_selector: str = "(.//a)[1]"
    description_selector: str = "//article//p"
    media_extension: str = ".mp3"
    media_type: str = "audio/mpeg"
    identity: Literal["enclosure", "link"] = "enclosure"

    # Channel metadata when no native feed is usable
    title_selector: str = "//title"
    meta_description_selector: str = "//meta[@name='description']"
    cover_selector: str = "//div[@class='cover-picture']//img"
    cover_attribute: str = "data-dejavu-src"

    # Native feed discovery
    feed_discovery: Literal["anchor", "regex", "none"] = "anchor"
    feed_anchor_selector: str = "//a[@class='podcast-button rss']"
    feed_pattern: str = ""

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not re.match(r"^[a-z0-9][a-z0-9_-]*$", v):
            raise ValueError(f"Invalid strategy name: {v!r}")
        return v

    @field_validator("feed_pattern")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as exc:
            raise ValueError(f"Invalid feed pattern {v!r}: {exc}") from exc
        return v

    def identify(self) -> str:
        return self.name

    def program_url(self, program: str) -> str:
        return self.base_url.rstrip("/") + self.program_path.format(program=program)

    def page_url(self, listing_url: str, page: int) -> str:
        return f"{listing_url}?{self.page_param}={page}"

    def find_native_feed(self, content: bytes, doc: HtmlElement) -> str:
        """Return the URL of the program's own RSS feed, or "" if none is advertised."""
        if self.feed_discovery == "regex":
            match = re.search(self.feed_pattern, content.decode("utf-8", errors="replace"))
            return match.group(0) if match else ""
        if self.feed_discovery == "anchor":
            return attribute(find_one(doc, self.feed_anchor_selector), "href")
        return ""

    def identity_key(self, item: Item) -> str:
        if self.identity == "link":
            return item.link
        return item.enclosure.url if item.enclosure is not None else ""

    def fetch(self, cache: CacheProtocol, program: str, prior: Feed | None) -> Feed:
        """Build the program's feed, extending ``prior`` with new episodes."""
        return MergeEngine(cache).fetch(self, program, prior)


FRANCE_INTER = ExtractionStrategy(
    name="franceinter",
    base_url="https://www.franceinter.fr",
    feed_discovery="anchor",
)

FRANCE_CULTURE = ExtractionStrategy(
    name="franceculture",
    base_url="https://www.franceculture.fr",
    fallback_climbs_to_block=True,
    feed_discovery="regex",
    feed_pattern=r"https?://radiofrance-podcast\.net/podcast09/rss_[0-9]+\.xml",
)

BUILTIN_STRATEGIES: tuple[ExtractionStrategy, ...] = (FRANCE_INTER, FRANCE_CULTURE)


@dataclass
class StrategyRegistry:
    """Name → strategy table, built once at startup and passed to the store."""

    by_name: dict[str, ExtractionStrategy] = field(default_factory=dict)
    default: str = "franceinter"

    def resolve(self, name: str) -> ExtractionStrategy:
        strategy = self.by_name.get(name)
        if strategy is None:
            raise UnknownStrategy(
                f"No extraction strategy named '{name}'.",
                suggestion=f"Known strategies: {', '.join(self.names())}.",
            )
        return strategy

    def names(self) -> list[str]:
        return sorted(self.by_name)


def build_registry(
    extra: list[ExtractionStrategy] | None = None,
    *,
    default: str = "franceinter",
) -> StrategyRegistry:
    """Build the registry from the built-ins, overridden by ``extra`` by name."""
    by_name = {strategy.name: strategy for strategy in BUILTIN_STRATEGIES}
    for strategy in extra or []:
        by_name[strategy.name] = strategy
    return StrategyRegistry(by_name=by_name, default=default)
