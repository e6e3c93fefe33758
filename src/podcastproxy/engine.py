"""Pagination-merge engine.

Builds a program's feed by walking its paginated listing, newest first, and
extending the previously persisted feed with the episodes it does not know
yet. The merge runs in two phases:

  1. Scrape listing pages ``1..P+1`` (P = pager links on page 1), turning
     episode nodes into items and enriching each new one with its
     description and media length. The first item whose identity key is
     already in the prior feed stops the scrape: everything after it is
     known history.
  2. Append every prior item, in persisted order, so history no longer
     listed on the site is kept.

Per-item extraction problems are logged and skipped. Fetch and decode
failures of listing pages and of the media HEAD abort the whole merge.

Synchronous and sequential: every request goes through the resource cache
and completes before the next one starts.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from urllib.parse import urljoin

import structlog

from podcastproxy.errors import (
    DecodeError,
    EmptyFeedError,
    ExtractionMiss,
    FetchError,
    UnsupportedMedia,
)
from podcastproxy.markup import attribute, find, find_one, first_text, parse_html
from podcastproxy.models.feed import Enclosure, Feed, Image, Item
from podcastproxy.rss import parse_rss

if TYPE_CHECKING:
    from lxml.html import HtmlElement
    from structlog.typing import FilteringBoundLogger

    from podcastproxy.protocols import CacheProtocol
    from podcastproxy.strategies import ExtractionStrategy

log = structlog.get_logger()


def parse_episode(strategy: ExtractionStrategy, node: HtmlElement, template: Item) -> Item:
    """Turn one episode node into a candidate item.

    The node must hold a replay button flagged as available on demand.
    Raises ExtractionMiss without one and UnsupportedMedia when its media
    URL lacks the strategy's audio extension.
    """
    button = None
    for candidate in find(node, strategy.button_selector):
        if (
            attribute(candidate, "data-broadcast-type") == "replay"
            and attribute(candidate, "data-is-aod") == "1"
        ):
            button = candidate
            break
    if button is None:
        raise ExtractionMiss("No on-demand replay button in episode")

    media_url = attribute(button, "data-url")
    if not media_url.endswith(strategy.media_extension):
        raise UnsupportedMedia(f"Unsupported media: {media_url!r}")

    href = attribute(find_one(node, strategy.link_selector), "href")

    return Item(
        title=attribute(button, "data-diffusion-title"),
        link=urljoin(strategy.base_url + "/", href) if href else "",
        author=template.author,
        enclosure=Enclosure(url=media_url, type=strategy.media_type),
        created=_epoch(attribute(button, "data-start-time")),
    )


def _epoch(value: str) -> datetime | None:
    try:
        return datetime.fromtimestamp(int(value), tz=UTC)
    except (ValueError, OverflowError, OSError):
        return None


def _content_length(value: str | None) -> int:
    try:
        return int(value or "")
    except ValueError:
        return 0


class MergeEngine:
    """Feed builder shared by every extraction strategy."""

    def __init__(self, cache: CacheProtocol) -> None:
        self._cache = cache

    def fetch(self, strategy: ExtractionStrategy, program: str, prior: Feed | None) -> Feed:
        """Fetch the program's listing page and merge it with ``prior``."""
        url = strategy.program_url(program)
        entry = self._cache.get(url)
        return self.merge(strategy, url, entry.content or b"", prior)

    def merge(
        self,
        strategy: ExtractionStrategy,
        url: str,
        content: bytes,
        prior: Feed | None,
    ) -> Feed:
        """Merge the listing at ``url`` (first page already fetched) with ``prior``."""
        merge_log = log.bind(strategy=strategy.name, url=url)
        doc = parse_html(content, url=url)

        native = self._native_feed(strategy, url, content, doc, merge_log)
        if native is not None:
            feed, template = native
        else:
            feed, template = self._html_feed(strategy, url, doc), Item()

        prior_items = prior.items if prior is not None else []
        known: set[str] = set()
        for item in prior_items:
            key = strategy.identity_key(item)
            if key:
                known.add(key)

        pages = len(find(doc, strategy.pager_selector)) + 1

        # Phase 1: new episodes, newest first, up to the first known one
        feed.items = self._scrape(strategy, url, pages, template, known, merge_log)
        new_count = len(feed.items)

        # Phase 2: carry the whole prior history over
        self._append_history(strategy, feed, prior_items)

        merge_log.info("merge_complete", new_items=new_count, total_items=len(feed.items))
        return feed

    # ------------------------------------------------------------------
    # Feed origin
    # ------------------------------------------------------------------

    def _native_feed(
        self,
        strategy: ExtractionStrategy,
        url: str,
        content: bytes,
        doc: HtmlElement,
        merge_log: FilteringBoundLogger,
    ) -> tuple[Feed, Item] | None:
        """Channel metadata and template item from the program's own feed, if usable."""
        feed_url = strategy.find_native_feed(content, doc)
        if not feed_url:
            merge_log.info("native_feed_not_found")
            return None
        feed_url = urljoin(url, feed_url)

        try:
            native = parse_rss(self._cache.get(feed_url).content)
            if not native.items:
                raise EmptyFeedError(f"Native feed {feed_url} has no items")
        except (FetchError, DecodeError, EmptyFeedError) as exc:
            merge_log.warning(
                "native_feed_unusable",
                feed_url=feed_url,
                code=exc.code,
                reason=exc.message,
            )
            return None

        merge_log.info("native_feed_found", feed_url=feed_url, items=len(native.items))
        template = native.items[0]
        return native.model_copy(update={"items": []}), template

    def _html_feed(self, strategy: ExtractionStrategy, url: str, doc: HtmlElement) -> Feed:
        """Channel metadata read from the listing page's head and cover picture."""
        try:
            title = first_text(doc, strategy.title_selector)
        except ExtractionMiss:
            title = ""
        description = attribute(find_one(doc, strategy.meta_description_selector), "content")
        image_url = attribute(find_one(doc, strategy.cover_selector), strategy.cover_attribute)

        return Feed(
            title=title,
            description=description,
            link=url,
            image=Image(url=image_url, title=title, link=image_url) if image_url else None,
            updated=datetime.now(UTC),
        )

    # ------------------------------------------------------------------
    # Phase 1
    # ------------------------------------------------------------------

    def _scrape(
        self,
        strategy: ExtractionStrategy,
        url: str,
        pages: int,
        template: Item,
        known: set[str],
        merge_log: FilteringBoundLogger,
    ) -> list[Item]:
        items: list[Item] = []
        seen: set[str] = set()

        for page in range(1, pages + 1):
            page_url = strategy.page_url(url, page)
            for item in self.parse_page(strategy, page_url, template, merge_log):
                key = strategy.identity_key(item)
                if key and key in known:
                    merge_log.info(
                        "merge_stopped_known_item",
                        page=page,
                        key=key,
                        new_items=len(items),
                    )
                    return items
                if key and key in seen:
                    merge_log.debug("duplicate_item_skipped", page=page, key=key)
                    continue
                if key:
                    seen.add(key)

                self._enrich(strategy, item, merge_log)
                items.append(item)

        merge_log.info("merge_pages_exhausted", pages=pages, new_items=len(items))
        return items

    def parse_page(
        self,
        strategy: ExtractionStrategy,
        page_url: str,
        template: Item,
        merge_log: FilteringBoundLogger | None = None,
    ) -> list[Item]:
        """Fetch one listing page and extract its candidate items, in listing order."""
        page_log = merge_log if merge_log is not None else log.bind(strategy=strategy.name)
        entry = self._cache.get(page_url)
        doc = parse_html(entry.content, url=page_url)

        nodes = find(doc, strategy.episode_selector)
        climb = False
        if not nodes:
            nodes = find(doc, strategy.fallback_episode_selector)
            climb = strategy.fallback_climbs_to_block

        items: list[Item] = []
        for node in nodes:
            if climb:
                parent = node.getparent()
                block = parent.getparent() if parent is not None else None
                if block is None:
                    page_log.warning("episode_skipped", page=page_url, reason="no enclosing block")
                    continue
                node = block
            try:
                items.append(parse_episode(strategy, node, template))
            except (ExtractionMiss, UnsupportedMedia) as exc:
                page_log.warning(
                    "episode_skipped", page=page_url, code=exc.code, reason=exc.message
                )
        return items

    def _enrich(
        self, strategy: ExtractionStrategy, item: Item, merge_log: FilteringBoundLogger
    ) -> None:
        """Fill in description (best effort) and media length (required)."""
        item.description = self._describe(strategy, item, merge_log)

        if item.enclosure is not None:
            # A failure here is a cache/network failure: let it abort the merge.
            head = self._cache.head(item.enclosure.url)
            item.enclosure.length = _content_length(head.header("content-length"))

    def _describe(
        self, strategy: ExtractionStrategy, item: Item, merge_log: FilteringBoundLogger
    ) -> str:
        if not item.link:
            merge_log.info("episode_description_missing", title=item.title, reason="no link")
            return ""
        try:
            entry = self._cache.get(item.link)
            return first_text(parse_html(entry.content, url=item.link), strategy.description_selector)
        except (FetchError, DecodeError, ExtractionMiss) as exc:
            merge_log.warning(
                "episode_description_missing",
                link=item.link,
                code=exc.code,
                reason=exc.message,
            )
            return ""

    # ------------------------------------------------------------------
    # Phase 2
    # ------------------------------------------------------------------

    def _append_history(
        self, strategy: ExtractionStrategy, feed: Feed, prior_items: list[Item]
    ) -> None:
        present: set[str] = set()
        for item in feed.items:
            key = strategy.identity_key(item)
            if key:
                present.add(key)

        for item in prior_items:
            key = strategy.identity_key(item)
            if key and key in present:
                continue
            if key:
                present.add(key)
            feed.items.append(item)
