"""Feed store: the entry point into the core.

Resolves a program's extraction strategy, loads the program's persisted
feed as merge input, runs the merge and persists the result. The persisted
file is replaced atomically and only after a fully successful merge, so a
failed run leaves the previous state in place for the next request.
"""

from __future__ import annotations

import os
import re
import sys
from contextlib import suppress
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from podcastproxy.cache import ResourceCache
from podcastproxy.errors import DecodeError, InvalidInput, PodcastProxyError
from podcastproxy.fetcher import Fetcher
from podcastproxy.models.feed import Feed, Program
from podcastproxy.rss import parse_rss, render_rss
from podcastproxy.strategies import build_registry

if TYPE_CHECKING:
    import httpx

    from podcastproxy.config import Settings
    from podcastproxy.protocols import CacheProtocol
    from podcastproxy.strategies import StrategyRegistry

log = structlog.get_logger()

_PROGRAM_RE = re.compile(r"^[a-z0-9][a-z0-9_-]*$")
RSS_SUFFIX = ".rss"


def validate_program(name: str) -> str:
    """Program names become file names: accept lowercase slugs only."""
    if not _PROGRAM_RE.match(name):
        raise InvalidInput(
            f"Invalid program name: {name!r}",
            suggestion="Use the program slug from the source URL, e.g. 'le-masque-et-la-plume'.",
        )
    return name


class FeedStore:
    """Persisted feeds under ``<root>/rss/<strategy>/<program>.rss``."""

    def __init__(self, root: Path, registry: StrategyRegistry, cache: CacheProtocol) -> None:
        self.root = root
        self.rss_root = root / "rss"
        self.registry = registry
        self._cache = cache

    def path_for(self, strategy_name: str, program: str) -> Path:
        return self.rss_root / strategy_name / (program + RSS_SUFFIX)

    def load(self, strategy_name: str, program: str) -> Feed | None:
        """Return the persisted feed, or None when there is no usable one."""
        path = self.path_for(strategy_name, program)
        try:
            content = path.read_bytes()
        except FileNotFoundError:
            return None
        try:
            return parse_rss(content)
        except DecodeError:
            log.warning("persisted_feed_unreadable", path=str(path), exc_info=True)
            return None

    def get(self, strategy_name: str, program: str) -> Program:
        """Merge the program's live listing into its persisted feed and persist the result."""
        validate_program(program)
        strategy = self.registry.resolve(strategy_name)
        prior = self.load(strategy.name, program)

        store_log = log.bind(strategy=strategy.name, program=program)
        store_log.info("program_fetch_started", prior_items=len(prior.items) if prior else 0)

        feed = strategy.fetch(self._cache, program, prior)
        self._save(self.path_for(strategy.name, program), render_rss(feed))

        store_log.info("program_fetch_complete", items=len(feed.items))
        return Program(name=program, strategy=strategy.name, feed=feed)

    def rss(self, strategy_name: str, program: str) -> str:
        return self.get(strategy_name, program).rss()

    def list(self) -> list[Program]:
        """Re-merge every persisted program of every registered strategy.

        Not a cheap read: each program is crawled live. Programs whose merge
        or save fails are logged and left out.
        """
        programs: list[Program] = []
        if not self.rss_root.is_dir():
            return programs

        for strategy_dir in sorted(self.rss_root.iterdir()):
            if not strategy_dir.is_dir():
                continue
            if strategy_dir.name not in self.registry.by_name:
                log.warning("store_unknown_strategy_dir", path=str(strategy_dir))
                continue
            for path in sorted(strategy_dir.glob("*" + RSS_SUFFIX)):
                name = path.name[: -len(RSS_SUFFIX)]
                try:
                    programs.append(self.get(strategy_dir.name, name))
                except PodcastProxyError as exc:
                    log.warning(
                        "store_list_program_failed",
                        strategy=strategy_dir.name,
                        program=name,
                        code=exc.code,
                        reason=exc.message,
                    )
                except OSError as exc:
                    log.warning(
                        "store_list_program_failed",
                        strategy=strategy_dir.name,
                        program=name,
                        reason=str(exc),
                    )
        return programs

    def _save(self, path: Path, rss: str) -> None:
        """Replace ``path`` atomically with the rendered feed."""
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            _write_bytes_fsync(tmp_path, rss.encode("utf-8"))
            os.replace(tmp_path, path)
            _fsync_directory(path.parent)
        finally:
            with suppress(OSError):
                tmp_path.unlink(missing_ok=True)


def build_store(settings: Settings, client: httpx.Client) -> FeedStore:
    """Wire cache, registry and store from settings around a shared client."""
    cache = ResourceCache(settings.cache_dir, Fetcher(client), ttl_hours=settings.cache.ttl_hours)
    registry = build_registry(settings.strategies, default=settings.store.default_strategy)
    return FeedStore(Path(settings.data_dir).expanduser(), registry, cache)


def _write_bytes_fsync(path: Path, data: bytes) -> None:
    with path.open("wb") as file_obj:
        file_obj.write(data)
        file_obj.flush()
        os.fsync(file_obj.fileno())


def _fsync_directory(path: Path) -> None:
    if sys.platform == "win32":
        return  # Windows does not support fsync on directory handles
    directory_fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(directory_fd)
    finally:
        os.close(directory_fd)
