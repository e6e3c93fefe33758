"""Command line entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Build the shared HTTP client and the feed store from Settings
- Dispatch ``get`` / ``list`` to the store and print the result
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

import structlog

from podcastproxy import __version__
from podcastproxy.config import Settings
from podcastproxy.errors import PodcastProxyError
from podcastproxy.fetcher import build_http_client
from podcastproxy.store import FeedStore, build_store

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [*shared_processors, structlog.processors.JSONRenderer()]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # Logs go to stderr: stdout carries the RSS document
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_get(store: FeedStore, args: argparse.Namespace) -> None:
    strategy = args.strategy or store.registry.default
    sys.stdout.write(store.rss(strategy, args.program))


def _cmd_list(store: FeedStore, args: argparse.Namespace) -> None:
    for program in store.list():
        print(f"{program.strategy}/{program.name}\t{program.feed.title}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="podcast-proxy",
        description="Build RSS feeds for radio programs from their HTML listings.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    commands = parser.add_subparsers(dest="command", required=True)

    get = commands.add_parser("get", help="merge a program's listing and print its RSS feed")
    get.add_argument("program", help="program slug, e.g. le-masque-et-la-plume")
    get.add_argument("--strategy", "-s", help="extraction strategy (default from config)")
    get.set_defaults(handler=_cmd_get)

    listing = commands.add_parser("list", help="re-merge and list every persisted program")
    listing.set_defaults(handler=_cmd_list)

    return parser


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = Settings()
    _setup_logging(settings)

    log.debug("podcast_proxy_starting", version=__version__, command=args.command)

    with build_http_client(settings.fetcher) as client:
        store = build_store(settings, client)
        try:
            args.handler(store, args)
        except PodcastProxyError as exc:
            log.error("command_failed", code=exc.code, message=exc.message)
            print(json.dumps(exc.to_dict()), file=sys.stderr)
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
