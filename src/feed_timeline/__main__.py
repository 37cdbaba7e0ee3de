"""Command line entry point.

Usage:
    python -m feed_timeline show --user-id U [--feed-key K] [--pages N]
    python -m feed_timeline newer --user-id U --since TIMESTAMP
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from redis.asyncio import Redis

from feed_timeline.config import Settings, get_settings
from feed_timeline.storage.database import DatabaseManager
from feed_timeline.storage.store import SqlFeedStore
from feed_timeline.timeline.cache import TimelineStateRegistry
from feed_timeline.timeline.controller import FeedTimelineController
from feed_timeline.timeline.models import (
    TimelineItem,
    Viewer,
    format_store_timestamp,
    parse_store_timestamp,
)

logger = logging.getLogger(__name__)


def store_timestamp(value: str) -> str:
    """argparse type for ISO-8601 timestamps, normalized to the store form."""
    try:
        return format_store_timestamp(parse_store_timestamp(value))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid timestamp: {value!r}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="feed_timeline", description="Feed timeline reader")
    subparsers = parser.add_subparsers(dest="command", required=True)

    show = subparsers.add_parser("show", help="Bootstrap a feed and print its items as JSON lines")
    show.add_argument("--user-id", required=True)
    show.add_argument("--feed-key", default=None, help="Feed key (default: FEED_DEFAULT_KEY)")
    show.add_argument(
        "--pages", type=int, default=0, help="Extra backfill pages to load after bootstrap"
    )

    newer = subparsers.add_parser("newer", help="Print items created after a timestamp")
    newer.add_argument("--user-id", required=True)
    newer.add_argument("--feed-key", default=None)
    newer.add_argument(
        "--since",
        type=store_timestamp,
        required=True,
        help="Only events strictly newer than this ISO-8601 timestamp",
    )
    return parser


async def collect_items(
    controller: FeedTimelineController, args: argparse.Namespace
) -> list[TimelineItem]:
    """Run the requested command against a controller and return the items to print."""
    if args.command == "newer":
        return await controller.fetch_feed_items(newer_than=args.since)

    await controller.bootstrap()
    for _ in range(args.pages):
        if not await controller.load_more_older():
            break
    return controller.saved_feed_items or []


async def run(args: argparse.Namespace, settings: Settings) -> int:
    db = DatabaseManager(
        settings.database.url,
        pool_size=settings.database.pool_size,
        echo=settings.database.echo,
    )
    redis = Redis.from_url(settings.redis.url) if settings.redis.url else None
    store = SqlFeedStore(
        db,
        redis=redis,
        boost_cache_ttl_seconds=settings.redis.boost_cache_ttl_seconds,
        cache_prefix=settings.redis.key_prefix,
    )
    registry = TimelineStateRegistry()
    feed_key = args.feed_key or settings.feed.default_key
    controller = FeedTimelineController(
        store,
        registry.get(args.user_id, feed_key),
        user_id=args.user_id,
        viewer=Viewer(user_id=args.user_id),
        tuning=settings.feed.to_tuning(),
    )

    try:
        items = await collect_items(controller, args)
        for item in items:
            sys.stdout.write(json.dumps(item.to_dict()) + "\n")
        logger.info("Printed %d items for user %s (feed %s)", len(items), args.user_id, feed_key)
    finally:
        if redis is not None:
            await redis.aclose()
        await db.dispose_async()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.get_logging_level(),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        stream=sys.stderr,
    )
    logger.debug("Settings: %s", settings.redacted_summary())
    return asyncio.run(run(args, settings))


if __name__ == "__main__":
    sys.exit(main())
