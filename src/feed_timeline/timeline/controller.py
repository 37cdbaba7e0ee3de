"""Incremental fetch controller for a user's feed timeline.

This module provides the FeedTimelineController, which pages through a
user's feed log (newer-than-cursor, or backfill of unseen older events),
enriches each batch with contracts, comments and news, filters it, builds
timeline items and merges them into the per-feed TimelineState.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, TypeVar

from feed_timeline.storage.store import EventQuery
from feed_timeline.timeline.builder import build_timeline_items
from feed_timeline.timeline.filters import (
    DEFAULT_TUNING,
    cached_contract_ids,
    cached_news_ids,
    filter_new_comments,
    filter_new_contracts,
)
from feed_timeline.timeline.models import (
    HIGH_SIGNAL_DATA_TYPES,
    Boost,
    Comment,
    Contract,
    FeedTuning,
    RawEvent,
    TimelineItem,
    Viewer,
)

if TYPE_CHECKING:
    from feed_timeline.storage.store import FeedStore
    from feed_timeline.timeline.cache import TimelineState

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FetchState(str, Enum):
    """Whether a controller has a fetch in flight."""

    IDLE = "idle"
    FETCHING = "fetching"


@dataclass
class FetchStats:
    """Counters for the fetches a controller has performed."""

    fetches: int = 0
    dropped_requests: int = 0
    store_failures: int = 0
    items_built: int = 0


@dataclass
class FetchedPage:
    """Items built from one fetch, plus how far back the paged query read.

    ``oldest_consumed`` is the store timestamp of the oldest event returned by
    the cursor-bounded backfill query; None for newer fetches, or when that
    query returned nothing.
    """

    items: list[TimelineItem]
    oldest_consumed: str | None = None


# Type alias for callbacks
StateCallback = Callable[[FetchState], None]


def _unique(values: Sequence[str | None]) -> list[str]:
    return list(dict.fromkeys(v for v in values if v))


def first_comment_per_author(events: Sequence[RawEvent]) -> list[str]:
    """First comment id per comment author, in event order.

    Rows without a creator id are not collapsed.
    """
    by_author: dict[str, str] = {}
    for event in events:
        if not event.comment_id:
            continue
        key = event.creator_id or f"comment:{event.comment_id}"
        by_author.setdefault(key, event.comment_id)
    return _unique(list(by_author.values()))


def saved_contracts_for_comments(
    comments: Sequence[Comment],
    saved_items: Sequence[TimelineItem] | None,
) -> list[Contract]:
    """Cached contracts that the given comments belong to."""
    saved: dict[str, Contract] = {}
    for item in saved_items or ():
        if item.contract is not None:
            saved.setdefault(item.contract.id, item.contract)
    return [saved[c.contract_id] for c in comments if c.contract_id in saved]


class FeedTimelineController:
    """Fetches, enriches and merges feed pages for one user and feed.

    At most one fetch runs at a time per controller; a request made while
    another fetch is in flight returns nothing instead of queueing.

    Example:
        ```python
        state = registry.get(user.id, "home")
        controller = FeedTimelineController(store, state, user_id=user.id, viewer=viewer)
        await controller.bootstrap()
        newer = await controller.check_for_newer()
        ```
    """

    def __init__(
        self,
        store: FeedStore,
        state: TimelineState,
        *,
        user_id: str,
        viewer: Viewer | None = None,
        tuning: FeedTuning = DEFAULT_TUNING,
        clock: Callable[[], datetime] | None = None,
        on_state_change: StateCallback | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            store: Read-only feed store.
            state: Cached timeline for this (user, feed key).
            user_id: Owner of the feed log.
            viewer: Block lists applied to fetched content.
            tuning: Page sizes, horizons and thresholds.
            clock: Source of "now" (defaults to the UTC wall clock).
            on_state_change: Callback for fetch state changes.
        """
        self._store = store
        self._state = state
        self._user_id = user_id
        self._viewer = viewer
        self._tuning = tuning
        self._clock = clock or (lambda: datetime.now(UTC))
        self._on_state_change = on_state_change

        self._fetch_state = FetchState.IDLE
        self._stats = FetchStats()

    @property
    def fetch_state(self) -> FetchState:
        return self._fetch_state

    @property
    def stats(self) -> FetchStats:
        return self._stats

    @property
    def saved_feed_items(self) -> list[TimelineItem] | None:
        """Cached items, or None before anything has been loaded."""
        return self._state.items

    @property
    def boosts(self) -> list[Boost] | None:
        """Loaded boosts minus those promoting a market already in the feed."""
        boosts = self._state.boosts
        if boosts is None:
            return None
        in_feed = cached_contract_ids(self._state.items)
        return [b for b in boosts if b.market_id not in in_feed]

    def _set_state(self, new_state: FetchState) -> None:
        """Update state and notify callback."""
        old_state = self._fetch_state
        self._fetch_state = new_state
        if self._on_state_change and old_state != new_state:
            try:
                self._on_state_change(new_state)
            except Exception as e:
                logger.warning("Fetch state callback failed: %s", e)

    def _degrade(self, label: str, result: T | BaseException, default: T) -> T:
        if isinstance(result, BaseException):
            self._stats.store_failures += 1
            logger.warning("Feed store query %s failed for user %s: %s", label, self._user_id, result)
            return default
        return result

    async def _safe(self, label: str, awaitable: Awaitable[T], default: T) -> T:
        try:
            return await awaitable
        except Exception as e:
            return self._degrade(label, e, default)

    async def fetch_feed_items(
        self,
        *,
        newer_than: str | None = None,
        old: bool = False,
    ) -> list[TimelineItem]:
        """Fetch and build one page of timeline items without touching the cache.

        Args:
            newer_than: Only events strictly newer than this store timestamp.
            old: Backfill unseen events within the horizon, high-signal first,
                strictly older than the oldest cursor.

        Returns:
            Built items, newest first; empty when another fetch is in flight.
        """
        page = await self._gated_fetch(newer_than=newer_than, old=old)
        return page.items if page else []

    async def _gated_fetch(self, *, newer_than: str | None, old: bool) -> FetchedPage | None:
        if self._fetch_state == FetchState.FETCHING:
            self._stats.dropped_requests += 1
            logger.debug("Fetch already in flight for user %s; dropping request", self._user_id)
            return None

        self._set_state(FetchState.FETCHING)
        try:
            page = await self._fetch(newer_than=newer_than, old=old)
        finally:
            self._set_state(FetchState.IDLE)

        self._stats.fetches += 1
        self._stats.items_built += len(page.items)
        return page

    async def _query_events(
        self, now: datetime, *, newer_than: str | None, old: bool
    ) -> tuple[list[RawEvent], str | None]:
        """Read one page of events and the oldest cursor-bounded timestamp read.

        High-signal rows are bounded by the horizon only, so they never
        contribute to the oldest timestamp.
        """
        tuning = self._tuning
        if not old:
            query = EventQuery(limit=tuning.page_size, min_created_time=newer_than)
            events = await self._safe("user_feed", self._store.query_events(self._user_id, query), [])
            return events, None

        horizon = now - tuning.unseen_horizon
        high_signal = await self._safe(
            "user_feed (high signal)",
            self._store.query_events(
                self._user_id,
                EventQuery(
                    limit=tuning.high_signal_limit,
                    min_created_time=horizon,
                    data_types=HIGH_SIGNAL_DATA_TYPES,
                    unseen_only=True,
                ),
            ),
            [],
        )
        general = await self._safe(
            "user_feed",
            self._store.query_events(
                self._user_id,
                EventQuery(
                    limit=tuning.page_size,
                    min_created_time=horizon,
                    max_created_time=self._state.cursors.oldest,
                    unseen_only=True,
                    exclude_ids=tuple(e.id for e in high_signal),
                ),
            ),
            [],
        )
        oldest_consumed = (
            min(general, key=lambda e: e.created_time).created_timestamp if general else None
        )
        return high_signal + general, oldest_consumed

    async def _fetch(self, *, newer_than: str | None, old: bool) -> FetchedPage:
        now = self._clock()
        events, oldest_consumed = await self._query_events(now, newer_than=newer_than, old=old)
        if not events:
            return FetchedPage(items=[])

        saved_items = self._state.items
        saved_contract_ids = cached_contract_ids(saved_items)
        saved_news_ids = cached_news_ids(saved_items)

        contract_ids = _unique(
            [e.contract_id for e in events if e.contract_id not in saved_contract_ids]
        )
        comment_ids = first_comment_per_author(events)
        news_ids = _unique([e.news_id for e in events if e.news_id not in saved_news_ids])
        potentially_seen_comment_ids = (
            _unique([e.comment_id for e in events if e.seen_time is None]) if old else []
        )

        results = await asyncio.gather(
            self._store.get_contracts(contract_ids, open_as_of=now),
            self._store.get_comments(comment_ids, min_likes=self._tuning.min_comment_likes),
            self._store.get_news(news_ids),
            self._store.get_disinterested_contract_ids(self._user_id, contract_ids),
            self._store.get_viewed_comment_ids(
                self._user_id,
                potentially_seen_comment_ids,
                since=now - self._tuning.seen_comment_window,
            ),
            return_exceptions=True,
        )
        contracts = self._degrade("contracts", results[0], [])
        comments = self._degrade("contract_comments", results[1], [])
        news = self._degrade("news", results[2], [])
        disinterested = self._degrade("user_disinterests", results[3], [])
        seen_comment_ids = self._degrade("user_events", results[4], [])

        new_contracts = filter_new_contracts(
            contracts, viewer=self._viewer, disinterested_contract_ids=disinterested
        )
        new_comments = filter_new_comments(
            comments, viewer=self._viewer, seen_comment_ids=seen_comment_ids
        )
        # New comments on markets already in the feed still get an item.
        new_contracts += saved_contracts_for_comments(new_comments, saved_items)

        items = build_timeline_items(
            events, new_contracts, new_comments, news, now=now, tuning=self._tuning
        )
        logger.debug(
            "Built %d items from %d events for user %s (old=%s)",
            len(items),
            len(events),
            self._user_id,
            old,
        )
        return FetchedPage(items=items, oldest_consumed=oldest_consumed)

    def add_timeline_items(
        self,
        items: Sequence[TimelineItem],
        *,
        new: bool = False,
        old: bool = False,
        oldest_consumed: str | None = None,
    ) -> list[TimelineItem]:
        """Merge items into the cache and move the cursors."""
        return self._state.merge(items, new=new, old=old, oldest_consumed=oldest_consumed)

    async def load_more(self, *, old: bool = False, newer_than: str | None = None) -> int:
        """Fetch one page and merge it into the cache.

        Returns:
            Number of items fetched (0 when the request was dropped).
        """
        page = await self._gated_fetch(newer_than=newer_than, old=old)
        if page is None:
            return 0
        self.add_timeline_items(page.items, old=old, oldest_consumed=page.oldest_consumed)
        return len(page.items)

    async def load_more_older(self) -> int:
        return await self.load_more(old=True)

    async def check_for_newer(self) -> list[TimelineItem]:
        """Fetch items newer than the newest cursor without merging them."""
        return await self.fetch_feed_items(newer_than=self._state.cursors.newest)

    async def load_newer(self) -> int:
        """Fetch items newer than the newest cursor and prepend them."""
        page = await self._gated_fetch(newer_than=self._state.cursors.newest, old=False)
        if page is None:
            return 0
        self.add_timeline_items(page.items, new=True)
        return len(page.items)

    async def bootstrap(self) -> int:
        """Fill an empty cache with backfill pages.

        Keeps fetching older pages until one yields enough items or the
        attempt budget runs out. Does nothing when the cache already holds
        items.

        Returns:
            Number of fetches performed.
        """
        if self._state.items:
            return 0

        attempts = 0
        fetches = 0
        while attempts < self._tuning.bootstrap_max_attempts:
            loaded = await self.load_more(old=True)
            fetches += 1
            if loaded >= self._tuning.bootstrap_min_items:
                break
            attempts += 1

        logger.info(
            "Bootstrapped feed for user %s: %d fetches, %d items",
            self._user_id,
            fetches,
            len(self._state.items or []),
        )
        return fetches

    async def refresh_boosts(self) -> list[Boost]:
        """Reload sponsored listings into the cache.

        Returns:
            Boosts not promoting a market already in the feed.
        """
        boosts = await self._safe("market_ads", self._store.get_boosts(self._viewer), [])
        self._state.set_boosts(boosts)
        return self.boosts or []
