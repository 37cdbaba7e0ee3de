"""In-memory timeline state: ordered items, pagination cursors, and boosts.

A TimelineState lives for the life of the process, keyed by (user id, feed
key) in a TimelineStateRegistry, so a feed can be torn down and rebuilt
without losing what it has already loaded.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from feed_timeline.timeline.models import (
    Boost,
    TimelineItem,
    format_store_timestamp,
    parse_store_timestamp,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Cursors:
    """Newest and oldest store-native timestamps seen by a feed."""

    newest: str
    oldest: str


# Type aliases for callbacks
ItemsCallback = Callable[[list[TimelineItem]], None]
CursorCallback = Callable[[Cursors], None]


def merge_unique(
    existing: Sequence[TimelineItem] | None,
    incoming: Sequence[TimelineItem],
    *,
    prepend: bool,
) -> list[TimelineItem]:
    """Concatenate two batches, keep the first item per id, order newest first.

    The final sort is stable, so when the batches cover disjoint time ranges
    the concatenation order is preserved exactly.
    """
    first, second = (incoming, existing or ()) if prepend else (existing or (), incoming)
    seen: set[int] = set()
    merged: list[TimelineItem] = []
    for item in [*first, *second]:
        if item.id in seen:
            continue
        seen.add(item.id)
        merged.append(item)
    return sorted(merged, key=lambda i: -i.created_time)


def _later(a: str, b: str) -> str:
    return a if parse_store_timestamp(a) >= parse_store_timestamp(b) else b


def _earlier(a: str, b: str) -> str:
    return a if parse_store_timestamp(a) <= parse_store_timestamp(b) else b


class TimelineState:
    """Ordered, id-unique timeline items plus the cursor pair for one feed.

    ``items`` is None until the first merge; an empty list means the feed
    loaded and had nothing to show.
    """

    def __init__(
        self,
        *,
        now: datetime | None = None,
        on_items_change: ItemsCallback | None = None,
        on_cursor_change: CursorCallback | None = None,
    ) -> None:
        start = format_store_timestamp(now or datetime.now(UTC))
        self._items: list[TimelineItem] | None = None
        self._cursors = Cursors(newest=start, oldest=start)
        self._boosts: list[Boost] | None = None
        self._on_items_change = on_items_change
        self._on_cursor_change = on_cursor_change

    @property
    def items(self) -> list[TimelineItem] | None:
        return list(self._items) if self._items is not None else None

    @property
    def cursors(self) -> Cursors:
        return self._cursors

    @property
    def boosts(self) -> list[Boost] | None:
        return list(self._boosts) if self._boosts is not None else None

    def set_boosts(self, boosts: Sequence[Boost]) -> None:
        self._boosts = list(boosts)

    def set_callbacks(
        self,
        *,
        on_items_change: ItemsCallback | None = None,
        on_cursor_change: CursorCallback | None = None,
    ) -> None:
        self._on_items_change = on_items_change
        self._on_cursor_change = on_cursor_change

    def merge(
        self,
        items: Sequence[TimelineItem],
        *,
        new: bool = False,
        old: bool = False,
        oldest_consumed: str | None = None,
    ) -> list[TimelineItem]:
        """Merge a fetched batch into the cache.

        Cursor policy:
        - into an empty cache, both cursors come from the batch;
        - ``new`` batches move the newest cursor forward to the batch's first item;
        - non-new or ``old`` batches move the oldest cursor back to the batch's
          last item;
        - ``oldest_consumed``, when given, replaces the batch's last item as the
          oldest cursor candidate, so a backfill page advances the cursor even
          when every event on it was filtered out.
        The newest cursor never moves backward and the oldest never forward.

        Args:
            items: Batch of timeline items.
            new: The batch holds items newer than the cache (prepended).
            old: The batch holds backfilled older items (appended).
            oldest_consumed: Store timestamp of the oldest paged event the
                batch was built from.

        Returns:
            The merged item list.
        """
        was_empty = not self._items
        newest, oldest = self._cursors.newest, self._cursors.oldest
        if items:
            batch_newest = max(items, key=lambda i: i.created_time).created_timestamp
            batch_oldest = min(items, key=lambda i: i.created_time).created_timestamp
            if was_empty:
                newest, oldest = batch_newest, batch_oldest
            else:
                if new:
                    newest = _later(newest, batch_newest)
                if not new or old:
                    oldest = _earlier(oldest, batch_oldest)
        if oldest_consumed is not None:
            oldest = _earlier(self._cursors.oldest, oldest_consumed)

        cursors = Cursors(newest=newest, oldest=oldest)
        if cursors != self._cursors:
            self._cursors = cursors
            logger.debug("Cursors moved: newest=%s oldest=%s", newest, oldest)
            if self._on_cursor_change:
                self._on_cursor_change(cursors)

        self._items = merge_unique(self._items, items, prepend=new)
        if self._on_items_change:
            self._on_items_change(list(self._items))
        return list(self._items)


class TimelineStateRegistry:
    """Process-lifetime store of TimelineState keyed by (user id, feed key)."""

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))
        self._states: dict[tuple[str, str], TimelineState] = {}

    def get(self, user_id: str, feed_key: str) -> TimelineState:
        key = (user_id, feed_key)
        state = self._states.get(key)
        if state is None:
            state = TimelineState(now=self._clock())
            self._states[key] = state
        return state

    def drop(self, user_id: str, feed_key: str) -> bool:
        return self._states.pop((user_id, feed_key), None) is not None

    def clear(self) -> None:
        self._states.clear()

    def __len__(self) -> int:
        return len(self._states)
