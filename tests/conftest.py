"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from feed_timeline.storage.store import EventQuery
from feed_timeline.timeline.cache import TimelineState
from feed_timeline.timeline.models import (
    Boost,
    Comment,
    Contract,
    FeedDataType,
    FeedReasonType,
    News,
    RawEvent,
    Viewer,
    parse_store_timestamp,
)

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=UTC)


def _bound(value: datetime | str | None) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return parse_store_timestamp(value)


class FakeFeedStore:
    """In-memory FeedStore that applies the same filters as the SQL store."""

    def __init__(self) -> None:
        self.events: list[RawEvent] = []
        self.contracts: dict[str, Contract] = {}
        self.comments: dict[str, Comment] = {}
        self.news: dict[str, News] = {}
        self.disinterested: set[str] = set()
        self.viewed_comment_ids: set[str] = set()
        self.boosts: list[Boost] = []
        self.failing: set[str] = set()
        self.gate: asyncio.Event | None = None
        self.queries: list[EventQuery] = []
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if name in self.failing:
            raise RuntimeError(f"{name} unavailable")

    async def query_events(self, user_id: str, query: EventQuery) -> list[RawEvent]:
        self.queries.append(query)
        if self.gate is not None:
            await self.gate.wait()
        self._record("query_events", user_id, query)
        lower = _bound(query.min_created_time)
        upper = _bound(query.max_created_time)
        rows = []
        for event in self.events:
            ts = parse_store_timestamp(event.created_timestamp)
            if lower is not None and not ts > lower:
                continue
            if upper is not None and not ts < upper:
                continue
            if query.data_types and event.data_type not in query.data_types:
                continue
            if query.unseen_only and event.seen_time is not None:
                continue
            if event.id in query.exclude_ids:
                continue
            rows.append(event)
        rows.sort(key=lambda e: (e.created_time, e.id), reverse=True)
        return rows[: query.limit]

    async def get_contracts(self, ids: Sequence[str], *, open_as_of: datetime) -> list[Contract]:
        self._record("get_contracts", list(ids))
        return [
            self.contracts[i]
            for i in ids
            if i in self.contracts
            and not self.contracts[i].is_resolved
            and self.contracts[i].close_time is not None
            and self.contracts[i].close_time > open_as_of
        ]

    async def get_comments(self, ids: Sequence[str], *, min_likes: int) -> list[Comment]:
        self._record("get_comments", list(ids))
        return [self.comments[i] for i in ids if i in self.comments and self.comments[i].likes > min_likes]

    async def get_news(self, ids: Sequence[str]) -> list[News]:
        self._record("get_news", list(ids))
        return [self.news[i] for i in ids if i in self.news]

    async def get_disinterested_contract_ids(
        self, user_id: str, contract_ids: Sequence[str]
    ) -> list[str]:
        self._record("get_disinterested_contract_ids", list(contract_ids))
        return [c for c in contract_ids if c in self.disinterested]

    async def get_viewed_comment_ids(
        self, user_id: str, comment_ids: Sequence[str], *, since: datetime
    ) -> list[str]:
        self._record("get_viewed_comment_ids", list(comment_ids))
        return [c for c in comment_ids if c in self.viewed_comment_ids]

    async def get_boosts(self, viewer: Viewer | None) -> list[Boost]:
        self._record("get_boosts")
        return list(self.boosts)


@pytest.fixture
def now() -> datetime:
    """Fixed reference time for tests."""
    return NOW


@pytest.fixture
def fake_store() -> FakeFeedStore:
    return FakeFeedStore()


@pytest.fixture
def timeline_state(now: datetime) -> TimelineState:
    return TimelineState(now=now)


@pytest.fixture
def make_event(now: datetime) -> Callable[..., RawEvent]:
    """Factory for feed events; ``age`` is how long before ``now`` it was created."""

    def _make(
        event_id: int,
        *,
        data_type: FeedDataType = FeedDataType.NEW_CONTRACT,
        reason: FeedReasonType = FeedReasonType.FOLLOW_CONTRACT,
        age: timedelta | None = None,
        contract_id: str | None = None,
        comment_id: str | None = None,
        news_id: str | None = None,
        creator_id: str | None = None,
        seen_time: datetime | None = None,
        data: dict[str, Any] | None = None,
    ) -> RawEvent:
        return RawEvent.from_row(
            {
                "id": event_id,
                "data_type": data_type.value,
                "reason": reason.value,
                "created_time": now - (age if age is not None else timedelta(minutes=event_id)),
                "contract_id": contract_id,
                "comment_id": comment_id,
                "news_id": news_id,
                "creator_id": creator_id,
                "seen_time": seen_time,
                "data": data or {},
            }
        )

    return _make


@pytest.fixture
def make_contract(now: datetime) -> Callable[..., Contract]:
    def _make(
        contract_id: str,
        *,
        prob: float = 0.7,
        prob_changes: dict[str, float] | None = None,
        age: timedelta = timedelta(days=10),
        close_in: timedelta = timedelta(days=30),
        is_resolved: bool = False,
        mechanism: str = "cpmm-1",
        creator_id: str = "creator-1",
        group_slugs: tuple[str, ...] = (),
    ) -> Contract:
        return Contract(
            id=contract_id,
            creator_id=creator_id,
            question=f"Will {contract_id} happen?",
            created_time=now - age,
            mechanism=mechanism,
            prob=prob,
            prob_changes=prob_changes or {"day": 0.0},
            close_time=now + close_in,
            is_resolved=is_resolved,
            creator_avatar_url=f"https://avatars.example/{creator_id}.png",
            slug=contract_id,
            group_slugs=group_slugs,
        )

    return _make


@pytest.fixture
def make_comment(now: datetime) -> Callable[..., Comment]:
    def _make(
        comment_id: str,
        contract_id: str,
        *,
        user_id: str = "commenter-1",
        likes: int = 3,
        hidden: bool = False,
        node_types: Sequence[str] = ("paragraph",),
    ) -> Comment:
        return Comment(
            id=comment_id,
            contract_id=contract_id,
            user_id=user_id,
            created_time=now - timedelta(hours=1),
            content={"type": "doc", "content": [{"type": t} for t in node_types]},
            user_avatar_url=f"https://avatars.example/{user_id}.png",
            likes=likes,
            hidden=hidden,
        )

    return _make
