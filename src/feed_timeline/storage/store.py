"""Query-only event store adapter.

The controller talks to storage through the ``FeedStore`` protocol: filtered
reads of a user's feed log plus id lookups on the auxiliary collections.
``SqlFeedStore`` implements it over the SQLAlchemy repositories, opening one
session per call so independent lookups can run concurrently.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

from feed_timeline.storage.repos import (
    CommentRepository,
    ContractRepository,
    DisinterestRepository,
    FeedEventRepository,
    MarketAdDTO,
    MarketAdRepository,
    NewsRepository,
    UserEventRepository,
)
from feed_timeline.timeline.models import (
    Boost,
    Comment,
    Contract,
    FeedDataType,
    News,
    RawEvent,
    Viewer,
    parse_store_timestamp,
)

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from feed_timeline.storage.database import DatabaseManager

logger = logging.getLogger(__name__)

DEFAULT_BOOST_CACHE_TTL = 60


class FeedStoreError(Exception):
    """Raised when a store query cannot be built or executed."""


@dataclass(frozen=True)
class EventQuery:
    """Filter for reading a user's feed log. Time bounds are exclusive."""

    limit: int
    min_created_time: datetime | str | None = None
    max_created_time: datetime | str | None = None
    data_types: tuple[FeedDataType, ...] = ()
    unseen_only: bool = False
    exclude_ids: tuple[int, ...] = ()


class FeedStore(Protocol):
    """Read interface the timeline controller depends on."""

    async def query_events(self, user_id: str, query: EventQuery) -> list[RawEvent]: ...

    async def get_contracts(
        self, ids: Sequence[str], *, open_as_of: datetime
    ) -> list[Contract]: ...

    async def get_comments(self, ids: Sequence[str], *, min_likes: int) -> list[Comment]: ...

    async def get_news(self, ids: Sequence[str]) -> list[News]: ...

    async def get_disinterested_contract_ids(
        self, user_id: str, contract_ids: Sequence[str]
    ) -> list[str]: ...

    async def get_viewed_comment_ids(
        self, user_id: str, comment_ids: Sequence[str], *, since: datetime
    ) -> list[str]: ...

    async def get_boosts(self, viewer: Viewer | None) -> list[Boost]: ...


def _to_bound(value: datetime | str | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.astimezone(UTC) if value.tzinfo else value.replace(tzinfo=UTC)
    try:
        return parse_store_timestamp(value)
    except (TypeError, ValueError) as e:
        raise FeedStoreError(f"Malformed timestamp bound: {value!r}") from e


def _boost_from_dto(dto: MarketAdDTO) -> Boost:
    return Boost(
        ad_id=dto.id,
        market_id=dto.market_id,
        creator_id=dto.creator_id,
        funds=dto.funds,
        cost_per_view=dto.cost_per_view,
    )


def _is_boost_visible(viewer: Viewer | None, boost: Boost) -> bool:
    if viewer is None:
        return True
    return (
        boost.market_id not in viewer.blocked_contract_ids
        and boost.creator_id not in viewer.blocked_user_ids
        and boost.creator_id not in viewer.blocked_by_user_ids
    )


class SqlFeedStore:
    """FeedStore backed by SQLAlchemy, with an optional Redis boost cache.

    Example:
        ```python
        db = DatabaseManager("postgresql+asyncpg://localhost/feed")
        store = SqlFeedStore(db, redis=Redis.from_url("redis://localhost:6379"))
        events = await store.query_events("u1", EventQuery(limit=25))
        ```
    """

    def __init__(
        self,
        db: DatabaseManager,
        *,
        redis: Redis | None = None,
        boost_cache_ttl_seconds: int = DEFAULT_BOOST_CACHE_TTL,
        cache_prefix: str = "feed:",
    ) -> None:
        self._db = db
        self._redis = redis
        self._boost_cache_ttl = boost_cache_ttl_seconds
        self._boost_cache_key = f"{cache_prefix}boosts:active"

    async def query_events(self, user_id: str, query: EventQuery) -> list[RawEvent]:
        """Read a user's feed rows, newest first.

        Rows whose data type or reason is not recognized are skipped.

        Raises:
            FeedStoreError: If a time bound is not a valid timestamp.
        """
        min_created_time = _to_bound(query.min_created_time)
        max_created_time = _to_bound(query.max_created_time)
        async with self._db.get_async_session() as session:
            dtos = await FeedEventRepository(session).list_for_user(
                user_id,
                min_created_time=min_created_time,
                max_created_time=max_created_time,
                data_types=[t.value for t in query.data_types],
                unseen_only=query.unseen_only,
                exclude_ids=query.exclude_ids,
                limit=query.limit,
            )

        events: list[RawEvent] = []
        for dto in dtos:
            try:
                events.append(RawEvent.from_row(dto.to_row()))
            except ValueError as e:
                logger.warning("Skipping feed row %s for user %s: %s", dto.id, user_id, e)
        return events

    async def get_contracts(self, ids: Sequence[str], *, open_as_of: datetime) -> list[Contract]:
        if not ids:
            return []
        async with self._db.get_async_session() as session:
            dtos = await ContractRepository(session).list_open(
                ids, open_as_of=_to_bound(open_as_of) or open_as_of
            )
        contracts: list[Contract] = []
        for dto in dtos:
            document = {"creatorId": dto.creator_id, **dto.data, "id": dto.id}
            if dto.close_time is not None and "closeTime" not in document:
                document["closeTime"] = dto.close_time
            contracts.append(Contract.from_dict(document))
        return contracts

    async def get_comments(self, ids: Sequence[str], *, min_likes: int = 0) -> list[Comment]:
        if not ids:
            return []
        async with self._db.get_async_session() as session:
            dtos = await CommentRepository(session).list_liked(ids, min_likes=min_likes)
        return [Comment.from_dict(dto.to_document()) for dto in dtos]

    async def get_news(self, ids: Sequence[str]) -> list[News]:
        numeric_ids = [int(i) for i in ids if str(i).isdigit()]
        if not numeric_ids:
            return []
        async with self._db.get_async_session() as session:
            dtos = await NewsRepository(session).list_by_ids(numeric_ids)
        return [
            News(
                id=str(dto.id),
                title=dto.title,
                url=dto.url,
                url_to_image=dto.image_url,
                published_time=dto.published_time,
            )
            for dto in dtos
        ]

    async def get_disinterested_contract_ids(
        self, user_id: str, contract_ids: Sequence[str]
    ) -> list[str]:
        if not contract_ids:
            return []
        async with self._db.get_async_session() as session:
            return await DisinterestRepository(session).list_contract_ids(user_id, contract_ids)

    async def get_viewed_comment_ids(
        self, user_id: str, comment_ids: Sequence[str], *, since: datetime
    ) -> list[str]:
        if not comment_ids:
            return []
        async with self._db.get_async_session() as session:
            return await UserEventRepository(session).list_viewed_comment_ids(
                user_id, comment_ids, since=_to_bound(since) or since
            )

    async def get_boosts(self, viewer: Viewer | None) -> list[Boost]:
        """Active sponsored listings the viewer may see, best paying first."""
        boosts = await self._get_cached_boosts()
        if boosts is None:
            async with self._db.get_async_session() as session:
                dtos = await MarketAdRepository(session).list_active()
            boosts = [_boost_from_dto(dto) for dto in dtos]
            await self._cache_boosts(boosts)
        return [b for b in boosts if _is_boost_visible(viewer, b)]

    async def _get_cached_boosts(self) -> list[Boost] | None:
        if not self._redis:
            return None
        try:
            cached = await self._redis.get(self._boost_cache_key)
            if cached is None:
                return None
            data = json.loads(cached if isinstance(cached, str) else cached.decode())
            return [
                Boost(
                    ad_id=str(row["ad_id"]),
                    market_id=str(row["market_id"]),
                    creator_id=str(row["creator_id"]),
                    funds=float(row["funds"]),
                    cost_per_view=float(row["cost_per_view"]),
                )
                for row in data
            ]
        except Exception as e:
            logger.warning("Failed to read cached boosts: %s", e)
            return None

    async def _cache_boosts(self, boosts: list[Boost]) -> None:
        if not self._redis:
            return
        try:
            payload = [
                {
                    "ad_id": b.ad_id,
                    "market_id": b.market_id,
                    "creator_id": b.creator_id,
                    "funds": b.funds,
                    "cost_per_view": b.cost_per_view,
                }
                for b in boosts
            ]
            await self._redis.set(self._boost_cache_key, json.dumps(payload), ex=self._boost_cache_ttl)
        except Exception as e:
            logger.warning("Failed to cache boosts: %s", e)
