"""Repository pattern implementations for data access.

This module provides clean data access abstractions for the user feed log
and the auxiliary collections it is enriched from: contracts, comments,
news, disinterest markers, user events and sponsored listings.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from feed_timeline.storage.models import (
    ContractCommentModel,
    ContractModel,
    MarketAdModel,
    NewsModel,
    UserDisinterestModel,
    UserEventModel,
    UserFeedModel,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

VIEW_COMMENT_THREAD_EVENT = "view comment thread"


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops the offset on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@dataclass
class FeedEventDTO:
    """Data transfer object for user feed rows."""

    user_id: str
    data_type: str
    reason: str
    created_time: datetime
    contract_id: str | None = None
    comment_id: str | None = None
    news_id: str | None = None
    creator_id: str | None = None
    seen_time: datetime | None = None
    is_copied: bool = False
    data: dict[str, Any] = field(default_factory=dict)
    id: int | None = None

    @classmethod
    def from_model(cls, model: UserFeedModel) -> FeedEventDTO:
        return cls(
            id=model.id,
            user_id=model.user_id,
            data_type=model.data_type,
            reason=model.reason,
            created_time=as_utc(model.created_time) or model.created_time,
            contract_id=model.contract_id,
            comment_id=model.comment_id,
            news_id=model.news_id,
            creator_id=model.creator_id,
            seen_time=as_utc(model.seen_time),
            is_copied=model.is_copied,
            data=dict(model.data or {}),
        )

    def to_row(self) -> dict[str, Any]:
        """Row shape consumed by ``RawEvent.from_row``."""
        return {
            "id": self.id,
            "data_type": self.data_type,
            "reason": self.reason,
            "created_time": self.created_time,
            "contract_id": self.contract_id,
            "comment_id": self.comment_id,
            "news_id": self.news_id,
            "creator_id": self.creator_id,
            "seen_time": self.seen_time,
            "is_copied": self.is_copied,
            "data": self.data,
        }


class FeedEventRepository:
    """Repository for the per-user feed event log."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert(self, dto: FeedEventDTO) -> FeedEventDTO:
        model = UserFeedModel(
            user_id=dto.user_id,
            data_type=dto.data_type,
            reason=dto.reason,
            created_time=dto.created_time,
            contract_id=dto.contract_id,
            comment_id=dto.comment_id,
            news_id=dto.news_id,
            creator_id=dto.creator_id,
            seen_time=dto.seen_time,
            is_copied=dto.is_copied,
            data=dto.data,
        )
        self.session.add(model)
        await self.session.flush()
        dto.id = model.id
        return dto

    async def list_for_user(
        self,
        user_id: str,
        *,
        min_created_time: datetime | None = None,
        max_created_time: datetime | None = None,
        data_types: Sequence[str] | None = None,
        unseen_only: bool = False,
        exclude_ids: Sequence[int] = (),
        limit: int = 25,
    ) -> list[FeedEventDTO]:
        """List a user's feed rows, newest first.

        Both time bounds are exclusive.
        """
        stmt = select(UserFeedModel).where(UserFeedModel.user_id == user_id)
        if min_created_time is not None:
            stmt = stmt.where(UserFeedModel.created_time > min_created_time)
        if max_created_time is not None:
            stmt = stmt.where(UserFeedModel.created_time < max_created_time)
        if data_types:
            stmt = stmt.where(UserFeedModel.data_type.in_(list(data_types)))
        if unseen_only:
            stmt = stmt.where(UserFeedModel.seen_time.is_(None))
        if exclude_ids:
            stmt = stmt.where(UserFeedModel.id.not_in(list(exclude_ids)))
        stmt = stmt.order_by(UserFeedModel.created_time.desc(), UserFeedModel.id.desc()).limit(limit)

        result = await self.session.execute(stmt)
        return [FeedEventDTO.from_model(m) for m in result.scalars().all()]


@dataclass
class ContractDTO:
    """Data transfer object for contracts."""

    id: str
    creator_id: str
    data: dict[str, Any]
    resolution_time: datetime | None = None
    close_time: datetime | None = None

    @classmethod
    def from_model(cls, model: ContractModel) -> ContractDTO:
        return cls(
            id=model.id,
            creator_id=model.creator_id,
            data=dict(model.data or {}),
            resolution_time=as_utc(model.resolution_time),
            close_time=as_utc(model.close_time),
        )


class ContractRepository:
    """Repository for contracts."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def upsert(self, dto: ContractDTO) -> ContractDTO:
        model = await self.session.get(ContractModel, dto.id)
        if model is None:
            model = ContractModel(id=dto.id)
            self.session.add(model)
        model.creator_id = dto.creator_id
        model.data = dto.data
        model.resolution_time = dto.resolution_time
        model.close_time = dto.close_time
        await self.session.flush()
        return dto

    async def list_open(self, ids: Sequence[str], *, open_as_of: datetime) -> list[ContractDTO]:
        """Unresolved contracts among ``ids`` that close after ``open_as_of``."""
        if not ids:
            return []
        result = await self.session.execute(
            select(ContractModel).where(
                ContractModel.id.in_(list(ids)),
                ContractModel.resolution_time.is_(None),
                ContractModel.close_time > open_as_of,
            )
        )
        return [ContractDTO.from_model(m) for m in result.scalars().all()]


@dataclass
class CommentDTO:
    """Data transfer object for contract comments."""

    comment_id: str
    contract_id: str
    user_id: str
    likes: int
    data: dict[str, Any]

    @classmethod
    def from_model(cls, model: ContractCommentModel) -> CommentDTO:
        return cls(
            comment_id=model.comment_id,
            contract_id=model.contract_id,
            user_id=model.user_id,
            likes=model.likes,
            data=dict(model.data or {}),
        )

    def to_document(self) -> dict[str, Any]:
        """Stored document with the indexed columns folded back in."""
        return {
            **self.data,
            "id": self.comment_id,
            "contractId": self.contract_id,
            "userId": self.user_id,
            "likes": self.likes,
        }


class CommentRepository:
    """Repository for contract comments."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert(self, dto: CommentDTO) -> CommentDTO:
        self.session.add(
            ContractCommentModel(
                comment_id=dto.comment_id,
                contract_id=dto.contract_id,
                user_id=dto.user_id,
                likes=dto.likes,
                data=dto.data,
            )
        )
        await self.session.flush()
        return dto

    async def list_liked(self, ids: Sequence[str], *, min_likes: int = 0) -> list[CommentDTO]:
        """Comments among ``ids`` with strictly more than ``min_likes`` likes."""
        if not ids:
            return []
        result = await self.session.execute(
            select(ContractCommentModel).where(
                ContractCommentModel.comment_id.in_(list(ids)),
                ContractCommentModel.likes > min_likes,
            )
        )
        return [CommentDTO.from_model(m) for m in result.scalars().all()]


@dataclass
class NewsDTO:
    """Data transfer object for news articles."""

    title: str
    url: str
    image_url: str | None = None
    published_time: datetime | None = None
    id: int | None = None

    @classmethod
    def from_model(cls, model: NewsModel) -> NewsDTO:
        return cls(
            id=model.id,
            title=model.title,
            url=model.url,
            image_url=model.image_url,
            published_time=as_utc(model.published_time),
        )


class NewsRepository:
    """Repository for news articles."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert(self, dto: NewsDTO) -> NewsDTO:
        model = NewsModel(
            id=dto.id,
            title=dto.title,
            url=dto.url,
            image_url=dto.image_url,
            published_time=dto.published_time,
        )
        self.session.add(model)
        await self.session.flush()
        dto.id = model.id
        return dto

    async def list_by_ids(self, ids: Sequence[int]) -> list[NewsDTO]:
        if not ids:
            return []
        result = await self.session.execute(select(NewsModel).where(NewsModel.id.in_(list(ids))))
        return [NewsDTO.from_model(m) for m in result.scalars().all()]


class DisinterestRepository:
    """Repository for per-user contract disinterest markers."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add(self, user_id: str, contract_id: str) -> None:
        self.session.add(UserDisinterestModel(user_id=user_id, contract_id=contract_id))
        await self.session.flush()

    async def list_contract_ids(self, user_id: str, contract_ids: Sequence[str]) -> list[str]:
        if not contract_ids:
            return []
        result = await self.session.execute(
            select(UserDisinterestModel.contract_id)
            .where(
                UserDisinterestModel.user_id == user_id,
                UserDisinterestModel.contract_id.in_(list(contract_ids)),
            )
            .distinct()
        )
        return list(result.scalars().all())


class UserEventRepository:
    """Repository for tracked user interactions."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def record(
        self,
        user_id: str,
        name: str,
        *,
        ts: datetime,
        contract_id: str | None = None,
        comment_id: str | None = None,
    ) -> None:
        self.session.add(
            UserEventModel(
                user_id=user_id,
                name=name,
                ts=ts,
                contract_id=contract_id,
                comment_id=comment_id,
            )
        )
        await self.session.flush()

    async def list_viewed_comment_ids(
        self,
        user_id: str,
        comment_ids: Sequence[str],
        *,
        since: datetime,
    ) -> list[str]:
        """Comment ids whose thread the user opened after ``since``."""
        if not comment_ids:
            return []
        result = await self.session.execute(
            select(UserEventModel.comment_id)
            .where(
                UserEventModel.user_id == user_id,
                UserEventModel.name == VIEW_COMMENT_THREAD_EVENT,
                UserEventModel.comment_id.in_(list(comment_ids)),
                UserEventModel.ts > since,
            )
            .distinct()
        )
        return [c for c in result.scalars().all() if c is not None]


@dataclass
class MarketAdDTO:
    """Data transfer object for sponsored listings."""

    id: str
    market_id: str
    creator_id: str
    funds: float
    cost_per_view: float

    @classmethod
    def from_model(cls, model: MarketAdModel) -> MarketAdDTO:
        return cls(
            id=model.id,
            market_id=model.market_id,
            creator_id=model.creator_id,
            funds=model.funds,
            cost_per_view=model.cost_per_view,
        )


class MarketAdRepository:
    """Repository for sponsored listings."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert(self, dto: MarketAdDTO) -> MarketAdDTO:
        self.session.add(
            MarketAdModel(
                id=dto.id,
                market_id=dto.market_id,
                creator_id=dto.creator_id,
                funds=dto.funds,
                cost_per_view=dto.cost_per_view,
            )
        )
        await self.session.flush()
        return dto

    async def list_active(self) -> list[MarketAdDTO]:
        """Listings with funds for at least one more view, best paying first."""
        result = await self.session.execute(
            select(MarketAdModel)
            .where(MarketAdModel.funds >= MarketAdModel.cost_per_view)
            .order_by(MarketAdModel.cost_per_view.desc(), MarketAdModel.id)
        )
        return [MarketAdDTO.from_model(m) for m in result.scalars().all()]
