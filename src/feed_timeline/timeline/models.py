"""Data models for the feed timeline."""

from __future__ import annotations

import contextlib
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
CPMM_MECHANISM = "cpmm-1"


class FeedDataType(str, Enum):
    """Kind of activity a feed row describes."""

    NEW_COMMENT = "new_comment"
    POPULAR_COMMENT = "popular_comment"
    NEW_CONTRACT = "new_contract"
    CONTRACT_PROBABILITY_CHANGED = "contract_probability_changed"
    TRENDING_CONTRACT = "trending_contract"
    NEWS_WITH_RELATED_CONTRACTS = "news_with_related_contracts"
    NEW_SUBSIDY = "new_subsidy"
    USER_POSITION_CHANGED = "user_position_changed"
    MARKET_CLOSED = "market_closed"


class FeedReasonType(str, Enum):
    """Why a feed row was surfaced to the user."""

    FOLLOW_CONTRACT = "follow_contract"
    LIKED_CONTRACT = "liked_contract"
    CONTRACT_IN_GROUP_YOU_ARE_IN = "contract_in_group_you_are_in"
    SIMILAR_INTEREST_VECTOR_TO_CONTRACT = "similar_interest_vector_to_contract"
    FOLLOW_USER = "follow_user"
    SIMILAR_INTEREST_VECTOR_TO_USER = "similar_interest_vector_to_user"
    PRIVATE_CONTRACT_SHARED_WITH_YOU = "private_contract_shared_with_you"
    CONTRACT_IN_NEWS = "contract_in_news"


HIGH_SIGNAL_DATA_TYPES: tuple[FeedDataType, ...] = (
    FeedDataType.CONTRACT_PROBABILITY_CHANGED,
    FeedDataType.TRENDING_CONTRACT,
)
COMMENT_DATA_TYPES: tuple[FeedDataType, ...] = (
    FeedDataType.NEW_COMMENT,
    FeedDataType.POPULAR_COMMENT,
)


def parse_store_timestamp(raw: str) -> datetime:
    """Parse a store-native timestamp string into an aware UTC datetime."""
    parsed = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def format_store_timestamp(ts: datetime) -> str:
    """Render a datetime in the store-native string form (microsecond precision)."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC).isoformat(timespec="microseconds")


def to_epoch_ms(ts: datetime) -> int:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return (ts - EPOCH) // timedelta(milliseconds=1)


def from_epoch_ms(value: int | float) -> datetime:
    return EPOCH + timedelta(milliseconds=float(value))


def _parse_time(value: Any) -> datetime | None:
    # Document-store entities carry epoch milliseconds; rows carry ISO strings.
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, (int, float)):
        return from_epoch_ms(value)
    with contextlib.suppress(ValueError, AttributeError):
        return parse_store_timestamp(str(value))
    return None


@dataclass(frozen=True)
class FeedTuning:
    """Tuning knobs for fetching and filtering feed items."""

    page_size: int = 25
    high_signal_limit: int = 15
    unseen_horizon: timedelta = timedelta(days=5)
    seen_comment_window: timedelta = timedelta(days=5)
    bootstrap_max_attempts: int = 5
    bootstrap_min_items: int = 10
    prob_change_threshold: float = 0.055
    min_contract_age: timedelta = timedelta(days=1)
    young_contract_age: timedelta = timedelta(days=2)
    near_fifty_low: float = 0.48  # exclusive
    near_fifty_high: float = 0.52  # exclusive
    min_comment_likes: int = 0  # strictly greater than
    ignored_comment_node_types: frozenset[str] = frozenset({"gridCardsComponent", "linkPreview"})


@dataclass(frozen=True)
class RawEvent:
    """One row of a user's feed event log.

    ``created_timestamp`` keeps the store's own string form so pagination
    cursors round-trip without losing precision; ``created_time`` is the
    derived epoch-millisecond value used for ordering.
    """

    id: int
    data_type: FeedDataType
    reason: FeedReasonType
    created_timestamp: str
    created_time: int
    contract_id: str | None = None
    comment_id: str | None = None
    news_id: str | None = None
    creator_id: str | None = None
    seen_time: str | None = None
    is_copied: bool = False
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> RawEvent:
        """Create a RawEvent from a ``user_feed`` row.

        Raises:
            ValueError: If the row carries an unknown data type or reason.
        """
        raw_ts = row["created_time"]
        created_timestamp = (
            format_store_timestamp(raw_ts) if isinstance(raw_ts, datetime) else str(raw_ts)
        )
        seen = row.get("seen_time")
        news_id = row.get("news_id")
        return cls(
            id=int(row["id"]),
            data_type=FeedDataType(row["data_type"]),
            reason=FeedReasonType(row["reason"]),
            created_timestamp=created_timestamp,
            created_time=to_epoch_ms(parse_store_timestamp(created_timestamp)),
            contract_id=row.get("contract_id"),
            comment_id=row.get("comment_id"),
            news_id=str(news_id) if news_id is not None else None,
            creator_id=row.get("creator_id"),
            seen_time=format_store_timestamp(seen) if isinstance(seen, datetime) else seen,
            is_copied=bool(row.get("is_copied", False)),
            data=dict(row.get("data") or {}),
        )


@dataclass(frozen=True)
class Contract:
    """A prediction market, as stored in the document store."""

    id: str
    creator_id: str
    question: str
    created_time: datetime
    mechanism: str = CPMM_MECHANISM
    prob: float | None = None
    prob_changes: dict[str, float] = field(default_factory=dict)
    close_time: datetime | None = None
    is_resolved: bool = False
    creator_avatar_url: str | None = None
    slug: str = ""
    group_slugs: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Contract:
        """Create a Contract from its stored JSON document."""
        created_time = _parse_time(data.get("createdTime")) or EPOCH
        prob = data.get("prob")
        return cls(
            id=str(data["id"]),
            creator_id=str(data.get("creatorId", "")),
            question=str(data.get("question", "")),
            created_time=created_time,
            mechanism=str(data.get("mechanism", CPMM_MECHANISM)),
            prob=float(prob) if prob is not None else None,
            prob_changes={k: float(v) for k, v in (data.get("probChanges") or {}).items()},
            close_time=_parse_time(data.get("closeTime")),
            is_resolved=bool(data.get("isResolved", False)),
            creator_avatar_url=data.get("creatorAvatarUrl"),
            slug=str(data.get("slug", "")),
            group_slugs=tuple(data.get("groupSlugs") or ()),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "creatorId": self.creator_id,
            "question": self.question,
            "createdTime": to_epoch_ms(self.created_time),
            "mechanism": self.mechanism,
            "prob": self.prob,
            "probChanges": dict(self.prob_changes),
            "closeTime": to_epoch_ms(self.close_time) if self.close_time else None,
            "isResolved": self.is_resolved,
            "creatorAvatarUrl": self.creator_avatar_url,
            "slug": self.slug,
            "groupSlugs": list(self.group_slugs),
        }


@dataclass(frozen=True)
class Comment:
    """A comment on a contract."""

    id: str
    contract_id: str
    user_id: str
    created_time: datetime
    content: dict[str, Any] = field(default_factory=dict)
    user_avatar_url: str | None = None
    likes: int = 0
    hidden: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Comment:
        """Create a Comment from its stored JSON document."""
        return cls(
            id=str(data["id"]),
            contract_id=str(data["contractId"]),
            user_id=str(data.get("userId", "")),
            created_time=_parse_time(data.get("createdTime")) or EPOCH,
            content=dict(data.get("content") or {}),
            user_avatar_url=data.get("userAvatarUrl"),
            likes=int(data.get("likes") or 0),
            hidden=bool(data.get("hidden", False)),
        )

    @property
    def node_types(self) -> list[str]:
        """Top-level node types of the rich-text content."""
        return [str(node.get("type") or "") for node in self.content.get("content") or []]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "contractId": self.contract_id,
            "userId": self.user_id,
            "createdTime": to_epoch_ms(self.created_time),
            "content": self.content,
            "userAvatarUrl": self.user_avatar_url,
            "likes": self.likes,
            "hidden": self.hidden,
        }


@dataclass(frozen=True)
class News:
    """A news article linked to one or more contracts."""

    id: str
    title: str
    url: str
    url_to_image: str | None = None
    published_time: datetime | None = None


@dataclass(frozen=True)
class Boost:
    """A sponsored listing promoting a market."""

    ad_id: str
    market_id: str
    creator_id: str
    funds: float
    cost_per_view: float


@dataclass(frozen=True)
class Viewer:
    """Feed-relevant preferences of the user reading the feed."""

    user_id: str
    blocked_user_ids: frozenset[str] = frozenset()
    blocked_by_user_ids: frozenset[str] = frozenset()
    blocked_contract_ids: frozenset[str] = frozenset()
    blocked_group_slugs: frozenset[str] = frozenset()


@dataclass(frozen=True)
class TimelineItem:
    """A renderable feed entry, possibly aggregating several raw events."""

    id: int
    data_type: FeedDataType
    reason: FeedReasonType
    created_timestamp: str
    created_time: int
    contract_id: str | None = None
    comment_id: str | None = None
    news_id: str | None = None
    creator_id: str | None = None
    seen_time: str | None = None
    avatar_url: str | None = None
    contract: Contract | None = None
    contracts: tuple[Contract, ...] = ()
    comments: tuple[Comment, ...] = ()
    news: News | None = None
    reason_description: str = ""
    prob_change: int | None = None
    duplicate_of: int | None = None
    is_copied: bool = False
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-friendly dictionary."""
        return {
            "id": self.id,
            "data_type": self.data_type.value,
            "reason": self.reason.value,
            "reason_description": self.reason_description,
            "created_timestamp": self.created_timestamp,
            "created_time": self.created_time,
            "contract_id": self.contract_id,
            "comment_id": self.comment_id,
            "news_id": self.news_id,
            "creator_id": self.creator_id,
            "seen_time": self.seen_time,
            "avatar_url": self.avatar_url,
            "contract": self.contract.to_dict() if self.contract else None,
            "contracts": [c.to_dict() for c in self.contracts],
            "comments": [c.to_dict() for c in self.comments],
            "news": (
                {"id": self.news.id, "title": self.news.title, "url": self.news.url}
                if self.news
                else None
            ),
            "prob_change": self.prob_change,
            "is_copied": self.is_copied,
            "data": self.data,
        }
