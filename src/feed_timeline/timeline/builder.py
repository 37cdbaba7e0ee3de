"""Timeline item assembly.

Turns a batch of raw feed events plus their resolved contracts, comments and
news into display-ready TimelineItems: one item per news story, at most one
item per contract, newest first.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Sequence
from datetime import datetime
from typing import assert_never

from feed_timeline.timeline.explanations import get_explanation
from feed_timeline.timeline.filters import (
    DEFAULT_TUNING,
    has_only_ignored_content,
    market_movement_info,
    should_ignore_comments_on_contract,
)
from feed_timeline.timeline.models import (
    COMMENT_DATA_TYPES,
    Comment,
    Contract,
    FeedDataType,
    FeedTuning,
    News,
    RawEvent,
    TimelineItem,
)

logger = logging.getLogger(__name__)


def data_type_priority(data_type: FeedDataType) -> int:
    """Rank used to pick the surviving item when events share a contract."""
    if data_type == FeedDataType.CONTRACT_PROBABILITY_CHANGED:
        return 5
    if data_type == FeedDataType.TRENDING_CONTRACT:
        return 4
    if data_type == FeedDataType.POPULAR_COMMENT:
        return 3
    if data_type == FeedDataType.NEW_COMMENT:
        return 2
    if data_type == FeedDataType.NEW_CONTRACT:
        return 1
    if data_type in (
        FeedDataType.NEWS_WITH_RELATED_CONTRACTS,
        FeedDataType.NEW_SUBSIDY,
        FeedDataType.USER_POSITION_CHANGED,
        FeedDataType.MARKET_CLOSED,
    ):
        return 0
    assert_never(data_type)


def _survivor_key(item: TimelineItem) -> tuple[int, int, int]:
    return (data_type_priority(item.data_type), item.created_time, item.id)


def base_timeline_item(event: RawEvent) -> TimelineItem:
    """Copy the stored fields of an event into a bare TimelineItem."""
    return TimelineItem(
        id=event.id,
        data_type=event.data_type,
        reason=event.reason,
        reason_description=get_explanation(event.data_type, event.reason),
        created_timestamp=event.created_timestamp,
        created_time=event.created_time,
        creator_id=event.creator_id,
        seen_time=event.seen_time,
        is_copied=event.is_copied,
        data=event.data,
    )


def build_news_items(
    events: Sequence[RawEvent],
    contracts: Sequence[Contract],
    news: Sequence[News],
) -> list[TimelineItem]:
    """One item per distinct news id, carrying every contract the story touches."""
    groups: dict[str, list[RawEvent]] = {}
    for event in events:
        if event.news_id:
            groups.setdefault(event.news_id, []).append(event)

    news_by_id = {n.id: n for n in news}
    items: list[TimelineItem] = []
    for news_id, group in groups.items():
        contract_ids = {e.contract_id for e in group if e.contract_id}
        relevant_contracts = tuple(c for c in contracts if c.id in contract_ids)
        base = base_timeline_item(group[0])
        items.append(
            dataclasses.replace(
                base,
                news_id=news_id,
                avatar_url=relevant_contracts[0].creator_avatar_url if relevant_contracts else None,
                contracts=relevant_contracts,
                news=news_by_id.get(news_id),
            )
        )
    return items


def build_contract_item(
    event: RawEvent,
    contracts_by_id: dict[str, Contract],
    comments: Sequence[Comment],
    *,
    now: datetime,
    tuning: FeedTuning = DEFAULT_TUNING,
) -> TimelineItem | None:
    """Assemble the item for one market-linked event, or None to drop it."""
    contract = contracts_by_id.get(event.contract_id or "")
    # Missing contracts are usually ones already shown in the feed.
    if contract is None:
        return None
    if event.data_type in COMMENT_DATA_TYPES and should_ignore_comments_on_contract(contract, now):
        return None

    movement = market_movement_info(contract, event.data_type, event.data, now, tuning=tuning)
    if movement.ignore:
        logger.debug("Dropping insignificant move on %s (event %d)", contract.id, event.id)
        return None

    # One comment per feed item.
    relevant_comments = tuple(
        c
        for c in comments
        if c.id == event.comment_id
        and not has_only_ignored_content(c, tuning.ignored_comment_node_types)
    )
    if event.comment_id and not relevant_comments:
        return None

    base = base_timeline_item(event)
    return dataclasses.replace(
        base,
        contract_id=event.contract_id,
        comment_id=event.comment_id,
        avatar_url=(
            relevant_comments[0].user_avatar_url if event.comment_id else contract.creator_avatar_url
        ),
        contract=contract,
        comments=relevant_comments,
        prob_change=movement.prob_change,
    )


def dedupe_by_contract(items: Sequence[TimelineItem]) -> list[TimelineItem]:
    """Keep one item per contract id.

    The survivor is the item with the highest data-type priority, then the
    most recent creation time, then the highest id. Output keeps the
    first-seen order of contract ids.
    """
    survivors: dict[str, TimelineItem] = {}
    for item in items:
        key = item.contract_id or ""
        current = survivors.get(key)
        if current is None or _survivor_key(item) > _survivor_key(current):
            if current is not None:
                logger.debug("Item %d replaces item %d for contract %s", item.id, current.id, key)
            survivors[key] = item
    return list(survivors.values())


def build_timeline_items(
    events: Sequence[RawEvent],
    contracts: Sequence[Contract] | None,
    comments: Sequence[Comment] | None,
    news: Sequence[News] | None,
    *,
    now: datetime,
    tuning: FeedTuning = DEFAULT_TUNING,
) -> list[TimelineItem]:
    """Build ordered, deduplicated timeline items from a batch of events.

    Args:
        events: Raw feed events for one fetch.
        contracts: Contracts that survived filtering (None is treated as empty).
        comments: Comments that survived filtering.
        news: Resolved news entities.
        now: Reference time for market-state checks.
        tuning: Threshold configuration.

    Returns:
        News items and contract items sorted by descending creation time.
    """
    contracts = contracts or []
    comments = comments or []
    news_items = build_news_items(events, contracts, news or [])

    contracts_by_id: dict[str, Contract] = {}
    for contract in contracts:
        contracts_by_id.setdefault(contract.id, contract)

    contract_items: list[TimelineItem] = []
    for event in events:
        if event.news_id or not event.contract_id:
            continue
        item = build_contract_item(event, contracts_by_id, comments, now=now, tuning=tuning)
        if item is not None:
            contract_items.append(item)

    combined = news_items + dedupe_by_contract(contract_items)
    return sorted(combined, key=lambda i: -i.created_time)
