"""Relevance filters deciding whether feed content should be suppressed.

Every function here is a pure predicate over a single event or entity. The
fetch controller composes them before and after enrichment; the builder uses
the market-state and movement checks while assembling items.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from feed_timeline.timeline.models import (
    CPMM_MECHANISM,
    HIGH_SIGNAL_DATA_TYPES,
    Comment,
    Contract,
    FeedDataType,
    FeedTuning,
    TimelineItem,
    Viewer,
)

DEFAULT_TUNING = FeedTuning()


@dataclass(frozen=True)
class MarketMovement:
    """Outcome of the probability-movement check for one contract."""

    ignore: bool
    prob_change: int | None


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up (not to even)."""
    return math.floor(value + 0.5)


def should_ignore_comments_on_contract(contract: Contract, now: datetime) -> bool:
    """Comments on resolved or already-closed markets are not feed-worthy."""
    if contract.is_resolved:
        return True
    return contract.close_time is not None and contract.close_time < now


def market_movement_info(
    contract: Contract,
    data_type: FeedDataType | None,
    data: dict[str, Any] | None,
    now: datetime,
    *,
    tuning: FeedTuning = DEFAULT_TUNING,
) -> MarketMovement:
    """Compute the displayed probability move and whether to drop the event.

    The delta is taken from the payload's ``previousProb`` snapshot when one
    is present, otherwise from the contract's rolling day change. A move is
    significant only when:

    - the contract uses the cpmm-1 mechanism and is at least a day old,
    - it is not a young contract drifting away from a ~50% starting prior,
    - the absolute delta exceeds ``tuning.prob_change_threshold``,
    - the contract is not resolved.

    Only ``contract_probability_changed`` events are dropped when the move
    is insignificant; every other data type passes through.

    Args:
        contract: The contract the event refers to.
        data_type: Data type of the event, or None when unknown.
        data: Event payload.
        now: Reference time for age checks.
        tuning: Threshold configuration.

    Returns:
        MarketMovement with the rounded percentage-point change (or None).
    """
    payload = data or {}
    previous_prob = payload.get("previousProb")
    reference = previous_prob if previous_prob is not None else 0.5
    previous_prob_about_50 = tuning.near_fifty_low < reference < tuning.near_fifty_high

    is_cpmm = contract.mechanism == CPMM_MECHANISM
    prob_change_since_add: float | None = None
    if is_cpmm and previous_prob and contract.prob is not None:
        prob_change_since_add = contract.prob - float(previous_prob)

    delta = (
        prob_change_since_add
        if prob_change_since_add is not None
        else contract.prob_changes.get("day", 0.0)
    )
    significant = (
        is_cpmm
        and contract.created_time < now - tuning.min_contract_age
        and not (contract.created_time > now - tuning.young_contract_age and previous_prob_about_50)
        and abs(delta) > tuning.prob_change_threshold
        and not contract.is_resolved
    )
    prob_change = round_half_up(delta * 100) if significant else None

    show_change = prob_change is not None and (
        data_type in HIGH_SIGNAL_DATA_TYPES if data_type is not None else True
    )
    if not show_change and data_type == FeedDataType.CONTRACT_PROBABILITY_CHANGED:
        return MarketMovement(ignore=True, prob_change=prob_change)
    return MarketMovement(ignore=False, prob_change=prob_change)


def is_contract_blocked(viewer: Viewer | None, contract: Contract) -> bool:
    if viewer is None:
        return False
    return (
        contract.id in viewer.blocked_contract_ids
        or any(slug in viewer.blocked_group_slugs for slug in contract.group_slugs)
        or contract.creator_id in viewer.blocked_by_user_ids
        or contract.creator_id in viewer.blocked_user_ids
    )


def is_comment_blocked(viewer: Viewer | None, comment: Comment) -> bool:
    return viewer is not None and comment.user_id in viewer.blocked_user_ids


def has_only_ignored_content(comment: Comment, ignored_node_types: Iterable[str]) -> bool:
    """True when the comment's content is made up solely of excluded node types."""
    node_types = comment.node_types
    if not node_types:
        return False
    ignored = set(ignored_node_types)
    return all(node_type in ignored for node_type in node_types)


def filter_new_contracts(
    contracts: Sequence[Contract],
    *,
    viewer: Viewer | None,
    disinterested_contract_ids: Iterable[str],
) -> list[Contract]:
    """Drop blocked, resolved, and explicitly uninteresting contracts."""
    disinterested = set(disinterested_contract_ids)
    return [
        c
        for c in contracts
        if not is_contract_blocked(viewer, c) and not c.is_resolved and c.id not in disinterested
    ]


def filter_new_comments(
    comments: Sequence[Comment],
    *,
    viewer: Viewer | None,
    seen_comment_ids: Iterable[str],
) -> list[Comment]:
    """Drop comments from blocked authors, hidden comments, and recently viewed ones."""
    seen = set(seen_comment_ids)
    return [
        c
        for c in comments
        if not is_comment_blocked(viewer, c) and not c.hidden and c.id not in seen
    ]


def cached_contract_ids(items: Iterable[TimelineItem] | None) -> set[str]:
    return {item.contract_id for item in items or () if item.contract_id}


def cached_news_ids(items: Iterable[TimelineItem] | None) -> set[str]:
    return {item.news_id for item in items or () if item.news_id}
