"""Human-readable reason descriptions for feed items."""

from __future__ import annotations

from typing import assert_never

from feed_timeline.timeline.models import FeedDataType, FeedReasonType


def _activity_phrase(data_type: FeedDataType) -> str:
    if data_type in (FeedDataType.NEW_COMMENT, FeedDataType.POPULAR_COMMENT):
        return "New comment"
    if data_type == FeedDataType.NEW_CONTRACT:
        return "New question"
    if data_type == FeedDataType.CONTRACT_PROBABILITY_CHANGED:
        return "Probability moved"
    if data_type == FeedDataType.TRENDING_CONTRACT:
        return "Trending"
    if data_type == FeedDataType.NEWS_WITH_RELATED_CONTRACTS:
        return "In the news"
    if data_type == FeedDataType.NEW_SUBSIDY:
        return "New subsidy"
    if data_type == FeedDataType.USER_POSITION_CHANGED:
        return "Position changed"
    if data_type == FeedDataType.MARKET_CLOSED:
        return "Closed"
    assert_never(data_type)


def _reason_phrase(reason: FeedReasonType) -> str:
    if reason == FeedReasonType.FOLLOW_CONTRACT:
        return "on a question you follow"
    if reason == FeedReasonType.LIKED_CONTRACT:
        return "on a question you liked"
    if reason == FeedReasonType.CONTRACT_IN_GROUP_YOU_ARE_IN:
        return "in a topic you follow"
    if reason == FeedReasonType.SIMILAR_INTEREST_VECTOR_TO_CONTRACT:
        return "on a question you may be interested in"
    if reason == FeedReasonType.FOLLOW_USER:
        return "from a creator you follow"
    if reason == FeedReasonType.SIMILAR_INTEREST_VECTOR_TO_USER:
        return "from a user similar to you"
    if reason == FeedReasonType.PRIVATE_CONTRACT_SHARED_WITH_YOU:
        return "on a question shared with you"
    if reason == FeedReasonType.CONTRACT_IN_NEWS:
        return "on a question in the news"
    assert_never(reason)


def get_explanation(data_type: FeedDataType, reason: FeedReasonType) -> str:
    """Describe why an item with this data type and reason is in the feed."""
    return f"{_activity_phrase(data_type)} {_reason_phrase(reason)}"
