"""Timeline layer - Feed item models, relevance filters and assembly.

The fetch controller lives in ``feed_timeline.timeline.controller`` and is
imported from there directly, since it depends on the storage layer.
"""

from feed_timeline.timeline.builder import build_timeline_items
from feed_timeline.timeline.cache import Cursors, TimelineState, TimelineStateRegistry
from feed_timeline.timeline.explanations import get_explanation
from feed_timeline.timeline.models import (
    Boost,
    Comment,
    Contract,
    FeedDataType,
    FeedReasonType,
    FeedTuning,
    News,
    RawEvent,
    TimelineItem,
    Viewer,
)

__all__ = [
    "Boost",
    "Comment",
    "Contract",
    "Cursors",
    "FeedDataType",
    "FeedReasonType",
    "FeedTuning",
    "News",
    "RawEvent",
    "TimelineItem",
    "TimelineState",
    "TimelineStateRegistry",
    "Viewer",
    "build_timeline_items",
    "get_explanation",
]
