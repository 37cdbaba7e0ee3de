"""Storage layer - Database schemas, repositories and the feed store adapter."""

from feed_timeline.storage.database import (
    DatabaseManager,
    create_async_db_engine,
    create_async_session_factory,
    init_async_db,
)
from feed_timeline.storage.models import (
    Base,
    ContractCommentModel,
    ContractModel,
    MarketAdModel,
    NewsModel,
    UserDisinterestModel,
    UserEventModel,
    UserFeedModel,
)
from feed_timeline.storage.store import EventQuery, FeedStore, FeedStoreError, SqlFeedStore

__all__ = [
    "Base",
    "ContractCommentModel",
    "ContractModel",
    "DatabaseManager",
    "EventQuery",
    "FeedStore",
    "FeedStoreError",
    "MarketAdModel",
    "NewsModel",
    "SqlFeedStore",
    "UserDisinterestModel",
    "UserEventModel",
    "UserFeedModel",
    "create_async_db_engine",
    "create_async_session_factory",
    "init_async_db",
]
