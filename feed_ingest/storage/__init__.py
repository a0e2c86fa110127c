"""Storage layer for feed_ingest."""

from .database import (
    get_database,
    init_database,
    close_database,
    add_feed,
    remove_feed,
    get_feed_by_name,
    get_feed_by_url,
    list_feeds,
    mark_feed_active,
    mark_feed_error,
)

__all__ = [
    "get_database",
    "init_database",
    "close_database",
    "add_feed",
    "remove_feed",
    "get_feed_by_name",
    "get_feed_by_url",
    "list_feeds",
    "mark_feed_active",
    "mark_feed_error",
]
