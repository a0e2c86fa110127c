"""Data models for feed_ingest."""

from .schemas import (
    AggregateResult,
    ArticleFeedInfo,
    DiscoveredFeed,
    FeedItem,
    FeedMetadata,
    FeedOutcome,
    FeedRecord,
    SiteMetadata,
)

__all__ = [
    "AggregateResult",
    "ArticleFeedInfo",
    "DiscoveredFeed",
    "FeedItem",
    "FeedMetadata",
    "FeedOutcome",
    "FeedRecord",
    "SiteMetadata",
]
