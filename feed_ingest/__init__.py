"""feed_ingest - RSS/Atom feed discovery, parsing and aggregation."""

from feed_ingest.errors import (
    EmptyFeed,
    FeedIngestError,
    FeedParseError,
    FetchError,
    FetchFailed,
    FetchTimeout,
)
from feed_ingest.models.schemas import (
    ArticleFeedInfo,
    DiscoveredFeed,
    FeedItem,
    FeedMetadata,
)
from feed_ingest.services import (
    aggregate_feeds,
    discover_feeds,
    fetch_text,
    parse_feed_items,
    parse_feed_metadata,
    resolve_feed_for_article,
)

__version__ = "0.1.0"

__all__ = [
    "EmptyFeed",
    "FeedIngestError",
    "FeedParseError",
    "FetchError",
    "FetchFailed",
    "FetchTimeout",
    "ArticleFeedInfo",
    "DiscoveredFeed",
    "FeedItem",
    "FeedMetadata",
    "aggregate_feeds",
    "discover_feeds",
    "fetch_text",
    "parse_feed_items",
    "parse_feed_metadata",
    "resolve_feed_for_article",
]
