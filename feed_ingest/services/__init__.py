"""Services for feed_ingest."""

from .fetcher import fetch_text, probe_feed_url, build_client
from .feed_discovery import discover_feeds, extract_link_feeds
from .feed_parser import (
    iter_feed_items,
    normalize_date,
    parse_feed_items,
    parse_feed_metadata,
)
from .article_resolver import resolve_feed_for_article, extract_site_metadata
from .aggregator import aggregate_feeds, fetch_feed_items, read_feed, sort_newest_first

__all__ = [
    "fetch_text",
    "probe_feed_url",
    "build_client",
    "discover_feeds",
    "extract_link_feeds",
    "iter_feed_items",
    "normalize_date",
    "parse_feed_items",
    "parse_feed_metadata",
    "resolve_feed_for_article",
    "extract_site_metadata",
    "aggregate_feeds",
    "fetch_feed_items",
    "read_feed",
    "sort_newest_first",
]
