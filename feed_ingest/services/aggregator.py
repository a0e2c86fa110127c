"""Feed aggregation service.

This module reads many feeds at once and merges their items into a single
newest-first list. Feeds are fetched in fixed-size batches; within a batch
they run concurrently and a failing feed never affects its siblings.

An EmptyFeed result counts as success here: the feed is readable, it just
has nothing in it right now.
"""

import asyncio
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Union

import httpx

from feed_ingest.errors import EmptyFeed, FeedIngestError
from feed_ingest.logging_config import get_logger
from feed_ingest.models.schemas import AggregateResult, FeedItem, FeedOutcome, FeedRecord
from feed_ingest.services.feed_parser import parse_feed_items
from feed_ingest.services.fetcher import DEFAULT_TIMEOUT, build_client, fetch_text
from feed_ingest.storage import database


DEFAULT_BATCH_SIZE = 5

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)

FeedSource = Union[FeedRecord, str]


async def fetch_feed_items(
    feed_url: str,
    *,
    client: Optional[httpx.AsyncClient] = None,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
    permissive: bool = True,
) -> List[FeedItem]:
    """Fetch and parse one feed.

    Raises:
        FetchTimeout, FetchFailed: If the feed cannot be downloaded
        FeedParseError: If the document cannot be read
        EmptyFeed: If the feed has no valid items
    """
    xml = await fetch_text(feed_url, timeout=timeout, client=client)
    return parse_feed_items(xml, permissive=permissive)


def sort_newest_first(items: Iterable[FeedItem]) -> List[FeedItem]:
    """Stable sort by publication date, newest first; undated items last."""
    return sorted(
        items,
        key=lambda item: item.publication_date or _OLDEST,
        reverse=True,
    )


async def read_feed(
    feed: FeedSource,
    *,
    client: Optional[httpx.AsyncClient] = None,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
    permissive: bool = True,
    update_status: bool = True,
) -> FeedOutcome:
    """Read one feed and report the outcome instead of raising.

    Stored feeds get their status recorded when ``update_status`` is set:
    "active" after a successful or empty read, "error" otherwise.

    Args:
        feed: A stored FeedRecord or a bare feed URL
        client: Optional shared HTTP client
        timeout: Deadline in seconds for the fetch
        permissive: Recover from malformed XML
        update_status: Record the result in the database for stored feeds

    Returns:
        FeedOutcome with status "active", "empty" or "error"
    """
    logger = get_logger(__name__)

    if isinstance(feed, FeedRecord):
        url, name = feed.url, feed.name
    else:
        url, name = feed, None

    try:
        items = await fetch_feed_items(
            url, client=client, timeout=timeout, permissive=permissive
        )
        outcome = FeedOutcome(url=url, name=name, status="active", items=items)
    except EmptyFeed:
        logger.info(f"Feed is currently empty: {url}", extra={"feed_url": url})
        outcome = FeedOutcome(url=url, name=name, status="empty")
    except FeedIngestError as e:
        logger.error(f"Error fetching feed {url}: {e}", extra={"feed_url": url})
        outcome = FeedOutcome(url=url, name=name, status="error", error=str(e))

    if update_status and isinstance(feed, FeedRecord):
        if outcome.ok:
            await database.mark_feed_active(feed.id)
        else:
            await database.mark_feed_error(feed.id)

    return outcome


async def aggregate_feeds(
    feeds: Sequence[FeedSource],
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    client: Optional[httpx.AsyncClient] = None,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
    permissive: bool = True,
    update_status: bool = True,
) -> AggregateResult:
    """Read many feeds in batches and merge their items newest first.

    Args:
        feeds: Stored feeds or feed URLs
        batch_size: Number of feeds fetched concurrently
        client: Optional shared HTTP client
        timeout: Deadline in seconds for each fetch
        permissive: Recover from malformed XML
        update_status: Record each result for stored feeds

    Returns:
        AggregateResult with merged items and one outcome per feed, in input order
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {batch_size}")

    if client is None:
        async with build_client() as owned:
            return await aggregate_feeds(
                feeds,
                batch_size=batch_size,
                client=owned,
                timeout=timeout,
                permissive=permissive,
                update_status=update_status,
            )

    logger = get_logger(__name__)
    logger.info(f"Aggregating {len(feeds)} feeds in batches of {batch_size}")

    outcomes: List[FeedOutcome] = []
    for start in range(0, len(feeds), batch_size):
        batch = feeds[start:start + batch_size]
        results = await asyncio.gather(*(
            read_feed(
                feed,
                client=client,
                timeout=timeout,
                permissive=permissive,
                update_status=update_status,
            )
            for feed in batch
        ))
        outcomes.extend(results)

    items = sort_newest_first(item for outcome in outcomes for item in outcome.items)
    result = AggregateResult(items=items, outcomes=outcomes)

    failed = [o.name or o.url for o in result.failures]
    if failed and not result.all_failed:
        logger.warning(f"Some feeds failed to load: {', '.join(failed)}")

    logger.info(f"Aggregated {len(items)} items from {len(feeds)} feeds")
    return result
