"""Feed ingestion MCP tools.

This module exposes feed discovery, previewing, article resolution and
subscription management as MCP tools.

NOTE: Never use Optional parameters in MCP tools - they break MCP clients.
Use empty string "" for optional strings and 0 for optional integers.
"""

from typing import Any, Dict
from urllib.parse import urlparse

from mcp.server.fastmcp import Context

from feed_ingest.config import get_config
from feed_ingest.errors import EmptyFeed, FeedIngestError
from feed_ingest.logging_config import get_logger
from feed_ingest.services import aggregator
from feed_ingest.services.article_resolver import (
    extract_site_metadata,
    resolve_feed_for_article,
)
from feed_ingest.services.feed_discovery import discover_feeds as discover_page_feeds
from feed_ingest.services.feed_discovery import normalize_url
from feed_ingest.services.feed_parser import (
    detect_dialect,
    parse_feed_items,
    parse_feed_metadata,
)
from feed_ingest.services.fetcher import build_client, fetch_text
from feed_ingest.storage import database


READ_FAILED_MESSAGE = "Could not read feed, check the URL"
EMPTY_FEED_MESSAGE = "This feed is currently empty, you can still subscribe"
NO_FEED_MESSAGE = "No feed found on this page"
ALL_FEEDS_FAILED_MESSAGE = "Unable to load feeds"


async def discover_feeds(url: str, ctx: Context = None) -> Dict[str, Any]:
    """Find the RSS/Atom feeds offered by a website.

    Looks for feed <link> tags on the page first, then probes conventional
    feed paths such as /feed and /rss.xml.

    Args:
        url: Website or page URL (https:// is assumed when the scheme is missing)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool (True even when nothing was found)
        - count: number of feeds found
        - feeds: list of objects with url and title
        - message: "No feed found on this page" when count is 0
    """
    logger = get_logger(__name__)
    logger.info(f"discover_feeds called: url={url}")

    config = get_config()
    async with build_client(config) as client:
        feeds = await discover_page_feeds(url, client=client, timeout=config.fetch_timeout)

    result: Dict[str, Any] = {
        "success": True,
        "count": len(feeds),
        "feeds": [{"url": f.url, "title": f.title} for f in feeds],
    }
    if not feeds:
        result["message"] = NO_FEED_MESSAGE
    return result


async def preview_feed(feed_url: str, limit: int = 5, ctx: Context = None) -> Dict[str, Any]:
    """Fetch a feed and return its metadata and first items.

    Use this to check a feed before subscribing. An empty feed is reported as
    a success with empty=True: it can still be subscribed to.

    Args:
        feed_url: RSS/Atom feed URL
        limit: Maximum number of items to return (default: 5, 0 for all)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - empty: bool, True when the feed currently has no items
        - feed: channel metadata (title, description, link, ...)
        - count: number of items returned
        - items: list of item objects
        - message / error: user-facing text for empty feeds or failures
    """
    logger = get_logger(__name__)
    logger.info(f"preview_feed called: feed_url={feed_url}, limit={limit}")

    config = get_config()
    feed_url = normalize_url(feed_url)

    try:
        async with build_client(config) as client:
            xml = await fetch_text(feed_url, timeout=config.fetch_timeout, client=client)
        metadata = parse_feed_metadata(xml, permissive=config.permissive_xml)
        items = parse_feed_items(xml, permissive=config.permissive_xml)
    except EmptyFeed:
        return {
            "success": True,
            "empty": True,
            "feed_url": feed_url,
            "feed": metadata.to_dict(),
            "count": 0,
            "items": [],
            "message": EMPTY_FEED_MESSAGE,
        }
    except FeedIngestError as e:
        logger.error(f"Preview failed for {feed_url}: {e}")
        return {
            "success": False,
            "feed_url": feed_url,
            "error": READ_FAILED_MESSAGE,
            "detail": str(e),
        }

    if limit > 0:
        items = items[:limit]

    return {
        "success": True,
        "empty": False,
        "feed_url": feed_url,
        "feed": metadata.to_dict(),
        "count": len(items),
        "items": [item.to_dict() for item in items],
    }


async def resolve_article(article_url: str, ctx: Context = None) -> Dict[str, Any]:
    """Find the feed that publishes a shared article.

    Reads the article page for the site's title, description and icon, then
    looks for the site's feed. Not finding a feed is a normal outcome.

    Args:
        article_url: URL of the article
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - feed_url: discovered feed URL, or null
        - feed_title, site_title, site_description, site_icon
        - subscribed: bool, True when the feed is already stored
        - message: "No feed found on this page" when feed_url is null
    """
    logger = get_logger(__name__)
    logger.info(f"resolve_article called: article_url={article_url}")

    config = get_config()
    async with build_client(config) as client:
        info = await resolve_feed_for_article(
            article_url, client=client, timeout=config.fetch_timeout
        )

    result: Dict[str, Any] = {
        "success": True,
        "feed_url": info.feed_url,
        "feed_title": info.feed_title,
        "site_title": info.site_title,
        "site_description": info.site_description,
        "site_icon": info.site_icon,
        "subscribed": False,
    }

    if info.feed_url is None:
        result["message"] = NO_FEED_MESSAGE
    else:
        result["subscribed"] = await database.get_feed_by_url(info.feed_url) is not None

    return result


async def add_feed(
    url: str,
    name: str = "",
    ctx: Context = None,
) -> Dict[str, Any]:
    """Subscribe to a feed.

    The URL may be a feed or a website. A website is searched for its feed
    first. The feed must be readable; an empty feed is accepted.

    Args:
        url: Feed URL or website URL
        name: Display name (empty string to use the feed or site title)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - feed: stored feed object (id, name, url, icon_url, status, ...)
        - feed_discovered: bool, True when the URL was a website
        - empty: bool, True when the feed currently has no items
        - error: user-facing text if success is False
    """
    logger = get_logger(__name__)
    logger.info(f"add_feed called: url={url}, name={name}")

    config = get_config()
    permissive = config.permissive_xml
    url = normalize_url(url)
    feed_discovered = False
    icon_url = None

    try:
        async with build_client(config) as client:
            text = await fetch_text(url, timeout=config.fetch_timeout, client=client)

            # Sniffing stays permissive: website HTML is rarely well-formed XML
            if detect_dialect(text) is None:
                # Not a feed document, treat the URL as a website
                site = extract_site_metadata(text, url)
                feeds = await discover_page_feeds(
                    url, client=client, timeout=config.fetch_timeout, html=text
                )
                if not feeds:
                    return {"success": False, "error": NO_FEED_MESSAGE}

                feed_discovered = True
                url = feeds[0].url
                name = name or feeds[0].title or site.title or ""
                icon_url = site.icon
                text = await fetch_text(url, timeout=config.fetch_timeout, client=client)

        metadata = parse_feed_metadata(text, permissive=permissive)
        parse_feed_items(text, permissive=permissive)
        empty = False
    except EmptyFeed:
        empty = True
    except FeedIngestError as e:
        logger.error(f"add_feed could not read {url}: {e}")
        return {"success": False, "error": READ_FAILED_MESSAGE, "detail": str(e)}

    name = name or metadata.title or urlparse(url).hostname or url

    try:
        feed = await database.add_feed(name=name, url=url, icon_url=icon_url)
    except ValueError as e:
        return {"success": False, "error": str(e)}

    result: Dict[str, Any] = {
        "success": True,
        "feed": feed.to_dict(),
        "feed_discovered": feed_discovered,
        "empty": empty,
    }
    if empty:
        result["message"] = EMPTY_FEED_MESSAGE
    return result


async def remove_feed(name: str, ctx: Context = None) -> Dict[str, Any]:
    """Unsubscribe from a feed.

    Args:
        name: Name of the feed to remove (case-sensitive, must match exactly)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - message: confirmation string if successful
        - error: string if the feed was not found
    """
    logger = get_logger(__name__)
    logger.info(f"remove_feed called: name={name}")

    if await database.remove_feed(name):
        return {"success": True, "message": f"Removed feed '{name}'"}
    return {"success": False, "error": f"Feed '{name}' not found"}


async def list_feeds(status: str = "", ctx: Context = None) -> Dict[str, Any]:
    """List subscribed feeds with their last fetch status.

    Args:
        status: Only feeds with this status: "pending", "active" or "error"
            (empty string for all)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - count: number of feeds
        - feeds: list of feed objects
    """
    logger = get_logger(__name__)
    logger.info(f"list_feeds called: status={status}")

    try:
        feeds = await database.list_feeds(status or None)
    except ValueError as e:
        return {"success": False, "error": str(e)}

    return {
        "success": True,
        "count": len(feeds),
        "feeds": [feed.to_dict() for feed in feeds],
    }


async def read_feeds(
    feed_name: str = "",
    limit: int = 50,
    ctx: Context = None,
) -> Dict[str, Any]:
    """Fetch subscribed feeds and return their items, newest first.

    Feeds are fetched in small concurrent batches. A failing feed does not
    stop the others; each feed's status is updated after the fetch.

    Args:
        feed_name: Read only this feed (empty string reads all feeds)
        limit: Maximum number of items to return (default: 50, 0 for all)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool (False only when every feed failed)
        - count: number of items returned
        - items: list of item objects
        - feeds: per-feed results with name, url, status, item_count, error
        - error: "Unable to load feeds" when every feed failed
    """
    logger = get_logger(__name__)
    logger.info(f"read_feeds called: feed_name={feed_name}, limit={limit}")

    if feed_name:
        feed = await database.get_feed_by_name(feed_name)
        if feed is None:
            return {"success": False, "error": f"Feed '{feed_name}' not found"}
        feeds = [feed]
    else:
        feeds = await database.list_feeds()

    config = get_config()
    async with build_client(config) as client:
        result = await aggregator.aggregate_feeds(
            feeds,
            batch_size=config.batch_size,
            client=client,
            timeout=config.fetch_timeout,
            permissive=config.permissive_xml,
        )

    items = result.items[:limit] if limit > 0 else result.items
    response: Dict[str, Any] = {
        "success": not result.all_failed,
        "count": len(items),
        "items": [item.to_dict() for item in items],
        "feeds": [
            {
                "name": o.name,
                "url": o.url,
                "status": o.status,
                "item_count": len(o.items),
                "error": o.error,
            }
            for o in result.outcomes
        ],
    }
    if result.all_failed:
        response["error"] = ALL_FEEDS_FAILED_MESSAGE
    return response


async def get_feed_metadata(feed_url: str, ctx: Context = None) -> Dict[str, Any]:
    """Fetch a feed and return only its channel-level metadata.

    Args:
        feed_url: RSS/Atom feed URL
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - feed: title, description, link, language, copyright, dates,
          generator, managing_editor, web_master (null when absent)
        - error: user-facing text if the feed could not be read
    """
    logger = get_logger(__name__)
    logger.info(f"get_feed_metadata called: feed_url={feed_url}")

    config = get_config()
    feed_url = normalize_url(feed_url)

    try:
        async with build_client(config) as client:
            xml = await fetch_text(feed_url, timeout=config.fetch_timeout, client=client)
        metadata = parse_feed_metadata(xml, permissive=config.permissive_xml)
    except FeedIngestError as e:
        logger.error(f"Metadata fetch failed for {feed_url}: {e}")
        return {"success": False, "error": READ_FAILED_MESSAGE, "detail": str(e)}

    return {"success": True, "feed_url": feed_url, "feed": metadata.to_dict()}


# List of feed tools for registration
feed_tools = [
    discover_feeds,
    preview_feed,
    get_feed_metadata,
    resolve_article,
    add_feed,
    remove_feed,
    list_feeds,
    read_feeds,
]
