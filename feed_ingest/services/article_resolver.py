"""Article-to-feed resolver.

This module finds the feed that owns a shared article URL, together with
the article site's title, description and icon.
"""

from typing import Optional
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from feed_ingest.errors import FetchFailed, FetchTimeout
from feed_ingest.logging_config import get_logger
from feed_ingest.models.schemas import ArticleFeedInfo, SiteMetadata
from feed_ingest.services.feed_discovery import discover_feeds, normalize_url
from feed_ingest.services.fetcher import DEFAULT_TIMEOUT, build_client, fetch_text


def extract_site_metadata(html: str, base_url: str) -> SiteMetadata:
    """Read the title, description and icon of a page.

    The icon is taken from ``icon``/``shortcut icon`` links, then from
    ``apple-touch-icon``, and resolved against ``base_url``.
    """
    soup = BeautifulSoup(html, "lxml")

    title = None
    if soup.title is not None:
        title = soup.title.get_text(strip=True) or None

    description = None
    meta = soup.find("meta", attrs={"name": "description"})
    if meta is not None:
        description = (meta.get("content") or "").strip() or None

    icon = None
    for rel in ("icon", "apple-touch-icon"):
        link = soup.find("link", rel=rel, href=True)
        if link is not None:
            icon = urljoin(base_url, link["href"].strip())
            break

    return SiteMetadata(title=title, description=description, icon=icon)


async def resolve_feed_for_article(
    article_url: str,
    *,
    client: Optional[httpx.AsyncClient] = None,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
) -> ArticleFeedInfo:
    """Find the feed for a shared article.

    The article page is fetched once; its site metadata is extracted and the
    same HTML is handed to feed discovery.

    Args:
        article_url: URL of the shared article
        client: Optional shared HTTP client
        timeout: Deadline in seconds for each request

    Returns:
        ArticleFeedInfo; ``feed_url`` is None when no feed was found
    """
    if client is None:
        async with build_client() as owned:
            return await resolve_feed_for_article(article_url, client=owned, timeout=timeout)

    logger = get_logger(__name__)
    url = normalize_url(article_url)
    logger.info(f"Resolving feed for article: {url}", extra={"page_url": url})

    site = SiteMetadata()
    try:
        html = await fetch_text(url, timeout=timeout, client=client)
    except FetchTimeout:
        logger.warning(f"Article page timed out: {url}")
        return ArticleFeedInfo(feed_url=None)
    except FetchFailed as e:
        logger.warning(f"Could not fetch article page: {e}")
        html = ""

    if html:
        site = extract_site_metadata(html, url)

    feeds = await discover_feeds(url, client=client, timeout=timeout, html=html)
    if not feeds:
        logger.info(f"No feed found for article: {url}")
        return ArticleFeedInfo(
            feed_url=None,
            site_title=site.title,
            site_description=site.description,
            site_icon=site.icon,
        )

    feed = feeds[0]
    logger.info(f"Resolved article {url} to feed {feed.url}")
    return ArticleFeedInfo(
        feed_url=feed.url,
        feed_title=feed.title,
        site_title=site.title,
        site_description=site.description,
        site_icon=site.icon,
    )
