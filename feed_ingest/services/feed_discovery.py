"""Feed discovery service.

This module discovers RSS/Atom feed URLs for a web page.
"""

from typing import Dict, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from feed_ingest.errors import FetchFailed, FetchTimeout
from feed_ingest.logging_config import get_logger
from feed_ingest.models.schemas import DiscoveredFeed
from feed_ingest.services.fetcher import (
    DEFAULT_TIMEOUT,
    build_client,
    fetch_text,
    probe_feed_url,
)


# Conventional feed paths, probed in this order. The first hit wins, so the
# order decides which feed is picked on hosts that serve several.
COMMON_FEED_PATHS = [
    "/feed",
    "/rss",
    "/feed.xml",
    "/rss.xml",
    "/atom.xml",
    "/index.xml",
    "/feeds/posts/default",  # Blogger
    "/blog/feed",
    "/blog/rss",
    "/blog/index.xml",
    "/blog/atom.xml",
    "/rss/index.rss",
    "/atom/index.atom",
]

# Static-site hosts and the feed paths their generators (Jekyll, Hugo) emit
STATIC_SITE_PLATFORM_PATHS: Dict[str, List[str]] = {
    "github.io": ["/feed.xml", "/atom.xml", "/rss.xml", "/index.xml"],
    "gitlab.io": ["/feed.xml", "/atom.xml", "/rss.xml", "/index.xml"],
}

# Substrings of a <link type> that mark a feed link
FEED_LINK_TYPE_MARKERS = ("rss", "atom", "xml")


def normalize_url(url: str) -> str:
    """Add https:// to a URL that has no scheme."""
    url = url.strip()
    if not url.startswith(("http://", "https://")):
        url = "https://" + url.rstrip("/")
    return url


def extract_link_feeds(html: str, base_url: str) -> List[DiscoveredFeed]:
    """Collect feeds advertised by ``<link>`` elements in a page.

    Args:
        html: Page HTML
        base_url: URL the page was fetched from, for resolving relative hrefs

    Returns:
        Discovered feeds in document order, duplicates removed
    """
    soup = BeautifulSoup(html, "lxml")

    feeds: List[DiscoveredFeed] = []
    seen = set()

    for link in soup.find_all("link"):
        link_type = (link.get("type") or "").lower()
        href = (link.get("href") or "").strip()

        if not href or not any(marker in link_type for marker in FEED_LINK_TYPE_MARKERS):
            continue

        feed_url = urljoin(base_url, href)
        if feed_url in seen:
            continue
        seen.add(feed_url)

        title = (link.get("title") or "").strip()
        feeds.append(DiscoveredFeed(url=feed_url, title=title or None))

    return feeds


def _platform_paths(url: str) -> Tuple[Optional[str], List[str]]:
    host = (urlparse(url).hostname or "").lower()
    for domain, paths in STATIC_SITE_PLATFORM_PATHS.items():
        if host == domain or host.endswith("." + domain):
            return domain, paths
    return None, []


async def _probe_paths(
    client: httpx.AsyncClient,
    base_url: str,
    paths: List[str],
    timeout: Optional[float],
    require_feed_type: bool,
) -> Optional[str]:
    for path in paths:
        feed_url = urljoin(base_url, path)
        if await probe_feed_url(
            feed_url,
            client=client,
            timeout=timeout,
            require_feed_type=require_feed_type,
        ):
            return feed_url
    return None


async def discover_feeds(
    page_url: str,
    *,
    client: Optional[httpx.AsyncClient] = None,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
    html: Optional[str] = None,
) -> List[DiscoveredFeed]:
    """Discover the RSS/Atom feeds for a web page.

    1. Fetches the page HTML (unless ``html`` is given)
    2. Looks for <link> elements whose type mentions rss, atom or xml
    3. If none, probes conventional feed paths, stopping at the first hit
    4. If still none on a static-site platform host, probes its paths

    Args:
        page_url: Page URL (https:// is assumed when there is no scheme)
        client: Optional shared HTTP client
        timeout: Deadline in seconds for each request
        html: Already-fetched page HTML, skips the page request

    Returns:
        Discovered feeds; an empty list when nothing was found
    """
    if client is None:
        async with build_client() as owned:
            return await discover_feeds(page_url, client=owned, timeout=timeout, html=html)

    logger = get_logger(__name__)
    url = normalize_url(page_url)
    logger.info(f"Discovering feeds for: {url}", extra={"page_url": url})

    # Step 1: fetch the page
    if html is None:
        try:
            html = await fetch_text(url, timeout=timeout, client=client)
        except FetchTimeout:
            logger.warning(f"Page timed out, giving up on discovery: {url}")
            return []
        except FetchFailed as e:
            logger.warning(f"Failed to fetch page, probing paths only: {e}")
            html = ""

    # Step 2: <link> elements
    if html:
        feeds = extract_link_feeds(html, url)
        if feeds:
            logger.info(f"Found {len(feeds)} feed(s) via link tags for {url}")
            return feeds

    # Step 3: conventional paths
    feed_url = await _probe_paths(client, url, COMMON_FEED_PATHS, timeout, True)
    if feed_url:
        logger.info(f"Found feed via path probing: {feed_url}")
        return [DiscoveredFeed(url=feed_url)]

    # Step 4: static-site platform paths
    platform, paths = _platform_paths(url)
    if platform:
        feed_url = await _probe_paths(client, url, paths, timeout, False)
        if feed_url:
            logger.info(f"Found feed via {platform} paths: {feed_url}")
            return [DiscoveredFeed(url=feed_url)]

    logger.info(f"No feed found for: {url}")
    return []
