"""HTTP fetch service.

This module retrieves feed and page text with a bounded per-call deadline
and performs the lightweight existence checks used by feed discovery.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import anyio
import httpx

from feed_ingest.config import DEFAULT_USER_AGENT, PipelineConfig
from feed_ingest.errors import FetchFailed, FetchTimeout
from feed_ingest.logging_config import get_logger


DEFAULT_TIMEOUT = 10.0

FEED_ACCEPT = "application/rss+xml, application/xml, text/xml, */*"
PROBE_ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml"

# Substrings of a Content-Type that mark a feed response
FEED_CONTENT_MARKERS = ("xml", "rss", "atom")


def build_client(config: Optional[PipelineConfig] = None) -> httpx.AsyncClient:
    """Create an HTTP client suitable for sharing across pipeline calls.

    The caller owns the client and must close it (use it with ``async with``).
    Deadlines are enforced per call by fetch_text, not by the client.
    """
    user_agent = config.user_agent if config else DEFAULT_USER_AGENT
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=None,
        headers={"User-Agent": user_agent, "Accept": FEED_ACCEPT},
    )


@asynccontextmanager
async def _client_scope(
    client: Optional[httpx.AsyncClient],
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the caller's client, or a temporary one closed on exit."""
    if client is not None:
        yield client
        return

    async with build_client() as owned:
        yield owned


async def fetch_text(
    url: str,
    *,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
    client: Optional[httpx.AsyncClient] = None,
) -> str:
    """Fetch the text body of a URL.

    Args:
        url: Absolute URL to fetch
        timeout: Deadline for this call in seconds (None disables it)
        client: Optional shared client; a temporary one is used otherwise

    Returns:
        Response body text (never empty)

    Raises:
        FetchTimeout: If the request does not finish before the deadline
        FetchFailed: On a non-success status, transport error, or empty body
    """
    logger = get_logger(__name__)
    logger.debug(f"Fetching {url}", extra={"feed_url": url})

    try:
        async with _client_scope(client) as http:
            with anyio.fail_after(timeout):
                response = await http.get(url, headers={"Accept": FEED_ACCEPT})
    except (TimeoutError, httpx.TimeoutException) as e:
        logger.warning(f"Timed out fetching {url}", extra={"feed_url": url})
        raise FetchTimeout(url, timeout) from e
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning(f"Failed to fetch {url}: {e}", extra={"feed_url": url})
        raise FetchFailed(f"Failed to fetch {url}: {e}", url=url) from e

    if not response.is_success:
        logger.warning(
            f"HTTP error {response.status_code} fetching {url}",
            extra={"feed_url": url, "status_code": response.status_code},
        )
        raise FetchFailed(
            f"HTTP error {response.status_code} fetching {url}",
            url=url,
            status_code=response.status_code,
        )

    text = response.text
    if not text.strip():
        logger.warning(f"Empty response from {url}", extra={"feed_url": url})
        raise FetchFailed(
            f"Empty response from {url}", url=url, status_code=response.status_code
        )

    return text


def is_feed_content_type(content_type: Optional[str]) -> bool:
    """Check whether a Content-Type header describes an XML/RSS/Atom body."""
    if not content_type:
        return False
    content_type = content_type.lower()
    return any(marker in content_type for marker in FEED_CONTENT_MARKERS)


async def probe_feed_url(
    url: str,
    *,
    client: Optional[httpx.AsyncClient] = None,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
    require_feed_type: bool = True,
) -> bool:
    """Check whether a URL answers like a feed without downloading it.

    Sends HEAD, falling back to GET when the server rejects HEAD.

    Args:
        url: Candidate feed URL
        client: Optional shared client
        timeout: Deadline for the whole probe in seconds
        require_feed_type: Also require an XML/RSS/Atom Content-Type

    Returns:
        True if the URL looks like a feed, False otherwise (including errors)
    """
    logger = get_logger(__name__)
    headers = {"Accept": PROBE_ACCEPT}

    try:
        async with _client_scope(client) as http:
            with anyio.fail_after(timeout):
                response = await http.head(url, headers=headers)
                if response.status_code in (405, 501):
                    response = await http.get(url, headers=headers)
    except (TimeoutError, httpx.HTTPError, httpx.InvalidURL) as e:
        logger.debug(f"Probe failed for {url}: {e!r}", extra={"feed_url": url})
        return False

    if not response.is_success:
        return False

    if not require_feed_type:
        return True

    return is_feed_content_type(response.headers.get("content-type"))
