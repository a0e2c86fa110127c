"""Unit tests for feed discovery."""

import asyncio

import httpx
import pytest

from feed_ingest.models.schemas import DiscoveredFeed
from feed_ingest.services.feed_discovery import (
    COMMON_FEED_PATHS,
    discover_feeds,
    extract_link_feeds,
    normalize_url,
)

pytestmark = pytest.mark.anyio


PAGE_WITH_LINKS = """<html><head>
    <link rel="stylesheet" type="text/css" href="/style.css">
    <link rel="alternate" type="application/rss+xml" title="Main Feed" href="/feed.xml">
    <link rel="alternate" type="application/atom+xml" href="https://cdn.example.com/atom.xml">
    <link rel="alternate" type="application/rss+xml" title="Duplicate" href="/feed.xml">
</head><body></body></html>"""

PLAIN_PAGE = "<html><head><title>Plain</title></head><body>No feeds</body></html>"


def site(pages, feeds=None, html_ok_paths=()):
    """Build a handler serving HTML pages and answering feed probes.

    ``feeds`` maps paths to a feed content type; ``html_ok_paths`` answer
    200 with text/html.
    """
    feeds = feeds or {}
    requests = []

    def handler(request):
        requests.append((request.method, request.url.path))
        path = request.url.path
        if request.method == "GET" and path in pages:
            return httpx.Response(200, text=pages[path], headers={"content-type": "text/html"})
        if path in feeds:
            return httpx.Response(200, headers={"content-type": feeds[path]})
        if path in html_ok_paths:
            return httpx.Response(200, headers={"content-type": "text/html"})
        return httpx.Response(404)

    return handler, requests


class TestExtractLinkFeeds:
    """Tests for <link> element extraction."""

    def test_feed_links_in_document_order(self):
        """Test rss/atom links are found, resolved and de-duplicated."""
        feeds = extract_link_feeds(PAGE_WITH_LINKS, "https://example.com/blog/post")

        assert feeds == [
            DiscoveredFeed(url="https://example.com/feed.xml", title="Main Feed"),
            DiscoveredFeed(url="https://cdn.example.com/atom.xml", title=None),
        ]

    def test_ignores_links_without_href_or_feed_type(self):
        html = """<head>
            <link rel="alternate" type="application/rss+xml">
            <link rel="icon" href="/favicon.ico">
        </head>"""

        assert extract_link_feeds(html, "https://example.com") == []


class TestNormalizeUrl:
    def test_adds_scheme(self):
        assert normalize_url("example.com") == "https://example.com"
        assert normalize_url("  example.com/ ") == "https://example.com"

    def test_keeps_existing_scheme(self):
        assert normalize_url("http://example.com/blog") == "http://example.com/blog"


class TestDiscoverFeeds:
    """Tests for the discovery pipeline."""

    async def test_link_tags_win_without_probing(self, make_client):
        """Test that advertised feeds are returned without probing paths."""
        handler, requests = site({"/": PAGE_WITH_LINKS})

        async with make_client(handler) as client:
            feeds = await discover_feeds("https://example.com", client=client)

        assert feeds[0].url == "https://example.com/feed.xml"
        assert requests == [("GET", "/")]

    async def test_probes_common_paths_in_order(self, make_client):
        """Test path probing stops at the first feed-typed hit."""
        handler, requests = site({"/": PLAIN_PAGE}, feeds={"/feed.xml": "application/rss+xml"})

        async with make_client(handler) as client:
            feeds = await discover_feeds("https://example.com", client=client)

        assert feeds == [DiscoveredFeed(url="https://example.com/feed.xml")]
        probed = [path for method, path in requests if method == "HEAD"]
        assert probed == COMMON_FEED_PATHS[:3]

    async def test_html_responses_are_not_feeds(self, make_client):
        """Test a path answering with HTML is skipped during common probing."""
        handler, _ = site(
            {"/": PLAIN_PAGE},
            feeds={"/atom.xml": "application/atom+xml"},
            html_ok_paths=("/feed",),
        )

        async with make_client(handler) as client:
            feeds = await discover_feeds("https://example.com", client=client)

        assert [f.url for f in feeds] == ["https://example.com/atom.xml"]

    async def test_nothing_found(self, make_client):
        """Test an empty list when no strategy finds a feed."""
        handler, requests = site({"/": PLAIN_PAGE})

        async with make_client(handler) as client:
            feeds = await discover_feeds("https://example.com", client=client)

        assert feeds == []
        assert len([r for r in requests if r[0] == "HEAD"]) == len(COMMON_FEED_PATHS)

    async def test_github_pages_fallback(self, make_client):
        """Test static-site paths accept any successful response."""
        handler, _ = site({"/": PLAIN_PAGE}, html_ok_paths=("/feed.xml",))

        async with make_client(handler) as client:
            feeds = await discover_feeds("https://someone.github.io", client=client)

        assert feeds == [DiscoveredFeed(url="https://someone.github.io/feed.xml")]

    async def test_no_platform_fallback_for_other_hosts(self, make_client):
        handler, _ = site({"/": PLAIN_PAGE}, html_ok_paths=("/feed.xml",))

        async with make_client(handler) as client:
            assert await discover_feeds("https://example.com", client=client) == []

    async def test_scheme_added_before_fetch(self, make_client):
        """Test a bare host is fetched over https."""
        urls = []

        def handler(request):
            urls.append(request.url)
            return httpx.Response(200, text=PAGE_WITH_LINKS)

        async with make_client(handler) as client:
            feeds = await discover_feeds("example.com", client=client)

        assert urls[0].scheme == "https"
        assert urls[0].host == "example.com"
        assert feeds[0].url == "https://example.com/feed.xml"

    async def test_unparseable_url_finds_nothing(self, make_client):
        """Test a URL httpx cannot parse yields an empty list instead of raising."""
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, text=PAGE_WITH_LINKS)

        async with make_client(handler) as client:
            feeds = await discover_feeds("example.com:abc", client=client)

        assert feeds == []
        assert requests == []

    async def test_page_timeout_gives_up(self, make_client):
        """Test a page that times out yields no feeds and no probes."""
        requests = []

        async def handler(request):
            requests.append(request.method)
            await asyncio.sleep(5)
            return httpx.Response(200, text=PLAIN_PAGE)

        async with make_client(handler) as client:
            feeds = await discover_feeds("https://slow.example.com", client=client, timeout=0.05)

        assert feeds == []
        assert requests == ["GET"]

    async def test_page_error_still_probes(self, make_client):
        """Test a failing page still allows path probing."""

        def handler(request):
            if request.method == "GET":
                return httpx.Response(500)
            if request.url.path == "/feed":
                return httpx.Response(200, headers={"content-type": "application/atom+xml"})
            return httpx.Response(404)

        async with make_client(handler) as client:
            feeds = await discover_feeds("https://example.com", client=client)

        assert feeds == [DiscoveredFeed(url="https://example.com/feed")]

    async def test_prefetched_html_skips_page_request(self, make_client):
        handler, requests = site({})

        async with make_client(handler) as client:
            feeds = await discover_feeds(
                "https://example.com", client=client, html=PAGE_WITH_LINKS
            )

        assert len(feeds) == 2
        assert requests == []
