"""Unit tests for the article-to-feed resolver."""

import asyncio

import httpx
import pytest

from feed_ingest.models.schemas import ArticleFeedInfo, SiteMetadata
from feed_ingest.services.article_resolver import (
    extract_site_metadata,
    resolve_feed_for_article,
)

pytestmark = pytest.mark.anyio


ARTICLE_PAGE = """<html><head>
    <title> A Great Article </title>
    <meta name="description" content="Thoughts on feeds">
    <link rel="shortcut icon" href="/favicon.ico">
    <link rel="apple-touch-icon" href="/touch.png">
    <link rel="alternate" type="application/rss+xml" title="Example Blog" href="/feed.xml">
</head><body><p>Text</p></body></html>"""


class TestExtractSiteMetadata:
    """Tests for page metadata extraction."""

    def test_full_metadata(self):
        metadata = extract_site_metadata(ARTICLE_PAGE, "https://example.com/posts/1")

        assert metadata == SiteMetadata(
            title="A Great Article",
            description="Thoughts on feeds",
            icon="https://example.com/favicon.ico",
        )

    def test_apple_touch_icon_fallback(self):
        """Test apple-touch-icon is used when no icon link exists."""
        html = '<head><link rel="apple-touch-icon" href="https://cdn.example.com/t.png"></head>'

        metadata = extract_site_metadata(html, "https://example.com/")

        assert metadata.icon == "https://cdn.example.com/t.png"
        assert metadata.title is None
        assert metadata.description is None


class TestResolveFeedForArticle:
    """Tests for resolve_feed_for_article."""

    async def test_resolves_feed_with_one_page_fetch(self, make_client):
        """Test the article page is fetched once and its feed link is used."""
        requests = []

        def handler(request):
            requests.append((request.method, request.url.path))
            return httpx.Response(200, text=ARTICLE_PAGE)

        async with make_client(handler) as client:
            info = await resolve_feed_for_article("https://example.com/posts/1", client=client)

        assert info == ArticleFeedInfo(
            feed_url="https://example.com/feed.xml",
            feed_title="Example Blog",
            site_title="A Great Article",
            site_description="Thoughts on feeds",
            site_icon="https://example.com/favicon.ico",
        )
        assert requests == [("GET", "/posts/1")]

    async def test_no_feed_keeps_site_metadata(self, make_client):
        """Test a page without feeds still reports its metadata."""

        def handler(request):
            if request.method == "GET":
                return httpx.Response(200, text="<html><head><title>Lonely</title></head></html>")
            return httpx.Response(404)

        async with make_client(handler) as client:
            info = await resolve_feed_for_article("https://example.com/a", client=client)

        assert info.feed_url is None
        assert info.site_title == "Lonely"

    async def test_probes_when_article_page_fails(self, make_client):
        """Test a failing article page falls back to path probing."""

        def handler(request):
            if request.method == "GET":
                return httpx.Response(403)
            if request.url.path == "/rss":
                return httpx.Response(200, headers={"content-type": "application/rss+xml"})
            return httpx.Response(404)

        async with make_client(handler) as client:
            info = await resolve_feed_for_article("example.com/a", client=client)

        assert info.feed_url == "https://example.com/rss"
        assert info.site_title is None

    async def test_timeout_returns_no_feed(self, make_client):
        """Test a timed-out article page yields an empty result."""

        async def handler(request):
            await asyncio.sleep(5)
            return httpx.Response(200, text=ARTICLE_PAGE)

        async with make_client(handler) as client:
            info = await resolve_feed_for_article(
                "https://slow.example.com/a", client=client, timeout=0.05
            )

        assert info == ArticleFeedInfo(feed_url=None)
