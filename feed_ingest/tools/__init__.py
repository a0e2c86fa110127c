"""MCP tools for feed_ingest."""

from .feed_tools import feed_tools

__all__ = ["feed_tools"]
