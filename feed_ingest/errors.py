"""Exceptions raised by the feed ingestion pipeline."""

from typing import Optional


class FeedIngestError(Exception):
    """Base class for pipeline errors."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class FetchError(FeedIngestError):
    """A network fetch did not produce usable text."""


class FetchTimeout(FetchError):
    """The request did not complete before its deadline."""

    def __init__(self, url: str, timeout: Optional[float]):
        super().__init__(f"Timed out after {timeout}s fetching {url}", url=url)
        self.timeout = timeout


class FetchFailed(FetchError):
    """Non-success HTTP status, transport failure, or an empty body."""

    def __init__(self, message: str, url: str, status_code: Optional[int] = None):
        super().__init__(message, url=url)
        self.status_code = status_code


class FeedParseError(FeedIngestError):
    """The document could not be read as XML."""


class EmptyFeed(FeedIngestError):
    """A readable feed that currently holds no valid items.

    Callers treat this as a successful, empty result: the feed can still be
    subscribed to.
    """
