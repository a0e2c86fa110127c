"""Data models for feed_ingest.

This module defines the records produced by the pipeline and the stored
feed subscription row.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class FeedItem:
    """Represents one article/entry from a feed."""

    title: str
    link: str
    publication_date: Optional[datetime] = None
    content: Optional[str] = None
    summary: Optional[str] = None
    guid: Optional[str] = None
    categories: List[str] = field(default_factory=list)
    image_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["publication_date"] = (
            self.publication_date.isoformat() if self.publication_date else None
        )
        return data


@dataclass
class FeedMetadata:
    """Channel-level descriptors of a feed. Absent fields stay None."""

    title: Optional[str] = None
    description: Optional[str] = None
    link: Optional[str] = None
    language: Optional[str] = None
    copyright: Optional[str] = None
    publication_date: Optional[str] = None
    last_build_date: Optional[str] = None
    generator: Optional[str] = None
    managing_editor: Optional[str] = None
    web_master: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DiscoveredFeed:
    """A candidate feed found on a web page."""

    url: str
    title: Optional[str] = None


@dataclass
class SiteMetadata:
    """Page-level metadata of a web page."""

    title: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None


@dataclass
class ArticleFeedInfo:
    """The feed that owns a shared article, plus the article site's metadata."""

    feed_url: Optional[str]
    feed_title: Optional[str] = None
    site_title: Optional[str] = None
    site_description: Optional[str] = None
    site_icon: Optional[str] = None


@dataclass
class FeedRecord:
    """Represents a subscribed feed stored in the database."""

    id: int
    name: str
    url: str
    icon_url: Optional[str]
    status: str
    last_fetched_at: Optional[datetime]
    last_successful_fetch: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "icon_url": self.icon_url,
            "status": self.status,
            "last_fetched_at": self.last_fetched_at.isoformat()
            if self.last_fetched_at
            else None,
            "last_successful_fetch": self.last_successful_fetch.isoformat()
            if self.last_successful_fetch
            else None,
        }


@dataclass
class FeedOutcome:
    """Result of reading one feed during aggregation."""

    url: str
    name: Optional[str]
    status: str  # "active", "empty" or "error"
    items: List[FeedItem] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != "error"


@dataclass
class AggregateResult:
    """Items merged from many feeds, newest first, with per-feed outcomes."""

    items: List[FeedItem]
    outcomes: List[FeedOutcome]

    @property
    def failures(self) -> List[FeedOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def all_failed(self) -> bool:
        return bool(self.outcomes) and all(not o.ok for o in self.outcomes)
