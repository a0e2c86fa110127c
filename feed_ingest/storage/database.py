"""Database storage for feed_ingest.

This module provides async SQLite operations for subscribed feeds and their
fetch status.
Database location: ~/.feed_ingest/feed_ingest.db (or FEED_INGEST_DB_PATH env var)
"""

import os
import aiosqlite
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from feed_ingest.config import get_config
from feed_ingest.models.schemas import FeedRecord


FEED_STATUSES = ("pending", "active", "error")


def _get_db_path() -> Path:
    """Get the database path, respecting FEED_INGEST_DB_PATH env var for testing."""
    env_path = os.environ.get("FEED_INGEST_DB_PATH")
    if env_path:
        return Path(env_path)
    return get_config().db_path


# Singleton connection
_db_connection: Optional[aiosqlite.Connection] = None


async def get_database() -> aiosqlite.Connection:
    """Get or create a singleton database connection.

    Returns:
        Active database connection
    """
    global _db_connection

    if _db_connection is None:
        db_path = _get_db_path()
        db_path.parent.mkdir(parents=True, exist_ok=True)

        _db_connection = await aiosqlite.connect(db_path)
        _db_connection.row_factory = aiosqlite.Row
        await init_database(_db_connection)

    return _db_connection


async def init_database(db: Optional[aiosqlite.Connection] = None) -> None:
    """Initialize database tables if they don't exist.

    Args:
        db: Optional database connection (uses singleton if not provided)
    """
    if db is None:
        db = await get_database()

    await db.execute("""
        CREATE TABLE IF NOT EXISTS feeds (
            id INTEGER PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            url TEXT NOT NULL UNIQUE,
            icon_url TEXT,
            status TEXT NOT NULL DEFAULT 'pending',
            last_fetched_at TIMESTAMP,
            last_successful_fetch TIMESTAMP
        )
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS idx_feeds_status ON feeds(status)
    """)

    await db.commit()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _row_to_feed(row: aiosqlite.Row) -> FeedRecord:
    return FeedRecord(
        id=row["id"],
        name=row["name"],
        url=row["url"],
        icon_url=row["icon_url"],
        status=row["status"],
        last_fetched_at=_parse_timestamp(row["last_fetched_at"]),
        last_successful_fetch=_parse_timestamp(row["last_successful_fetch"]),
    )


async def add_feed(name: str, url: str, icon_url: Optional[str] = None) -> FeedRecord:
    """Add a feed subscription.

    Args:
        name: Unique display name
        url: Feed URL
        icon_url: Optional site icon URL

    Returns:
        The created FeedRecord (status "pending")

    Raises:
        ValueError: If a feed with the same name or URL already exists
    """
    db = await get_database()

    try:
        cursor = await db.execute(
            "INSERT INTO feeds (name, url, icon_url) VALUES (?, ?, ?)",
            (name, url, icon_url),
        )
        await db.commit()
    except aiosqlite.IntegrityError as e:
        raise ValueError(f"Feed with name '{name}' or URL '{url}' already exists") from e

    return FeedRecord(
        id=cursor.lastrowid,
        name=name,
        url=url,
        icon_url=icon_url,
        status="pending",
        last_fetched_at=None,
        last_successful_fetch=None,
    )


async def remove_feed(name: str) -> bool:
    """Remove a feed by name.

    Returns:
        True if a feed was removed
    """
    db = await get_database()

    cursor = await db.execute("DELETE FROM feeds WHERE name = ?", (name,))
    await db.commit()
    return cursor.rowcount > 0


async def get_feed_by_name(name: str) -> Optional[FeedRecord]:
    """Get a feed by its name."""
    db = await get_database()

    cursor = await db.execute("SELECT * FROM feeds WHERE name = ?", (name,))
    row = await cursor.fetchone()
    return _row_to_feed(row) if row is not None else None


async def get_feed_by_url(url: str) -> Optional[FeedRecord]:
    """Get a feed by its URL."""
    db = await get_database()

    cursor = await db.execute("SELECT * FROM feeds WHERE url = ?", (url,))
    row = await cursor.fetchone()
    return _row_to_feed(row) if row is not None else None


async def list_feeds(status: Optional[str] = None) -> List[FeedRecord]:
    """List feeds ordered by name, optionally filtered by status.

    Raises:
        ValueError: If status is not a known feed status
    """
    db = await get_database()

    if status is None:
        cursor = await db.execute("SELECT * FROM feeds ORDER BY name")
    else:
        if status not in FEED_STATUSES:
            raise ValueError(f"Unknown feed status: {status}")
        cursor = await db.execute(
            "SELECT * FROM feeds WHERE status = ? ORDER BY name", (status,)
        )

    feeds = []
    async for row in cursor:
        feeds.append(_row_to_feed(row))
    return feeds


async def mark_feed_active(feed_id: int) -> None:
    """Record a successful fetch (including a valid empty feed)."""
    db = await get_database()

    now = _now()
    await db.execute(
        """
        UPDATE feeds
        SET status = 'active', last_fetched_at = ?, last_successful_fetch = ?
        WHERE id = ?
        """,
        (now, now, feed_id),
    )
    await db.commit()


async def mark_feed_error(feed_id: int) -> None:
    """Record a failed fetch. last_successful_fetch is left untouched."""
    db = await get_database()

    await db.execute(
        "UPDATE feeds SET status = 'error', last_fetched_at = ? WHERE id = ?",
        (_now(), feed_id),
    )
    await db.commit()


async def close_database() -> None:
    """Close the database connection."""
    global _db_connection

    if _db_connection is not None:
        await _db_connection.close()
        _db_connection = None
