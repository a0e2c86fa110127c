"""Shared fixtures for feed_ingest tests."""

from typing import Callable
from unittest.mock import AsyncMock, patch

import aiosqlite
import httpx
import pytest

from feed_ingest.config import reset_config
from feed_ingest.storage.database import init_database


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Run every test against default configuration."""
    for name in (
        "FEED_INGEST_NAME",
        "FEED_INGEST_LOG_LEVEL",
        "FEED_INGEST_LOG_FORMAT",
        "FEED_INGEST_FETCH_TIMEOUT",
        "FEED_INGEST_BATCH_SIZE",
        "FEED_INGEST_PERMISSIVE_XML",
        "FEED_INGEST_USER_AGENT",
        "FEED_INGEST_DB_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def make_client() -> Callable[[Callable], httpx.AsyncClient]:
    """Build an AsyncClient whose requests are answered by ``handler``."""

    def factory(handler: Callable) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.MockTransport(handler),
            follow_redirects=True,
        )

    return factory


@pytest.fixture
async def in_memory_db():
    """Create an in-memory database for testing."""
    db = await aiosqlite.connect(":memory:")
    db.row_factory = aiosqlite.Row
    await init_database(db)

    # Patch get_database to return our in-memory connection
    with patch("feed_ingest.storage.database.get_database", AsyncMock(return_value=db)):
        yield db

    await db.close()
