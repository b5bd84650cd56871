"""
Shared fixtures for RSS Aggregator tests.

Provides common test fixtures for use across all test modules.
"""

from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

from rss_aggregator.cache import FetchCache
from rss_aggregator.config import AppConfig, CacheConfig, StorageConfig
from rss_aggregator.extractor import FeedItem
from rss_aggregator.storage import EntryStore


# Path to test fixtures directory
FIXTURES_DIR = Path(__file__).parent / "fixtures"


class FakeClock:
    """Controllable replacement for time.time."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fixtures_dir() -> Path:
    """Return path to fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def sample_rss_path(fixtures_dir: Path) -> Path:
    """Return path to sample RSS feed file."""
    return fixtures_dir / "sample_rss.xml"


@pytest.fixture
def sample_atom_path(fixtures_dir: Path) -> Path:
    """Return path to sample Atom feed file."""
    return fixtures_dir / "sample_atom.xml"


@pytest.fixture
def sample_config_path(fixtures_dir: Path) -> Path:
    """Return path to sample config file."""
    return fixtures_dir / "sample_config.yaml"


@pytest.fixture
def sample_rss_content(sample_rss_path: Path) -> bytes:
    """Return contents of sample RSS feed."""
    return sample_rss_path.read_bytes()


@pytest.fixture
def sample_atom_content(sample_atom_path: Path) -> bytes:
    """Return contents of sample Atom feed."""
    return sample_atom_path.read_bytes()


@pytest.fixture
def sample_feed_item() -> FeedItem:
    """
    Create a sample feed item for testing.

    Returns
    -------
    FeedItem
        A fully populated feed item instance.
    """
    return FeedItem(
        title="Test Entry Title",
        content='<p><img src="http://example.com/a.png"></p>',
        author="Test Author",
        link="http://example.com/test-entry",
        updated=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
        guid="tag:example.com,2024:test-entry",
        site_link="http://example.com/",
        site_title="Example",
    )


@pytest.fixture
def clock() -> FakeClock:
    """Return a controllable clock."""
    return FakeClock()


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    """Return a (not yet created) cache directory."""
    return tmp_path / "cache"


@pytest_asyncio.fixture
async def fetch_cache(
    cache_dir: Path, clock: FakeClock
) -> AsyncGenerator[FetchCache, None]:
    """
    Create a fetch cache backed by a temporary directory.

    Yields
    ------
    FetchCache
        A cache using the fake clock and a two hour freshness window.
    """
    cache = FetchCache(cache_dir, expire_interval=7200, clock=clock)
    yield cache
    await cache.close()


@pytest_asyncio.fixture
async def in_memory_storage() -> AsyncGenerator[EntryStore, None]:
    """
    Create an in-memory SQLite storage for testing.

    Yields
    ------
    EntryStore
        An initialized in-memory storage instance.
    """
    storage = EntryStore(":memory:")
    await storage.initialize()
    yield storage
    await storage.close()


@pytest.fixture
def minimal_config_dict() -> dict[str, Any]:
    """
    Create a minimal valid configuration dictionary.

    Returns
    -------
    dict
        Configuration dictionary that can be used to create AppConfig.
    """
    return {
        "feeds": ["https://example.com/feed.xml"],
    }


@pytest.fixture
def full_config_dict(minimal_config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Create a fully configured configuration dictionary.

    Returns
    -------
    dict
        Complete configuration dictionary with all options.
    """
    config = minimal_config_dict.copy()
    config["site"] = {
        "title": "Planet Test",
        "id": "tag:planet.test,2024:feed",
        "author": "Planet Team",
        "external_feed": "https://feeds.example.com/planet",
        "page_size": 30,
        "feed_page_size": 10,
    }
    config["cache"] = {"directory": "/tmp/cache", "expire_interval": 600}
    config["defaults"] = {
        "request_timeout": 60,
        "user_agent": "Test/1.0",
        "proxy": "socks5://localhost:1080",
        "max_workers": 8,
    }
    config["storage"] = {
        "database_path": "data/test.db",
    }
    return config


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """Create an app configuration using temporary paths and three feeds."""
    return AppConfig(
        cache=CacheConfig(directory=str(tmp_path / "cache")),
        storage=StorageConfig(database_path=":memory:"),
        feeds=[
            "http://one.example.com/feed.xml",
            "http://two.example.com/feed.xml",
            "http://three.example.com/feed.xml",
        ],
    )


def make_rss(site: str, *guids: str) -> bytes:
    """Build a minimal RSS document with one item per GUID."""
    items = "".join(
        f"""
        <item>
            <title>Item {guid}</title>
            <link>{site}/{guid}</link>
            <guid isPermaLink="false">tag:{guid}</guid>
            <description><![CDATA[<img src="/{guid}.png">]]></description>
            <pubDate>Mon, 01 Jan 2024 12:00:00 GMT</pubDate>
        </item>"""
        for guid in guids
    )
    return f"""<?xml version="1.0"?>
<rss version="2.0">
    <channel>
        <title>{site}</title>
        <link>{site}</link>{items}
    </channel>
</rss>
""".encode()


@pytest.fixture
def rss_factory():
    """Return a builder of minimal RSS documents."""
    return make_rss
