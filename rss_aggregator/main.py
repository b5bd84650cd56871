"""
Main entry point for RSS Aggregator.

Runs the ingestion pipeline over every configured feed: fetch cache,
then extractor, then entry store, with failures contained per feed.
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

import coloredlogs
import yaml
from pydantic import ValidationError

from rss_aggregator.cache import FetchCache
from rss_aggregator.config import AppConfig, load_config
from rss_aggregator.errors import ConfigError
from rss_aggregator.extractor import FeedExtractor
from rss_aggregator.storage import Entry, EntryStore

logger = logging.getLogger(__name__)


@dataclass
class FeedResult:
    """
    Outcome of processing a single feed.

    Attributes
    ----------
    url : str
        Feed URL.
    fetched : bool
        True if new data was downloaded and parsed.
    inserted : int
        Number of new entries stored.
    skipped : int
        Number of items already present in the store.
    error : str | None
        Description of the failure, None on success.
    """

    url: str
    fetched: bool = False
    inserted: int = 0
    skipped: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class FeedAggregator:
    """
    Main RSS aggregator application.

    Coordinates the fetch cache, feed extraction and entry storage.
    """

    def __init__(self, config: AppConfig):
        """
        Initialize the aggregator.

        Parameters
        ----------
        config : AppConfig
            Validated application configuration.
        """
        self.config = config
        self.cache: FetchCache | None = None
        self.extractor = FeedExtractor()
        self.storage: EntryStore | None = None

    @classmethod
    def from_file(cls, config_path: str | Path) -> "FeedAggregator":
        """Create an aggregator from a YAML configuration file."""
        return cls(load_config(config_path))

    async def start(self) -> None:
        """Open the entry store and the fetch cache."""
        logger.info("Starting RSS Aggregator")

        self.storage = EntryStore(self.config.storage.database_path)
        await self.storage.initialize()

        defaults = self.config.defaults
        self.cache = FetchCache(
            self.config.cache.directory,
            expire_interval=self.config.cache.expire_interval,
            timeout=defaults.request_timeout,
            user_agent=defaults.user_agent,
            proxy_url=defaults.proxy,
        )

    async def stop(self) -> None:
        """Release network and database resources."""
        if self.cache:
            await self.cache.close()
        if self.storage:
            await self.storage.close()
        logger.info("RSS Aggregator stopped")

    async def __aenter__(self) -> "FeedAggregator":
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.stop()

    async def process_feeds(self, urls: list[str] | None = None) -> list[FeedResult]:
        """
        Ingest new entries from every feed.

        A failing feed never prevents the others from being processed.

        Parameters
        ----------
        urls : list[str] | None
            Feed URLs to process. Defaults to the configured feeds.

        Returns
        -------
        list[FeedResult]
            One result per feed, in the order of ``urls``.
        """
        if urls is None:
            urls = self.config.feeds

        semaphore = asyncio.Semaphore(self.config.defaults.max_workers)

        async def run(url: str) -> FeedResult:
            async with semaphore:
                return await self._process_feed(url)

        results = await asyncio.gather(*(run(url) for url in urls))

        inserted = sum(r.inserted for r in results)
        failed = [r for r in results if not r.ok]
        logger.info(
            "Processed %d feed(s): %d new entr%s, %d failure(s)",
            len(results),
            inserted,
            "y" if inserted == 1 else "ies",
            len(failed),
        )
        return list(results)

    async def _process_feed(self, url: str) -> FeedResult:
        """
        Fetch, parse and store a single feed.

        Parameters
        ----------
        url : str
            Feed URL.

        Returns
        -------
        FeedResult
            Outcome of the feed, with the error message if it failed.
        """
        if not self.cache or not self.storage:
            raise RuntimeError("Components not initialized")

        result = FeedResult(url=url)
        try:
            fetch = await self.cache.check_for_updates(url)
            if not fetch.fresh or fetch.body is None:
                return result

            result.fetched = True
            feed = self.extractor.parse(fetch.body, url=url)

            for item in feed.items:
                if await self.storage.insert_if_absent(item):
                    result.inserted += 1
                else:
                    result.skipped += 1
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Error processing feed <%s>: %s", url, e)
            result.error = str(e) or type(e).__name__
            return result

        if result.inserted:
            logger.info("Stored %d new entries from <%s>", result.inserted, url)
        return result

    async def recent_entries(self, limit: int | None = None) -> list[Entry]:
        """Entries for the HTML page, newest first."""
        if not self.storage:
            raise RuntimeError("Components not initialized")
        return await self.storage.find_recent(
            limit if limit is not None else self.config.site.page_size
        )

    async def feed_entries(self) -> list[Entry]:
        """Entries for the Atom feed, newest first."""
        return await self.recent_entries(self.config.site.feed_page_size)


def setup_logging(verbose: bool = False) -> None:
    """
    Configure application logging.

    Parameters
    ----------
    verbose : bool
        If True, set log level to DEBUG.
    """
    level = logging.DEBUG if verbose else logging.INFO

    coloredlogs.install(
        level=level,
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from third-party libraries
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


async def run(config: AppConfig, limit: int | None = None) -> list[FeedResult]:
    """
    Run one ingestion pass and log the most recent entries.

    Parameters
    ----------
    config : AppConfig
        Application configuration.
    limit : int | None
        Number of recent entries to list. Defaults to the page size.

    Returns
    -------
    list[FeedResult]
        Per-feed results of the pass.
    """
    async with FeedAggregator(config) as aggregator:
        results = await aggregator.process_feeds()
        for entry in await aggregator.recent_entries(limit):
            updated = entry.updated.strftime("%B %d, %Y") if entry.updated else "-"
            logger.info("[%s] %s (%s)", updated, entry.title, entry.site_title)
    return results


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Aggregate RSS/Atom feeds into a single entry store",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "-c",
        "--config",
        default="config.yaml",
        help="Path to configuration file",
    )
    parser.add_argument(
        "-n",
        "--limit",
        type=int,
        default=None,
        help="Number of recent entries to list (defaults to the page size)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    args = parser.parse_args()

    setup_logging(args.verbose)

    try:
        config = load_config(args.config)
    except (FileNotFoundError, ConfigError, ValidationError, yaml.YAMLError) as e:
        logger.error("Invalid configuration: %s", e)
        sys.exit(1)

    try:
        asyncio.run(run(config, args.limit))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")


if __name__ == "__main__":
    main()
