"""
SQLite storage for aggregated feed entries.

Provides async database operations to persist entries once per GUID
and to read them back in reverse chronological order.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from rss_aggregator.extractor import FeedItem

logger = logging.getLogger(__name__)

DEFAULT_RECENT_LIMIT = 50

AUTHOR_NAME_PATTERN = re.compile(r"\((.*?)\)")

ENTRY_COLUMNS = (
    "id, title, content, author, link, updated, guid, site_link, site_title"
)


@dataclass
class Entry:
    """
    A persisted feed entry.

    Attributes
    ----------
    id : int
        Storage identity.
    title : str
        Entry title.
    content : str
        HTML content.
    author : str
        Raw author string.
    link : str
        Entry URL.
    updated : datetime | None
        Last update time.
    guid : str
        Unique deduplication identity.
    site_link : str
        Link of the source site.
    site_title : str
        Title of the source site.
    """

    id: int
    title: str
    content: str
    author: str
    link: str
    updated: datetime | None
    guid: str
    site_link: str
    site_title: str

    @property
    def author_name(self) -> str:
        """Display name, e.g. ``Jane`` for ``jane@example.com (Jane)``."""
        match = AUTHOR_NAME_PATTERN.search(self.author or "")
        if match:
            return match.group(1)
        return self.author

    @classmethod
    def from_row(cls, row: tuple) -> "Entry":
        """Build an Entry from a row selected with ENTRY_COLUMNS."""
        id_, title, content, author, link, updated, guid, site_link, site_title = row
        return cls(
            id=id_,
            title=title or "",
            content=content or "",
            author=author or "",
            link=link or "",
            updated=datetime.fromisoformat(updated) if updated else None,
            guid=guid,
            site_link=site_link or "",
            site_title=site_title or "",
        )


def _serialize_datetime(value: datetime | None) -> str | None:
    """Serialize to ISO 8601, converting aware values to UTC so text order is time order."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.isoformat()


class EntryStore:
    """
    Async SQLite store of aggregated entries.

    The GUID is the sole deduplication key: an entry is written once and
    never modified afterwards.
    """

    def __init__(self, database_path: str | Path):
        """
        Initialize storage with database path.

        Parameters
        ----------
        database_path : str | Path
            Path to the SQLite database file, or ``:memory:``.
        """
        self.database_path = Path(database_path)
        self._connection: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """
        Initialize the database connection and create tables.

        Creates the database file and parent directories if they don't exist.
        """
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

        logger.info("Initializing database at %s", self.database_path)

        self._connection = await aiosqlite.connect(self.database_path)
        await self._create_tables()

    async def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        if self._connection is None:
            raise RuntimeError("Database not initialized")

        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS entries (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT,
                content TEXT,
                author TEXT,
                link TEXT,
                updated TEXT,
                guid TEXT NOT NULL UNIQUE,
                site_link TEXT,
                site_title TEXT
            )
        """)

        await self._connection.execute("""
            CREATE INDEX IF NOT EXISTS idx_entries_updated
            ON entries (updated)
        """)

        await self._connection.commit()
        logger.debug("Database tables created/verified")

    async def exists(self, guid: str) -> bool:
        """
        Check if an entry with this GUID is stored.

        Parameters
        ----------
        guid : str
            Deduplication identity.

        Returns
        -------
        bool
            True if the entry exists.
        """
        if self._connection is None:
            raise RuntimeError("Database not initialized")

        cursor = await self._connection.execute(
            "SELECT 1 FROM entries WHERE guid = ?",
            (guid,),
        )
        result = await cursor.fetchone()
        return result is not None

    async def insert_if_absent(self, item: FeedItem) -> bool:
        """
        Store an item unless its GUID is already present.

        The existence check and the insert are one statement, so two
        items with the same GUID never both get stored.

        Parameters
        ----------
        item : FeedItem
            The item to store.

        Returns
        -------
        bool
            True if a new entry was created, False for a duplicate.
        """
        if self._connection is None:
            raise RuntimeError("Database not initialized")

        cursor = await self._connection.execute(
            """
            INSERT OR IGNORE INTO entries
                (title, content, author, link, updated, guid, site_link, site_title)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                item.title,
                item.content,
                item.author,
                item.link,
                _serialize_datetime(item.updated),
                item.guid,
                item.site_link,
                item.site_title,
            ),
        )
        await self._connection.commit()

        inserted = cursor.rowcount == 1
        if inserted:
            logger.debug("Stored entry: %s", item.guid[:50])
        else:
            logger.debug("Entry already stored: %s", item.guid[:50])
        return inserted

    async def find_recent(self, limit: int = DEFAULT_RECENT_LIMIT) -> list[Entry]:
        """
        Return the most recently updated entries.

        Parameters
        ----------
        limit : int
            Maximum number of entries to return.

        Returns
        -------
        list[Entry]
            Entries ordered by ``updated`` descending; undated entries last.
        """
        if self._connection is None:
            raise RuntimeError("Database not initialized")

        cursor = await self._connection.execute(
            f"""
            SELECT {ENTRY_COLUMNS} FROM entries
            ORDER BY updated IS NULL, updated DESC, id DESC
            LIMIT ?
            """,
            (limit,),
        )
        rows = await cursor.fetchall()
        return [Entry.from_row(row) for row in rows]

    async def count(self) -> int:
        """
        Get the number of stored entries.

        Returns
        -------
        int
            Number of entries.
        """
        if self._connection is None:
            raise RuntimeError("Database not initialized")

        cursor = await self._connection.execute("SELECT COUNT(*) FROM entries")
        result = await cursor.fetchone()
        return result[0] if result else 0

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None
            logger.debug("Database connection closed")

    async def __aenter__(self) -> "EntryStore":
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
