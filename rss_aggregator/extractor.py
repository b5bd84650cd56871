"""
RSS/Atom feed extraction module.

Parses fetched feed bytes with feedparser into normalized items and
applies the content fix-ups needed before storage.
"""

import calendar
import html
import io
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import feedparser

from rss_aggregator.errors import ParseError

logger = logging.getLogger(__name__)

# Explicit ids are only trusted as identity when they look like a URI
URI_GUID_PATTERN = re.compile(r"^(http|urn|tag):", re.IGNORECASE)

# src="..." / href='...' whose value is not already absolute; each quote
# style only ends at its own quote character
RELATIVE_URL_PATTERN = re.compile(
    r"""(src|href)=(?:"(?!http)([^"]*)"|'(?!http)([^']*)')""", re.IGNORECASE
)


@dataclass
class FeedItem:
    """
    Normalized RSS/Atom item ready for storage.

    Attributes
    ----------
    title : str
        Item title.
    content : str
        HTML content with absolute ``src``/``href`` URLs.
    author : str
        Item author, empty if unknown.
    link : str
        Item URL.
    updated : datetime | None
        Last update or publication time in UTC.
    guid : str
        Deduplication identity.
    site_link : str
        Link of the site publishing the feed.
    site_title : str
        Title of the site publishing the feed.
    """

    title: str = ""
    content: str = ""
    author: str = ""
    link: str = ""
    updated: datetime | None = None
    guid: str = ""
    site_link: str = ""
    site_title: str = ""


@dataclass
class ParsedFeed:
    """Feed-level metadata together with its extracted items."""

    site_link: str = ""
    site_title: str = ""
    items: list[FeedItem] = field(default_factory=list)


def first_present(*candidates: Callable[[], Any]) -> Any:
    """
    Evaluate candidates in order and return the first non-empty value.

    Parameters
    ----------
    *candidates : Callable[[], Any]
        Zero-argument callables, tried in priority order.

    Returns
    -------
    Any
        The first truthy value, or None if every candidate is empty.
    """
    for candidate in candidates:
        value = candidate()
        if value:
            return value
    return None


def guid_for(entry: Any) -> str:
    """
    Derive the identity of a feed entry.

    An explicit ``id``/``guid`` is used verbatim when it starts with
    ``http:``, ``urn:`` or ``tag:``; otherwise the entry link is used.

    Parameters
    ----------
    entry : Any
        A feedparser entry.

    Returns
    -------
    str
        The identity string, empty if the entry has neither.
    """
    guid = entry.get("id") or ""
    if URI_GUID_PATTERN.match(guid):
        return guid
    return entry.get("link") or ""


def correct_urls(text: str, site_link: str) -> str:
    """
    Make relative ``src``/``href`` attribute values absolute.

    Parameters
    ----------
    text : str
        HTML content.
    site_link : str
        Base link of the site; a single trailing slash is enforced.

    Returns
    -------
    str
        Content with every non-``http`` attribute value prefixed by the
        site link. The original quote character is kept.
    """
    if not site_link:
        return text
    if not site_link.endswith("/"):
        site_link += "/"

    def replacer(match: re.Match) -> str:
        attribute, double_quoted, single_quoted = match.groups()
        if double_quoted is not None:
            quote, url = '"', double_quoted
        else:
            quote, url = "'", single_quoted
        if url.startswith("/"):
            url = url[1:]
        return f"{attribute}={quote}{site_link}{url}{quote}"

    return RELATIVE_URL_PATTERN.sub(replacer, text)


def fix_content(content: str, site_link: str) -> str:
    """
    Normalize item content before storage.

    Content without any ``<`` is treated as escaped HTML and unescaped
    first, then relative URLs are made absolute.

    Parameters
    ----------
    content : str
        Raw item content.
    site_link : str
        Link of the site publishing the feed.

    Returns
    -------
    str
        Fixed content.
    """
    if "<" not in content:
        content = html.unescape(content)
    return correct_urls(content, site_link)


def _to_datetime(value: Any) -> datetime | None:
    """Convert a feedparser time tuple (always UTC) to an aware datetime."""
    if not value:
        return None
    return datetime.fromtimestamp(calendar.timegm(value), tz=timezone.utc)


def _content_value(entry: Any) -> str:
    contents = entry.get("content") or []
    for content in contents:
        value = content.get("value")
        if value:
            return value
    return ""


def _contributor_name(entry: Any) -> str:
    contributors = entry.get("contributors") or []
    for contributor in contributors:
        name = contributor.get("name")
        if name:
            return name
    return ""


class FeedExtractor:
    """
    RSS 2.0 / Atom extractor.

    Turns raw feed documents into ``FeedItem`` records with stable
    identities and normalized content.
    """

    def parse(self, raw: bytes | str, url: str | None = None) -> ParsedFeed:
        """
        Parse a feed document.

        Parameters
        ----------
        raw : bytes | str
            Raw feed XML.
        url : str | None
            Feed URL, used for logging and error reporting.

        Returns
        -------
        ParsedFeed
            Site metadata and extracted items.

        Raises
        ------
        ParseError
            If the document is not a recognizable RSS/Atom feed.
        """
        if isinstance(raw, str):
            raw = raw.encode("utf-8")
        # Some servers return content with leading newlines which breaks
        # XML declaration parsing
        raw = raw.lstrip()
        # A file object keeps feedparser from treating the body as a path;
        # URL rewriting is left to fix_content
        parsed: Any = feedparser.parse(
            io.BytesIO(raw), resolve_relative_uris=False, sanitize_html=False
        )

        if not parsed.get("version"):
            reason = parsed.get("bozo_exception") or "unrecognized feed format"
            raise ParseError(f"Not an RSS/Atom feed: {reason}", url=url)

        if parsed.bozo and parsed.bozo_exception:
            logger.warning(
                "Feed <%s> has parsing issues: %s",
                url,
                parsed.bozo_exception,
            )

        feed = parsed.feed
        site_link = feed.get("link") or ""
        site_title = feed.get("title") or ""

        items = []
        for entry in parsed.entries:
            try:
                item = self._extract_item(entry, site_link, site_title)
            except Exception as e:
                logger.warning("Failed to parse entry in feed <%s>: %s", url, e)
                continue
            if not item.guid:
                logger.debug(
                    "Skipping entry without identity in feed <%s>: %s",
                    url,
                    item.title[:50],
                )
                continue
            items.append(item)

        return ParsedFeed(site_link=site_link, site_title=site_title, items=items)

    def _extract_item(self, entry: Any, site_link: str, site_title: str) -> FeedItem:
        """Build a FeedItem from a feedparser entry."""
        content = first_present(
            lambda: _content_value(entry),
            lambda: entry.get("description"),
            lambda: entry.get("summary"),
        )
        author = first_present(
            lambda: entry.get("author"),
            lambda: _contributor_name(entry),
        )
        # dict.get bypasses feedparser's deprecated updated -> published alias
        updated = first_present(
            lambda: _to_datetime(dict.get(entry, "updated_parsed")),
            lambda: _to_datetime(entry.get("published_parsed")),
        )

        return FeedItem(
            title=entry.get("title") or "",
            content=fix_content(content or "", site_link),
            author=author or "",
            link=entry.get("link") or "",
            updated=updated,
            guid=guid_for(entry),
            site_link=site_link,
            site_title=site_title,
        )
