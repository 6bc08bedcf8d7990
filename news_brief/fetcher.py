from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, List, Optional, Protocol
from urllib.parse import urlencode

import aiohttp
import feedparser

from .config import BriefConfig
from .exceptions import RSSFetchError
from .models import FetchResult, Headline
from .normalizer import as_error_message, unique
from .parser import parse_entry

logger = logging.getLogger(__name__)

GOOGLE_NEWS_SEARCH = "https://news.google.com/rss/search"

_FEED_HEADERS = {
    "User-Agent": "news-brief/0.1 (+https://github.com/)",
    "Accept": "application/rss+xml, application/atom+xml, application/xml;q=0.9, */*;q=0.8",
}


def google_news_search_url(query: str) -> str:
    params = {"q": query, "hl": "en-US", "gl": "US", "ceid": "US:en"}
    return f"{GOOGLE_NEWS_SEARCH}?{urlencode(params)}"


class Feed(Protocol):
    """Feed collaborator: turns a URL into a parsed feed (feedparser result)."""

    async def parse(self, url: str) -> Any:  # pragma: no cover - interface
        ...


class FeedSource:
    """Download a feed with an explicit timeout and parse it with feedparser."""

    def __init__(self, session: aiohttp.ClientSession, *, timeout_ms: int = 10000) -> None:
        self._session = session
        self._timeout = aiohttp.ClientTimeout(total=timeout_ms / 1000)

    async def parse(self, url: str) -> Any:
        try:
            async with self._session.get(url, headers=_FEED_HEADERS, timeout=self._timeout) as r:
                if r.status >= 400:
                    raise RSSFetchError(f"HTTP {r.status} for {url}")
                body = await r.read()
        except asyncio.TimeoutError as e:
            raise RSSFetchError(f"Timed out fetching feed: {url}") from e
        except aiohttp.ClientError as e:
            raise RSSFetchError(f"Failed to fetch feed: {url} ({e})") from e

        # feedparser is synchronous; keep it off the event loop
        feed = await asyncio.to_thread(feedparser.parse, body)
        entries = getattr(feed, "entries", None)
        if not isinstance(entries, list):
            raise RSSFetchError(f"Feed has no entries: {url}")
        if getattr(feed, "bozo", 0) and not entries:
            exc = getattr(feed, "bozo_exception", None)
            msg = f"Invalid RSS/Atom feed: {url}"
            if exc:
                msg += f" ({exc})"
            raise RSSFetchError(msg)
        return feed


def feed_title(feed: Any) -> Optional[str]:
    meta = getattr(feed, "feed", None) or {}
    title = meta.get("title") if isinstance(meta, dict) else None
    return title if isinstance(title, str) else None


class FeedFetcher:
    """
    Fetch several feeds at once and pool their headlines.

    Every source is requested concurrently; one failing source contributes no
    items and a single warning, and never aborts its siblings.
    """

    def __init__(self, source: Feed, config: Optional[BriefConfig] = None) -> None:
        self.source = source
        self.config = config or BriefConfig()

    async def fetch_source(self, url: str) -> List[Headline]:
        feed = await self.source.parse(url)
        title = feed_title(feed)
        entries = list(getattr(feed, "entries", None) or [])
        return [parse_entry(e, title) for e in entries[: self.config.pool_max_items]]

    async def fetch(self, urls: Iterable[str]) -> FetchResult:
        sources = unique(urls)
        result = FetchResult(sources=sources)
        if not sources:
            sources.append(self.config.default_rss_url)
            result.warnings.append("no usable RSS source provided, fell back to the default RSS URL")

        settled = await asyncio.gather(
            *(self.fetch_source(u) for u in sources),
            return_exceptions=True,
        )
        for url, outcome in zip(sources, settled):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.warning("source fetch failed url=%s err=%s", url, outcome)
                failure = f"source fetch failed ({url}): {as_error_message(outcome)}"
                result.failures.append(failure)
                result.warnings.append(failure)
                continue
            result.items.extend(outcome)

        logger.info("fetched %d items from %d sources (%d failed)",
                    len(result.items), len(sources), len(result.failures))
        return result
