from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

import aiohttp
from bs4 import BeautifulSoup, Comment

from .config import BriefConfig, clamp
from .fetcher import Feed, feed_title, google_news_search_url
from .models import EvidenceBundle, Headline, RelatedItem, SourceCandidate
from .normalizer import collapse_whitespace, normalize_link
from .parser import parse_related

logger = logging.getLogger(__name__)

SNIPPET_MAX_CHARS = 1800

_ARTICLE_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


def html_to_text(html: str, max_chars: int = SNIPPET_MAX_CHARS) -> str:
    """Plain text of an HTML page without scripts, styles or comments, cut to max_chars."""
    soup = BeautifulSoup(html or "", "lxml")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    for c in soup.find_all(string=lambda s: isinstance(s, Comment)):
        c.extract()
    text = collapse_whitespace(soup.get_text(" "))
    return text[:max_chars]


class ArticleFetcher:
    def __init__(self, session: aiohttp.ClientSession) -> None:
        self._session = session

    async def fetch_text(self, url: str, timeout_ms: int) -> Optional[str]:
        """Body of a 2xx response, or None for any other status."""
        timeout = aiohttp.ClientTimeout(total=timeout_ms / 1000)
        async with self._session.get(url, headers=_ARTICLE_HEADERS, timeout=timeout) as r:
            if r.status < 200 or r.status >= 300:
                return None
            return await r.text(errors="ignore")


def build_evidence_text(headline: Headline, snippet: Optional[str], related: List[RelatedItem]) -> str:
    sections: List[str] = []
    if snippet:
        sections.append(
            f"Article summary ({headline.title} | {headline.link}):\n{snippet}"
        )
    if related:
        lines = ["Related news candidates:"]
        for i, r in enumerate(related, start=1):
            meta = " | ".join(p for p in (r.source, r.published) if p)
            lines.append(f"{i}. {r.title}" + (f" ({meta})" if meta else "") + f" | {r.link}")
        sections.append("\n".join(lines))
    return "\n\n".join(sections)


class EvidenceGatherer:
    """
    Collect the material a headline's facts may be drawn from: a snippet of the
    article itself and a few related items from a secondary feed search.
    """

    def __init__(self, article_fetcher: ArticleFetcher, feed_source: Feed, config: Optional[BriefConfig] = None) -> None:
        self.article_fetcher = article_fetcher
        self.feed_source = feed_source
        self.config = config or BriefConfig()

    async def fetch_snippet(self, headline: Headline) -> Optional[str]:
        if not headline.link:
            return None
        try:
            html = await self.article_fetcher.fetch_text(headline.link, self.config.article_fetch_timeout_ms)
        except Exception as e:
            logger.debug("article fetch failed url=%s err=%r", headline.link, e)
            return None
        if not html:
            return None
        return html_to_text(html) or None

    async def search_related(self, headline: Headline, keyword: str, limit: int) -> List[RelatedItem]:
        query = collapse_whitespace(f"{headline.title} {keyword}")
        try:
            feed = await self.feed_source.parse(google_news_search_url(query))
        except Exception as e:
            logger.debug("related search failed query=%r err=%r", query, e)
            return []

        own = normalize_link(headline.link)
        seen = {own} if own else set()
        title = feed_title(feed)
        related: List[RelatedItem] = []
        for entry in getattr(feed, "entries", None) or []:
            item = parse_related(entry, title)
            key = normalize_link(item.link)
            if not key or key in seen:
                continue
            seen.add(key)
            related.append(item)
            if len(related) >= limit:
                break
        return related

    async def gather(self, headline: Headline, keyword: str, related_limit: Optional[int] = None) -> EvidenceBundle:
        limit = clamp(related_limit or self.config.enrich_related_limit, 1, 8)
        snippet, related = await asyncio.gather(
            self.fetch_snippet(headline),
            self.search_related(headline, keyword, limit),
        )

        candidates: List[SourceCandidate] = []
        if headline.link:
            candidates.append(SourceCandidate(title=headline.title, url=headline.link, source=headline.source))
        for r in related:
            candidates.append(SourceCandidate(title=r.title, url=r.link, source=r.source))

        return EvidenceBundle(
            article_snippet=snippet,
            related_news=tuple(related),
            source_candidates=tuple(candidates),
            evidence_text=build_evidence_text(headline, snippet, related),
        )
