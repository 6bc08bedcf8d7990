from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import aiohttp

from .assembler import build_brief_text
from .config import BriefConfig
from .dedup import rank_headlines
from .enrichment import EnrichmentOrchestrator
from .evidence import ArticleFetcher, EvidenceGatherer
from .exceptions import NoHeadlinesError
from .extractor import FactExtractor
from .fetcher import Feed, FeedFetcher, FeedSource, google_news_search_url
from .llm import Completer, build_completer
from .models import BriefResult
from .normalizer import normalize_keyword, normalize_limit, normalize_rss_urls, unique
from .translator import KeywordTranslator

logger = logging.getLogger(__name__)


class BriefPipeline:
    """
    High-level API: turn a keyword (plus optional RSS URLs) into brief text.

    Pipeline: normalize → translate keyword → fetch feeds → dedupe/rank →
    enrich (evidence + grounded facts) → assemble cards
    """

    def __init__(
        self,
        config: BriefConfig,
        *,
        feed_source: Feed,
        article_fetcher: ArticleFetcher,
        completer: Optional[Completer] = None,
    ) -> None:
        self.config = config
        self.translator = KeywordTranslator(completer, config)
        self.fetcher = FeedFetcher(feed_source, config)
        self.enricher = EnrichmentOrchestrator(
            EvidenceGatherer(article_fetcher, feed_source, config),
            FactExtractor(completer, config),
            config,
        )

    @classmethod
    @asynccontextmanager
    async def open(cls, config: Optional[BriefConfig] = None) -> AsyncIterator["BriefPipeline"]:
        """Pipeline backed by one aiohttp session, closed on exit."""
        config = config or BriefConfig.from_env()
        async with aiohttp.ClientSession() as session:
            yield cls(
                config,
                feed_source=FeedSource(session, timeout_ms=config.feed_fetch_timeout_ms),
                article_fetcher=ArticleFetcher(session),
                completer=build_completer(config),
            )

    async def build(
        self,
        keyword: Any = None,
        limit: Any = None,
        rss_urls: Any = None,
        *,
        enrich: bool = True,
    ) -> BriefResult:
        limit = normalize_limit(limit)
        keyword = normalize_keyword(keyword)
        rss = normalize_rss_urls(rss_urls)
        warnings = []

        translation = await self.translator.translate(keyword)
        if translation.warning:
            warnings.append(translation.warning)
        if rss.invalid:
            warnings.append(f"ignored invalid RSS URLs: {', '.join(rss.invalid)}")

        sources = unique([google_news_search_url(translation.search_keyword), *rss.urls])
        fetched = await self.fetcher.fetch(sources)
        warnings.extend(fetched.warnings)

        headlines = rank_headlines(fetched.items, limit)
        if not headlines:
            raise NoHeadlinesError("no headlines fetched; check the keyword or RSS sources and retry", warnings)

        enriched_count = 0
        if enrich:
            enrichment = await self.enricher.enrich(headlines, translation.search_keyword)
            headlines = enrichment.items
            enriched_count = enrichment.enriched_count
            warnings.extend(enrichment.warnings)

        input_text = build_brief_text(headlines, keyword, language=self.config.output_language)
        logger.info("brief ready: %d headlines, %d enriched, %d warnings",
                    len(headlines), enriched_count, len(warnings))
        return BriefResult(
            keyword=keyword,
            translation=translation,
            limit=limit,
            sources=fetched.sources,
            headlines=headlines,
            warnings=warnings,
            enriched_count=enriched_count,
            input_text=input_text,
        )
