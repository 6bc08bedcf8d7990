from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import List, Optional, Sequence

from .config import BriefConfig, clamp
from .evidence import EvidenceGatherer
from .extractor import FactExtractor
from .models import EnrichmentResult, Headline
from .normalizer import as_error_message

logger = logging.getLogger(__name__)


class EnrichmentOrchestrator:
    """
    Gather evidence and extract facts for every headline with a small worker pool.

    Workers pull the next index from a shared cursor and write into that index's
    slot, so output order always matches input order.
    """

    def __init__(self, gatherer: EvidenceGatherer, extractor: FactExtractor, config: Optional[BriefConfig] = None) -> None:
        self.gatherer = gatherer
        self.extractor = extractor
        self.config = config or BriefConfig()

    async def enrich_one(self, headline: Headline, keyword: str, fact_count: int, related_limit: int) -> Headline:
        evidence = await self.gatherer.gather(headline, keyword, related_limit)
        result = await self.extractor.extract(headline, evidence, fact_count)
        return replace(
            headline,
            article_snippet=evidence.article_snippet,
            expanded_facts=tuple(result.facts),
            enrichment_warning=result.warning,
        )

    async def enrich(
        self,
        headlines: Sequence[Headline],
        keyword: str,
        fact_count: Optional[int] = None,
        related_limit: Optional[int] = None,
        concurrency: Optional[int] = None,
    ) -> EnrichmentResult:
        facts = clamp(fact_count or self.config.enrich_fact_count, 1, 6)
        related = clamp(related_limit or self.config.enrich_related_limit, 1, 8)
        workers = clamp(concurrency or self.config.enrich_concurrency, 1, 8)

        items: List[Headline] = list(headlines)
        if not items:
            return EnrichmentResult(items=[], warnings=[], enriched_count=0)

        cursor = 0

        async def worker() -> None:
            nonlocal cursor
            while cursor < len(items):
                index = cursor
                cursor += 1
                base = headlines[index]
                try:
                    items[index] = await self.enrich_one(base, keyword, facts, related)
                except Exception as e:
                    logger.warning("enrichment failed for item %d (%s): %s", index + 1, base.link or base.title, e)
                    items[index] = replace(
                        base,
                        expanded_facts=(),
                        enrichment_warning=f"enrichment failed: {as_error_message(e)}",
                    )

        await asyncio.gather(*(worker() for _ in range(min(workers, len(items)))))

        warnings = [
            f"item {i}: {h.enrichment_warning}"
            for i, h in enumerate(items, start=1)
            if h.enrichment_warning
        ]
        enriched_count = sum(1 for h in items if h.expanded_facts)
        logger.info("enriched %d/%d headlines", enriched_count, len(items))
        return EnrichmentResult(items=items, warnings=warnings, enriched_count=enriched_count)
