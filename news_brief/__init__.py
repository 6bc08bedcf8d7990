"""
news_brief

Build a topical news brief from RSS/Atom feeds, with facts grounded in evidence.

Core ideas:
- Input: a keyword (Chinese keywords are translated for feed search) and optional feed URLs
- Process: fetch → dedupe → rank (newest first) → gather evidence → extract cited facts → assemble cards
- Output: card-separated text for the Gamma generation API, plus per-item warnings

Every emitted fact cites at least one URL that was actually retrieved for its headline:
the headline's own link or one of the related items found for it.

Example
-------
import asyncio
from news_brief import BriefConfig, BriefPipeline

async def main():
    async with BriefPipeline.open(BriefConfig.from_env()) as pipeline:
        brief = await pipeline.build("人工智能 政策", limit=6)
    for item in brief.headlines:
        print(item.published, item.source, item.title)
        for fact in item.expanded_facts:
            print("  -", fact.text, [s.url for s in fact.sources])

asyncio.run(main())
"""
from .config import BriefConfig, resolve_int
from .models import (
    BriefResult,
    EvidenceBundle,
    Fact,
    FactSource,
    Headline,
    KeywordTranslation,
    RelatedItem,
)
from .exceptions import (
    ConfigurationError,
    GenerationError,
    NewsBriefError,
    NoHeadlinesError,
    RSSFetchError,
)
from .normalizer import normalize_keyword, normalize_limit, normalize_rss_urls
from .assembler import build_brief_text
from .core import BriefPipeline
from .generation import GammaClient

__all__ = [
    "BriefConfig",
    "resolve_int",
    "BriefResult",
    "EvidenceBundle",
    "Fact",
    "FactSource",
    "Headline",
    "KeywordTranslation",
    "RelatedItem",
    "ConfigurationError",
    "GenerationError",
    "NewsBriefError",
    "NoHeadlinesError",
    "RSSFetchError",
    "normalize_keyword",
    "normalize_limit",
    "normalize_rss_urls",
    "build_brief_text",
    "BriefPipeline",
    "GammaClient",
]
