from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple, Union

from dateutil import parser as dateparser


def parse_published(value: Optional[str]) -> Optional[datetime]:
    """Parse a raw feed date string (RFC 822 or ISO 8601). Returns None when unparsable."""
    if not value:
        return None
    try:
        return dateparser.parse(value)
    except (ValueError, OverflowError, TypeError):
        return None


@dataclass(frozen=True)
class FactSource:
    title: str
    url: str


@dataclass(frozen=True)
class Fact:
    """A short statement extracted from evidence, citing at least one gathered source."""
    text: str
    sources: Tuple[FactSource, ...]


@dataclass(frozen=True)
class Headline:
    """
    One normalized news item surfaced from a feed.

    title/link/source/published are fixed once the item is parsed; enrichment
    produces a copy carrying article_snippet, expanded_facts and enrichment_warning.
    """
    title: str
    link: str
    source: str
    published: str = ""
    image_url: Optional[str] = None
    article_snippet: Optional[str] = None
    expanded_facts: Tuple[Fact, ...] = ()
    enrichment_warning: Optional[str] = None

    @property
    def published_at(self) -> Optional[datetime]:
        return parse_published(self.published)


@dataclass(frozen=True)
class RelatedItem:
    title: str
    link: str
    source: str
    published: str = ""


@dataclass(frozen=True)
class SourceCandidate:
    title: str
    url: str
    source: str


@dataclass(frozen=True)
class EvidenceBundle:
    article_snippet: Optional[str] = None
    related_news: Tuple[RelatedItem, ...] = ()
    # Whitelist of URLs facts may cite for this headline.
    source_candidates: Tuple[SourceCandidate, ...] = ()
    evidence_text: str = ""


@dataclass(frozen=True)
class KeywordTranslation:
    original_keyword: str
    translated_keyword: Optional[str]
    search_keyword: str
    translation_applied: bool = False
    warning: Optional[str] = None


@dataclass(frozen=True)
class RssUrlList:
    urls: List[str]
    invalid: List[str]


@dataclass
class FetchResult:
    items: List[Headline] = field(default_factory=list)
    # One entry per failed source.
    failures: List[str] = field(default_factory=list)
    sources: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ExtractionSuccess:
    facts: Tuple[Fact, ...]


@dataclass(frozen=True)
class ExtractionFailure:
    reason: str
    timed_out: bool = False
    format_invalid: bool = False


ExtractionAttempt = Union[ExtractionSuccess, ExtractionFailure]


@dataclass(frozen=True)
class ExtractionResult:
    facts: Tuple[Fact, ...] = ()
    warning: Optional[str] = None


@dataclass
class EnrichmentResult:
    items: List[Headline]
    warnings: List[str]
    enriched_count: int


@dataclass(frozen=True)
class GenerationStatus:
    generation_id: str
    status: str
    progress: int
    gamma_url: Optional[str] = None
    pdf_url: Optional[str] = None
    error: Optional[str] = None

    @property
    def finished(self) -> bool:
        return self.status in ("completed", "failed")


@dataclass
class BriefResult:
    keyword: str
    translation: KeywordTranslation
    limit: int
    sources: List[str]
    headlines: List[Headline]
    warnings: List[str]
    enriched_count: int
    input_text: str
