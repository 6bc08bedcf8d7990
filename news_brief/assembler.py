from __future__ import annotations

from datetime import date
from typing import Iterable, List, Optional

from .config import DEFAULT_OUTPUT_LANGUAGE
from .models import Headline
from .normalizer import normalize_keyword

# The generation API splits cards on this token (cardSplit=inputTextBreaks).
CARD_SEPARATOR = "\n---\n"

IMAGE_MISSING_LINE = "*Image URL*: none (generate an AI image instead)"
IMAGE_REQUIREMENT_LINE = (
    "*Image requirement*: generate one explanatory AI image for this story "
    "(infographic or news illustration style) that explains its key point."
)


def render_card(index: int, item: Headline) -> str:
    lines: List[str] = [f"## {index}. {item.title}"]
    if item.published:
        lines.append(f"*Date*: {item.published}")
    lines.append(f"*Source*: {item.source}")
    if item.link:
        lines.append(f"*Link*: {item.link}")

    if item.expanded_facts:
        numbers = {}
        cited = []
        lines.append("*Key facts*:")
        for fact in item.expanded_facts:
            refs = []
            for s in fact.sources:
                if s.url not in numbers:
                    numbers[s.url] = len(numbers) + 1
                    cited.append(s)
                refs.append(f"[{numbers[s.url]}]")
            lines.append(f"- {fact.text} {''.join(refs)}")
        lines.append("*Sources*:")
        for n, s in enumerate(cited, start=1):
            lines.append(f"[{n}] {s.title} — {s.url}")

    lines.append(f"*Image URL*: {item.image_url}" if item.image_url else IMAGE_MISSING_LINE)
    lines.append(IMAGE_REQUIREMENT_LINE)
    return "\n".join(lines)


def build_brief_text(
    items: Iterable[Headline],
    keyword: Optional[str] = None,
    *,
    today: Optional[date] = None,
    language: str = DEFAULT_OUTPUT_LANGUAGE,
) -> str:
    """Render enriched headlines into the card-separated text sent to the generation API."""
    day = (today or date.today()).isoformat()
    cards = [render_card(i, item) for i, item in enumerate(items, start=1)]
    return CARD_SEPARATOR.join(
        [
            f"Write every title and all body text strictly in {language}; do not leave paragraphs in other languages.",
            f"# Daily Industry Brief — {day}",
            f"Topic keyword: {normalize_keyword(keyword)}",
            "",
            *cards,
        ]
    )
