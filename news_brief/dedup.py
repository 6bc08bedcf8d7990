from __future__ import annotations

from typing import Any, Iterable, List, Set

from .models import Headline
from .normalizer import normalize_limit, normalize_link
from .parser import to_timestamp


def deduplicate_headlines(items: Iterable[Headline]) -> List[Headline]:
    """
    Remove duplicates by normalized link, or by lowercased title + raw date when
    an item has no link. Keeps the first occurrence and preserves order.
    """
    seen_links: Set[str] = set()
    seen_keys: Set[str] = set()
    out: List[Headline] = []

    for it in items:
        link = normalize_link(it.link)
        if link:
            if link in seen_links:
                continue
            seen_links.add(link)
            out.append(it)
            continue

        key = f"{(it.title or '').strip().lower()}__{it.published or ''}"
        if key in seen_keys:
            continue
        seen_keys.add(key)
        out.append(it)
    return out


def rank_headlines(items: Iterable[Headline], limit: Any) -> List[Headline]:
    """Deduplicate, sort newest first (undated items last) and cut to the normalized limit."""
    deduped = deduplicate_headlines(items)
    # list.sort is stable: equal timestamps keep arrival order
    deduped.sort(key=lambda h: to_timestamp(h.published), reverse=True)
    return deduped[: normalize_limit(limit)]
