from __future__ import annotations

import re
from datetime import timezone
from typing import Any, Callable, Dict, Iterable, Optional, TypeVar

from .models import Headline, RelatedItem, parse_published

T = TypeVar("T")

_IMG_SRC = re.compile(r"""<img[^>]+src=["']([^"']+)["']""", re.IGNORECASE)


def try_each(strategies: Iterable[Callable[..., Optional[T]]], *args: Any) -> Optional[T]:
    """
    Run best-effort strategies in order and return the first truthy result.

    A strategy that raises is treated like one that found nothing.
    """
    for strategy in strategies:
        try:
            value = strategy(*args)
        except (AttributeError, KeyError, IndexError, TypeError, ValueError):
            continue
        if value:
            return value
    return None


def to_timestamp(value: Optional[str]) -> float:
    """Epoch seconds for a raw feed date; -1 when missing or unparsable."""
    dt = parse_published(value)
    if dt is None:
        return -1
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    try:
        return dt.timestamp()
    except (OverflowError, OSError, ValueError):
        return -1


def _first_url(entries: Any, *keys: str) -> Optional[str]:
    if isinstance(entries, dict):
        entries = [entries]
    if not isinstance(entries, list):
        return None
    for e in entries:
        if not isinstance(e, dict):
            continue
        for key in keys:
            url = e.get(key)
            if isinstance(url, str) and url.strip():
                return url.strip()
    return None


def _enclosure_url(entry: Dict[str, Any]) -> Optional[str]:
    url = _first_url(entry.get("enclosures"), "href", "url")
    if url:
        return url
    links = [l for l in entry.get("links") or [] if isinstance(l, dict) and l.get("rel") == "enclosure"]
    return _first_url(links, "href")


def _media_content_url(entry: Dict[str, Any]) -> Optional[str]:
    return _first_url(entry.get("media_content"), "url")


def _media_thumbnail_url(entry: Dict[str, Any]) -> Optional[str]:
    return _first_url(entry.get("media_thumbnail"), "url")


def _embedded_img_url(entry: Dict[str, Any]) -> Optional[str]:
    html = ""
    content = entry.get("content")
    if isinstance(content, list) and content:
        html = " ".join(str(c.get("value") or "") for c in content if isinstance(c, dict))
    if not html:
        html = str(entry.get("summary") or entry.get("description") or "")
    m = _IMG_SRC.search(html)
    return m.group(1) if m else None


IMAGE_STRATEGIES = (
    _enclosure_url,
    _media_content_url,
    _media_thumbnail_url,
    _embedded_img_url,
)


def extract_image_url(entry: Dict[str, Any]) -> Optional[str]:
    """enclosure -> media:content -> media:thumbnail -> first <img src> in the entry HTML."""
    return try_each(IMAGE_STRATEGIES, entry)


def _raw_date(entry: Dict[str, Any]) -> str:
    for key in ("published", "updated", "created"):
        val = entry.get(key)
        if isinstance(val, str) and val.strip():
            return val.strip()
    return ""


def _entry_source(entry: Dict[str, Any], fallback: str) -> str:
    # Aggregators (Google News) carry the original publisher on the entry
    src = entry.get("source") or {}
    if isinstance(src, dict):
        title = src.get("title")
        if isinstance(title, str) and title.strip():
            return title.strip()
    return fallback


def parse_entry(entry: Dict[str, Any], feed_title: Optional[str] = None) -> Headline:
    """Map a raw feedparser entry to a Headline."""
    title = (entry.get("title") or "").strip() or "Untitled"
    link = (entry.get("link") or "").strip()
    return Headline(
        title=title,
        link=link,
        source=(feed_title or "").strip() or "RSS",
        published=_raw_date(entry),
        image_url=extract_image_url(entry),
    )


def parse_related(entry: Dict[str, Any], feed_title: Optional[str] = None) -> RelatedItem:
    return RelatedItem(
        title=(entry.get("title") or "").strip() or "Untitled",
        link=(entry.get("link") or "").strip(),
        source=_entry_source(entry, (feed_title or "").strip() or "RSS"),
        published=_raw_date(entry),
    )
