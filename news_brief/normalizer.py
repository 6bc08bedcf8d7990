from __future__ import annotations

import re
from typing import Any, Iterable, List, Optional
from urllib.parse import urlsplit

from .config import DEFAULT_KEYWORD, DEFAULT_LIMIT, clamp
from .models import RssUrlList

MAX_ERROR_CHARS = 160

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_WHITESPACE = re.compile(r"\s+")


def normalize_limit(value: Any) -> int:
    """Parse a headline limit the way a form field would be read, clamped to [1, 20]."""
    if value is None:
        return DEFAULT_LIMIT
    if isinstance(value, bool):
        return DEFAULT_LIMIT
    if isinstance(value, int):
        return clamp(value, 1, 20)
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return DEFAULT_LIMIT
        return clamp(int(value), 1, 20)
    m = _LEADING_INT.match(str(value))
    if not m:
        return DEFAULT_LIMIT
    return clamp(int(m.group(1)), 1, 20)


def normalize_keyword(value: Any) -> str:
    text = _WHITESPACE.sub(" ", str(value if value is not None else "")).strip()
    return text or DEFAULT_KEYWORD


def normalize_rss_urls(value: Any) -> RssUrlList:
    """
    Accept a list of URL strings or one string separated by newlines/commas.

    Malformed entries are reported in `invalid`, never raised.
    """
    if isinstance(value, (list, tuple)):
        lines = list(value)
    else:
        lines = re.split(r"[\n,]", str(value if value is not None else ""))

    urls: List[str] = []
    invalid: List[str] = []
    for line in lines:
        text = str(line if line is not None else "").strip()
        if not text:
            continue
        try:
            parts = urlsplit(text)
        except ValueError:
            invalid.append(text)
            continue
        if parts.scheme.lower() not in ("http", "https") or not parts.netloc:
            invalid.append(text)
            continue
        urls.append(parts.geturl())

    return RssUrlList(urls=unique(urls), invalid=invalid)


def normalize_link(url: Optional[str]) -> str:
    """Comparison key for article links (whitespace and trailing slashes ignored)."""
    return (url or "").strip().rstrip("/")


def unique(values: Iterable[Optional[str]]) -> List[str]:
    seen = set()
    out: List[str] = []
    for v in values:
        if not v or v in seen:
            continue
        seen.add(v)
        out.append(v)
    return out


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text or "").strip()


def as_error_message(err: BaseException) -> str:
    text = str(err).strip() or type(err).__name__
    if len(text) > MAX_ERROR_CHARS:
        return text[: MAX_ERROR_CHARS - 3] + "..."
    return text
