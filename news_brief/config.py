from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

DEFAULT_KEYWORD = "人工智能 国别 政策"
DEFAULT_RSS_URL = "https://news.google.com/rss/search?q=artificial%20intelligence&hl=en-US&gl=US&ceid=US:en"
DEFAULT_LIMIT = 12
DEFAULT_OUTPUT_LANGUAGE = "Simplified Chinese"


def clamp(value: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, value))


def resolve_int(raw: Any, default: int, lo: int, hi: int) -> int:
    """
    Resolve a numeric override: parse `raw` as an integer, fall back to `default`
    when it is missing or unparsable, and clamp the result to [lo, hi].
    """
    if raw is None:
        return clamp(default, lo, hi)
    text = str(raw).strip()
    if not text:
        return clamp(default, lo, hi)
    try:
        value = int(float(text))
    except (TypeError, ValueError, OverflowError):
        return clamp(default, lo, hi)
    return clamp(value, lo, hi)


@dataclass(frozen=True)
class BriefConfig:
    """
    Immutable settings for one process. Build it once with `BriefConfig.from_env()`
    and hand it to every component.
    """
    llm_provider: str = "openai"  # "openai" | "gemini"
    llm_api_key: Optional[str] = None
    llm_model: Optional[str] = None
    llm_base_url: Optional[str] = None
    gamma_api_key: Optional[str] = None
    default_rss_url: str = DEFAULT_RSS_URL
    output_language: str = DEFAULT_OUTPUT_LANGUAGE
    translate_timeout_ms: int = 5000
    enrich_fact_count: int = 2
    enrich_related_limit: int = 3
    enrich_concurrency: int = 3
    article_fetch_timeout_ms: int = 4500
    enrich_timeout_ms: int = 15000
    pool_max_items: int = 60
    feed_fetch_timeout_ms: int = 10000

    @property
    def has_llm_credential(self) -> bool:
        return bool(self.llm_api_key)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "BriefConfig":
        env = os.environ if environ is None else environ

        provider = (env.get("LLM_PROVIDER") or "openai").strip().lower()
        if provider in {"gemini", "google", "googleai"}:
            provider = "gemini"
            api_key = env.get("GOOGLE_API_KEY") or env.get("GEMINI_API_KEY")
            model = env.get("GEMINI_MODEL")
            base_url = None
        else:
            provider = "openai"
            api_key = env.get("OPENAI_API_KEY")
            model = env.get("OPENAI_MODEL")
            base_url = env.get("OPENAI_BASE_URL")

        return cls(
            llm_provider=provider,
            llm_api_key=api_key or None,
            llm_model=model or None,
            llm_base_url=base_url or None,
            gamma_api_key=env.get("GAMMA_API_KEY") or None,
            default_rss_url=(env.get("RSS_URL") or "").strip() or DEFAULT_RSS_URL,
            output_language=(env.get("BRIEF_OUTPUT_LANGUAGE") or "").strip() or DEFAULT_OUTPUT_LANGUAGE,
            translate_timeout_ms=resolve_int(env.get("KEYWORD_TRANSLATE_TIMEOUT_MS"), 5000, 1000, 20000),
            enrich_fact_count=resolve_int(env.get("ENRICH_FACT_COUNT"), 2, 1, 6),
            enrich_related_limit=resolve_int(env.get("ENRICH_RELATED_LIMIT"), 3, 1, 8),
            enrich_concurrency=resolve_int(env.get("ENRICH_CONCURRENCY"), 3, 1, 8),
            article_fetch_timeout_ms=resolve_int(env.get("ARTICLE_FETCH_TIMEOUT_MS"), 4500, 1000, 20000),
            enrich_timeout_ms=resolve_int(env.get("ENRICH_TIMEOUT_MS"), 15000, 1000, 30000),
            pool_max_items=resolve_int(env.get("NEWS_POOL_MAX_ITEMS"), 60, 1, 200),
            feed_fetch_timeout_ms=resolve_int(env.get("FEED_FETCH_TIMEOUT_MS"), 10000, 1000, 60000),
        )
