from __future__ import annotations

import asyncio
import logging
import re
from typing import Optional

from .config import BriefConfig
from .exceptions import LLMTimeoutError
from .llm import Completer
from .models import KeywordTranslation
from .normalizer import as_error_message, collapse_whitespace, normalize_keyword

logger = logging.getLogger(__name__)

_CJK = re.compile(r"[\u4e00-\u9fff]")
_QUOTES = "\"'`“”‘’「」『』"

SYSTEM_PROMPT = (
    "You translate news search keywords. Reply with one concise English search phrase "
    "that keeps the meaning of the input. No quotes, no explanation, no punctuation at the end."
)


def needs_translation(keyword: str) -> bool:
    return bool(_CJK.search(keyword or ""))


def clean_translation(text: Optional[str]) -> str:
    return collapse_whitespace((text or "").strip().strip(_QUOTES).replace("`", ""))


class KeywordTranslator:
    """
    Turn a Chinese keyword into an English search phrase for better feed coverage.

    `translate` is total: every failure falls back to the original keyword with a
    warning attached.
    """

    def __init__(self, completer: Optional[Completer], config: Optional[BriefConfig] = None) -> None:
        self.completer = completer
        self.config = config or BriefConfig()

    def _fallback(self, keyword: str, warning: Optional[str] = None) -> KeywordTranslation:
        return KeywordTranslation(
            original_keyword=keyword,
            translated_keyword=None,
            search_keyword=keyword,
            translation_applied=False,
            warning=warning,
        )

    async def translate(self, keyword: str) -> KeywordTranslation:
        keyword = normalize_keyword(keyword)
        if not needs_translation(keyword):
            return self._fallback(keyword)

        if self.completer is None:
            return self._fallback(
                keyword,
                "keyword translation skipped: no language-model API key configured, searching with the original keyword",
            )

        timeout_ms = self.config.translate_timeout_ms
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": keyword},
        ]
        try:
            raw = await asyncio.wait_for(
                self.completer.complete(messages, temperature=0, timeout_sec=timeout_ms / 1000),
                timeout=timeout_ms / 1000,
            )
        except (asyncio.TimeoutError, LLMTimeoutError):
            logger.warning("keyword translation timed out after %dms", timeout_ms)
            return self._fallback(
                keyword,
                f"keyword translation timed out after {timeout_ms}ms (KEYWORD_TRANSLATE_TIMEOUT_MS), "
                "searching with the original keyword",
            )
        except Exception as e:
            logger.warning("keyword translation failed: %s", e)
            return self._fallback(
                keyword,
                f"keyword translation failed ({as_error_message(e)}), searching with the original keyword",
            )

        translated = clean_translation(raw)
        if not translated:
            return self._fallback(keyword, "keyword translation returned nothing, searching with the original keyword")

        logger.info("translated keyword %r -> %r", keyword, translated)
        return KeywordTranslation(
            original_keyword=keyword,
            translated_keyword=translated,
            search_keyword=translated,
            translation_applied=True,
        )
