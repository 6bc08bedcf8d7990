from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional

from .config import BriefConfig, clamp
from .exceptions import LLMTimeoutError
from .llm import Completer
from .models import (
    EvidenceBundle,
    ExtractionAttempt,
    ExtractionFailure,
    ExtractionResult,
    ExtractionSuccess,
    Fact,
    FactSource,
    Headline,
)
from .normalizer import as_error_message, collapse_whitespace, normalize_link

logger = logging.getLogger(__name__)

EVIDENCE_MAX_CHARS = 2600
MAX_ATTEMPTS = 2

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

SYSTEM_PROMPT = (
    "You extract verifiable facts from news evidence. Use only the evidence you are given. "
    "Never invent facts, numbers or sources. Every fact must cite one or more URLs copied exactly "
    "from the allowed source list. Reply with ONLY a JSON object of the form "
    '{"facts":[{"fact":"...","sources":[{"title":"...","url":"..."}]}]} and nothing else.'
)


def parse_json_object(text: str) -> Optional[Any]:
    """
    Parse a model reply that should be a JSON object.

    Tries the whole (fence-stripped) reply first, then the span between the first
    "{" and the last "}". Returns None when neither parses.
    """
    cleaned = _FENCE.sub("", (text or "").strip()).strip()
    if not cleaned:
        return None
    try:
        return json.loads(cleaned)
    except ValueError:
        pass
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start < 0 or end <= start:
        return None
    try:
        return json.loads(cleaned[start : end + 1])
    except ValueError:
        return None


def build_whitelist(evidence: EvidenceBundle) -> Dict[str, FactSource]:
    whitelist: Dict[str, FactSource] = {}
    for c in evidence.source_candidates:
        key = normalize_link(c.url)
        if key and key not in whitelist:
            whitelist[key] = FactSource(title=c.title, url=c.url)
    return whitelist


def validate_facts(raw_facts: List[Any], whitelist: Dict[str, FactSource]) -> List[Fact]:
    """Keep facts with text and at least one source found in the whitelist."""
    facts: List[Fact] = []
    for raw in raw_facts:
        if not isinstance(raw, dict):
            continue
        text = collapse_whitespace(str(raw.get("fact") or ""))
        if not text:
            continue
        sources: List[FactSource] = []
        seen = set()
        raw_sources = raw.get("sources")
        if not isinstance(raw_sources, list):
            continue
        for s in raw_sources:
            if not isinstance(s, dict):
                continue
            key = normalize_link(str(s.get("url") or ""))
            match = whitelist.get(key)
            if match is None or key in seen:
                continue
            seen.add(key)
            title = match.title or collapse_whitespace(str(s.get("title") or "")) or match.url
            sources.append(FactSource(title=title, url=match.url))
        if sources:
            facts.append(Fact(text=text, sources=tuple(sources)))
    return facts


def build_prompt(headline: Headline, evidence: EvidenceBundle, fact_count: int) -> str:
    allowed = "\n".join(f"- {c.title} | {c.url}" for c in evidence.source_candidates)
    return (
        f"Headline: {headline.title}\n"
        f"Headline source: {headline.source}\n\n"
        f"Evidence:\n{evidence.evidence_text[:EVIDENCE_MAX_CHARS]}\n\n"
        f"Allowed sources (cite only these URLs):\n{allowed}\n\n"
        f"Task: extract up to {fact_count} short, verifiable facts that add context to the headline. "
        "Each fact must be supported by the evidence above and cite its source URL(s) exactly as listed."
    )


class FactExtractor:
    """Ask the language model for facts and keep only those citing gathered evidence."""

    def __init__(self, completer: Optional[Completer], config: Optional[BriefConfig] = None) -> None:
        self.completer = completer
        self.config = config or BriefConfig()

    async def _attempt(self, messages: List[Dict[str, str]], whitelist: Dict[str, FactSource]) -> ExtractionAttempt:
        timeout_sec = self.config.enrich_timeout_ms / 1000
        try:
            reply = await asyncio.wait_for(
                self.completer.complete(messages, temperature=0.2, timeout_sec=timeout_sec),
                timeout=timeout_sec,
            )
        except (asyncio.TimeoutError, LLMTimeoutError):
            return ExtractionFailure(reason="timeout", timed_out=True)
        except Exception as e:
            return ExtractionFailure(reason=as_error_message(e))

        payload = parse_json_object(reply)
        if not isinstance(payload, dict) or not isinstance(payload.get("facts"), list):
            return ExtractionFailure(reason="model response is not a JSON object with a facts list", format_invalid=True)
        return ExtractionSuccess(facts=tuple(validate_facts(payload["facts"], whitelist)))

    async def extract(self, headline: Headline, evidence: EvidenceBundle, fact_count: Optional[int] = None) -> ExtractionResult:
        count = clamp(fact_count or self.config.enrich_fact_count, 1, 6)
        if self.completer is None:
            return ExtractionResult(warning="fact extraction skipped: no language-model API key configured")
        if not evidence.evidence_text:
            return ExtractionResult(warning="fact extraction skipped: no article text or related news was retrieved")

        whitelist = build_whitelist(evidence)
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_prompt(headline, evidence, count)},
        ]

        outcome: ExtractionAttempt = ExtractionFailure(reason="not attempted")
        for attempt in range(1, MAX_ATTEMPTS + 1):
            outcome = await self._attempt(messages, whitelist)
            if isinstance(outcome, ExtractionSuccess) or not outcome.format_invalid:
                break
            logger.debug("fact extraction attempt %d returned malformed output for %r", attempt, headline.title)

        if isinstance(outcome, ExtractionSuccess):
            facts = outcome.facts[:count]
            if not facts:
                return ExtractionResult(warning="no verifiable facts: the model cited no source from the gathered evidence")
            return ExtractionResult(facts=facts)

        if outcome.timed_out:
            return ExtractionResult(
                warning=f"fact extraction timed out after {self.config.enrich_timeout_ms}ms "
                        "(raise ENRICH_TIMEOUT_MS to allow longer)"
            )
        if outcome.format_invalid:
            return ExtractionResult(warning=f"model response format invalid after {MAX_ATTEMPTS} attempts")
        return ExtractionResult(warning=f"fact extraction failed: {outcome.reason}")
