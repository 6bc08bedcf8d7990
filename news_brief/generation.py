from __future__ import annotations

import asyncio
import functools
import json
import logging
import re
from typing import Any, Dict, Optional

import aiohttp

from .config import DEFAULT_OUTPUT_LANGUAGE, BriefConfig, clamp
from .exceptions import ConfigurationError, GenerationError
from .models import GenerationStatus
from .normalizer import normalize_keyword
from .parser import try_each

logger = logging.getLogger(__name__)

GAMMA_BASE = "https://public-api.gamma.app/v1.0"

_OG_IMAGE = (
    re.compile(r"""<meta[^>]+property=["']og:image["'][^>]*content=["']([^"']+)["']""", re.IGNORECASE),
    re.compile(r"""<meta[^>]+content=["']([^"']+)["'][^>]*property=["']og:image["']""", re.IGNORECASE),
)

# Places the export link has been seen in generation payloads.
_PDF_PATHS = (
    ("file_url",), ("pdfUrl",), ("fileUrl",), ("exportUrl",), ("downloadUrl",),
    ("files", "pdf"), ("files", "pdfUrl"),
    ("exports", "pdf"), ("exports", "pdfUrl"), ("exports", "pdf", "url"),
)


def _dig(payload: Any, path) -> Optional[str]:
    node = payload
    for key in path:
        node = node[key]
    return node if isinstance(node, str) and node else None


def extract_pdf_url(payload: Optional[Dict[str, Any]]) -> Optional[str]:
    if not payload:
        return None
    final = payload.get("finalResult")
    if not isinstance(final, dict):
        final = {}
    strategies = [
        functools.partial(_dig, root, path)
        for root in (payload, final)
        for path in _PDF_PATHS
    ]
    return try_each(strategies)


def _og_image_from(pattern, html: str) -> Optional[str]:
    m = pattern.search(html or "")
    return m.group(1) if m else None


def extract_og_image(html: str) -> Optional[str]:
    return try_each([functools.partial(_og_image_from, p) for p in _OG_IMAGE], html)


def parse_generation(generation_id: str, payload: Dict[str, Any]) -> GenerationStatus:
    final = payload.get("finalResult")
    if not isinstance(final, dict):
        final = {}
    status = payload.get("status") or final.get("status") or "processing"
    gamma_url = payload.get("gammaUrl") or final.get("gammaUrl") or payload.get("url") or final.get("url")
    progress_raw = payload.get("progress")
    if progress_raw is None:
        progress_raw = final.get("progress")
    if isinstance(progress_raw, (int, float)) and not isinstance(progress_raw, bool):
        progress = clamp(int(round(progress_raw)), 0, 100)
    else:
        progress = 100 if status == "completed" else 50
    error = payload.get("error") or final.get("error")
    return GenerationStatus(
        generation_id=generation_id,
        status=status,
        progress=progress,
        gamma_url=gamma_url,
        pdf_url=extract_pdf_url(payload),
        error=str(error) if error else None,
    )


class GammaClient:
    """Submit brief text to the Gamma generation API and follow the job to completion."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        api_key: Optional[str],
        *,
        language: str = DEFAULT_OUTPUT_LANGUAGE,
        timeout_sec: float = 30.0,
        base_url: str = GAMMA_BASE,
    ) -> None:
        if not api_key:
            raise ConfigurationError("Missing GAMMA_API_KEY environment variable")
        self._session = session
        self._api_key = api_key
        self._language = language
        self._timeout = aiohttp.ClientTimeout(total=timeout_sec)
        self._base = base_url.rstrip("/")

    @classmethod
    def from_config(cls, session: aiohttp.ClientSession, config: BriefConfig) -> "GammaClient":
        return cls(session, config.gamma_api_key, language=config.output_language)

    def build_payload(self, input_text: str, keyword: Optional[str]) -> Dict[str, Any]:
        topic = normalize_keyword(keyword)
        return {
            "inputText": input_text,
            "exportAs": "pdf",
            "textMode": "preserve",
            "format": "social",
            "cardOptions": {"dimensions": "4x5"},
            "cardSplit": "inputTextBreaks",
            "sharingOptions": {"externalAccess": "view"},
            "imageOptions": {
                "source": "aiGenerated",
                "model": "flux-2-pro",
                "style": "editorial news illustration, clean modern, tech-focused, high contrast",
            },
            "additionalInstructions": (
                f"Output all content in {self._language}. Organize the brief around this topic keyword: {topic}. "
                "Create region/country-focused social cards in a clean news style with a 4:5 layout. "
                "Every news card must include exactly one explanatory image. Use the provided image URL as the "
                "real image whenever available; if missing or invalid, generate one relevant AI image. "
                "Keep each card short and scannable."
            ),
        }

    def _headers(self) -> Dict[str, str]:
        return {"X-API-KEY": self._api_key, "Accept": "application/json"}

    async def create(self, input_text: str, keyword: Optional[str] = None) -> str:
        try:
            async with self._session.post(
                f"{self._base}/generations",
                json=self.build_payload(input_text, keyword),
                headers=self._headers(),
                timeout=self._timeout,
            ) as r:
                body = await r.text()
                status = r.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise GenerationError(f"Gamma POST failed: {e!r}") from e
        if status >= 400:
            raise GenerationError(f"Gamma POST failed: {status} {body[:300]}")
        try:
            payload = json.loads(body)
        except ValueError as e:
            raise GenerationError(f"Gamma POST returned non-JSON body: {body[:300]}") from e
        generation_id = payload.get("generationId") if isinstance(payload, dict) else None
        if not generation_id:
            raise GenerationError(f"No generationId in response: {body[:300]}")
        logger.info("gamma generation created id=%s", generation_id)
        return str(generation_id)

    async def get(self, generation_id: str) -> GenerationStatus:
        try:
            async with self._session.get(
                f"{self._base}/generations/{generation_id}",
                headers=self._headers(),
                timeout=self._timeout,
            ) as r:
                body = await r.text()
                status = r.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise GenerationError(f"Gamma GET failed: {e!r}") from e
        if status >= 400:
            raise GenerationError(f"Gamma GET failed: {status} {body[:300]}")
        try:
            payload = json.loads(body)
        except ValueError as e:
            raise GenerationError(f"Gamma GET returned non-JSON body: {body[:300]}") from e
        return parse_generation(generation_id, payload if isinstance(payload, dict) else {})

    async def poll(self, generation_id: str, *, interval_sec: float = 2.5, max_tries: int = 120) -> GenerationStatus:
        for attempt in range(1, max_tries + 1):
            status = await self.get(generation_id)
            logger.info("gamma generation %s: %s %d%%", generation_id, status.status, status.progress)
            if status.status == "completed" and status.gamma_url:
                return status
            if status.status == "failed":
                raise GenerationError(f"Gamma generation failed: {status.error or 'unknown error'}")
            if attempt < max_tries:
                await asyncio.sleep(interval_sec)
        raise GenerationError(f"Polling timeout: generationId={generation_id}")

    async def fetch_og_image(self, page_url: Optional[str]) -> Optional[str]:
        """og:image of the rendered page, best-effort."""
        if not page_url:
            return None
        try:
            async with self._session.get(page_url, headers={"Accept": "text/html"}, timeout=self._timeout) as r:
                if r.status >= 400:
                    return None
                html = await r.text(errors="ignore")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug("og:image lookup failed url=%s err=%r", page_url, e)
            return None
        return extract_og_image(html)
