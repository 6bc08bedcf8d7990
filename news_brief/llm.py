from __future__ import annotations

from typing import Dict, List, Optional, Protocol

from .config import BriefConfig
from .exceptions import LLMError, LLMTimeoutError

Message = Dict[str, str]


class Completer(Protocol):
    async def complete(self, messages: List[Message], *, temperature: float, timeout_sec: float) -> str:  # pragma: no cover - interface
        ...


class OpenAICompleter:
    """Chat completions against OpenAI or any OpenAI-compatible endpoint."""

    def __init__(self, *, api_key: str, model: Optional[str] = None, base_url: Optional[str] = None) -> None:
        try:
            import openai  # type: ignore
        except Exception as e:  # pragma: no cover - optional dep
            raise RuntimeError("openai package is required for OpenAI completions. Install with `pip install openai`.") from e
        self._openai = openai
        self._client = openai.AsyncOpenAI(api_key=api_key, base_url=base_url)
        self.model = model or "gpt-4o-mini"

    async def complete(self, messages: List[Message], *, temperature: float, timeout_sec: float) -> str:
        try:
            resp = await self._client.chat.completions.create(
                model=self.model,
                temperature=temperature,
                messages=messages,
                timeout=timeout_sec,
            )
        except self._openai.APITimeoutError as e:
            raise LLMTimeoutError(f"OpenAI request timed out after {timeout_sec:g}s") from e
        except self._openai.OpenAIError as e:
            raise LLMError(f"OpenAI request failed: {e}") from e
        content = resp.choices[0].message.content if resp and resp.choices else None
        return (content or "").strip()


class GeminiCompleter:
    def __init__(self, *, api_key: str, model: Optional[str] = None) -> None:
        try:
            import google.generativeai as genai  # type: ignore
        except Exception as e:  # pragma: no cover - optional dep
            raise RuntimeError("google-generativeai package is required for Gemini completions. Install with `pip install google-generativeai`.") from e
        genai.configure(api_key=api_key)
        self._genai = genai
        self.model = model or "gemini-1.5-flash"

    async def complete(self, messages: List[Message], *, temperature: float, timeout_sec: float) -> str:
        system = "\n\n".join(m["content"] for m in messages if m.get("role") == "system")
        prompt = "\n\n".join(m["content"] for m in messages if m.get("role") != "system")
        model = self._genai.GenerativeModel(self.model, system_instruction=system or None)
        try:
            resp = await model.generate_content_async(
                prompt,
                generation_config={"temperature": temperature},
                request_options={"timeout": timeout_sec},
            )
        except Exception as e:
            if "deadline" in str(e).lower() or "timeout" in str(e).lower():
                raise LLMTimeoutError(f"Gemini request timed out after {timeout_sec:g}s") from e
            raise LLMError(f"Gemini request failed: {e}") from e
        try:
            text = resp.text
        except ValueError:
            # blocked or empty candidate
            return ""
        return str(text or "").strip()


def build_completer(config: BriefConfig) -> Optional[Completer]:
    """Completer for the configured provider, or None when no credential is set."""
    if not config.has_llm_credential:
        return None
    if config.llm_provider == "gemini":
        return GeminiCompleter(api_key=config.llm_api_key, model=config.llm_model)
    return OpenAICompleter(api_key=config.llm_api_key, model=config.llm_model, base_url=config.llm_base_url)
