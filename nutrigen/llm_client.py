"""Gemini client factory with a narrow text-generation adapter."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from nutrigen.config import settings


class MissingApiKeyError(RuntimeError):
    """Raised when no Gemini API key is configured."""


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class GenerationResponse:
    text: str
    usage: Usage = field(default_factory=Usage)


class GeminiClientAdapter:
    """Wraps ``genai.Client`` behind a single ``generate`` coroutine.

    The research pipeline only needs prompt-in / text-out, so everything
    else the SDK offers stays hidden behind this class. Tests substitute
    any object with a compatible ``generate`` method.
    """

    def __init__(self, genai_client: Any):
        self._client = genai_client

    @staticmethod
    def _extract_text(response: Any) -> str:
        text = getattr(response, "text", None)
        if isinstance(text, str):
            return text
        candidates = getattr(response, "candidates", None) or []
        for candidate in candidates:
            content = getattr(candidate, "content", None)
            for part in getattr(content, "parts", None) or []:
                part_text = getattr(part, "text", None)
                if part_text:
                    return part_text
        return ""

    @staticmethod
    def _extract_usage(response: Any) -> Usage:
        meta = getattr(response, "usage_metadata", None)
        if meta is None:
            return Usage()
        return Usage(
            input_tokens=getattr(meta, "prompt_token_count", 0) or 0,
            output_tokens=getattr(meta, "candidates_token_count", 0) or 0,
        )

    async def generate(
        self,
        *,
        model: str,
        prompt: str,
        temperature: float,
        top_k: int,
        top_p: float,
        max_output_tokens: int,
    ) -> GenerationResponse:
        from google.genai import types

        response = await self._client.aio.models.generate_content(
            model=model,
            contents=prompt,
            config=types.GenerateContentConfig(
                temperature=temperature,
                top_k=top_k,
                top_p=top_p,
                max_output_tokens=max_output_tokens,
            ),
        )
        return GenerationResponse(
            text=self._extract_text(response),
            usage=self._extract_usage(response),
        )


def get_client(api_key: str | None = None) -> GeminiClientAdapter:
    """Build a Gemini adapter; fails fast when no API key is configured."""
    key = (api_key if api_key is not None else settings.gemini_api_key).strip()
    if not key:
        raise MissingApiKeyError(
            "GEMINI_API_KEY is not set. Configure it in the environment or .env file."
        )

    from google import genai

    return GeminiClientAdapter(genai.Client(api_key=key))


_client: GeminiClientAdapter | None = None


def client() -> GeminiClientAdapter:
    """Get or create the process-wide Gemini adapter."""
    global _client
    if _client is None:
        _client = get_client()
    return _client
