"""Vendor adapters: one uniform summarize() call, one HTTP shape per vendor."""
from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from ..config import LLMSettings, ProviderSettings
from ..errors import ProviderResponseError

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = (
    "You are a professional content summarizer. Create a concise, informative summary that "
    "captures the key points and main ideas of the article. The summary should be clear, "
    "engaging, and approximately {words} words or less."
)

SINGLE_PROMPT = """You are a professional content summarizer. Create a concise, informative summary of approximately {words} words that captures the key points and main ideas of the following article. Make it clear and engaging.

Article Content:
{content}

Please provide only the summary without any additional text:"""


class ProviderAdapter(ABC):
    """Base class for summary providers.

    Adapters only translate the request and normalize the response. Input
    truncation, output limits, deadlines and error wrapping belong to
    SummarizationService.
    """

    def __init__(self, name: str, settings: ProviderSettings, client: Optional[httpx.AsyncClient] = None) -> None:
        self.name = name
        self.settings = settings
        self._client = client

    @property
    def is_configured(self) -> bool:
        return self.settings.configured

    @property
    def model(self) -> str:
        return self.settings.model

    async def summarize(
        self,
        content: str,
        *,
        target_words: int,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str:
        if not self.is_configured:
            raise ProviderResponseError(f"{self.name} API key not configured")

        model = model or self.settings.model
        temperature = self.settings.temperature if temperature is None else temperature
        url, headers, payload = self._build_request(content, target_words=target_words, model=model, temperature=temperature)

        logger.info("Sending %d chars to %s (model=%s)", len(content), self.name, model)
        data = await self._post_json(url, headers, payload)
        text = self._extract_text(data)
        if not text or not text.strip():
            raise ProviderResponseError(f"{self.name} returned an empty summary")
        return text

    async def _post_json(self, url: str, headers: dict[str, str], payload: dict[str, Any]) -> Any:
        try:
            if self._client is not None:
                response = await self._client.post(url, headers=headers, json=payload)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(url, headers=headers, json=payload)
        except httpx.TimeoutException:
            raise
        except httpx.HTTPError as e:
            raise ProviderResponseError(f"Error connecting to {self.name}: {e}") from e

        if response.status_code != 200:
            raise ProviderResponseError(f"{self.name} API error {response.status_code}: {response.text[:500]}")
        try:
            return response.json()
        except ValueError as e:
            raise ProviderResponseError(f"{self.name} returned a non-JSON body") from e

    @abstractmethod
    def _build_request(
        self, content: str, *, target_words: int, model: str, temperature: float
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        """Return (url, headers, json payload)."""

    @abstractmethod
    def _extract_text(self, data: Any) -> str:
        """Pull the generated text out of a decoded response body."""


class ChatCompletionAdapter(ProviderAdapter):
    """OpenAI-style ``/chat/completions`` (OpenAI, Groq)."""

    def _build_request(self, content, *, target_words, model, temperature):
        url = f"{self.settings.base_url.rstrip('/')}/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT.format(words=target_words)},
                {"role": "user", "content": f"Please summarize the following article:\n\n{content}"},
            ],
            "temperature": temperature,
            "max_tokens": math.ceil(target_words * 1.5),
        }
        return url, headers, payload

    def _extract_text(self, data):
        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderResponseError(f"{self.name} response is missing choices[0].message.content") from e
        if not isinstance(text, str):
            raise ProviderResponseError(f"{self.name} returned no text")
        return text


class SinglePromptAdapter(ProviderAdapter):
    """Gemini-style ``generateContent`` with one combined prompt."""

    def _build_request(self, content, *, target_words, model, temperature):
        url = f"{self.settings.base_url.rstrip('/')}/models/{model}:generateContent"
        headers = {
            "x-goog-api-key": str(self.settings.api_key),
            "Content-Type": "application/json",
        }
        payload = {
            "contents": [{"parts": [{"text": SINGLE_PROMPT.format(words=target_words, content=content)}]}],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": math.ceil(target_words * 2),
            },
        }
        return url, headers, payload

    def _extract_text(self, data):
        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            reason = (data.get("promptFeedback") or {}).get("blockReason") if isinstance(data, dict) else None
            detail = f" (blocked: {reason})" if reason else ""
            raise ProviderResponseError(f"{self.name} response has no candidates{detail}") from e
        return "".join(p.get("text", "") for p in parts if isinstance(p, dict))


def build_adapters(settings: LLMSettings, client: Optional[httpx.AsyncClient] = None) -> dict[str, ProviderAdapter]:
    """Registered adapters keyed by provider name, built once at startup."""
    return {
        "openai": ChatCompletionAdapter("openai", settings.openai, client),
        "gemini": SinglePromptAdapter("gemini", settings.gemini, client),
        "groq": ChatCompletionAdapter("groq", settings.groq, client),
    }
