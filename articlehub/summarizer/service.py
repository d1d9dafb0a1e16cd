from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import httpx

from ..config import LLMSettings
from ..errors import (
    EmptyContent,
    EmptyGeneration,
    ProviderFailure,
    ProviderNotConfigured,
    ProviderTimeout,
    UnsupportedProvider,
)
from .providers import ProviderAdapter


logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "..."
FALLBACK_PROVIDER = "gemini"


@dataclass
class SummarizeResult:
    summary: str
    provider: str
    elapsed_ms: float
    input_chars: int


def truncate_input(content: str, max_chars: int) -> str:
    """Cap what is sent to a vendor: first ``max_chars`` characters plus the marker."""
    if len(content) <= max_chars:
        return content
    return content[:max_chars] + TRUNCATION_MARKER


def clip_summary(text: str, max_chars: int) -> str:
    """Fit a generated summary into the stored field, marker included."""
    if len(text) <= max_chars:
        return text
    return text[: max_chars - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER


class SummarizationService:
    """Resolves a provider adapter and runs one bounded summarization call.

    There is no retry and no caching: every call is a fresh vendor request.
    """

    def __init__(
        self,
        adapters: Mapping[str, ProviderAdapter],
        *,
        default_provider: Optional[str] = None,
        timeout_seconds: float = 30.0,
        max_input_chars: int = 10_000,
        max_summary_chars: int = 500,
        default_target_words: int = 150,
    ) -> None:
        self.adapters = dict(adapters)
        self.default_provider = (default_provider or FALLBACK_PROVIDER).lower()
        self.timeout_seconds = timeout_seconds
        self.max_input_chars = max_input_chars
        self.max_summary_chars = max_summary_chars
        self.default_target_words = default_target_words

    @classmethod
    def from_settings(cls, settings: LLMSettings, adapters: Mapping[str, ProviderAdapter]) -> "SummarizationService":
        return cls(
            adapters,
            default_provider=settings.default_provider,
            timeout_seconds=settings.timeout_seconds,
            max_input_chars=settings.max_input_chars,
            max_summary_chars=settings.max_summary_chars,
            default_target_words=settings.default_target_words,
        )

    def available_providers(self) -> dict[str, Any]:
        out: dict[str, Any] = {name: adapter.is_configured for name, adapter in self.adapters.items()}
        out["default"] = self.default_provider
        return out

    def is_available(self, provider_name: str) -> bool:
        adapter = self.adapters.get(provider_name.lower())
        return bool(adapter and adapter.is_configured)

    def resolve(self, provider_name: Optional[str] = None) -> ProviderAdapter:
        name = (provider_name or self.default_provider).strip().lower()
        adapter = self.adapters.get(name)
        if adapter is None:
            raise UnsupportedProvider(f"Unsupported LLM provider: {name}")
        if not adapter.is_configured:
            raise ProviderNotConfigured(f"{name} is not configured on this server.")
        return adapter

    async def summarize(
        self,
        content: str,
        provider_name: Optional[str] = None,
        *,
        target_words: Optional[int] = None,
    ) -> SummarizeResult:
        if not content or not content.strip():
            raise EmptyContent("Content cannot be empty.")

        adapter = self.resolve(provider_name)
        prompt_content = truncate_input(content, self.max_input_chars)
        if target_words is None:
            target_words = self.default_target_words

        start = time.perf_counter()
        try:
            raw = await asyncio.wait_for(
                adapter.summarize(prompt_content, target_words=target_words),
                timeout=self.timeout_seconds,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.error("LLM summarization timed out (%s) after %.1fs", adapter.name, self.timeout_seconds)
            raise ProviderTimeout(adapter.name, self.timeout_seconds, cause=e) from e
        except Exception as e:
            logger.error("LLM summarization error (%s): %s", adapter.name, e)
            raise ProviderFailure(adapter.name, cause=e) from e
        elapsed_ms = (time.perf_counter() - start) * 1000.0

        summary = (raw or "").strip()
        if not summary:
            raise EmptyGeneration(f"{adapter.name} returned an empty summary.")
        summary = clip_summary(summary, self.max_summary_chars)

        logger.info(
            "summarize provider=%s latency_ms=%.1f input_chars=%d summary_chars=%d",
            adapter.name,
            elapsed_ms,
            len(prompt_content),
            len(summary),
        )
        return SummarizeResult(
            summary=summary,
            provider=adapter.name,
            elapsed_ms=elapsed_ms,
            input_chars=len(prompt_content),
        )


__all__ = ["SummarizationService", "SummarizeResult", "clip_summary", "truncate_input", "TRUNCATION_MARKER"]
