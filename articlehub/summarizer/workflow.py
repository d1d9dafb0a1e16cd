"""Per-request summarization flow for a stored article.

Received -> authorized -> (already summarized | generating) -> persisted.
Every failure surfaces as an AppError subclass whose kind tells the caller
which step failed; storage problems stay distinguishable from provider ones.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

from ..errors import AppError, Forbidden, InvalidState, NotFound, StorageFailure, ValidationError
from ..models import Article, ArticleVersion, SummarizeRequest, User, is_object_id, utcnow
from ..policy import can_summarize
from ..storage.base import ArticleRepository, VersionRepository
from ..utils.analytics import AnalyticsStore, SummaryLogRecord
from .service import SummarizationService

logger = logging.getLogger(__name__)


@dataclass
class SummaryOutcome:
    article: Article
    already_exists: bool
    provider: Optional[str] = None
    generation_ms: Optional[float] = None
    regenerated: bool = False


async def load_article(articles: ArticleRepository, article_id: str) -> Article:
    if not is_object_id(article_id):
        raise ValidationError("Invalid article ID.")
    article = await articles.get(article_id)
    if article is None:
        raise NotFound("Article not found.")
    return article


class SummarizeArticleWorkflow:
    def __init__(
        self,
        articles: ArticleRepository,
        versions: VersionRepository,
        service: SummarizationService,
        analytics: Optional[AnalyticsStore] = None,
    ) -> None:
        self.articles = articles
        self.versions = versions
        self.service = service
        self.analytics = analytics

    async def run(self, article_id: str, identity: User, request: SummarizeRequest) -> SummaryOutcome:
        article = await load_article(self.articles, article_id)

        if not can_summarize(identity, article):
            raise Forbidden("Not authorized to summarize this article. Only the owner or admin can.")

        if article.has_summary and not request.regenerate:
            return SummaryOutcome(article=article, already_exists=True)

        if not article.content.strip():
            raise InvalidState("Article has no content to summarize.")

        provider_label = request.provider or self.service.default_provider
        started = time.perf_counter()
        try:
            result = await self.service.summarize(
                article.content, request.provider, target_words=request.target_words
            )
        except AppError as e:
            self._record(article, provider_label, started, summary_chars=0, outcome=e.kind)
            raise

        regenerated = article.has_summary
        updated = await self._persist(article, identity, result.summary, result.provider)
        self._record(article, result.provider, started, summary_chars=len(result.summary), outcome="ok")

        return SummaryOutcome(
            article=updated,
            already_exists=False,
            provider=result.provider,
            generation_ms=result.elapsed_ms,
            regenerated=regenerated,
        )

    async def _persist(self, article: Article, identity: User, summary: str, provider: str) -> Article:
        # ``article`` is the pre-generation state; snapshot it once the write has landed.
        try:
            updated = await self.articles.set_summary(article.id, summary, utcnow())
            if updated is None:
                # Deleted while the provider was working.
                raise NotFound("Article not found.")
            number = await self.versions.next_number(article.id)
            await self.versions.add(
                ArticleVersion.snapshot(
                    article, number=number, edited_by=identity.id, reason=f"Summary generated with {provider}"
                )
            )
        except (StorageFailure, NotFound):
            raise
        except Exception as e:
            logger.exception("Saving summary for article %s failed", article.id)
            raise StorageFailure("Error saving generated summary.", cause=e) from e
        return updated

    def _record(self, article: Article, provider: str, started: float, *, summary_chars: int, outcome: str) -> None:
        if self.analytics is None:
            return
        try:
            self.analytics.append_summary(
                SummaryLogRecord(
                    ts=time.time(),
                    provider=provider,
                    article_id=article.id,
                    latency_ms=(time.perf_counter() - started) * 1000.0,
                    input_chars=len(article.content),
                    summary_chars=summary_chars,
                    outcome=outcome,
                )
            )
        except OSError as e:
            logger.warning("Could not write summary analytics: %s", e)
