from __future__ import annotations

import asyncio

import pytest
import pytest_asyncio

from articlehub.models import Article, ArticleVersion, SummarizeRequest, User
from articlehub.storage.mongo import (
    MongoArticleRepository,
    MongoUserRepository,
    MongoVersionRepository,
    ensure_indexes,
)
from articlehub.summarizer.service import SummarizationService
from articlehub.summarizer.workflow import SummarizeArticleWorkflow

from fakes import FakeAdapter

mongomock_motor = pytest.importorskip("mongomock_motor")


class _YieldingVersions:
    """Gives the event loop a turn after each number is handed out, as a network round-trip would."""

    def __init__(self, inner: MongoVersionRepository) -> None:
        self._inner = inner

    async def next_number(self, article_id: str) -> int:
        number = await self._inner.next_number(article_id)
        await asyncio.sleep(0)
        return number

    def __getattr__(self, name):
        return getattr(self._inner, name)


@pytest_asyncio.fixture
async def db():
    database = mongomock_motor.AsyncMongoMockClient()["articlehub_test"]
    await ensure_indexes(database)
    return database


async def _owner_and_article(db):
    owner = await MongoUserRepository(db).insert(
        User(username="alice", email="alice@example.com", password_hash="h")
    )
    article = await MongoArticleRepository(db).insert(
        Article(title="Ocean tides", content="The moon pulls the sea.", summary="Old.", created_by=owner.id)
    )
    return owner, article


@pytest.mark.asyncio
async def test_version_numbers_are_unique_under_concurrency(db):
    versions = MongoVersionRepository(db)
    _, article = await _owner_and_article(db)

    numbers = await asyncio.gather(*(versions.next_number(article.id) for _ in range(5)))
    assert sorted(numbers) == [1, 2, 3, 4, 5]
    assert await versions.next_number("0" * 24) == 1


@pytest.mark.asyncio
async def test_interleaved_regenerates_keep_both_summaries(db):
    owner, article = await _owner_and_article(db)
    articles = MongoArticleRepository(db)
    versions = MongoVersionRepository(db)
    service = SummarizationService({"gemini": FakeAdapter("gemini", reply="Fresh.")}, default_provider="gemini")
    workflow = SummarizeArticleWorkflow(articles, _YieldingVersions(versions), service)

    outcomes = await asyncio.gather(
        workflow.run(article.id, owner, SummarizeRequest(regenerate=True)),
        workflow.run(article.id, owner, SummarizeRequest(regenerate=True)),
    )

    assert all(not o.already_exists for o in outcomes)
    assert (await articles.get(article.id)).summary == "Fresh."
    assert [v.version_number for v in await versions.list_for(article.id)] == [2, 1]


@pytest.mark.asyncio
async def test_delete_for_restarts_numbering(db):
    owner, article = await _owner_and_article(db)
    versions = MongoVersionRepository(db)
    for _ in range(2):
        number = await versions.next_number(article.id)
        await versions.add(ArticleVersion.snapshot(article, number=number, edited_by=owner.id, reason=None))

    assert await versions.delete_for(article.id) == 2
    assert await versions.list_for(article.id) == []
    assert await versions.next_number(article.id) == 1
