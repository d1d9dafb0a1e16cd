from __future__ import annotations

import asyncio

import pytest

from articlehub.errors import NotFound
from articlehub.models import Article, SummarizeRequest, User
from articlehub.storage import memory_storage
from articlehub.summarizer.service import SummarizationService
from articlehub.summarizer.workflow import SummarizeArticleWorkflow

from fakes import FakeAdapter


async def _setup(adapter: FakeAdapter, *, default_target_words: int = 150):
    storage = memory_storage()
    owner = await storage.users.insert(User(username="alice", email="alice@example.com", password_hash="h"))
    article = await storage.articles.insert(
        Article(title="Ocean tides", content="The moon pulls the sea.", summary="Old.", created_by=owner.id)
    )
    service = SummarizationService(
        {"gemini": adapter}, default_provider="gemini", default_target_words=default_target_words
    )
    workflow = SummarizeArticleWorkflow(storage.articles, storage.versions, service)
    return storage, owner, article, workflow


@pytest.mark.asyncio
async def test_interleaved_regenerates_both_succeed():
    storage, owner, article, workflow = await _setup(FakeAdapter("gemini", reply="Fresh.", delay=0.01))

    outcomes = await asyncio.gather(
        workflow.run(article.id, owner, SummarizeRequest(regenerate=True)),
        workflow.run(article.id, owner, SummarizeRequest(regenerate=True)),
    )

    assert all(o.regenerated and not o.already_exists for o in outcomes)
    assert (await storage.articles.get(article.id)).summary == "Fresh."
    versions = await storage.versions.list_for(article.id)
    assert [v.version_number for v in versions] == [2, 1]


@pytest.mark.asyncio
async def test_article_deleted_during_generation_leaves_no_version():
    adapter = FakeAdapter("gemini")
    storage, owner, article, workflow = await _setup(adapter)
    generate = adapter.summarize

    async def _delete_then_generate(content, **kwargs):
        await storage.articles.delete(article.id)
        return await generate(content, **kwargs)

    adapter.summarize = _delete_then_generate

    with pytest.raises(NotFound):
        await workflow.run(article.id, owner, SummarizeRequest(regenerate=True))
    assert await storage.versions.list_for(article.id) == []


@pytest.mark.asyncio
async def test_omitted_target_words_uses_configured_default():
    adapter = FakeAdapter("gemini")
    _, owner, article, workflow = await _setup(adapter, default_target_words=80)

    await workflow.run(article.id, owner, SummarizeRequest(regenerate=True))
    await workflow.run(article.id, owner, SummarizeRequest(regenerate=True, target_words=300))

    assert [c["target_words"] for c in adapter.calls] == [80, 300]
