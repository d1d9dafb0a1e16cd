from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from articlehub.errors import ValidationError
from articlehub.models import Article, ArticleVersion, User
from articlehub.storage import memory_storage
from articlehub.storage.base import ArticleQuery


T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _article(title, *, owner="u1", tags=(), minutes=0, summary="s") -> Article:
    return Article(
        title=title,
        content=f"{title} body",
        summary=summary,
        tags=list(tags),
        created_by=owner,
        created_at=T0 + timedelta(minutes=minutes),
    )


@pytest.mark.asyncio
async def test_find_filters_sorts_and_paginates():
    storage = memory_storage()
    for i, (owner, tags) in enumerate([("u1", ["ai"]), ("u2", ["ml"]), ("u1", ["ai", "ml"]), ("u2", [])]):
        await storage.articles.insert(_article(f"Post {i}", owner=owner, tags=tags, minutes=i))

    items, total = await storage.articles.find(ArticleQuery())
    assert total == 4
    assert [a.title for a in items] == ["Post 3", "Post 2", "Post 1", "Post 0"]

    items, total = await storage.articles.find(ArticleQuery(tags=["ai"]))
    assert total == 2

    items, total = await storage.articles.find(ArticleQuery(owner_id="u2"))
    assert [a.title for a in items] == ["Post 3", "Post 1"]

    items, total = await storage.articles.find(ArticleQuery(search="POST 2 BODY"))
    assert [a.title for a in items] == ["Post 2"]

    items, total = await storage.articles.find(ArticleQuery(page=2, limit=3))
    assert total == 4
    assert [a.title for a in items] == ["Post 0"]


@pytest.mark.asyncio
async def test_returned_articles_are_copies():
    storage = memory_storage()
    article = await storage.articles.insert(_article("Original"))
    fetched = await storage.articles.get(article.id)
    fetched.title = "Mutated"
    assert (await storage.articles.get(article.id)).title == "Original"


@pytest.mark.asyncio
async def test_set_summary_and_missing_article():
    storage = memory_storage()
    article = await storage.articles.insert(_article("A", summary=""))
    later = T0 + timedelta(hours=1)

    updated = await storage.articles.set_summary(article.id, "New summary", later)
    assert updated.summary == "New summary"
    assert updated.updated_at == later
    assert await storage.articles.set_summary("missing", "x", later) is None
    assert await storage.articles.replace(_article("Ghost")) is None


@pytest.mark.asyncio
async def test_duplicate_users_rejected():
    storage = memory_storage()
    await storage.users.insert(User(username="alice", email="alice@example.com", password_hash="h"))
    with pytest.raises(ValidationError, match="Email"):
        await storage.users.insert(User(username="alice2", email="alice@example.com", password_hash="h"))
    with pytest.raises(ValidationError, match="Username"):
        await storage.users.insert(User(username="alice", email="other@example.com", password_hash="h"))


@pytest.mark.asyncio
async def test_version_numbers_increase_per_article():
    storage = memory_storage()
    article = _article("A")
    for reason in ("first", "second"):
        number = await storage.versions.next_number(article.id)
        await storage.versions.add(ArticleVersion.snapshot(article, number=number, edited_by="u1", reason=reason))

    assert await storage.versions.next_number("other") == 1
    versions = await storage.versions.list_for(article.id)
    assert [v.version_number for v in versions] == [2, 1]
    assert (await storage.versions.get(article.id, 1)).edit_reason == "first"
    assert await storage.versions.delete_for(article.id) == 2
    assert await storage.versions.list_for(article.id) == []
