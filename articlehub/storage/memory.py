"""Process-local stores used when MongoDB is unreachable, and in tests."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..errors import ValidationError
from ..models import Article, ArticleVersion, User
from .base import ArticleQuery


class InMemoryArticleRepository:
    def __init__(self) -> None:
        self._items: dict[str, Article] = {}

    async def get(self, article_id: str) -> Optional[Article]:
        article = self._items.get(article_id)
        return article.model_copy(deep=True) if article else None

    async def insert(self, article: Article) -> Article:
        self._items[article.id] = article.model_copy(deep=True)
        return article

    async def replace(self, article: Article) -> Optional[Article]:
        if article.id not in self._items:
            return None
        self._items[article.id] = article.model_copy(deep=True)
        return article

    async def set_summary(self, article_id: str, summary: str, updated_at: datetime) -> Optional[Article]:
        article = self._items.get(article_id)
        if article is None:
            return None
        article.summary = summary
        article.updated_at = updated_at
        return article.model_copy(deep=True)

    async def delete(self, article_id: str) -> Optional[Article]:
        return self._items.pop(article_id, None)

    async def find(self, query: ArticleQuery) -> tuple[list[Article], int]:
        matches = [a for a in self._items.values() if _matches(a, query)]
        matches.sort(key=lambda a: (a.created_at, a.id), reverse=True)
        page = matches[query.skip : query.skip + query.limit]
        return [a.model_copy(deep=True) for a in page], len(matches)


def _matches(article: Article, query: ArticleQuery) -> bool:
    if query.owner_id is not None and article.created_by != query.owner_id:
        return False
    if query.tags and not set(query.tags) & set(article.tags):
        return False
    if query.search:
        needle = query.search.lower()
        haystacks = (article.title, article.content, article.summary)
        if not any(needle in h.lower() for h in haystacks):
            return False
    return True


class InMemoryUserRepository:
    def __init__(self) -> None:
        self._items: dict[str, User] = {}

    async def get(self, user_id: str) -> Optional[User]:
        return self._items.get(user_id)

    async def get_by_email(self, email: str) -> Optional[User]:
        email = email.lower()
        return next((u for u in self._items.values() if u.email == email), None)

    async def get_by_username(self, username: str) -> Optional[User]:
        return next((u for u in self._items.values() if u.username == username), None)

    async def insert(self, user: User) -> User:
        if await self.get_by_email(user.email):
            raise ValidationError("Email already registered.")
        if await self.get_by_username(user.username):
            raise ValidationError("Username already taken.")
        self._items[user.id] = user
        return user

    async def update(self, user: User) -> Optional[User]:
        if user.id not in self._items:
            return None
        self._items[user.id] = user
        return user

    async def delete(self, user_id: str) -> bool:
        return self._items.pop(user_id, None) is not None

    async def list(self, page: int, limit: int) -> tuple[list[User], int]:
        users = sorted(self._items.values(), key=lambda u: u.created_at, reverse=True)
        skip = (page - 1) * limit
        return users[skip : skip + limit], len(users)


class InMemoryVersionRepository:
    def __init__(self) -> None:
        self._items: dict[str, list[ArticleVersion]] = {}
        self._counters: dict[str, int] = {}

    async def add(self, version: ArticleVersion) -> ArticleVersion:
        self._items.setdefault(version.article_id, []).append(version)
        return version

    async def next_number(self, article_id: str) -> int:
        self._counters[article_id] = self._counters.get(article_id, 0) + 1
        return self._counters[article_id]

    async def list_for(self, article_id: str) -> list[ArticleVersion]:
        return sorted(self._items.get(article_id, []), key=lambda v: v.version_number, reverse=True)

    async def get(self, article_id: str, number: int) -> Optional[ArticleVersion]:
        return next((v for v in self._items.get(article_id, []) if v.version_number == number), None)

    async def delete_for(self, article_id: str) -> int:
        self._counters.pop(article_id, None)
        return len(self._items.pop(article_id, []))
