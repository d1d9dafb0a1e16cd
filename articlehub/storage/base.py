from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Protocol

from ..models import Article, ArticleVersion, User


@dataclass
class ArticleQuery:
    tags: list[str] = field(default_factory=list)
    search: Optional[str] = None
    owner_id: Optional[str] = None
    page: int = 1
    limit: int = 50

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


class ArticleRepository(Protocol):
    """Port for article persistence."""

    async def get(self, article_id: str) -> Optional[Article]:
        """Fetch one article, or None."""

    async def insert(self, article: Article) -> Article:
        """Persist a new article."""

    async def replace(self, article: Article) -> Optional[Article]:
        """Overwrite the stored article; None if it no longer exists."""

    async def set_summary(self, article_id: str, summary: str, updated_at: datetime) -> Optional[Article]:
        """Overwrite only the summary field (last writer wins)."""

    async def delete(self, article_id: str) -> Optional[Article]:
        """Remove and return the article, or None if absent."""

    async def find(self, query: ArticleQuery) -> tuple[list[Article], int]:
        """Return one page of matches (newest first) and the total match count."""


class UserRepository(Protocol):
    """Port for identity persistence."""

    async def get(self, user_id: str) -> Optional[User]:
        ...

    async def get_by_email(self, email: str) -> Optional[User]:
        ...

    async def get_by_username(self, username: str) -> Optional[User]:
        ...

    async def insert(self, user: User) -> User:
        ...

    async def update(self, user: User) -> Optional[User]:
        ...

    async def delete(self, user_id: str) -> bool:
        ...

    async def list(self, page: int, limit: int) -> tuple[list[User], int]:
        ...


class VersionRepository(Protocol):
    """Port for article edit history."""

    async def add(self, version: ArticleVersion) -> ArticleVersion:
        ...

    async def next_number(self, article_id: str) -> int:
        """Reserve the next version number; concurrent callers never share one."""

    async def list_for(self, article_id: str) -> list[ArticleVersion]:
        """Newest first."""

    async def get(self, article_id: str, number: int) -> Optional[ArticleVersion]:
        ...

    async def delete_for(self, article_id: str) -> int:
        ...
