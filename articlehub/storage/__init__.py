"""Persistence for articles, users and article versions.

MongoDB is used when reachable at startup; otherwise the app keeps running
on process-local stores.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from motor.motor_asyncio import AsyncIOMotorClient

from ..config import DatabaseSettings
from .base import ArticleQuery, ArticleRepository, UserRepository, VersionRepository
from .memory import InMemoryArticleRepository, InMemoryUserRepository, InMemoryVersionRepository
from .mongo import MongoArticleRepository, MongoUserRepository, MongoVersionRepository, ensure_indexes

logger = logging.getLogger(__name__)


@dataclass
class Storage:
    articles: ArticleRepository
    users: UserRepository
    versions: VersionRepository
    backend: str
    _close: Optional[Callable[[], Any]] = field(default=None, repr=False)

    def close(self) -> None:
        if self._close is not None:
            self._close()


def memory_storage() -> Storage:
    return Storage(
        articles=InMemoryArticleRepository(),
        users=InMemoryUserRepository(),
        versions=InMemoryVersionRepository(),
        backend="memory",
    )


async def open_storage(settings: DatabaseSettings) -> Storage:
    """Connect to MongoDB. If Mongo isn't reachable, fall back to memory storage."""
    if settings.use_memory:
        logger.info("Using in-memory storage (configured)")
        return memory_storage()

    client = AsyncIOMotorClient(
        settings.mongo_url,
        serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
        tz_aware=True,
    )
    try:
        await client.admin.command("ping")
    except Exception as e:
        logger.warning("MongoDB not reachable; using in-memory storage. Details: %s", e)
        client.close()
        return memory_storage()

    db = client[settings.db_name]
    await ensure_indexes(db)
    logger.info("MongoDB connected (db=%s)", settings.db_name)
    return Storage(
        articles=MongoArticleRepository(db),
        users=MongoUserRepository(db),
        versions=MongoVersionRepository(db),
        backend="mongodb",
        _close=client.close,
    )


__all__ = ["ArticleQuery", "Storage", "memory_storage", "open_storage"]
