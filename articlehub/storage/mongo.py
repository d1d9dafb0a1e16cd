from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, Mapping, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..errors import StorageFailure, ValidationError
from ..models import Article, ArticleVersion, User
from .base import ArticleQuery

logger = logging.getLogger(__name__)


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except DuplicateKeyError:
        raise
    except PyMongoError as e:
        logger.error("MongoDB %s failed: %s", operation, e)
        raise StorageFailure(f"Storage error during {operation}.", cause=e) from e


def _oid(value: str) -> ObjectId:
    return ObjectId(value)


def _out(doc: Mapping[str, Any], *ref_fields: str) -> dict[str, Any]:
    out = dict(doc)
    out["_id"] = str(out["_id"])
    for name in ref_fields:
        if out.get(name) is not None:
            out[name] = str(out[name])
    return out


def _article_doc(article: Article) -> dict[str, Any]:
    doc = article.model_dump(by_alias=True)
    doc["_id"] = _oid(article.id)
    doc["createdBy"] = _oid(article.created_by)
    return doc


def _article(doc: Optional[Mapping[str, Any]]) -> Optional[Article]:
    return Article.model_validate(_out(doc, "createdBy")) if doc else None


def _user(doc: Optional[Mapping[str, Any]]) -> Optional[User]:
    return User.model_validate(_out(doc)) if doc else None


def _version(doc: Mapping[str, Any]) -> ArticleVersion:
    return ArticleVersion.model_validate(_out(doc, "articleId", "editedBy"))


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    await db.users.create_index([("email", ASCENDING)], unique=True)
    await db.users.create_index([("username", ASCENDING)], unique=True)
    await db.articles.create_index([("tags", ASCENDING)])
    await db.articles.create_index([("createdBy", ASCENDING), ("createdAt", DESCENDING)])
    await db.article_versions.create_index(
        [("articleId", ASCENDING), ("versionNumber", DESCENDING)], unique=True
    )


class MongoArticleRepository:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._col = db.articles

    async def get(self, article_id: str) -> Optional[Article]:
        with _storage_errors("article lookup"):
            return _article(await self._col.find_one({"_id": _oid(article_id)}))

    async def insert(self, article: Article) -> Article:
        with _storage_errors("article insert"):
            await self._col.insert_one(_article_doc(article))
        return article

    async def replace(self, article: Article) -> Optional[Article]:
        with _storage_errors("article save"):
            result = await self._col.replace_one({"_id": _oid(article.id)}, _article_doc(article))
        return article if result.matched_count else None

    async def set_summary(self, article_id: str, summary: str, updated_at: datetime) -> Optional[Article]:
        with _storage_errors("summary save"):
            doc = await self._col.find_one_and_update(
                {"_id": _oid(article_id)},
                {"$set": {"summary": summary, "updatedAt": updated_at}},
                return_document=ReturnDocument.AFTER,
            )
        return _article(doc)

    async def delete(self, article_id: str) -> Optional[Article]:
        with _storage_errors("article delete"):
            return _article(await self._col.find_one_and_delete({"_id": _oid(article_id)}))

    async def find(self, query: ArticleQuery) -> tuple[list[Article], int]:
        filt: dict[str, Any] = {}
        if query.owner_id:
            filt["createdBy"] = _oid(query.owner_id)
        if query.tags:
            filt["tags"] = {"$in": query.tags}
        if query.search:
            pattern = {"$regex": re.escape(query.search), "$options": "i"}
            filt["$or"] = [{"title": pattern}, {"content": pattern}, {"summary": pattern}]

        with _storage_errors("article query"):
            cursor = self._col.find(filt).sort("createdAt", DESCENDING).skip(query.skip).limit(query.limit)
            docs = await cursor.to_list(query.limit)
            total = await self._col.count_documents(filt)
        return [_article(d) for d in docs], total


class MongoUserRepository:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._col = db.users

    async def get(self, user_id: str) -> Optional[User]:
        with _storage_errors("user lookup"):
            return _user(await self._col.find_one({"_id": _oid(user_id)}))

    async def get_by_email(self, email: str) -> Optional[User]:
        with _storage_errors("user lookup"):
            return _user(await self._col.find_one({"email": email.lower()}))

    async def get_by_username(self, username: str) -> Optional[User]:
        with _storage_errors("user lookup"):
            return _user(await self._col.find_one({"username": username}))

    async def insert(self, user: User) -> User:
        doc = user.model_dump(by_alias=True)
        doc["_id"] = _oid(user.id)
        try:
            with _storage_errors("user insert"):
                await self._col.insert_one(doc)
        except DuplicateKeyError as e:
            field = "Email" if "email" in str(e) else "Username"
            raise ValidationError(
                "Email already registered." if field == "Email" else "Username already taken.", cause=e
            ) from e
        return user

    async def update(self, user: User) -> Optional[User]:
        doc = user.model_dump(by_alias=True, exclude={"id"})
        try:
            with _storage_errors("user update"):
                result = await self._col.update_one({"_id": _oid(user.id)}, {"$set": doc})
        except DuplicateKeyError as e:
            raise ValidationError("Email or username already in use.", cause=e) from e
        return user if result.matched_count else None

    async def delete(self, user_id: str) -> bool:
        with _storage_errors("user delete"):
            result = await self._col.delete_one({"_id": _oid(user_id)})
        return result.deleted_count == 1

    async def list(self, page: int, limit: int) -> tuple[list[User], int]:
        with _storage_errors("user query"):
            cursor = self._col.find({}).sort("createdAt", DESCENDING).skip((page - 1) * limit).limit(limit)
            docs = await cursor.to_list(limit)
            total = await self._col.count_documents({})
        return [_user(d) for d in docs], total


class MongoVersionRepository:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._col = db.article_versions
        self._counters = db.article_version_counters

    async def add(self, version: ArticleVersion) -> ArticleVersion:
        doc = version.model_dump(by_alias=True)
        doc["_id"] = _oid(version.id)
        doc["articleId"] = _oid(version.article_id)
        doc["editedBy"] = _oid(version.edited_by)
        with _storage_errors("version insert"):
            await self._col.insert_one(doc)
        return version

    async def next_number(self, article_id: str) -> int:
        # Atomic $inc: concurrent callers always get distinct numbers.
        with _storage_errors("version number"):
            counter = await self._counters.find_one_and_update(
                {"_id": _oid(article_id)},
                {"$inc": {"seq": 1}},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        return counter["seq"]

    async def list_for(self, article_id: str) -> list[ArticleVersion]:
        with _storage_errors("version query"):
            cursor = self._col.find({"articleId": _oid(article_id)}).sort("versionNumber", DESCENDING)
            docs = await cursor.to_list(None)
        return [_version(d) for d in docs]

    async def get(self, article_id: str, number: int) -> Optional[ArticleVersion]:
        with _storage_errors("version lookup"):
            doc = await self._col.find_one({"articleId": _oid(article_id), "versionNumber": number})
        return _version(doc) if doc else None

    async def delete_for(self, article_id: str) -> int:
        with _storage_errors("version delete"):
            result = await self._col.delete_many({"articleId": _oid(article_id)})
            await self._counters.delete_one({"_id": _oid(article_id)})
        return result.deleted_count
