from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


Role = Literal["user", "admin"]

MAX_SUMMARY_CHARS = 500


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_object_id() -> str:
    return str(ObjectId())


def is_object_id(value: str) -> bool:
    return ObjectId.is_valid(value)


def normalize_tags(tags: Iterable[str]) -> list[str]:
    """Trim tags, drop blanks and duplicates, keep first-seen order."""
    seen: set[str] = set()
    out: list[str] = []
    for tag in tags:
        tag = str(tag).strip()
        if tag and tag not in seen:
            seen.add(tag)
            out.append(tag)
    return out


# Stored entities


class User(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(default_factory=new_object_id, alias="_id")
    username: str
    email: str
    password_hash: str = Field(alias="passwordHash", repr=False)
    role: Role = "user"
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def public(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude={"password_hash"})

    def brief(self) -> dict[str, Any]:
        return {"_id": self.id, "username": self.username, "email": self.email, "role": self.role}


class Article(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(default_factory=new_object_id, alias="_id")
    title: str
    content: str
    tags: list[str] = Field(default_factory=list)
    summary: str = ""
    created_by: str = Field(alias="createdBy")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=utcnow, alias="updatedAt")

    @property
    def has_summary(self) -> bool:
        return bool(self.summary and self.summary.strip())

    def to_json(self, owner: Optional[User] = None) -> dict[str, Any]:
        doc = self.model_dump(by_alias=True, mode="json")
        if owner is not None:
            doc["createdBy"] = owner.brief()
        return doc


class ArticleVersion(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(default_factory=new_object_id, alias="_id")
    article_id: str = Field(alias="articleId")
    version_number: int = Field(alias="versionNumber", ge=1)
    title: str
    content: str
    summary: str = ""
    tags: list[str] = Field(default_factory=list)
    edited_by: str = Field(alias="editedBy")
    edit_reason: Optional[str] = Field(default=None, alias="editReason", max_length=200)
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")

    @classmethod
    def snapshot(cls, article: Article, *, number: int, edited_by: str, reason: Optional[str]) -> "ArticleVersion":
        return cls(
            article_id=article.id,
            version_number=number,
            title=article.title,
            content=article.content,
            summary=article.summary,
            tags=list(article.tags),
            edited_by=edited_by,
            edit_reason=reason,
        )

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# Request bodies


def _not_blank(value: str, field: str) -> str:
    if not value.strip():
        raise ValueError(f"{field} is required")
    return value


class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=30)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    role: Optional[Role] = None

    @field_validator("username")
    @classmethod
    def _strip_username(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Username must be at least 3 characters")
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class ProfileUpdateRequest(BaseModel):
    username: Optional[str] = Field(default=None, min_length=3, max_length=30)
    email: Optional[EmailStr] = None


class ArticleCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1)
    summary: str = Field(min_length=1)
    tags: list[str] = Field(default_factory=list)

    @field_validator("title", "summary")
    @classmethod
    def _strip(cls, v: str, info) -> str:
        return _not_blank(v, info.field_name.capitalize()).strip()

    @field_validator("content")
    @classmethod
    def _content(cls, v: str) -> str:
        return _not_blank(v, "Content")

    @field_validator("summary")
    @classmethod
    def _summary_len(cls, v: str) -> str:
        if len(v) > MAX_SUMMARY_CHARS:
            raise ValueError(f"Summary cannot exceed {MAX_SUMMARY_CHARS} characters")
        return v

    @field_validator("tags")
    @classmethod
    def _tags(cls, v: list[str]) -> list[str]:
        return normalize_tags(v)


class ArticleUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(default=None, max_length=200)
    content: Optional[str] = None
    summary: Optional[str] = None
    tags: Optional[list[str]] = None
    edit_reason: Optional[str] = Field(default=None, alias="editReason", max_length=200)

    @field_validator("title", "summary")
    @classmethod
    def _strip(cls, v: Optional[str], info) -> Optional[str]:
        if v is None:
            return v
        return _not_blank(v, info.field_name.capitalize()).strip()

    @field_validator("content")
    @classmethod
    def _content(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else _not_blank(v, "Content")

    @field_validator("summary")
    @classmethod
    def _summary_len(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) > MAX_SUMMARY_CHARS:
            raise ValueError(f"Summary cannot exceed {MAX_SUMMARY_CHARS} characters")
        return v

    @field_validator("tags")
    @classmethod
    def _tags(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        return v if v is None else normalize_tags(v)

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True, exclude={"edit_reason"})


class SummarizeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider: Optional[str] = None
    regenerate: bool = False
    # None means the server's configured default length.
    target_words: Optional[int] = Field(default=None, alias="targetWords", ge=20, le=1000)

    @field_validator("provider")
    @classmethod
    def _provider(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip().lower()
        return v or None
