from __future__ import annotations

from pathlib import Path
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from articlehub.api.app import create_app
from articlehub.config import Settings
from articlehub.models import Article, User
from articlehub.security import create_access_token, hash_password
from articlehub.storage import Storage, memory_storage
from articlehub.utils.analytics import AnalyticsStore

from fakes import FakeAdapter, FakeClock


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    # Only Gemini has a key, mirroring a typical free-tier deployment.
    return Settings.model_validate(
        {
            "server": {"environment": "test"},
            "database": {"use_memory": True},
            "auth": {"jwt_secret": "test-secret", "bcrypt_rounds": 4, "allow_role_selection": True},
            "llm": {
                "default_provider": "gemini",
                "timeout_seconds": 2,
                "gemini": {
                    "api_key": "test-gemini-key",
                    "base_url": "https://gemini.test/v1beta",
                    "model": "gemini-test",
                },
            },
            "logging": {"log_dir": str(tmp_path / "logs")},
        }
    )


@pytest.fixture
def adapters() -> dict[str, FakeAdapter]:
    return {
        "gemini": FakeAdapter("gemini"),
        "openai": FakeAdapter("openai", configured=False),
        "groq": FakeAdapter("groq", configured=False),
    }


@pytest.fixture
def storage() -> Storage:
    return memory_storage()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def analytics(tmp_path: Path) -> AnalyticsStore:
    return AnalyticsStore(tmp_path / "analytics", "summaries.jsonl", "usage.json")


@pytest.fixture
def app(settings, storage, adapters, analytics, clock):
    return create_app(settings, storage=storage, adapters=adapters, analytics=analytics, clock=clock)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user(storage: Storage, settings: Settings):
    """Insert a user straight into storage and return (user, auth headers)."""

    async def _make(username: str, role: str = "user") -> tuple[User, dict[str, str]]:
        user = User(
            username=username,
            email=f"{username}@example.com",
            password_hash=hash_password("secret123", rounds=4),
            role=role,
        )
        await storage.users.insert(user)
        token = create_access_token(user.id, settings.auth)
        return user, {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def make_article(storage: Storage):
    async def _make(owner: User, *, summary: str = "Existing summary.", content: Optional[str] = None) -> Article:
        article = Article(
            title="Field notes",
            content=content if content is not None else "Rivers carve canyons over millions of years. " * 5,
            tags=["geology", "nature"],
            summary=summary,
            created_by=owner.id,
        )
        return await storage.articles.insert(article)

    return _make


@pytest.fixture
def run(client):
    """Run a coroutine on the TestClient's event loop."""

    def _run(coro):
        return client.portal.call(lambda: coro)

    return _run
