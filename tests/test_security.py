"""Tests for password hashing, tokens and the ownership policy."""
from __future__ import annotations

from datetime import timedelta

import jwt
import pytest

from articlehub.config import AuthSettings
from articlehub.errors import Unauthenticated
from articlehub.models import Article, User
from articlehub.policy import can_delete, can_edit, can_summarize
from articlehub.security import create_access_token, decode_access_token, hash_password, verify_password


AUTH = AuthSettings(jwt_secret="unit-secret")


def _user(role="user") -> User:
    return User(username=f"u-{role}", email=f"{role}@example.com", password_hash="x", role=role)


def test_password_hash_round_trip():
    hashed = hash_password("correct horse", rounds=4)
    assert hashed != "correct horse"
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong horse", hashed)


def test_verify_password_with_corrupt_hash():
    assert not verify_password("anything", "not-a-bcrypt-hash")


def test_token_round_trip():
    token = create_access_token("abc123", AUTH)
    payload = decode_access_token(token, AUTH)
    assert payload["sub"] == "abc123"
    assert payload["exp"] > payload["iat"]


def test_token_uses_configured_expiry():
    token = create_access_token("abc123", AUTH)
    payload = jwt.decode(token, "unit-secret", algorithms=["HS256"])
    assert payload["exp"] - payload["iat"] == 7 * 24 * 3600


def test_expired_token():
    token = create_access_token("abc123", AUTH, expires_delta=timedelta(seconds=-5))
    with pytest.raises(Unauthenticated, match="Token expired."):
        decode_access_token(token, AUTH)


def test_token_signed_with_other_secret_is_invalid():
    token = create_access_token("abc123", AuthSettings(jwt_secret="someone-else"))
    with pytest.raises(Unauthenticated, match="Invalid token."):
        decode_access_token(token, AUTH)


def test_token_without_subject_is_invalid():
    token = jwt.encode({"foo": "bar"}, "unit-secret", algorithm="HS256")
    with pytest.raises(Unauthenticated, match="Invalid token."):
        decode_access_token(token, AUTH)


def test_owner_or_admin_may_summarize_and_edit():
    owner, stranger, admin = _user(), _user(), _user("admin")
    article = Article(title="t", content="c", summary="s", created_by=owner.id)

    assert can_summarize(owner, article) and can_edit(owner, article)
    assert can_summarize(admin, article) and can_edit(admin, article)
    assert not can_summarize(stranger, article)
    assert not can_edit(stranger, article)


def test_only_admin_may_delete():
    assert can_delete(_user("admin"))
    assert not can_delete(_user())
