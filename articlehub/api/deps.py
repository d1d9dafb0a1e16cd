"""FastAPI dependencies: application context, authentication, rate limits."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Callable, Optional

import httpx
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config import Settings
from ..errors import Forbidden, RateLimited, Unauthenticated
from ..models import User, is_object_id
from ..rate_limit import FixedWindowRateLimiter, RateLimiters
from ..security import decode_access_token
from ..storage import Storage
from ..summarizer.service import SummarizationService
from ..summarizer.workflow import SummarizeArticleWorkflow
from ..utils.analytics import AnalyticsStore


@dataclass
class AppContext:
    """Everything a request handler needs, built once per process."""

    settings: Settings
    service: SummarizationService
    limiters: RateLimiters
    analytics: Optional[AnalyticsStore] = None
    storage: Optional[Storage] = None
    workflow: Optional[SummarizeArticleWorkflow] = None
    http_client: Optional[httpx.AsyncClient] = None

    def attach_storage(self, storage: Storage) -> None:
        self.storage = storage
        self.workflow = SummarizeArticleWorkflow(storage.articles, storage.versions, self.service, self.analytics)


def get_context(request: Request) -> AppContext:
    return request.app.state.ctx


def get_storage(ctx: Annotated[AppContext, Depends(get_context)]) -> Storage:
    if ctx.storage is None:
        raise RuntimeError("Storage is not initialised; is the app started?")
    return ctx.storage


# auto_error=False so a missing header goes through our own 401 envelope.
bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    ctx: Annotated[AppContext, Depends(get_context)],
    storage: Annotated[Storage, Depends(get_storage)],
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer)],
) -> User:
    """
    Resolve the caller from the ``Authorization: Bearer`` header.

    Raises:
        Unauthenticated: no token, bad or expired token, or unknown user
    """
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Access denied. No token provided.")

    payload = decode_access_token(credentials.credentials, ctx.settings.auth)
    user_id = str(payload["sub"])
    user = await storage.users.get(user_id) if is_object_id(user_id) else None
    if user is None:
        raise Unauthenticated("Invalid token. User not found.")
    return user


async def require_admin(user: Annotated[User, Depends(get_current_user)]) -> User:
    if not user.is_admin:
        raise Forbidden("Access denied. Admin privileges required.")
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
AdminUser = Annotated[User, Depends(require_admin)]
Context = Annotated[AppContext, Depends(get_context)]
StorageDep = Annotated[Storage, Depends(get_storage)]


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def enforce_limit(ctx: AppContext, limiter: FixedWindowRateLimiter, key: str, message: str) -> None:
    if not ctx.limiters.enabled:
        return
    decision = limiter.hit(key)
    if not decision.allowed:
        raise RateLimited(message, retry_after=decision.retry_after)


def limit_by_address(tier: str, message: str) -> Callable:
    """Rate limit keyed by client address (used before authentication exists)."""

    async def dependency(request: Request, ctx: Context) -> None:
        enforce_limit(ctx, getattr(ctx.limiters, tier), f"ip:{client_address(request)}", message)

    return dependency


def limit_by_identity(tier: str, message: str) -> Callable:
    """Rate limit keyed by the authenticated identity."""

    async def dependency(ctx: Context, user: CurrentUser) -> None:
        enforce_limit(ctx, getattr(ctx.limiters, tier), f"user:{user.id}", message)

    return dependency


summarize_limit = limit_by_identity(
    "summarize", "Too many summarization requests from this user. Please try again later."
)
auth_limit = limit_by_address("auth", "Too many authentication attempts. Please try again later.")