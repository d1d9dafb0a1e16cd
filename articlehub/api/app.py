from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Callable, Mapping, Optional

import httpx
from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

from ..config import Settings, load_settings
from ..errors import AppError, ProviderFailure, RateLimited
from ..rate_limit import RateLimiters
from ..storage import Storage, open_storage
from ..summarizer.providers import ProviderAdapter, build_adapters
from ..summarizer.service import SummarizationService
from ..utils.analytics import AnalyticsStore
from .deps import AppContext, Context
from .responses import error as error_body
from .routes import articles, auth, users


logger = logging.getLogger("articlehub.api")


def _install_error_handlers(app: FastAPI, settings: Settings) -> None:
    show_detail = not settings.server.is_production

    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError) -> JSONResponse:
        body = error_body(exc.message, exc.kind)
        headers = {}
        if isinstance(exc, RateLimited):
            body["retryAfter"] = exc.retry_after
            headers["Retry-After"] = str(exc.retry_after)
        if isinstance(exc, ProviderFailure):
            body["provider"] = exc.provider
        if show_detail and exc.cause is not None:
            body["detail"] = str(exc.cause)

        if exc.status_code >= 500:
            logger.error(
                "%s %s failed: %s (%s)", request.method, request.url.path, exc.kind, exc.message,
                exc_info=exc.cause,
            )
        else:
            logger.warning("%s %s rejected: %s (%s)", request.method, request.url.path, exc.kind, exc.message)
        return JSONResponse(status_code=exc.status_code, content=body, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        messages = []
        for err in exc.errors():
            loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
            msg = str(err.get("msg", "Invalid value")).removeprefix("Value error, ")
            messages.append(f"{loc}: {msg}" if loc else msg)
        logger.warning("%s %s invalid request: %s", request.method, request.url.path, "; ".join(messages))
        return JSONResponse(status_code=400, content=error_body(" ".join(messages), "ValidationError"))

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        kind = "NotFound" if exc.status_code == 404 else "HTTPError"
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail), kind),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        body = error_body("Internal server error.", "InternalError")
        if show_detail:
            body["detail"] = str(exc)
        return JSONResponse(status_code=500, content=body)


def create_app(
    settings: Optional[Settings] = None,
    *,
    storage: Optional[Storage] = None,
    adapters: Optional[Mapping[str, ProviderAdapter]] = None,
    analytics: Optional[AnalyticsStore] = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """Assemble the API.

    ``storage`` and ``adapters`` are injectable for tests; when omitted, MongoDB
    is opened on startup (falling back to memory) and real vendor adapters are
    built from ``settings.llm``.
    """
    settings = settings or load_settings()

    http_client = None
    if adapters is None:
        http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.llm.timeout_seconds))
        adapters = build_adapters(settings.llm, http_client)

    if analytics is None:
        log_dir = Path(settings.logging.log_dir)
        analytics = AnalyticsStore(log_dir, settings.logging.summaries_jsonl, settings.logging.usage_json)

    ctx = AppContext(
        settings=settings,
        service=SummarizationService.from_settings(settings.llm, adapters),
        limiters=RateLimiters.from_settings(settings.rate_limits, clock=clock),
        analytics=analytics,
        http_client=http_client,
    )
    if storage is not None:
        ctx.attach_storage(storage)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if ctx.storage is None:
            ctx.attach_storage(await open_storage(settings.database))
        providers = ctx.service.available_providers()
        logger.info("LLM providers: %s", providers)
        if not any(v for k, v in providers.items() if k != "default"):
            logger.warning("No LLM API key configured; summarization requests will fail")
        yield
        if ctx.http_client is not None:
            await ctx.http_client.aclose()
        ctx.storage.close()

    app = FastAPI(title="ArticleHub API", lifespan=lifespan)
    app.state.ctx = ctx

    api_router = APIRouter(prefix="/api")

    @api_router.get("/")
    async def root():
        return {"message": "ArticleHub API"}

    @api_router.get("/health")
    async def health(ctx: Context):
        return {
            "success": True,
            "data": {
                "storage": ctx.storage.backend if ctx.storage else None,
                "providers": ctx.service.available_providers(),
                "environment": ctx.settings.server.environment,
            },
        }

    api_router.include_router(auth.router)
    api_router.include_router(articles.router)
    api_router.include_router(users.router)
    app.include_router(api_router)

    app.add_middleware(
        CORSMiddleware,
        allow_credentials=True,
        allow_origins=settings.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _install_error_handlers(app, settings)
    return app
