from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from fastapi import APIRouter, Body, Depends, Query, Request

from ...errors import Forbidden, NotFound
from ...models import Article, ArticleCreateRequest, ArticleUpdateRequest, ArticleVersion, SummarizeRequest, User, utcnow
from ...policy import can_delete, can_edit
from ...storage import ArticleQuery, Storage
from ...summarizer.workflow import load_article
from ..deps import Context, CurrentUser, StorageDep, client_address, enforce_limit, summarize_limit
from ..responses import ok, paginated

logger = logging.getLogger("articlehub.api.articles")

router = APIRouter(prefix="/articles", tags=["articles"])


async def _with_owners(storage: Storage, articles: Iterable[Article]) -> list[dict[str, Any]]:
    owners: dict[str, Optional[User]] = {}
    out = []
    for article in articles:
        if article.created_by not in owners:
            owners[article.created_by] = await storage.users.get(article.created_by)
        out.append(article.to_json(owners[article.created_by]))
    return out


async def _present(storage: Storage, article: Article) -> dict[str, Any]:
    return (await _with_owners(storage, [article]))[0]


@router.get("")
async def list_articles(
    request: Request,
    ctx: Context,
    storage: StorageDep,
    tags: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
):
    """List articles, newest first, optionally filtered by tags and a search term."""
    search = search.strip() if search else None
    if search:
        # Substring scans over every article body are the expensive path.
        enforce_limit(
            ctx, ctx.limiters.strict, f"ip:{client_address(request)}", "Rate limit exceeded. Please try again later."
        )
    tag_list = [t.strip() for t in tags.split(",") if t.strip()] if tags else []
    articles, total = await storage.articles.find(ArticleQuery(tags=tag_list, search=search, page=page, limit=limit))
    return paginated(await _with_owners(storage, articles), total, page, limit, "articles")


@router.get("/my/articles")
async def my_articles(
    user: CurrentUser,
    storage: StorageDep,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
):
    articles, total = await storage.articles.find(ArticleQuery(owner_id=user.id, page=page, limit=limit))
    return paginated([a.to_json(user) for a in articles], total, page, limit, "articles")


@router.get("/providers")
async def list_providers(ctx: Context):
    return ok({"providers": ctx.service.available_providers()})


@router.get("/{article_id}")
async def get_article(article_id: str, storage: StorageDep):
    article = await load_article(storage.articles, article_id)
    return ok({"article": await _present(storage, article)})


@router.post("", status_code=201)
async def create_article(body: ArticleCreateRequest, user: CurrentUser, storage: StorageDep):
    article = Article(
        title=body.title,
        content=body.content,
        tags=body.tags,
        summary=body.summary,
        created_by=user.id,
    )
    await storage.articles.insert(article)
    logger.info("Article %s created by %s", article.id, user.id)
    return ok({"article": article.to_json(user)}, "Article created successfully.")


@router.put("/{article_id}")
async def update_article(article_id: str, body: ArticleUpdateRequest, user: CurrentUser, storage: StorageDep):
    """Owner or admin only. The previous state is kept as a version."""
    article = await load_article(storage.articles, article_id)
    if not can_edit(user, article):
        raise Forbidden("Not authorized to update this article. Only the owner or admin can update.")

    changes = body.changes()
    if changes:
        previous = article
        article = article.model_copy(update={**changes, "updated_at": utcnow()})
        if await storage.articles.replace(article) is None:
            raise NotFound("Article not found.")
        number = await storage.versions.next_number(article.id)
        await storage.versions.add(
            ArticleVersion.snapshot(previous, number=number, edited_by=user.id, reason=body.edit_reason)
        )
        logger.info("Article %s updated by %s (version %d saved)", article.id, user.id, number)

    return ok({"article": await _present(storage, article)}, "Article updated successfully.")


@router.delete("/{article_id}")
async def delete_article(article_id: str, user: CurrentUser, storage: StorageDep):
    if not can_delete(user):
        raise Forbidden("Access denied. Admin privileges required.")
    article = await load_article(storage.articles, article_id)
    if await storage.articles.delete(article.id) is None:
        raise NotFound("Article not found.")
    removed = await storage.versions.delete_for(article.id)
    logger.info("Article %s deleted by admin %s (%d versions removed)", article.id, user.id, removed)
    return ok({"deletedArticle": {"id": article.id, "title": article.title}}, "Article deleted successfully.")


@router.get("/{article_id}/versions")
async def list_versions(article_id: str, user: CurrentUser, storage: StorageDep):
    article = await load_article(storage.articles, article_id)
    if not can_edit(user, article):
        raise Forbidden("Not authorized to view the history of this article.")
    versions = await storage.versions.list_for(article.id)
    return ok({"versions": [v.to_json() for v in versions]}, count=len(versions))


@router.get("/{article_id}/versions/{version_number}")
async def get_version(article_id: str, version_number: int, user: CurrentUser, storage: StorageDep):
    article = await load_article(storage.articles, article_id)
    if not can_edit(user, article):
        raise Forbidden("Not authorized to view the history of this article.")
    version = await storage.versions.get(article.id, version_number)
    if version is None:
        raise NotFound("Version not found.")
    return ok({"version": version.to_json()})


@router.post("/{article_id}/summarize", dependencies=[Depends(summarize_limit)])
async def summarize_article(
    article_id: str,
    user: CurrentUser,
    ctx: Context,
    storage: StorageDep,
    body: Optional[SummarizeRequest] = Body(default=None),
):
    """Generate (or return the existing) AI summary for an article."""
    request = body or SummarizeRequest()
    outcome = await ctx.workflow.run(article_id, user, request)
    article = outcome.article

    if outcome.already_exists:
        existing = {"_id": article.id, "title": article.title, "summary": article.summary, "alreadyExists": True}
        return ok({"article": existing}, "Summary already exists. Set regenerate to true to create a new one.")

    logger.info(
        "Article %s summarized by %s via %s in %.0fms", article.id, user.id, outcome.provider, outcome.generation_ms
    )
    metadata = {
        "provider": outcome.provider,
        "generationTime": round(outcome.generation_ms or 0.0),
        "regenerated": outcome.regenerated,
    }
    return ok({"article": await _present(storage, article), "metadata": metadata}, "Summary generated successfully.")
