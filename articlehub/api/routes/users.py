from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from ...errors import NotFound, ValidationError
from ...models import User, is_object_id
from ...storage import Storage
from ..deps import AdminUser, StorageDep, require_admin
from ..responses import ok, paginated

logger = logging.getLogger("articlehub.api.users")

# Every route here is admin-only.
router = APIRouter(prefix="/users", tags=["users"], dependencies=[Depends(require_admin)])


async def _load_user(storage: Storage, user_id: str) -> User:
    if not is_object_id(user_id):
        raise ValidationError("Invalid user ID.")
    user = await storage.users.get(user_id)
    if user is None:
        raise NotFound("User not found.")
    return user


@router.get("")
async def list_users(
    storage: StorageDep,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
):
    users, total = await storage.users.list(page, limit)
    return paginated([u.public() for u in users], total, page, limit, "users")


@router.get("/{user_id}")
async def get_user(user_id: str, storage: StorageDep):
    user = await _load_user(storage, user_id)
    return ok({"user": user.public()})


@router.delete("/{user_id}")
async def delete_user(user_id: str, admin: AdminUser, storage: StorageDep):
    user = await _load_user(storage, user_id)
    if user.id == admin.id:
        raise ValidationError("You cannot delete your own account.")
    if not await storage.users.delete(user.id):
        raise NotFound("User not found.")
    logger.info("User %s deleted by admin %s", user.id, admin.id)
    return ok({"deletedUser": {"id": user.id, "username": user.username}}, "User deleted successfully.")
