from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from ...errors import Forbidden, Unauthenticated, ValidationError
from ...models import LoginRequest, ProfileUpdateRequest, RegisterRequest, User
from ...security import create_access_token, hash_password, verify_password
from ..deps import Context, CurrentUser, StorageDep, auth_limit
from ..responses import ok

logger = logging.getLogger("articlehub.api.auth")

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", status_code=201, dependencies=[Depends(auth_limit)])
async def register(body: RegisterRequest, ctx: Context, storage: StorageDep):
    email = body.email.lower()
    if await storage.users.get_by_email(email):
        raise ValidationError("Email already registered.")
    if await storage.users.get_by_username(body.username):
        raise ValidationError("Username already taken.")

    role = "user"
    if body.role is not None and body.role != "user":
        if not ctx.settings.auth.allow_role_selection:
            raise Forbidden("Role selection is disabled on this server.")
        role = body.role

    # bcrypt is deliberately slow; keep it off the event loop.
    password_hash = await run_in_threadpool(hash_password, body.password, ctx.settings.auth.bcrypt_rounds)
    user = await storage.users.insert(
        User(username=body.username, email=email, password_hash=password_hash, role=role)
    )
    logger.info("Registered user %s (role=%s)", user.id, user.role)
    token = create_access_token(user.id, ctx.settings.auth)
    return ok({"user": user.public(), "token": token}, "User registered successfully.")


@router.post("/login", dependencies=[Depends(auth_limit)])
async def login(body: LoginRequest, ctx: Context, storage: StorageDep):
    user = await storage.users.get_by_email(body.email)
    if user is None or not await run_in_threadpool(verify_password, body.password, user.password_hash):
        raise Unauthenticated("Invalid email or password.")

    token = create_access_token(user.id, ctx.settings.auth)
    return ok({"user": user.public(), "token": token}, "Login successful.")


@router.get("/profile")
async def get_profile(user: CurrentUser):
    return ok({"user": user.public()})


@router.put("/profile")
async def update_profile(body: ProfileUpdateRequest, user: CurrentUser, storage: StorageDep):
    """Change username and/or email. The role is fixed at registration."""
    updates = {}
    if body.username is not None and body.username.strip() != user.username:
        username = body.username.strip()
        if await storage.users.get_by_username(username):
            raise ValidationError("Username already taken.")
        updates["username"] = username
    if body.email is not None and body.email.lower() != user.email:
        email = body.email.lower()
        if await storage.users.get_by_email(email):
            raise ValidationError("Email already registered.")
        updates["email"] = email

    if updates:
        user = user.model_copy(update=updates)
        await storage.users.update(user)

    return ok({"user": user.public()}, "Profile updated successfully.")
