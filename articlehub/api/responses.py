"""JSON envelopes shared by every route.

Success: ``{"success": true, "message"?, ..., "data": {...}}``
Failure: ``{"success": false, "message", "error"}`` plus optional extras set by
the exception handlers.
"""
from __future__ import annotations

import math
from typing import Any, Optional


def ok(data: dict[str, Any], message: Optional[str] = None, **extra: Any) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    body.update(extra)
    body["data"] = data
    return body


def paginated(items: list[Any], total: int, page: int, limit: int, key: str) -> dict[str, Any]:
    return ok(
        {key: items},
        count=len(items),
        total=total,
        page=page,
        pages=math.ceil(total / limit) if total else 0,
    )


def error(message: str, kind: str) -> dict[str, Any]:
    return {"success": False, "message": message, "error": kind}
