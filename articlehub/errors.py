"""Error taxonomy shared by the service layer and the HTTP layer.

Each error carries the HTTP status it maps to and a stable ``kind`` string
that is returned to clients in the ``error`` field of the response body.
"""
from __future__ import annotations

from typing import Optional


class AppError(Exception):
    status_code = 500
    kind = "InternalError"

    def __init__(self, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class ValidationError(AppError):
    status_code = 400
    kind = "ValidationError"


class Unauthenticated(AppError):
    status_code = 401
    kind = "Unauthenticated"


class Forbidden(AppError):
    status_code = 403
    kind = "Forbidden"


class NotFound(AppError):
    status_code = 404
    kind = "NotFound"


class RateLimited(AppError):
    status_code = 429
    kind = "RateLimited"

    def __init__(self, message: str, *, retry_after: int) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class InvalidState(AppError):
    status_code = 400
    kind = "InvalidState"


class StorageFailure(AppError):
    status_code = 500
    kind = "StorageFailure"


# Summarization


class EmptyContent(AppError):
    status_code = 400
    kind = "EmptyContent"


class UnsupportedProvider(AppError):
    status_code = 400
    kind = "UnsupportedProvider"


class ProviderNotConfigured(AppError):
    status_code = 400
    kind = "ProviderNotConfigured"


class EmptyGeneration(AppError):
    status_code = 500
    kind = "EmptyGeneration"


class ProviderFailure(AppError):
    status_code = 500
    kind = "ProviderFailure"

    def __init__(self, provider: str, cause: Optional[BaseException] = None, message: Optional[str] = None) -> None:
        super().__init__(message or f"Failed to generate summary using {provider}.", cause=cause)
        self.provider = provider


class ProviderTimeout(ProviderFailure):
    status_code = 504
    kind = "ProviderTimeout"

    def __init__(self, provider: str, timeout_seconds: float, cause: Optional[BaseException] = None) -> None:
        super().__init__(
            provider,
            cause=cause,
            message=f"{provider} did not respond within {timeout_seconds:g} seconds.",
        )
        self.timeout_seconds = timeout_seconds


class ProviderResponseError(Exception):
    """Raised by adapters for any vendor-side problem; always wrapped in ProviderFailure."""
