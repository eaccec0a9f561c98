"""Error taxonomy for the bot auth core and its HTTP rendering.

Every user-visible failure is rendered as ``{"error": <message>, "code": <CODE>, ...}``.
Storage failures surface as ``InternalError`` with a generic message; the full
detail is only written to the server log. Token values are never placed in
error payloads.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger


class BotAuthError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, *, code: str | None = None, **extra: Any):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.extra = extra

    def to_payload(self) -> dict[str, Any]:
        """Serialize for a JSON error response."""
        payload: dict[str, Any] = {"error": self.message, "code": self.code}
        payload.update({k: v for k, v in self.extra.items() if v is not None})
        return payload


class ValidationError(BotAuthError):
    """Bad input. Never retried automatically."""

    status_code = 400
    code = "VALIDATION_ERROR"


class NotFound(BotAuthError):
    """Unknown bot id, pairing code or allowlist entry."""

    status_code = 404
    code = "NOT_FOUND"


class Expired(BotAuthError):
    """Pairing code expired while pending. Terminal; the bot must register again."""

    status_code = 410
    code = "EXPIRED"


class AlreadyApproved(BotAuthError):
    status_code = 409
    code = "ALREADY_APPROVED"


class AlreadyRevoked(BotAuthError):
    status_code = 409
    code = "ALREADY_REVOKED"


class Conflict(BotAuthError):
    status_code = 409
    code = "CONFLICT"


class Unauthorized(BotAuthError):
    """No usable credential was presented."""

    status_code = 401
    code = "BOT_AUTH_REQUIRED"


class Forbidden(BotAuthError):
    """A credential was presented but does not grant access.

    Attributes:
        reason: invalid | revoked | pending | insufficient_tier | admin_key_invalid
        bot_id: Resolved identity, or None when the token matched no bot
    """

    status_code = 403
    code = "BOT_TOKEN_INVALID"

    def __init__(
        self,
        message: str,
        *,
        reason: str,
        bot_id: str | None = None,
        code: str | None = None,
        **extra: Any,
    ):
        super().__init__(message, code=code, reason=reason, **extra)
        self.reason = reason
        self.bot_id = bot_id


class RateLimited(BotAuthError):
    """Transient; retry after ``retry_after`` seconds."""

    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, message: str, *, retry_after: int, **extra: Any):
        super().__init__(message, retry_after=retry_after, **extra)
        self.retry_after = retry_after


class InternalError(BotAuthError):
    """Storage/transport failure. Safe to retry with backoff."""

    status_code = 503
    code = "INTERNAL_ERROR"


async def bot_auth_error_handler(request: Request, exc: BotAuthError) -> JSONResponse:
    """Render a BotAuthError as the standard error envelope."""
    headers = None
    if isinstance(exc, RateLimited):
        headers = {"Retry-After": str(exc.retry_after)}
    elif isinstance(exc, InternalError):
        headers = {"Retry-After": "1"}

    if exc.status_code >= 500:
        logger.warning(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}")

    return JSONResponse(status_code=exc.status_code, content=exc.to_payload(), headers=headers)


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render FastAPI body/query validation failures with the same envelope."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if field:
        message = f"{field}: {message}"

    return JSONResponse(
        status_code=400,
        content={"error": message, "code": ValidationError.code},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the error envelope handlers on the application."""
    app.add_exception_handler(BotAuthError, bot_auth_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
