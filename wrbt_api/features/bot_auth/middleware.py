"""ASGI middleware guarding bot-facing path prefixes.

Every request under a protected prefix that carries a well-formed token
produces exactly one audit entry: successful requests are recorded after the
handler finishes (with its final status code and latency), denials are
recorded with the 403. Requests rejected as Unauthorized are not audited.
"""

import time
from collections.abc import Callable, Sequence
from typing import Any

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from wrbt_api.common.errors import BotAuthError, Forbidden, Unauthorized, bot_auth_error_handler
from wrbt_api.db_sqlite.bot_requests.schemas import BotRequestLogEntry
from wrbt_api.features.audit.audit_log import AuditLog
from wrbt_api.features.bot_auth.authenticator import get_request_authenticator
from wrbt_api.features.rate_limit.limiter import client_ip


class BotAuthMiddleware(BaseHTTPMiddleware):
    """Authenticates bot requests and attaches ``request.state.bot``.

    Args:
        app: ASGI application
        protected_prefixes: Path prefixes that require a bearer token
    """

    def __init__(self, app: Any, protected_prefixes: Sequence[str] = ("/api/bot",)):
        super().__init__(app)
        self.protected_prefixes = tuple(p.rstrip("/") for p in protected_prefixes)

    def is_protected(self, path: str) -> bool:
        return any(path == p or path.startswith(p + "/") for p in self.protected_prefixes)

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        if not self.is_protected(request.url.path):
            return await call_next(request)

        started = time.perf_counter()
        try:
            context = await get_request_authenticator().authenticate(
                request.headers.get("authorization")
            )
        except Unauthorized as exc:
            return await bot_auth_error_handler(request, exc)
        except Forbidden as exc:
            response = await bot_auth_error_handler(request, exc)
            await self._audit(request, exc.bot_id, response.status_code, started)
            return response
        except BotAuthError as exc:
            # Registry unavailable while resolving the token
            response = await bot_auth_error_handler(request, exc)
            await self._audit(request, None, response.status_code, started)
            return response

        request.state.bot = context
        status_code = 500
        try:
            with logger.contextualize(bot_id=context.bot_id):
                response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            await self._audit(request, context.bot_id, status_code, started)

    @staticmethod
    async def _audit(request: Request, bot_id: str | None, status_code: int, started: float) -> None:
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.debug(
            "Bot request audited",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "bot_id": bot_id,
                "response_time_ms": elapsed_ms,
            },
        )
        await AuditLog.record(
            BotRequestLogEntry(
                bot_id=bot_id,
                endpoint=request.url.path,
                method=request.method,
                status_code=status_code,
                ip_address=client_ip(request),
                user_agent=request.headers.get("user-agent"),
                response_time_ms=elapsed_ms,
            )
        )
