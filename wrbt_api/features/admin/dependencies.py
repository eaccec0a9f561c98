"""Admin key authentication.

The admin console sends ``X-Admin-Key``; it is compared in constant time with
``WRBT_ADMIN_API_KEY``. ``X-Admin-User`` optionally names the operator and is
recorded as approved_by / added_by / revoked_by.
"""

import hmac
from typing import Annotated

from fastapi import Depends, Header, Security
from fastapi.security import APIKeyHeader
from loguru import logger

from wrbt_api.common.errors import Forbidden, Unauthorized
from wrbt_api.config.settings import settings

DEFAULT_ADMIN_IDENTITY = "admin"

admin_key_header = APIKeyHeader(name="X-Admin-Key", auto_error=False)


async def verify_admin(
    key: Annotated[str | None, Security(admin_key_header)],
    x_admin_user: Annotated[str | None, Header(max_length=100)] = None,
) -> str:
    """Validate the admin key and return the operator identity.

    Raises:
        Unauthorized: Header missing (401 ADMIN_AUTH_REQUIRED)
        Forbidden: Wrong key (403 ADMIN_KEY_INVALID)
    """
    if not key:
        raise Unauthorized("Admin key required", code="ADMIN_AUTH_REQUIRED")

    if not hmac.compare_digest(key.encode("utf-8"), settings.admin_api_key.encode("utf-8")):
        logger.warning("Rejected admin request with invalid X-Admin-Key")
        raise Forbidden("Invalid admin key", reason="admin_key_invalid", code="ADMIN_KEY_INVALID")

    return (x_admin_user or "").strip() or DEFAULT_ADMIN_IDENTITY


AdminIdentity = Annotated[str, Depends(verify_admin)]
