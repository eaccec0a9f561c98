"""Configuration endpoint for runtime settings."""

from fastapi import APIRouter

from wrbt_api.config.settings import settings
from wrbt_api.features.config.schemas import ConfigResponse, RateLimitPolicyInfo
from wrbt_api.features.rate_limit.limiter import get_rate_limiter
from wrbt_api.features.tokens.codec import API_KEY_PREFIX

router = APIRouter(prefix="/config", tags=["Configuration"])


@router.get("", response_model=ConfigResponse)
async def get_config() -> ConfigResponse:
    """Get runtime configuration.

    This endpoint is public (no authentication required) as it only
    exposes non-sensitive deployment configuration.
    """
    policies = get_rate_limiter().policies
    return ConfigResponse(
        environment=settings.wrbt_env,
        pairing_code_length=settings.tokens.pairing_code_length,
        pairing_code_ttl_seconds=settings.tokens.pairing_code_ttl_seconds,
        token_prefix=API_KEY_PREFIX,
        bot_protected_prefixes=list(settings.bot_protected_prefixes),
        rate_limits={
            bucket: RateLimitPolicyInfo(
                max_requests=policy.max_requests, window_seconds=policy.window_seconds
            )
            for bucket, policy in policies.items()
        },
    )
