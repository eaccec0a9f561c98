"""Deployment configuration validation and startup logging."""

from loguru import logger

from wrbt_api.config.settings import settings


def log_deployment_configuration() -> None:
    """Log deployment configuration during application startup.

    Displays production/development mode with token hashing and rate limit policies.
    Called from main.py lifespan function.
    """
    logger.info("-" * 80)

    if settings.is_development:
        _log_development_config()
    else:
        _log_production_config()

    _log_rate_limit_policies()
    logger.info("-" * 80)


def _log_production_config() -> None:
    """Log production mode configuration."""
    logger.info(f"🔒 {settings.wrbt_env.upper()} MODE")
    logger.info("")

    # Plaintext hashing is already rejected by the settings model validator
    logger.info(f"✅ Token hashing: bcrypt (cost factor {settings.tokens.bcrypt_rounds})")
    logger.info(f"CORS Origins: {', '.join(settings.cors_origins)}")
    logger.info(f"Bot-protected prefixes: {', '.join(settings.bot_protected_prefixes)}")
    logger.info("")
    logger.info("⚠️  DEPLOYMENT CHECKLIST:")
    logger.info("   □ Admin console configured with WRBT_ADMIN_API_KEY")
    logger.info("   □ Reverse proxy forwards client IPs (rate limiting is per IP)")
    logger.info("   □ Single API instance, or an external shared rate-limit store")


def _log_development_config() -> None:
    """Log development mode configuration."""
    logger.info("🔧 DEVELOPMENT MODE")
    logger.info("")

    if settings.tokens.hashing_mode == "plaintext":
        logger.warning("⚠️  Token hashing: PLAINTEXT (development only, tokens stored recoverably)")
    else:
        logger.info(f"✅ Token hashing: bcrypt (cost factor {settings.tokens.bcrypt_rounds})")

    logger.info(f"Backend:  http://localhost:{settings.port}")


def _log_rate_limit_policies() -> None:
    """Log the per-IP policies guarding the pairing endpoints."""
    rl = settings.rate_limit
    logger.info(
        f"Rate limits: register={rl.register_max_requests}/{rl.register_window_seconds}s, "
        f"status={rl.status_max_requests}/{rl.status_window_seconds}s (in-memory, per process)"
    )
