"""
Main FastAPI application entry point.

Sets up the FastAPI app with:
- CORS middleware
- Bot bearer-token middleware (guards the bot-facing prefixes)
- Loguru logging
- Error envelope handlers
- Health and readiness endpoints
- Feature routers (pairing, admin, bot API, config)
- Background rate-limit cleanup task
"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from wrbt_api.common.errors import register_exception_handlers
from wrbt_api.common.responses import HealthResponse, ReadinessResponse
from wrbt_api.config.deployment_validation import log_deployment_configuration
from wrbt_api.config.logger import setup_logging
from wrbt_api.config.settings import settings
from wrbt_api.db_sqlite import db_config
from wrbt_api.features.admin.router import router as admin_router
from wrbt_api.features.bot_api.router import router as bot_api_router
from wrbt_api.features.bot_auth.authenticator import get_request_authenticator
from wrbt_api.features.bot_auth.middleware import BotAuthMiddleware
from wrbt_api.features.config.router import router as config_router
from wrbt_api.features.pairing.router import router as pairing_router
from wrbt_api.features.pairing.service import get_pairing_service
from wrbt_api.features.rate_limit.limiter import get_rate_limiter, rate_limit_cleanup

APP_NAME = "WRBT Bot Auth API"
APP_VERSION = "0.1.0"

# Set up logging before anything else
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Creates tables, selects the token hashing policy, starts the rate-limit
    cleanup task, and checkpoints the database on shutdown.

    Args:
        app: FastAPI application instance.

    Yields:
        Control to the application runtime.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"Starting {APP_NAME}")
    logger.info(f"FastAPI Server: http://0.0.0.0:{settings.port}")
    logger.info(f"CORS origins: {settings.cors_origins}")
    logger.info("=" * 60)

    await db_config.init_db()
    logger.info("SQLite bot registry initialized")

    # Log deployment configuration
    log_deployment_configuration()

    # Build singletons once so the hashing policy is chosen at startup
    get_pairing_service()
    get_request_authenticator()
    get_rate_limiter()

    cleanup_task = asyncio.create_task(
        rate_limit_cleanup(settings.rate_limit.cleanup_interval_seconds)
    )
    logger.info("Rate limit cleanup task created")

    yield

    # Shutdown
    logger.info("Shutting down application")

    if not cleanup_task.done():
        cleanup_task.cancel()
        try:
            await cleanup_task
        except asyncio.CancelledError:
            logger.info("Rate limit cleanup task cancelled")

    # Database cleanup
    await db_config.checkpoint_wal()
    logger.info("SQLite WAL checkpointed")
    await db_config.engine.dispose()  # Close database connections
    logger.info("Database connections closed")


# Create FastAPI app
app = FastAPI(
    title=APP_NAME,
    description="Bot pairing, bearer-token authentication and request auditing",
    version=APP_VERSION,
    lifespan=lifespan,
)

register_exception_handlers(app)

# === MIDDLEWARE (last added runs first) ===
# Incoming:  CORSMiddleware -> BotAuthMiddleware (protected prefixes only) -> routers
app.add_middleware(BotAuthMiddleware, protected_prefixes=settings.bot_protected_prefixes)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === ROUTERS ===
app.include_router(pairing_router, prefix="/api")
app.include_router(admin_router, prefix="/api")
app.include_router(bot_api_router, prefix="/api")
app.include_router(config_router, prefix="/api")


# Health check endpoints
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health() -> HealthResponse:
    """Liveness check endpoint.

    Returns:
        HealthResponse with status, version, and application name.
    """
    logger.debug("Health endpoint called")
    return HealthResponse(status="ok", version=APP_VERSION, app_name=APP_NAME)


@app.get(
    "/readyz",
    response_model=ReadinessResponse,
    responses={503: {"model": ReadinessResponse}},
    tags=["Health"],
)
async def readyz():
    """Readiness check: the bot registry database answers queries."""
    if await db_config.ping():
        return ReadinessResponse(status="ready")
    return JSONResponse(
        status_code=503,
        content=ReadinessResponse(
            status="unavailable", message="Database connection failed"
        ).model_dump(),
    )


# Root endpoint
@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint with API information.

    Returns:
        Dictionary containing app name, version, and health check link.
    """
    return {
        "app": APP_NAME,
        "version": APP_VERSION,
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    # Auto-reload in development only
    reload = settings.is_development

    uvicorn.run(
        "wrbt_api.main:app",
        host="0.0.0.0",  # Listen on all interfaces (required for Docker)
        port=settings.port,
        reload=reload,
        log_config=None,  # Disable uvicorn logging (we use loguru)
    )
