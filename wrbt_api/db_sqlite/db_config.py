"""Async SQLAlchemy engine and session factory for the bot registry.

Repositories must reference ``db_config.async_session`` at call time (not
import the name) so tests can swap in an isolated database.

Every repository method is wrapped in ``storage_operation``: it bounds the call
with ``WRBT_STORAGE_TIMEOUT_SECONDS`` and translates timeouts and SQLAlchemy
failures into ``InternalError`` so storage details never reach API callers.
"""

import asyncio
import functools
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

from loguru import logger
from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from wrbt_api.common.errors import InternalError
from wrbt_api.config.settings import settings

P = ParamSpec("P")
R = TypeVar("R")

engine = create_async_engine(settings.database.sqlite_url, echo=False)


@event.listens_for(engine.sync_engine, "connect")
def _set_sqlite_pragmas(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")  # Readers don't block the writer
    cursor.execute("PRAGMA busy_timeout=5000")  # Wait up to 5s on SQLITE_BUSY
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


async_session = async_sessionmaker(engine, expire_on_commit=False)


def storage_operation(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
    """Bound a storage call with the configured timeout and translate failures.

    A timeout cancels the inner coroutine and the session context manager
    rolls back. A commit already handed to the driver thread can still land
    after the timeout fires, so callers that must report a write exactly
    once re-read the row on InternalError.
    """

    @functools.wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        timeout = settings.database.storage_timeout_seconds
        try:
            async with asyncio.timeout(timeout):
                return await func(*args, **kwargs)
        except TimeoutError as e:
            logger.error(
                f"Storage operation timed out: {func.__qualname__}",
                extra={"timeout_seconds": timeout},
            )
            raise InternalError("Storage temporarily unavailable, retry later") from e
        except SQLAlchemyError as e:
            logger.error(
                f"Storage operation failed: {func.__qualname__}",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            raise InternalError("Storage temporarily unavailable, retry later") from e

    return wrapper


async def init_db() -> None:
    """Create all tables if they don't exist. Called once at startup."""
    from wrbt_api.db_sqlite import models  # noqa: F401
    from wrbt_api.db_sqlite.base import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def ping() -> bool:
    """Return True if the database answers a trivial query."""
    try:
        async with asyncio.timeout(settings.database.storage_timeout_seconds):
            async with async_session() as session:
                await session.execute(text("SELECT 1"))
        return True
    except (TimeoutError, SQLAlchemyError) as e:
        logger.warning(f"Database ping failed: {type(e).__name__}")
        return False


async def checkpoint_wal() -> None:
    """Fold the WAL back into the main database file (shutdown hook)."""
    async with engine.begin() as conn:
        await conn.execute(text("PRAGMA wal_checkpoint(TRUNCATE)"))
