"""Pytest configuration and fixtures.

Provides test database setup with temporary SQLite files.

IMPORTANT: Environment variables must be set BEFORE importing app code.
The env var setup happens at module level, and app imports are deferred to
inside fixtures to ensure correct initialization order.
"""

import os
import shutil
import tempfile

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

TEST_ADMIN_KEY = "test-admin-key-0123456789abcdef0123456789"

# Set test configuration BEFORE any app code gets imported
# (settings and db_config are created at import time)
_test_base_dir = tempfile.mkdtemp(prefix="wrbt_test_")
os.environ.setdefault("WRBT_SQLITE_PATH", f"{_test_base_dir}/test.db")
os.environ["WRBT_ENV"] = "development"
os.environ["WRBT_ADMIN_API_KEY"] = TEST_ADMIN_KEY
os.environ["WRBT_TOKEN_HASHING"] = "plaintext"  # bcrypt is covered explicitly
os.environ.setdefault("WRBT_LOG_FORMAT", "text")


@pytest_asyncio.fixture(scope="function", autouse=True)
async def test_db():
    """Create test database in temporary directory for each test.

    Each test gets a completely isolated database file that is cleaned up after.

    Yields:
        async_sessionmaker: Session factory for test database
    """
    # Import app code here (after env vars are set at module level)
    from wrbt_api.db_sqlite import models  # noqa: F401
    from wrbt_api.db_sqlite.base import Base

    temp_dir = tempfile.mkdtemp()
    db_path = os.path.join(temp_dir, "test.db")
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_test = async_sessionmaker(engine, expire_on_commit=False)

    # Override global session with test session
    import wrbt_api.db_sqlite.db_config as db_config

    original_session = db_config.async_session
    original_engine = db_config.engine
    db_config.async_session = async_session_test
    db_config.engine = engine

    yield async_session_test

    db_config.async_session = original_session
    db_config.engine = original_engine

    await engine.dispose()
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture(autouse=True)
def reset_singletons():
    """Give every test a fresh rate limiter, hashing policy and services."""
    from wrbt_api.features.bot_auth.authenticator import set_request_authenticator
    from wrbt_api.features.pairing.service import set_pairing_service
    from wrbt_api.features.rate_limit.limiter import set_rate_limiter
    from wrbt_api.features.tokens.hashing import set_hashing_policy

    def reset():
        set_rate_limiter(None)
        set_pairing_service(None)
        set_request_authenticator(None)
        set_hashing_policy(None)

    reset()
    yield
    reset()


@pytest.fixture
def pairing_service():
    from wrbt_api.features.pairing.service import PairingService
    from wrbt_api.features.tokens.hashing import PlaintextHashingPolicy

    return PairingService(hashing_policy=PlaintextHashingPolicy())


@pytest_asyncio.fixture
async def client():
    """httpx client bound to the ASGI app (lifespan not run; tables come from test_db)."""
    from httpx import ASGITransport, AsyncClient

    from wrbt_api.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Admin-Key": TEST_ADMIN_KEY, "X-Admin-User": "alice"}


@pytest_asyncio.fixture
async def approved_bot(pairing_service):
    """A READ_ONLY bot approved through the pairing service (token included)."""
    registration = await pairing_service.register(name="FixtureBot", client_ip="127.0.0.1")
    return await pairing_service.approve(registration.bot_id, approved_by="fixture")
