"""
Pytest configuration and fixtures for the privacy workflow tests
"""

import os
import sys
import tempfile
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))  # noqa: PTH100, PTH118, PTH119, PTH120

# Settings are read at import time, so the environment is prepared first
TEST_DIR = tempfile.mkdtemp(prefix="privacyflow-test-")
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", f"sqlite+aiosqlite:///{os.path.join(TEST_DIR, 'test.db')}")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["SECRET_KEY"] = "test-secret-key-for-privacyflow-tests"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["JOBS_ENABLED"] = "false"
os.environ["RETENTION_ENABLED"] = "false"
os.environ["STORAGE_ROOT"] = os.path.join(TEST_DIR, "storage")
os.environ.pop("REDIS_URL", None)
os.environ.pop("CRON_SECRET", None)

from privacyflow.database import Base  # noqa: E402
from privacyflow.models.user import User  # noqa: E402

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)

TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)

# Now import and patch the app's database components
import privacyflow.database as database_module  # noqa: E402
import privacyflow.utils.session as session_module  # noqa: E402
from main import app  # noqa: E402
from privacyflow.identity import get_identity_provider  # noqa: E402
from privacyflow.services.reauth_service import issue_reauth_token  # noqa: E402
from privacyflow.storage import LocalBlobStorage, get_blob_storage  # noqa: E402

from utils.mock_utils import create_test_settings, create_test_user, login_headers  # noqa: E402
from utils.mocks import MockIdentityProvider  # noqa: E402

database_module.engine = test_engine
database_module.AsyncSessionLocal = TestSessionLocal


@pytest.fixture(autouse=True)
def reset_session_manager():
    """Every test starts with an empty in-memory session store"""
    session_module._session_manager = None
    yield
    session_module._session_manager = None


@pytest.fixture(scope="function")
async def setup_test_database():
    """Create a fresh schema for each test function that needs it."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(scope="function")
async def test_db(setup_test_database) -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionLocal() as session:
        yield session


@pytest.fixture
def storage(tmp_path) -> LocalBlobStorage:
    """Blob storage in a per-test directory"""
    return LocalBlobStorage(root=tmp_path / "blobs", base_url="http://test/api/v1/storage", secret="test-secret")


@pytest.fixture
def identity() -> MockIdentityProvider:
    return MockIdentityProvider()


@pytest.fixture
async def test_user(test_db: AsyncSession) -> User:
    return await create_test_user(test_db, "alex@example.com")


@pytest.fixture
async def other_user(test_db: AsyncSession) -> User:
    return await create_test_user(test_db, "sam@example.com")


@pytest.fixture
async def consented_user(test_db: AsyncSession, test_user: User) -> User:
    """Test user with an active consent on file"""
    await create_test_settings(test_db, test_user.id, has_active_consent=True, consent_version="v1.0")
    return test_user


@pytest.fixture
def reauth_token(test_user: User) -> str:
    return issue_reauth_token(test_user.id).value


@pytest.fixture
async def auth_headers(test_user: User) -> dict:
    return await login_headers(test_user)


@pytest.fixture
async def client(test_db, storage, identity) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, with storage and identity pointed at test doubles"""
    app.dependency_overrides[get_blob_storage] = lambda: storage
    app.dependency_overrides[get_identity_provider] = lambda: identity
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
