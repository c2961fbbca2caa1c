"""Master test fixtures.

Environment variables are set BEFORE any application imports so that
``config.Settings()`` initialises with test-safe values and never
touches Docker secrets, a production database or a real bucket.
"""

import os

# ── Set test env vars before any app import ──────────────────────────
os.environ.update({
    "DATABASE_URL": "sqlite+aiosqlite://",
    "POSTGRES_PASSWORD": "testpassword",
    "APP_SECRET_KEY": "test-secret-key-for-jwt-signing",
    "PUBLIC_BASE_URL": "https://test.example.com",
    "DOCUMENT_LOCK_TIMEOUT_SECONDS": "5",
})
for _var in ("S3_BUCKET", "REDIS_URL"):
    os.environ.pop(_var, None)

import pytest
import fakeredis
import fakeredis.aioredis as fakeredis_aio

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Now safe to import application code
from auth.jwt import create_access_token
from chats.service import ChatService
from config import settings
from document.locks import DocumentLocks
from document.service import DocumentService
from models.base import Base
from plans.service import PlanService
from storage.blob import InMemoryBlobStore
from tools.handlers import ToolContext

USER_ID = "user-alice"
OTHER_USER_ID = "user-bob"


# ── SQLite async engine shared by every session in a test ────────────
_test_engine = create_async_engine("sqlite+aiosqlite://", echo=False, poolclass=StaticPool)
_TestSession = async_sessionmaker(_test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(autouse=True)
async def _create_tables():
    """Create and drop SQLite tables around every test."""
    async with _test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with _test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def session_factory():
    return _TestSession


@pytest.fixture
async def db_session():
    """Yield a test DB session for direct assertions."""
    async with _TestSession() as session:
        yield session


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def document_service(blob_store) -> DocumentService:
    return DocumentService(_TestSession, blob_store, settings, DocumentLocks(timeout=5))


@pytest.fixture
def chat_service(blob_store) -> ChatService:
    return ChatService(_TestSession, blob_store)


@pytest.fixture
def plan_service() -> PlanService:
    return PlanService(_TestSession)


@pytest.fixture
def tool_context(document_service, plan_service) -> ToolContext:
    """A fresh agent turn for USER_ID with no chat and no document yet."""
    return ToolContext(user_id=USER_ID, documents=document_service, plans=plan_service)


@pytest.fixture
async def test_client(document_service, chat_service, plan_service):
    """HTTPX async client wired to the FastAPI app.

    The startup event is NOT run; services are placed on app.state directly.
    """
    from main import app

    app.state.documents = document_service
    app.state.chats = chat_service
    app.state.plans = plan_service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def fake_redis():
    server = fakeredis.FakeServer()
    return fakeredis_aio.FakeRedis(server=server, decode_responses=True)


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Authorization header for USER_ID."""
    return {"Authorization": f"Bearer {create_access_token(USER_ID)}"}


@pytest.fixture
def other_auth_headers() -> dict[str, str]:
    """Authorization header for a second user, for ownership checks."""
    return {"Authorization": f"Bearer {create_access_token(OTHER_USER_ID)}"}
