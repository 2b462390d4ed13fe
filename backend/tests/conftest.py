"""
Shared pytest fixtures for the mood tracker backend tests.

Uses SQLite in-memory with StaticPool so all sessions share one connection,
meaning data written in one session is visible to others (important for HTTP client tests).
"""
import asyncio
import threading

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from pywebpush import WebPushException
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

import moodapp.models  # noqa – registers all SQLAlchemy models with Base.metadata
from moodapp.api.deps import get_hub, get_push_config, get_push_sender
from moodapp.core.database import Base, get_db
from moodapp.main import app
from moodapp.services.push_dispatcher import NotificationDispatcher, PushConfig
from moodapp.services.realtime import ConnectionHub
from moodapp.services.subscription_store import SubscriptionStore

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_PUSH_CONFIG = PushConfig(
    public_key="BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA_0QTpQtUbVlUls0VJXg7A8u-Ts1XbjhazAkj7I99e8QcYP7DkM",
    private_key="test-private-key",
    claims_sub="mailto:test@example.com",
)


# ── Fake push service ─────────────────────────────────────────────────────────

class FakeResponse:
    def __init__(self, status_code: int):
        self.status_code = status_code
        self.text = ""


class FakePushService:
    """Stand-in for pywebpush.webpush; runs in worker threads via asyncio.to_thread."""

    def __init__(self):
        self.calls: list[dict] = []
        self.status_by_endpoint: dict[str, int] = {}
        self.crash_endpoints: set[str] = set()
        self._lock = threading.Lock()

    def __call__(self, subscription_info, data=None, vapid_private_key=None, vapid_claims=None, **kwargs):
        endpoint = subscription_info["endpoint"]
        with self._lock:
            self.calls.append({
                "subscription_info": subscription_info,
                "data": data,
                "vapid_private_key": vapid_private_key,
                "vapid_claims": vapid_claims,
            })
        if endpoint in self.crash_endpoints:
            raise ConnectionError(f"connection reset by {endpoint}")
        status = self.status_by_endpoint.get(endpoint)
        if status is not None:
            raise WebPushException(f"Push failed: {status}", response=FakeResponse(status))
        return FakeResponse(201)

    @property
    def endpoints(self) -> list[str]:
        return [c["subscription_info"]["endpoint"] for c in self.calls]


class FakeSocket:
    def __init__(self, fail: bool = False, stall: bool = False):
        self.accepted = False
        self.fail = fail
        self.stall = stall
        self.sent: list = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, data):
        if self.stall:
            await asyncio.sleep(3600)
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)


# ── Shared engine (function-scoped: fresh DB per test) ───────────────────────

@pytest_asyncio.fixture
async def engine():
    """Creates a fresh in-memory SQLite engine per test with a shared connection pool."""
    eng = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,          # single shared connection → all sessions see same data
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield eng

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine) -> AsyncSession:
    """Async DB session for direct data inspection inside tests."""
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def push_service() -> FakePushService:
    return FakePushService()


@pytest.fixture
def hub() -> ConnectionHub:
    return ConnectionHub()


@pytest.fixture
def store(db) -> SubscriptionStore:
    return SubscriptionStore(db)


@pytest.fixture
def dispatcher(store, push_service) -> NotificationDispatcher:
    return NotificationDispatcher(store, TEST_PUSH_CONFIG, push_service)


# ── HTTP client fixture ───────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(engine, push_service, hub) -> AsyncClient:
    """
    FastAPI test client with get_db overridden to use the test engine,
    VAPID config and push sender replaced by test doubles.
    """
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_push_config] = lambda: TEST_PUSH_CONFIG
    app.dependency_overrides[get_push_sender] = lambda: push_service
    app.dependency_overrides[get_hub] = lambda: hub

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


# ── Helper ────────────────────────────────────────────────────────────────────

def subscription_json(n: int) -> dict:
    return {
        "endpoint": f"https://push.example.com/send/{n}",
        "expirationTime": None,
        "keys": {"p256dh": f"p256dh-key-{n}", "auth": f"auth-{n}"},
    }


@pytest.fixture
def make_subscription():
    return subscription_json


@pytest.fixture
def make_socket():
    return FakeSocket
