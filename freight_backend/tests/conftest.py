"""
Centralized Test Configuration.
"""

import os

# Point the application at SQLite before any application module is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("TRIP_LEASE_BACKEND", "memory")

import pytest
from datetime import date
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from freight_backend.app.main import app
from freight_backend.app.db.session import get_db, Base
from freight_backend.app.core.redis_client import get_redis
from freight_backend.app.models.agent import Agent
from freight_backend.app.models.enums import AgentRole
from freight_backend.app.services.agent_directory import Actor
from freight_backend.app.domain.trips.lifecycle import TripInput
import freight_backend.app.core.redis_client as redis_client_module
import freight_backend.app.services.trip_lease as trip_lease_module

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine.sync_engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign keys and hand transaction control to SQLAlchemy (SAVEPOINT support)."""
    dbapi_conn.isolation_level = None
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@event.listens_for(engine.sync_engine, "begin")
def do_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)


# Mock Redis for reliability in CI/CD
class MockLock:
    def __init__(self, store, name):
        self.store = store
        self.name = name

    async def acquire(self):
        if self.name in self.store:
            return False
        self.store[self.name] = "1"
        return True

    async def release(self):
        self.store.pop(self.name, None)


class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        if self._closed:
            return False
        return True

    def lock(self, name, timeout=None, blocking_timeout=None):
        return MockLock(self.store, name)

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


# Redis Fixture (Session Scope)
@pytest.fixture(scope="session")
def redis_client_session():
    return MockRedis()


@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """Apply overrides once for the session."""
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    async def override_get_redis():
        return redis_client_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    yield

    # Restore and clear
    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client


@pytest.fixture(autouse=True)
async def setup_database(redis_client_session):
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await redis_client_session.flushdb()
    # Fresh per-trip locks for every event loop
    trip_lease_module._lease_manager = None

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def session_factory():
    return TestingSessionLocal


# Agent directory fixtures

async def _make_agent(session, name, role, branch="Raipur"):
    agent = Agent(name=name, email=f"{name.lower().replace(' ', '.')}@example.com", role=role, branch=branch)
    session.add(agent)
    await session.commit()
    return agent


@pytest.fixture
async def agents(db_session):
    """Two field agents, one Finance user and one Admin."""
    ravi = await _make_agent(db_session, "Ravi Kumar", AgentRole.AGENT)
    suresh = await _make_agent(db_session, "Suresh Patel", AgentRole.AGENT)
    finance = await _make_agent(db_session, "Meena Finance", AgentRole.FINANCE)
    admin = await _make_agent(db_session, "Arun Admin", AgentRole.ADMIN)
    return {
        "agent": Actor.from_agent(ravi),
        "other_agent": Actor.from_agent(suresh),
        "finance": Actor.from_agent(finance),
        "admin": Actor.from_agent(admin),
    }


@pytest.fixture
def headers(agents):
    """X-Actor headers per role, as the gateway would forward them."""
    return {
        key: {"X-Actor-Id": str(actor.id), "X-Actor-Role": actor.role.value}
        for key, actor in agents.items()
    }


@pytest.fixture
def trip_input():
    """Build a TripInput owned by the given agent; amounts in paise."""
    def _build(agent_id, lr_number="LR-1001", freight=1_000_000, advance=200_000, **overrides):
        values = dict(
            lr_number=lr_number,
            agent_id=agent_id,
            trip_date=date(2026, 10, 1),
            truck_number="CG04AB1234",
            driver_phone_number="9876543210",
            company_name="Bharat Cement",
            route_from="Raipur",
            route_to="Nagpur",
            tonnage=28.5,
            freight=freight,
            advance=advance,
        )
        values.update(overrides)
        return TripInput(**values)
    return _build
