"""
Centralized Test Configuration.
"""

import pytest
from datetime import timedelta
from httpx import AsyncClient, ASGITransport
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from convoy.app.main import app
from convoy.app.core.config import settings
from convoy.app.core.redis_client import get_redis
from convoy.app.db.session import get_db, get_session_factory, Base
from convoy.app.models.enums import RideStatus
from convoy.app.models.identifiers import utc_now
from convoy.app.models.ride import Ride, RideParticipant
from convoy.app.models.user import User

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(test_engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        """Enable foreign key constraints for SQLite."""
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


# Shared session for fixture data creation
@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        return not self._closed

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def delete(self, key):
        if self._closed:
            return 0
        return 1 if self.store.pop(key, None) is not None else 0

    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


@pytest.fixture
def redis_client():
    return MockRedis()


@pytest.fixture
async def client(session_factory, redis_client, monkeypatch):
    """Async client against the app, wired to the per-test database and Redis double."""
    # One message at a time: every test session shares a single SQLite connection
    monkeypatch.setattr(settings, "webhook_max_concurrency", 1)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_redis] = lambda: redis_client

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides = {}


# Data factories

@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    async def _make_user(username: str = None, is_active: bool = True) -> User:
        counter["n"] += 1
        username = username or f"rider{counter['n']}"
        user = User(email=f"{username}@example.com", username=username, is_active=is_active)
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_ride(db_session):
    async def _make_ride(
        owner: User,
        members=(),
        pending=(),
        status: RideStatus = RideStatus.ACTIVE,
        starts_in: timedelta = timedelta(0),
        name: str = "Sunday Coast Run"
    ) -> Ride:
        ride = Ride(
            name=name,
            owner_id=owner.id,
            status=status,
            start_time=utc_now() + starts_in,
        )
        db_session.add(ride)
        await db_session.flush()
        for user in members:
            db_session.add(RideParticipant(ride_id=ride.id, user_id=user.id, is_approved=True))
        for user in pending:
            db_session.add(RideParticipant(ride_id=ride.id, user_id=user.id, is_approved=False))
        await db_session.commit()
        await db_session.refresh(ride)
        return ride

    return _make_ride


@pytest.fixture
def issue_token():
    """Sign tokens the way the identity service does."""
    def _issue_token(user_id: str, username: str = "rider", expires_in: timedelta = timedelta(minutes=15)) -> str:
        payload = {"sub": username, "user_id": user_id, "exp": utc_now() + expires_in}
        return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)

    return _issue_token


@pytest.fixture
def auth_headers(issue_token):
    def _auth_headers(user: User) -> dict:
        return {"Authorization": f"Bearer {issue_token(user.id, user.username)}"}

    return _auth_headers
