"""Pytest configuration and fixtures for alarm ledger tests."""

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.models import AlarmRecord, Base, DeviceRegistration
from app.core.deps import get_db
from app.integrations.alarms.protocols import AlarmEvent, AlarmTransition

# Test database URL (use SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

KST = timezone(timedelta(hours=9))


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine with shared connection."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with database override."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_event():
    """Build alarm events with sensible defaults."""

    def _make(
        transition: AlarmTransition = AlarmTransition.RAISE,
        code: int = 3,
        mac: str = "AA:BB:CC:00:00:01",
        ip: str = "10.0.0.1",
        occurred_at: datetime | None = None,
        counter: str = "1",
    ) -> AlarmEvent:
        return AlarmEvent(
            occurred_at=occurred_at or datetime.now(KST),
            device_mac=mac,
            device_ip=ip,
            transition=transition,
            code=code,
            counter=counter,
        )

    return _make


@pytest_asyncio.fixture
async def alarm_history(db_session: AsyncSession) -> list[AlarmRecord]:
    """Seed a small alarm history spread over the last few hours."""
    now = datetime.now(timezone.utc)
    records = [
        AlarmRecord(
            started_at=now - timedelta(hours=3),
            stopped_at=now - timedelta(hours=2),
            device_mac="AA:BB:CC:00:00:01",
            device_ip="10.0.0.1",
            code=3,
            active=False,
        ),
        AlarmRecord(
            started_at=now - timedelta(hours=2),
            stopped_at=None,
            device_mac="AA:BB:CC:00:00:01",
            device_ip="10.0.0.1",
            code=5,
            active=True,
        ),
        AlarmRecord(
            started_at=now - timedelta(hours=1),
            stopped_at=None,
            device_mac="DD:EE:FF:00:00:02",
            device_ip="10.0.0.2",
            code=1,
            active=True,
        ),
    ]
    db_session.add_all(records)
    await db_session.commit()
    return records


@pytest_asyncio.fixture
async def registered_device(db_session: AsyncSession) -> DeviceRegistration:
    """Register a serial for the first test device."""
    registration = DeviceRegistration(device_mac="AA:BB:CC:00:00:01", serial="SN-0001")
    db_session.add(registration)
    await db_session.commit()
    return registration
