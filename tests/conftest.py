"""
Shared test fixtures.

Each test gets its own SQLite file database (via aiosqlite) built from the
production models, so tests run without Docker / PostgreSQL / Redis.  Redis
is replaced by an ``AsyncMock`` and ride locks by the in-process
``LocalLockManager``.
"""

import itertools
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ridehail.domain.entities import Location
from ridehail.domain.enums import DriverStatus, Role, VehicleType
from ridehail.infrastructure.database import Base
from ridehail.infrastructure.location_store import LocationStore
from ridehail.infrastructure.locks import LocalLockManager
from ridehail.infrastructure.models import UserModel
from ridehail.services.ride_engine import RideLifecycleEngine

# Nairobi: Kenyatta Avenue -> City Hall
PICKUP = Location(-1.2921, 36.8219, "Kenyatta Avenue")
DROPOFF = Location(-1.2864, 36.8172, "City Hall Way")


def as_user(user_id: int) -> dict[str, str]:
    return {"X-User-Id": str(user_id)}


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Create tables in a fresh SQLite file, yield a session factory."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'rides.db'}", echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(session_factory):
    """Insert a user row directly and return its id."""
    counter = itertools.count(1)

    async def _make(
        role: Role = Role.CUSTOMER,
        *,
        driver_status: DriverStatus = DriverStatus.AVAILABLE,
        vehicle_type: VehicleType = VehicleType.UBER_GO,
        active: bool = True,
    ) -> int:
        n = next(counter)
        is_driver = role == Role.DRIVER
        async with session_factory() as session:
            row = UserModel(
                email=f"{role.value.lower()}{n}@example.com",
                first_name="Test",
                last_name=f"{role.value.title()}{n}",
                role=role,
                driver_status=driver_status if is_driver else None,
                vehicle_type=vehicle_type if is_driver else None,
                license_plate=f"KDA {n:03d}A" if is_driver else None,
                active=active,
            )
            session.add(row)
            await session.commit()
            return row.id

    return _make


@pytest.fixture
def lock_manager() -> LocalLockManager:
    return LocalLockManager(wait_timeout=2.0)


@pytest.fixture
def engine(session_factory, lock_manager) -> RideLifecycleEngine:
    return RideLifecycleEngine(session_factory, lock_manager)


@pytest.fixture
def fake_redis() -> AsyncMock:
    redis = AsyncMock()
    redis.geoadd = AsyncMock(return_value=1)
    redis.hset = AsyncMock(return_value=1)
    redis.geopos = AsyncMock(return_value=[None])
    redis.hget = AsyncMock(return_value=None)
    redis.zrem = AsyncMock(return_value=1)
    redis.hdel = AsyncMock(return_value=1)
    redis.geosearch = AsyncMock(return_value=[])
    return redis


@pytest_asyncio.fixture
async def client(session_factory, lock_manager, fake_redis):
    """AsyncClient backed by SQLite, a local lock manager and mocked Redis."""
    from ridehail.api.app import create_app
    from ridehail.api.middleware import limiter

    app = create_app(
        session_factory=session_factory,
        lock_manager=lock_manager,
        location_store=LocationStore(fake_redis),
    )
    limiter.enabled = False

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    limiter.enabled = True
