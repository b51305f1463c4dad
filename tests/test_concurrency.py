"""
Concurrency safety tests.

Demonstrates:
1. Racing acceptances of one ride: exactly one driver wins, the rest get
   ``Conflict``.
2. Racing requests from one customer create a single active ride.
3. Compare-and-set writes refuse a second transition from the same status.
4. Lock backends serialize holders and time out instead of blocking.
5. A failure mid-transition rolls the whole transaction back.
6. An API request never needs a second pooled connection.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool

from ridehail.domain.entities import Ride
from ridehail.domain.enums import DriverStatus, RideStatus, Role, VehicleType
from ridehail.domain.errors import Conflict, LockTimeout
from ridehail.infrastructure.database import Base
from ridehail.infrastructure.location_store import LocationStore
from ridehail.infrastructure.locks import (
    DistributedLock,
    LocalLockManager,
    RedisLockManager,
)
from ridehail.infrastructure.models import UserModel
from ridehail.infrastructure.repositories import RideRepository, UserRepository
from ridehail.services.ride_engine import RideLifecycleEngine, utcnow
from ridehail.services.user_directory import UserDirectory

from conftest import DROPOFF, PICKUP, as_user


class TestRacingAcceptances:
    @pytest.mark.asyncio
    async def test_two_drivers_one_winner(self, engine, make_user, session_factory):
        customer = await make_user(Role.CUSTOMER)
        d1 = await make_user(Role.DRIVER)
        d2 = await make_user(Role.DRIVER)
        ride = await engine.request_ride(customer, PICKUP, DROPOFF)

        results = await asyncio.gather(
            engine.accept_ride(ride.id, d1),
            engine.accept_ride(ride.id, d2),
            return_exceptions=True,
        )

        winners = [r for r in results if isinstance(r, Ride)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], Conflict)

        stored = await engine.get_ride(ride.id, actor_id=customer)
        assert stored.status == RideStatus.ACCEPTED
        assert stored.driver_id == winners[0].driver_id

        loser_id = d2 if stored.driver_id == d1 else d1
        async with session_factory() as session:
            loser = await UserDirectory(session).get_user(loser_id)
        assert loser.driver_status == DriverStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_many_drivers_one_winner(self, engine, make_user):
        customer = await make_user(Role.CUSTOMER)
        drivers = [await make_user(Role.DRIVER) for _ in range(6)]
        ride = await engine.request_ride(customer, PICKUP, DROPOFF)

        results = await asyncio.gather(
            *(engine.accept_ride(ride.id, d) for d in drivers),
            return_exceptions=True,
        )

        assert sum(isinstance(r, Ride) for r in results) == 1
        assert all(isinstance(r, (Ride, Conflict)) for r in results)

    @pytest.mark.asyncio
    async def test_racing_requests_single_active_ride(self, engine, make_user):
        customer = await make_user(Role.CUSTOMER)

        results = await asyncio.gather(
            *(engine.request_ride(customer, PICKUP, DROPOFF) for _ in range(4)),
            return_exceptions=True,
        )

        assert sum(isinstance(r, Ride) for r in results) == 1
        assert sum(isinstance(r, Conflict) for r in results) == 3
        assert len(await engine.rides_for_customer(customer, actor_id=customer)) == 1


class TestCompareAndSet:
    @pytest.mark.asyncio
    async def test_second_write_from_same_status_is_refused(self, db_session, make_user):
        customer = await make_user(Role.CUSTOMER)
        d1 = await make_user(Role.DRIVER)
        d2 = await make_user(Role.DRIVER)
        rides = RideRepository(db_session)
        row = await rides.create_ride(
            customer_id=customer, pickup=PICKUP, dropoff=DROPOFF, requested_at=utcnow()
        )

        first = await rides.compare_and_set(
            row.id, RideStatus.REQUESTED, status=RideStatus.ACCEPTED, driver_id=d1
        )
        second = await rides.compare_and_set(
            row.id, RideStatus.REQUESTED, status=RideStatus.ACCEPTED, driver_id=d2
        )

        assert first is not None
        assert first.driver_id == d1
        assert second is None

    @pytest.mark.asyncio
    async def test_driver_reserved_once(self, db_session, make_user):
        driver = await make_user(Role.DRIVER)
        users = UserRepository(db_session)

        assert await users.compare_and_set_driver_status(
            driver, DriverStatus.AVAILABLE, DriverStatus.BUSY
        )
        assert not await users.compare_and_set_driver_status(
            driver, DriverStatus.AVAILABLE, DriverStatus.BUSY
        )


class TestRollback:
    @pytest.mark.asyncio
    async def test_failed_fare_policy_leaves_ride_in_progress(
        self, session_factory, lock_manager, make_user
    ):
        def broken_policy(pickup, dropoff, vehicle_type):
            raise RuntimeError("pricing service down")

        engine = RideLifecycleEngine(session_factory, lock_manager, broken_policy)
        customer = await make_user(Role.CUSTOMER)
        driver = await make_user(Role.DRIVER)
        ride = await engine.request_ride(customer, PICKUP, DROPOFF)
        await engine.accept_ride(ride.id, driver)
        await engine.start_ride(ride.id, driver)

        with pytest.raises(RuntimeError):
            await engine.complete_ride(ride.id, driver)

        ride = await engine.get_ride(ride.id, actor_id=customer)
        assert ride.status == RideStatus.IN_PROGRESS
        assert ride.fare is None
        async with session_factory() as session:
            still_busy = await UserDirectory(session).get_user(driver)
        assert still_busy.driver_status == DriverStatus.BUSY

    @pytest.mark.asyncio
    async def test_held_lock_times_out(self, session_factory, make_user):
        locks = LocalLockManager(wait_timeout=0.05)
        engine = RideLifecycleEngine(session_factory, locks)
        customer = await make_user(Role.CUSTOMER)
        driver = await make_user(Role.DRIVER)
        ride = await engine.request_ride(customer, PICKUP, DROPOFF)

        async with locks.lock(f"ride:{ride.id}"):
            with pytest.raises(LockTimeout):
                await engine.accept_ride(ride.id, driver)

        ride = await engine.accept_ride(ride.id, driver)
        assert ride.driver_id == driver


class TestLocalLockManager:
    @pytest.mark.asyncio
    async def test_serializes_same_key(self):
        locks = LocalLockManager(wait_timeout=1.0)
        inside = 0
        peak = 0

        async def worker():
            nonlocal inside, peak
            async with locks.lock("ride:1"):
                inside += 1
                peak = max(peak, inside)
                await asyncio.sleep(0.01)
                inside -= 1

        await asyncio.gather(*(worker() for _ in range(5)))
        assert peak == 1

    @pytest.mark.asyncio
    async def test_different_keys_do_not_block(self):
        locks = LocalLockManager(wait_timeout=0.05)
        async with locks.lock("ride:1"):
            async with locks.lock("ride:2"):
                pass

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        locks = LocalLockManager(wait_timeout=0.05)
        async with locks.lock("ride:1"):
            with pytest.raises(LockTimeout, match="lock:ride:1"):
                async with locks.lock("ride:1"):
                    pass

    @pytest.mark.asyncio
    async def test_released_keys_are_dropped(self):
        locks = LocalLockManager()
        async with locks.lock("ride:1"):
            assert "ride:1" in locks._locks
        assert locks._locks == {}
        assert locks._holders == {}


class TestDistributedLock:
    """Tests the Redis distributed lock logic (mocked Redis)."""

    @pytest.mark.asyncio
    async def test_acquire_succeeds(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)

        lock = DistributedLock(mock_redis, "ride:1", ttl_seconds=10)
        assert await lock.acquire() is True
        mock_redis.set.assert_awaited_once_with(
            "lock:ride:1", lock.token, nx=True, ex=10
        )

    @pytest.mark.asyncio
    async def test_acquire_fails_if_held(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=False)

        lock = DistributedLock(mock_redis, "ride:1", ttl_seconds=10)
        assert await lock.acquire() is False

    @pytest.mark.asyncio
    async def test_acquire_polls_until_free(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(side_effect=[False, False, True])

        lock = DistributedLock(mock_redis, "ride:1", retry_interval=0.01)
        assert await lock.acquire(timeout=1.0) is True
        assert mock_redis.set.await_count == 3

    @pytest.mark.asyncio
    async def test_release_calls_eval(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)
        mock_redis.eval = AsyncMock(return_value=1)

        lock = DistributedLock(mock_redis, "ride:1", ttl_seconds=10)
        await lock.acquire()
        await lock.release()

        mock_redis.eval.assert_awaited_once()
        assert mock_redis.eval.await_args.args[1:] == (1, "lock:ride:1", lock.token)

    @pytest.mark.asyncio
    async def test_context_manager_acquire_fail_raises(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=False)

        lock = DistributedLock(mock_redis, "ride:1", ttl_seconds=10, wait_timeout=0.05)
        with pytest.raises(LockTimeout, match="Could not acquire lock"):
            async with lock:
                pass

    @pytest.mark.asyncio
    async def test_manager_releases_after_block(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)
        mock_redis.eval = AsyncMock(return_value=1)

        locks = RedisLockManager(mock_redis, ttl_seconds=5, wait_timeout=0.1)
        async with locks.lock("customer:3"):
            mock_redis.eval.assert_not_awaited()
        mock_redis.eval.assert_awaited_once()
        assert mock_redis.set.await_args.args[0] == "lock:customer:3"


@pytest_asyncio.fixture
async def one_connection_client(tmp_path, lock_manager, fake_redis):
    """The real app on a pool that hands out a single connection."""
    from ridehail.api.app import create_app
    from ridehail.api.middleware import limiter

    db = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'one_connection.db'}",
        poolclass=AsyncAdaptedQueuePool,
        pool_size=1,
        max_overflow=0,
        pool_timeout=1,
    )
    async with db.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(db, class_=AsyncSession, expire_on_commit=False)

    async with factory() as session:
        customer = UserModel(
            email="wanjiru@example.com", first_name="Wanjiru", last_name="Kamau",
            role=Role.CUSTOMER, active=True,
        )
        driver = UserModel(
            email="otieno@example.com", first_name="Otieno", last_name="Odhiambo",
            role=Role.DRIVER, driver_status=DriverStatus.AVAILABLE,
            vehicle_type=VehicleType.UBER_GO, license_plate="KDB 204C", active=True,
        )
        session.add_all([customer, driver])
        await session.commit()
        ids = (customer.id, driver.id)

    app = create_app(
        session_factory=factory,
        lock_manager=lock_manager,
        location_store=LocationStore(fake_redis),
    )
    limiter.enabled = False
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac, ids
    limiter.enabled = True

    await db.dispose()


class TestConnectionBudget:
    @pytest.mark.asyncio
    async def test_requests_fit_in_one_pooled_connection(
        self, one_connection_client, fake_redis
    ):
        client, (customer, driver) = one_connection_client
        body = {
            "pickup": {"latitude": PICKUP.latitude, "longitude": PICKUP.longitude},
            "dropoff": {"latitude": DROPOFF.latitude, "longitude": DROPOFF.longitude},
        }

        resp = await client.post("/api/v1/rides", json=body, headers=as_user(customer))
        assert resp.status_code == 201, resp.text
        ride_id = resp.json()["id"]

        fake_redis.geosearch.return_value = [[str(driver), 0.4]]
        resp = await client.get(
            f"/api/v1/rides/{ride_id}/nearby-drivers", headers=as_user(customer)
        )
        assert resp.json() == [{"driver_id": driver, "distance_km": 0.4}]

        for step in ("accept", "start", "complete"):
            resp = await client.put(
                f"/api/v1/rides/{ride_id}/{step}", headers=as_user(driver)
            )
            assert resp.status_code == 200, resp.text
        assert resp.json()["status"] == "COMPLETED"

        resp = await client.put(
            f"/api/v1/users/drivers/{driver}/status",
            json={"status": "OFFLINE"},
            headers=as_user(driver),
        )
        assert resp.status_code == 200, resp.text
