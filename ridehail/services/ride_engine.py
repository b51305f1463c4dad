"""
Ride Lifecycle Engine
=====================

Owns ride records and every status change:

    REQUESTED -> ACCEPTED -> IN_PROGRESS -> COMPLETED
    REQUESTED | ACCEPTED  -> CANCELLED

Concurrency safety
------------------
* Each mutation runs under a per-key lock (``ride:{id}``, or
  ``customer:{id}`` for new requests) and inside one DB transaction.
* Status writes are compare-and-set on the expected status, so only one
  of two racing acceptances can ever land.  The loser gets ``Conflict``.
* Driver reservation is a compare-and-set AVAILABLE -> BUSY in the same
  transaction; any failure rolls back the whole operation.

Operations are not idempotent: repeating an applied transition raises
``InvalidTransition`` and never rewrites timestamps or fares.  Every
successful mutation returns the full updated ``Ride``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ridehail.domain.authorization import Action, authorize
from ridehail.domain.entities import FareQuote, Location, Ride
from ridehail.domain.enums import DriverStatus, RideStatus
from ridehail.domain.errors import (
    Conflict,
    InvalidState,
    InvalidTransition,
    NotFound,
    RideError,
)
from ridehail.domain.pricing import FarePolicy, PricingEngine
from ridehail.infrastructure.repositories import RideRepository, ride_from_row
from ridehail.services.user_directory import UserDirectory

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RideLifecycleEngine:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        lock_manager,
        fare_policy: Optional[FarePolicy] = None,
    ):
        self._session_factory = session_factory
        self._locks = lock_manager
        self._fare_policy: FarePolicy = fare_policy or PricingEngine().quote

    # ── Unit of work ──────────────────────────────────────────────────

    @asynccontextmanager
    async def _locked_transaction(self, key: str) -> AsyncIterator[AsyncSession]:
        """Hold *key*'s lock for the whole transaction, commit on success."""
        async with self._locks.lock(key):
            async with self._session_factory() as session:
                async with session.begin():
                    yield session

    @staticmethod
    async def _load(rides: RideRepository, ride_id: int) -> Ride:
        row = await rides.get_by_id(ride_id)
        if row is None:
            raise NotFound(f"Ride not found with ID: {ride_id}")
        return ride_from_row(row)

    @staticmethod
    async def _commit_transition(
        rides: RideRepository,
        ride: Ride,
        new_status: RideStatus,
        lost_race: RideError,
        **values,
    ) -> Ride:
        expected = ride.status
        ride.transition_to(new_status)
        row = await rides.compare_and_set(ride.id, expected, status=new_status, **values)
        if row is None:
            raise lost_race
        return ride_from_row(row)

    # ── Mutations ─────────────────────────────────────────────────────

    async def request_ride(
        self, customer_id: int, pickup: Location, dropoff: Location
    ) -> Ride:
        pickup.validate("pickup")
        dropoff.validate("dropoff")

        async with self._locked_transaction(f"customer:{customer_id}") as session:
            customer = await UserDirectory(session).get_user(customer_id)
            authorize(Action.REQUEST_RIDE, customer)

            rides = RideRepository(session)
            active = await rides.get_active_for_customer(customer_id)
            if active is not None:
                raise Conflict(
                    f"Customer {customer_id} already has an active ride ({active.id})"
                )
            row = await rides.create_ride(
                customer_id=customer_id,
                pickup=pickup,
                dropoff=dropoff,
                requested_at=utcnow(),
            )
            ride = ride_from_row(row)

        logger.info("Ride %s requested by customer %s", ride.id, customer_id)
        return ride

    async def accept_ride(self, ride_id: int, driver_id: int) -> Ride:
        async with self._locked_transaction(f"ride:{ride_id}") as session:
            directory = UserDirectory(session)
            rides = RideRepository(session)

            ride = await self._load(rides, ride_id)
            driver = await directory.get_user(driver_id)
            authorize(Action.ACCEPT_RIDE, driver, ride)

            if ride.status != RideStatus.REQUESTED:
                if ride.driver_id is not None and ride.driver_id != driver_id:
                    raise Conflict(f"Ride {ride_id} was already accepted by another driver")
                raise InvalidTransition(
                    f"Ride {ride_id} cannot be accepted in status {ride.status.value}"
                )
            if driver.driver_status != DriverStatus.AVAILABLE:
                raise InvalidState(f"Driver {driver_id} is not available")

            ride = await self._commit_transition(
                rides,
                ride,
                RideStatus.ACCEPTED,
                Conflict(f"Ride {ride_id} was already accepted by another driver"),
                driver_id=driver_id,
                accepted_at=utcnow(),
            )
            await directory.reserve_driver(driver_id)

        logger.info("Ride %s accepted by driver %s", ride_id, driver_id)
        return ride

    async def start_ride(self, ride_id: int, driver_id: int) -> Ride:
        async with self._locked_transaction(f"ride:{ride_id}") as session:
            rides = RideRepository(session)
            ride = await self._load(rides, ride_id)
            driver = await UserDirectory(session).get_user(driver_id)
            authorize(Action.START_RIDE, driver, ride)

            ride = await self._commit_transition(
                rides,
                ride,
                RideStatus.IN_PROGRESS,
                InvalidTransition(f"Ride {ride_id} changed status concurrently"),
                started_at=utcnow(),
            )

        logger.info("Ride %s started", ride_id)
        return ride

    async def complete_ride(self, ride_id: int, driver_id: int) -> Ride:
        async with self._locked_transaction(f"ride:{ride_id}") as session:
            directory = UserDirectory(session)
            rides = RideRepository(session)
            ride = await self._load(rides, ride_id)
            driver = await directory.get_user(driver_id)
            authorize(Action.COMPLETE_RIDE, driver, ride)

            if not ride.can_transition_to(RideStatus.COMPLETED):
                raise InvalidTransition(
                    f"Ride {ride_id} cannot be completed in status {ride.status.value}"
                )
            quote = self._fare_policy(ride.pickup, ride.dropoff, driver.vehicle_type)
            ride = await self._commit_transition(
                rides,
                ride,
                RideStatus.COMPLETED,
                InvalidTransition(f"Ride {ride_id} changed status concurrently"),
                fare=quote.fare,
                distance=quote.distance_km,
                completed_at=utcnow(),
            )
            await directory.release_driver(driver_id)

        logger.info(
            "Ride %s completed: %.3f km, fare %.2f", ride_id, ride.distance, ride.fare
        )
        return ride

    async def cancel_ride(
        self, ride_id: int, actor_id: int, reason: Optional[str] = None
    ) -> Ride:
        async with self._locked_transaction(f"ride:{ride_id}") as session:
            directory = UserDirectory(session)
            rides = RideRepository(session)
            ride = await self._load(rides, ride_id)
            actor = await directory.get_user(actor_id)
            authorize(Action.CANCEL_RIDE, actor, ride)

            ride = await self._commit_transition(
                rides,
                ride,
                RideStatus.CANCELLED,
                InvalidTransition(f"Ride {ride_id} changed status concurrently"),
                cancelled_at=utcnow(),
                cancellation_reason=reason,
                cancelled_by=actor_id,
            )
            if ride.driver_id is not None:
                await directory.release_driver(ride.driver_id)

        logger.info("Ride %s cancelled by user %s (reason: %s)", ride_id, actor_id, reason)
        return ride

    # ── Read-only projections ─────────────────────────────────────────

    async def get_ride(self, ride_id: int, *, actor_id: int) -> Ride:
        async with self._session_factory() as session:
            ride = await self._load(RideRepository(session), ride_id)
            actor = await UserDirectory(session).get_user(actor_id)
            authorize(Action.VIEW_RIDE, actor, ride)
        return ride

    async def rides_for_customer(self, customer_id: int, *, actor_id: int) -> list[Ride]:
        async with self._session_factory() as session:
            actor = await UserDirectory(session).get_user(actor_id)
            authorize(Action.LIST_CUSTOMER_RIDES, actor, subject_id=customer_id)
            rows = await RideRepository(session).list_for_customer(customer_id)
        logger.debug("Fetched %d rides for customer %s", len(rows), customer_id)
        return [ride_from_row(r) for r in rows]

    async def rides_for_driver(self, driver_id: int, *, actor_id: int) -> list[Ride]:
        async with self._session_factory() as session:
            actor = await UserDirectory(session).get_user(actor_id)
            authorize(Action.LIST_DRIVER_RIDES, actor, subject_id=driver_id)
            rows = await RideRepository(session).list_for_driver(driver_id)
        logger.debug("Fetched %d rides for driver %s", len(rows), driver_id)
        return [ride_from_row(r) for r in rows]

    async def all_rides(self, *, actor_id: int) -> list[Ride]:
        async with self._session_factory() as session:
            actor = await UserDirectory(session).get_user(actor_id)
            authorize(Action.LIST_ALL_RIDES, actor)
            rows = await RideRepository(session).list_all()
        return [ride_from_row(r) for r in rows]

    async def open_rides(self, *, actor_id: int) -> list[Ride]:
        async with self._session_factory() as session:
            actor = await UserDirectory(session).get_user(actor_id)
            authorize(Action.LIST_OPEN_RIDES, actor)
            rows = await RideRepository(session).list_open()
        return [ride_from_row(r) for r in rows]

    def estimate_fare(self, pickup: Location, dropoff: Location) -> FareQuote:
        pickup.validate("pickup")
        dropoff.validate("dropoff")
        return self._fare_policy(pickup, dropoff, None)
