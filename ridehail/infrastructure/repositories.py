"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Status changes go through
``compare_and_set`` so a write only lands if the row still holds the
status the caller validated against.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import RideModel, UserModel
from ridehail.domain.entities import Location, Ride, User
from ridehail.domain.enums import (
    ACTIVE_RIDE_STATUSES,
    DriverStatus,
    RideStatus,
    Role,
)


# ── Row -> entity mapping ─────────────────────────────────────────────


def ride_from_row(row: RideModel) -> Ride:
    return Ride(
        id=row.id,
        customer_id=row.customer_id,
        driver_id=row.driver_id,
        pickup=Location(row.pickup_lat, row.pickup_lng, row.pickup_address),
        dropoff=Location(row.dropoff_lat, row.dropoff_lng, row.dropoff_address),
        status=RideStatus(row.status),
        fare=row.fare,
        distance=row.distance,
        requested_at=row.requested_at,
        accepted_at=row.accepted_at,
        started_at=row.started_at,
        completed_at=row.completed_at,
        cancelled_at=row.cancelled_at,
        cancellation_reason=row.cancellation_reason,
        cancelled_by=row.cancelled_by,
    )


def user_from_row(row: UserModel) -> User:
    return User(
        id=row.id,
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name,
        phone_number=row.phone_number,
        role=Role(row.role),
        driver_status=DriverStatus(row.driver_status) if row.driver_status else None,
        vehicle_type=row.vehicle_type,
        license_plate=row.license_plate,
        active=bool(row.active),
        created_at=row.created_at,
    )


# ── Repositories ──────────────────────────────────────────────────────


class RideRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_ride(
        self,
        *,
        customer_id: int,
        pickup: Location,
        dropoff: Location,
        requested_at: datetime,
    ) -> RideModel:
        ride = RideModel(
            customer_id=customer_id,
            pickup_lat=pickup.latitude,
            pickup_lng=pickup.longitude,
            pickup_address=pickup.address,
            dropoff_lat=dropoff.latitude,
            dropoff_lng=dropoff.longitude,
            dropoff_address=dropoff.address,
            status=RideStatus.REQUESTED,
            requested_at=requested_at,
        )
        self.session.add(ride)
        await self.session.flush()
        return ride

    async def get_by_id(self, ride_id: int) -> Optional[RideModel]:
        return await self.session.get(RideModel, ride_id)

    async def get_active_for_customer(self, customer_id: int) -> Optional[RideModel]:
        result = await self.session.execute(
            select(RideModel)
            .where(
                RideModel.customer_id == customer_id,
                RideModel.status.in_(ACTIVE_RIDE_STATUSES),
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def compare_and_set(
        self, ride_id: int, expected: RideStatus, **values: Any
    ) -> Optional[RideModel]:
        """UPDATE the ride only if it is still in *expected* status.

        Returns the refreshed row, or ``None`` when another writer got
        there first.
        """
        result = await self.session.execute(
            update(RideModel)
            .where(RideModel.id == ride_id, RideModel.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return None
        return await self.session.get(RideModel, ride_id, populate_existing=True)

    async def list_for_customer(self, customer_id: int) -> list[RideModel]:
        return await self._list(RideModel.customer_id == customer_id)

    async def list_for_driver(self, driver_id: int) -> list[RideModel]:
        return await self._list(RideModel.driver_id == driver_id)

    async def list_all(self) -> list[RideModel]:
        return await self._list()

    async def list_open(self) -> list[RideModel]:
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.status == RideStatus.REQUESTED)
            .order_by(RideModel.requested_at, RideModel.id)
        )
        return list(result.scalars().all())

    async def _list(self, *criteria) -> list[RideModel]:
        result = await self.session.execute(
            select(RideModel)
            .where(*criteria)
            .order_by(RideModel.requested_at.desc(), RideModel.id.desc())
        )
        return list(result.scalars().all())


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user: UserModel) -> UserModel:
        self.session.add(user)
        await self.session.flush()
        return user

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)

    async def get_by_email(self, email: str) -> Optional[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(UserModel.email == email)
        )
        return result.scalar_one_or_none()

    async def get_by_phone(self, phone_number: str) -> Optional[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(UserModel.phone_number == phone_number)
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[UserModel]:
        result = await self.session.execute(select(UserModel).order_by(UserModel.id))
        return list(result.scalars().all())

    async def list_by_role(
        self, role: Role, driver_status: DriverStatus | None = None
    ) -> list[UserModel]:
        query = select(UserModel).where(UserModel.role == role)
        if driver_status is not None:
            query = query.where(
                UserModel.driver_status == driver_status,
                UserModel.active.is_(True),
            )
        result = await self.session.execute(query.order_by(UserModel.id))
        return list(result.scalars().all())

    async def compare_and_set_driver_status(
        self, driver_id: int, expected: DriverStatus, new: DriverStatus
    ) -> bool:
        result = await self.session.execute(
            update(UserModel)
            .where(
                UserModel.id == driver_id,
                UserModel.role == Role.DRIVER,
                UserModel.driver_status == expected,
            )
            .values(driver_status=new)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
