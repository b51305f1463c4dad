"""
User / driver directory.

Bound to one ``AsyncSession`` like the repositories, so the lifecycle
engine can reserve and release drivers inside its own ride transaction.
HTTP routes get a directory over the request-scoped session.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.domain.entities import User
from ridehail.domain.enums import DriverStatus, Role, VehicleType
from ridehail.domain.errors import Conflict, InvalidState, NotFound, ValidationError
from ridehail.infrastructure.models import UserModel
from ridehail.infrastructure.repositories import UserRepository, user_from_row

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(
    {
        "first_name",
        "last_name",
        "phone_number",
        "email",
        "vehicle_type",
        "license_plate",
        "driver_status",
    }
)
DRIVER_ONLY_FIELDS = frozenset({"vehicle_type", "license_plate", "driver_status"})


class UserDirectory:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.users = UserRepository(session)

    # ── Reads ─────────────────────────────────────────────────────────

    async def get_user(self, user_id: int) -> User:
        return user_from_row(await self._get_row(user_id))

    async def list_users(self) -> list[User]:
        return [user_from_row(u) for u in await self.users.list_all()]

    async def list_drivers(self) -> list[User]:
        return [user_from_row(u) for u in await self.users.list_by_role(Role.DRIVER)]

    async def available_drivers(self) -> list[User]:
        rows = await self.users.list_by_role(Role.DRIVER, DriverStatus.AVAILABLE)
        return [user_from_row(u) for u in rows]

    # ── Writes ────────────────────────────────────────────────────────

    async def create_user(
        self,
        *,
        email: str,
        first_name: str,
        last_name: str,
        role: Role,
        phone_number: Optional[str] = None,
        vehicle_type: Optional[VehicleType] = None,
        license_plate: Optional[str] = None,
        active: Optional[bool] = None,
    ) -> User:
        """Register a user.

        Drivers start OFFLINE and, unless *active* is given, deactivated
        until an admin has vetted them.
        """
        await self._ensure_unique(email=email, phone_number=phone_number)
        is_driver = role == Role.DRIVER
        if not is_driver and (vehicle_type or license_plate):
            raise ValidationError("Only drivers have vehicle details")
        row = UserModel(
            email=email,
            first_name=first_name,
            last_name=last_name,
            phone_number=phone_number,
            role=role,
            driver_status=DriverStatus.OFFLINE if is_driver else None,
            vehicle_type=vehicle_type,
            license_plate=license_plate,
            active=(not is_driver) if active is None else active,
        )
        try:
            await self.users.create(row)
        except IntegrityError as exc:
            raise Conflict("User already exists") from exc
        logger.info("Registered %s user %s", role.value, row.id)
        return user_from_row(row)

    async def set_driver_status(self, driver_id: int, status: DriverStatus) -> User:
        """Manual availability change: AVAILABLE <-> OFFLINE only.

        BUSY belongs to the ride engine, which enters and leaves it through
        ``reserve_driver`` / ``release_driver``.
        """
        row = await self._get_row(driver_id)
        if row.role != Role.DRIVER:
            raise InvalidState(f"User {driver_id} is not a driver")
        self._check_manual_status(row, status)
        row.driver_status = status
        await self.session.flush()
        logger.info("Driver %s status set to %s", driver_id, status.value)
        return user_from_row(row)

    async def set_user_active(self, user_id: int, active: bool) -> User:
        row = await self._get_row(user_id)
        row.active = active
        await self.session.flush()
        logger.info("User %s %s", user_id, "activated" if active else "deactivated")
        return user_from_row(row)

    async def update_user(self, user_id: int, fields: dict[str, Any]) -> User:
        """Apply a partial profile update; ``None`` values are ignored."""
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        changes = {k: v for k, v in fields.items() if v is not None}

        row = await self._get_row(user_id)
        if row.role != Role.DRIVER and DRIVER_ONLY_FIELDS & set(changes):
            raise ValidationError("Only drivers have vehicle details or a driver status")
        if "driver_status" in changes:
            self._check_manual_status(row, changes["driver_status"])
        await self._ensure_unique(
            email=changes.get("email"),
            phone_number=changes.get("phone_number"),
            exclude_id=user_id,
        )
        for name, value in changes.items():
            setattr(row, name, value)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise Conflict("Email or mobile number already exists") from exc
        logger.info("User %s updated: %s", user_id, ", ".join(sorted(changes)))
        return user_from_row(row)

    # ── Driver reservation (used inside ride transactions) ────────────

    async def reserve_driver(self, driver_id: int) -> None:
        """Atomically move a driver AVAILABLE -> BUSY or raise ``InvalidState``."""
        ok = await self.users.compare_and_set_driver_status(
            driver_id, DriverStatus.AVAILABLE, DriverStatus.BUSY
        )
        if not ok:
            raise InvalidState(f"Driver {driver_id} is not available")

    async def release_driver(self, driver_id: int) -> bool:
        """Move a BUSY driver back to AVAILABLE; no-op for any other status."""
        released = await self.users.compare_and_set_driver_status(
            driver_id, DriverStatus.BUSY, DriverStatus.AVAILABLE
        )
        if not released:
            logger.debug("Driver %s was not BUSY; status left unchanged", driver_id)
        return released

    # ── Internals ─────────────────────────────────────────────────────

    async def _get_row(self, user_id: int) -> UserModel:
        row = await self.users.get_by_id(user_id)
        if row is None:
            raise NotFound(f"User not found with ID: {user_id}")
        return row

    @staticmethod
    def _check_manual_status(row: UserModel, status: DriverStatus) -> None:
        if status == DriverStatus.BUSY:
            raise InvalidState("Drivers become BUSY only by accepting a ride")
        if row.driver_status == DriverStatus.BUSY:
            raise InvalidState(
                f"Driver {row.id} is on a ride; status changes when it ends"
            )

    async def _ensure_unique(
        self,
        *,
        email: Optional[str] = None,
        phone_number: Optional[str] = None,
        exclude_id: Optional[int] = None,
    ) -> None:
        if email:
            existing = await self.users.get_by_email(email)
            if existing is not None and existing.id != exclude_id:
                raise Conflict("Email already exists")
        if phone_number:
            existing = await self.users.get_by_phone(phone_number)
            if existing is not None and existing.id != exclude_id:
                raise Conflict("Mobile number already exists")
