"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Ride``: enforces valid lifecycle transitions
  (REQUESTED -> ACCEPTED -> IN_PROGRESS -> COMPLETED, or
  REQUESTED | ACCEPTED -> CANCELLED).
- ``Location.validate`` guards the coordinate ranges for direct callers of
  the engine (the HTTP layer already validates via pydantic).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .enums import (
    ACTIVE_RIDE_STATUSES,
    RIDE_TRANSITIONS,
    TERMINAL_RIDE_STATUSES,
    DriverStatus,
    RideStatus,
    Role,
    VehicleType,
)
from .errors import InvalidTransition, ValidationError


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float
    address: Optional[str] = None

    def validate(self, label: str = "location") -> None:
        for name, value, bound in (
            ("latitude", self.latitude, 90),
            ("longitude", self.longitude, 180),
        ):
            if value is None or not isinstance(value, (int, float)):
                raise ValidationError(f"{label} {name} is required")
            if not math.isfinite(value) or abs(value) > bound:
                raise ValidationError(f"{label} {name} out of range: {value}")


@dataclass(frozen=True)
class FareQuote:
    fare: float
    distance_km: float


@dataclass(frozen=True)
class DriverLocation:
    driver_id: int
    latitude: float
    longitude: float
    timestamp: Optional[int] = None


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Ride:
    id: Optional[int] = None
    customer_id: int = 0
    driver_id: Optional[int] = None
    pickup: Location = field(default_factory=lambda: Location(0, 0))
    dropoff: Location = field(default_factory=lambda: Location(0, 0))
    status: RideStatus = RideStatus.REQUESTED
    fare: Optional[float] = None
    distance: Optional[float] = None
    requested_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_RIDE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_RIDE_STATUSES

    def can_transition_to(self, new_status: RideStatus) -> bool:
        return new_status in RIDE_TRANSITIONS.get(self.status, set())

    def transition_to(self, new_status: RideStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        if not self.can_transition_to(new_status):
            raise InvalidTransition(
                f"Cannot transition ride {self.id} from "
                f"{self.status.value} to {new_status.value}"
            )
        self.status = new_status


@dataclass
class User:
    id: Optional[int] = None
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    phone_number: Optional[str] = None
    role: Role = Role.CUSTOMER
    driver_status: Optional[DriverStatus] = None
    vehicle_type: Optional[VehicleType] = None
    license_plate: Optional[str] = None
    active: bool = True
    created_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_driver(self) -> bool:
        return self.role == Role.DRIVER
