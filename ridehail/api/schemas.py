"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from ridehail.domain.entities import Location
from ridehail.domain.enums import DriverStatus, RideStatus, Role, VehicleType


# ── Requests ──────────────────────────────────────────────────────────


class LocationIn(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: Optional[str] = Field(None, max_length=255)

    def to_domain(self) -> Location:
        return Location(self.latitude, self.longitude, self.address)


class RideCreateRequest(BaseModel):
    pickup: LocationIn
    dropoff: LocationIn


class RideCancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class UserCreateRequest(BaseModel):
    email: EmailStr
    first_name: str = Field(..., min_length=2, max_length=100)
    last_name: str = Field(..., min_length=2, max_length=100)
    phone_number: Optional[str] = Field(None, pattern=r"^[+]?[0-9]{10,15}$")
    role: Role
    vehicle_type: Optional[VehicleType] = None
    license_plate: Optional[str] = Field(None, max_length=20)
    active: Optional[bool] = None


class UserUpdateRequest(BaseModel):
    """Partial profile update; omitted fields are left unchanged."""

    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(None, min_length=2, max_length=100)
    last_name: Optional[str] = Field(None, min_length=2, max_length=100)
    phone_number: Optional[str] = Field(None, pattern=r"^[+]?[0-9]{10,15}$")
    vehicle_type: Optional[VehicleType] = None
    license_plate: Optional[str] = Field(None, max_length=20)
    driver_status: Optional[DriverStatus] = None


class DriverStatusUpdate(BaseModel):
    status: DriverStatus


class UserStatusUpdate(BaseModel):
    active: bool


class LocationUpdateRequest(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


# ── Responses ─────────────────────────────────────────────────────────


class LocationOut(BaseModel):
    latitude: float
    longitude: float
    address: Optional[str] = None

    model_config = {"from_attributes": True}


class RideResponse(BaseModel):
    id: int
    customer_id: int
    driver_id: Optional[int] = None
    status: RideStatus
    pickup: LocationOut
    dropoff: LocationOut
    fare: Optional[float] = None
    distance: Optional[float] = None
    requested_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[int] = None

    model_config = {"from_attributes": True}


class FareEstimateResponse(BaseModel):
    fare: float
    distance_km: float

    model_config = {"from_attributes": True}


class UserResponse(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    full_name: str
    phone_number: Optional[str] = None
    role: Role
    driver_status: Optional[DriverStatus] = None
    vehicle_type: Optional[VehicleType] = None
    vehicle_name: Optional[str] = None
    max_passengers: Optional[int] = None
    license_plate: Optional[str] = None
    active: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class DriverCandidateResponse(BaseModel):
    driver_id: int
    distance_km: float

    model_config = {"from_attributes": True}


class DriverLocationResponse(BaseModel):
    driver_id: int
    latitude: float
    longitude: float
    timestamp: Optional[int] = None

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    detail: str


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    error: str
    detail: str
