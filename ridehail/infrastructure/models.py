"""
SQLAlchemy ORM models.

Tables
------
* ``users``  -- customers, drivers and admins (one table, ``role`` column)
* ``rides``  -- ride requests and their lifecycle timestamps

Indexes
-------
* **B-Tree** on ``rides.status``, ``customer_id``, ``driver_id`` and
  ``requested_at`` for the active-ride check and the per-role listings.
* **B-Tree** on ``users.role`` / ``users.driver_status`` for the
  available-driver lookups.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)

from .database import Base
from ridehail.domain.enums import DriverStatus, RideStatus, Role, VehicleType


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone_number = Column(String(20), unique=True, nullable=True)
    role = Column(Enum(Role), nullable=False)
    driver_status = Column(Enum(DriverStatus), nullable=True)
    vehicle_type = Column(Enum(VehicleType), nullable=True)
    license_plate = Column(String(20), nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_users_role", "role"),
        Index("idx_users_driver_status", "driver_status"),
    )


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    pickup_address = Column(String(255), nullable=True)
    dropoff_lat = Column(Float, nullable=False)
    dropoff_lng = Column(Float, nullable=False)
    dropoff_address = Column(String(255), nullable=True)

    status = Column(
        Enum(RideStatus), default=RideStatus.REQUESTED, nullable=False
    )
    fare = Column(Float, nullable=True)
    distance = Column(Float, nullable=True)

    requested_at = Column(DateTime(timezone=True), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(String(500), nullable=True)
    cancelled_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_rides_status", "status"),
        Index("idx_rides_customer", "customer_id"),
        Index("idx_rides_driver", "driver_id"),
        Index("idx_rides_requested_at", "requested_at"),
    )
