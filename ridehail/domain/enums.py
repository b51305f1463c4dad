"""Domain enumerations and state-transition rules."""

import enum


class RideStatus(str, enum.Enum):
    REQUESTED = "REQUESTED"
    ACCEPTED = "ACCEPTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# State machine: maps current status -> set of valid next statuses
RIDE_TRANSITIONS: dict[RideStatus, set[RideStatus]] = {
    RideStatus.REQUESTED: {RideStatus.ACCEPTED, RideStatus.CANCELLED},
    RideStatus.ACCEPTED: {RideStatus.IN_PROGRESS, RideStatus.CANCELLED},
    RideStatus.IN_PROGRESS: {RideStatus.COMPLETED},
    RideStatus.COMPLETED: set(),
    RideStatus.CANCELLED: set(),
}

ACTIVE_RIDE_STATUSES = (
    RideStatus.REQUESTED,
    RideStatus.ACCEPTED,
    RideStatus.IN_PROGRESS,
)

TERMINAL_RIDE_STATUSES = (RideStatus.COMPLETED, RideStatus.CANCELLED)


class Role(str, enum.Enum):
    CUSTOMER = "CUSTOMER"
    DRIVER = "DRIVER"
    ADMIN = "ADMIN"


class DriverStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    BUSY = "BUSY"
    OFFLINE = "OFFLINE"


class VehicleType(str, enum.Enum):
    """Vehicle classes a driver can register with.

    Each class carries a display name, passenger capacity and the price
    multiplier applied on top of the base fare.
    """

    UBER_GO = "UBER_GO"
    UBER_X = "UBER_X"
    UBER_COMFORT = "UBER_COMFORT"
    UBER_BLACK = "UBER_BLACK"
    UBER_BLACK_SUV = "UBER_BLACK_SUV"
    UBER_XL = "UBER_XL"
    UBER_SUV = "UBER_SUV"
    UBER_MOTO = "UBER_MOTO"
    UBER_AUTO = "UBER_AUTO"
    UBER_GREEN = "UBER_GREEN"
    UBER_LUX = "UBER_LUX"
    UBER_LUX_SUV = "UBER_LUX_SUV"
    UBER_WAV = "UBER_WAV"
    UBER_POOL = "UBER_POOL"

    @property
    def display_name(self) -> str:
        return VEHICLE_CLASSES[self][0]

    @property
    def max_passengers(self) -> int:
        return VEHICLE_CLASSES[self][1]

    @property
    def price_multiplier(self) -> float:
        return VEHICLE_CLASSES[self][2]


# (display name, max passengers, price multiplier)
VEHICLE_CLASSES: dict[VehicleType, tuple[str, int, float]] = {
    VehicleType.UBER_GO: ("UberGo", 4, 1.0),
    VehicleType.UBER_X: ("UberX", 4, 1.2),
    VehicleType.UBER_COMFORT: ("UberComfort", 4, 1.5),
    VehicleType.UBER_BLACK: ("UberBlack", 4, 2.0),
    VehicleType.UBER_BLACK_SUV: ("UberBlack SUV", 6, 2.5),
    VehicleType.UBER_XL: ("UberXL", 6, 1.8),
    VehicleType.UBER_SUV: ("UberSUV", 6, 2.3),
    VehicleType.UBER_MOTO: ("UberMoto", 1, 0.5),
    VehicleType.UBER_AUTO: ("UberAuto", 3, 0.7),
    VehicleType.UBER_GREEN: ("UberGreen", 4, 1.3),
    VehicleType.UBER_LUX: ("UberLux", 4, 3.0),
    VehicleType.UBER_LUX_SUV: ("UberLux SUV", 6, 3.5),
    VehicleType.UBER_WAV: ("UberWAV", 4, 1.5),
    VehicleType.UBER_POOL: ("UberPool", 2, 0.8),
}
