"""
Fare Policy  (Strategy Pattern)
===============================

Formula
-------
Fare = (Base_Fare + Distance x Rate_Per_KM) x Vehicle_Multiplier

* **Distance** is the Haversine distance pickup -> dropoff in km.
* **Vehicle_Multiplier** comes from the assigned driver's vehicle class
  (1.0 when the driver has none).

The engine only depends on the ``FarePolicy`` call signature, so any
callable ``(pickup, dropoff, vehicle_type) -> FareQuote`` can replace the
default ``PricingEngine``.

Complexity: O(1) per quote.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional

from .distance import haversine_km
from .entities import FareQuote, Location
from .enums import VehicleType

FarePolicy = Callable[[Location, Location, Optional[VehicleType]], FareQuote]


# ── Strategy hierarchy ────────────────────────────────────────────────


class PricingStrategy(ABC):
    @abstractmethod
    def calculate(
        self, distance_km: float, base_fare: float, rate_per_km: float
    ) -> float: ...


class StandardPricing(PricingStrategy):
    def calculate(
        self, distance_km: float, base_fare: float, rate_per_km: float
    ) -> float:
        return base_fare + distance_km * rate_per_km


class VehicleClassPricing(PricingStrategy):
    """Standard fare scaled by the vehicle class price multiplier."""

    def __init__(self, vehicle_type: Optional[VehicleType] = None):
        self.multiplier = vehicle_type.price_multiplier if vehicle_type else 1.0

    def calculate(
        self, distance_km: float, base_fare: float, rate_per_km: float
    ) -> float:
        return (base_fare + distance_km * rate_per_km) * self.multiplier


# ── Engine facade ─────────────────────────────────────────────────────


class PricingEngine:
    """Default fare policy used by the lifecycle engine."""

    def __init__(self, base_fare: float = 2.0, rate_per_km: float = 1.5):
        self.base_fare = base_fare
        self.rate_per_km = rate_per_km

    def quote(
        self,
        pickup: Location,
        dropoff: Location,
        vehicle_type: Optional[VehicleType] = None,
    ) -> FareQuote:
        distance = haversine_km(
            pickup.latitude, pickup.longitude, dropoff.latitude, dropoff.longitude
        )
        strategy = VehicleClassPricing(vehicle_type)
        fare = strategy.calculate(distance, self.base_fare, self.rate_per_km)
        return FareQuote(fare=round(fare, 2), distance_km=round(distance, 3))
