"""
Nearest-available-driver search
===============================

Expanding-radius lookup over the LocationStore:

1. Query drivers within ``initial_radius_km`` of the pickup.
2. Keep only active drivers currently AVAILABLE in the directory, then
   take the nearest ``limit`` of them.
3. If none qualify, grow the radius by ``step_km`` and retry, up to
   ``max_radius_km``.

The result is advisory (shown to the customer / admin).  It never assigns
a driver; only ``RideLifecycleEngine.accept_ride`` does that.

Complexity: O(R x n) directory look-ups, R = number of radius steps,
n = drivers positioned inside the radius.  At most ``limit`` candidates
are returned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ridehail.domain.enums import DriverStatus, Role
from ridehail.domain.errors import NotFound
from ridehail.infrastructure.location_store import LocationStore
from ridehail.services.user_directory import UserDirectory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DriverCandidate:
    driver_id: int
    distance_km: float


class MatchingService:
    def __init__(
        self,
        locations: LocationStore,
        directory: UserDirectory,
        initial_radius_km: float = 5.0,
        max_radius_km: float = 20.0,
        step_km: float = 5.0,
        limit: int = 10,
    ):
        self.locations = locations
        self.directory = directory
        self.initial_radius_km = initial_radius_km
        self.max_radius_km = max_radius_km
        self.step_km = step_km
        self.limit = limit

    async def find_nearby_drivers(self, lat: float, lng: float) -> list[DriverCandidate]:
        radius = self.initial_radius_km
        while radius <= self.max_radius_km:
            logger.debug("Searching drivers within %skm of (%s, %s)", radius, lat, lng)
            # Unbounded search; truncate to limit only after filtering.
            nearby = await self.locations.find_nearby(lat, lng, radius, None)
            candidates: list[DriverCandidate] = []
            for driver_id, distance in nearby:
                if await self._is_available(driver_id):
                    candidates.append(DriverCandidate(driver_id, distance))
                    if len(candidates) == self.limit:
                        break
            if candidates:
                logger.info("Found %d available drivers within %skm", len(candidates), radius)
                return candidates
            radius += self.step_km

        logger.info("No available drivers within %skm", self.max_radius_km)
        return []

    async def _is_available(self, driver_id: int) -> bool:
        try:
            driver = await self.directory.get_user(driver_id)
        except NotFound:
            logger.warning("Location entry for unknown driver %s", driver_id)
            return False
        return (
            driver.role == Role.DRIVER
            and driver.active
            and driver.driver_status == DriverStatus.AVAILABLE
        )
