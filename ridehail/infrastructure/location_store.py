"""
Last-known driver positions in a Redis GEO set.

Positions live under ``driver:locations`` (members are driver ids); the
time of each driver's last update is kept in the ``driver:location_ts``
hash.  Nothing here knows about rides.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

import redis.asyncio as aioredis

from ridehail.domain.entities import DriverLocation, Location

logger = logging.getLogger(__name__)

GEO_KEY = "driver:locations"
TIMESTAMP_KEY = "driver:location_ts"


class LocationStore:
    def __init__(self, client: aioredis.Redis):
        self.redis = client

    async def update_location(self, driver_id: int, lat: float, lng: float) -> None:
        Location(lat, lng).validate("driver")
        added = await self.redis.geoadd(GEO_KEY, [lng, lat, str(driver_id)])
        await self.redis.hset(TIMESTAMP_KEY, str(driver_id), int(time.time()))
        if added:
            logger.info("Driver %s location added", driver_id)
        else:
            logger.debug("Driver %s location moved to (%s, %s)", driver_id, lat, lng)

    async def get_location(self, driver_id: int) -> Optional[DriverLocation]:
        positions = await self.redis.geopos(GEO_KEY, str(driver_id))
        if not positions or positions[0] is None:
            return None
        lng, lat = positions[0]
        ts = await self.redis.hget(TIMESTAMP_KEY, str(driver_id))
        return DriverLocation(
            driver_id=driver_id,
            latitude=float(lat),
            longitude=float(lng),
            timestamp=int(ts) if ts is not None else None,
        )

    async def remove_location(self, driver_id: int) -> bool:
        removed = await self.redis.zrem(GEO_KEY, str(driver_id))
        await self.redis.hdel(TIMESTAMP_KEY, str(driver_id))
        if not removed:
            logger.warning("Driver %s location not found", driver_id)
        return bool(removed)

    async def find_nearby(
        self, lat: float, lng: float, radius_km: float, limit: Optional[int] = 10
    ) -> list[tuple[int, float]]:
        """Return ``(driver_id, distance_km)`` within *radius_km*, nearest first.

        ``limit=None`` returns every member in the radius.
        """
        results = await self.redis.geosearch(
            GEO_KEY,
            longitude=lng,
            latitude=lat,
            radius=radius_km,
            unit="km",
            sort="ASC",
            count=limit,
            withdist=True,
        )
        return [(int(member), float(dist)) for member, dist in results]
