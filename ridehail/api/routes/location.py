"""
Driver location endpoints
=========================

POST /api/v1/location/update        -- driver reports its position
GET  /api/v1/location/{driver_id}   -- last known position
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from ridehail.api.dependencies import get_current_user, get_location_store
from ridehail.api.middleware import limiter
from ridehail.api.schemas import (
    DriverLocationResponse,
    LocationUpdateRequest,
    MessageResponse,
)
from ridehail.config import settings
from ridehail.domain.authorization import Action, authorize
from ridehail.domain.entities import User
from ridehail.infrastructure.location_store import LocationStore

router = APIRouter(prefix="/location", tags=["location"])


@router.post(
    "/update",
    response_model=MessageResponse,
    summary="Report the calling driver's position",
)
@limiter.limit(settings.rate_limit)
async def update_location(
    request: Request,
    body: LocationUpdateRequest,
    user: User = Depends(get_current_user),
    locations: LocationStore = Depends(get_location_store),
):
    authorize(Action.UPDATE_LOCATION, user, subject_id=user.id)
    await locations.update_location(user.id, body.latitude, body.longitude)
    return MessageResponse(detail="Location updated successfully")


@router.get(
    "/{driver_id}",
    response_model=DriverLocationResponse,
    summary="Last known position of a driver",
)
async def get_location(
    driver_id: int,
    user: User = Depends(get_current_user),
    locations: LocationStore = Depends(get_location_store),
):
    authorize(Action.VIEW_LOCATION, user, subject_id=driver_id)
    location = await locations.get_location(driver_id)
    if location is None:
        raise HTTPException(status_code=404, detail="Location not found")
    return location
