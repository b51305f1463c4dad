"""
Ride endpoints
==============

POST /api/v1/rides                       -- request a ride (customer)
POST /api/v1/rides/estimate              -- fare / distance quote
GET  /api/v1/rides                       -- all rides (admin)
GET  /api/v1/rides/open                  -- REQUESTED rides (drivers, admin)
GET  /api/v1/rides/customer/{id}         -- a customer's rides, newest first
GET  /api/v1/rides/driver/{id}           -- a driver's rides, newest first
GET  /api/v1/rides/{ride_id}             -- one ride
GET  /api/v1/rides/{ride_id}/nearby-drivers
PUT  /api/v1/rides/{ride_id}/accept|start|complete|cancel

Every mutation responds with the full updated ride.
"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from ridehail.api.dependencies import (
    get_current_user,
    get_directory,
    get_engine,
    get_location_store,
)
from ridehail.api.middleware import limiter
from ridehail.api.schemas import (
    DriverCandidateResponse,
    FareEstimateResponse,
    RideCancelRequest,
    RideCreateRequest,
    RideResponse,
)
from ridehail.config import settings
from ridehail.domain.authorization import Action, authorize
from ridehail.domain.entities import User
from ridehail.infrastructure.location_store import LocationStore
from ridehail.services.matching import MatchingService
from ridehail.services.ride_engine import RideLifecycleEngine
from ridehail.services.user_directory import UserDirectory

router = APIRouter(prefix="/rides", tags=["rides"])


@router.post(
    "",
    status_code=201,
    response_model=RideResponse,
    summary="Request a new ride",
    responses={409: {"description": "Customer already has an active ride."}},
)
@limiter.limit(settings.rate_limit)
async def request_ride(
    request: Request,
    body: RideCreateRequest,
    user: User = Depends(get_current_user),
    engine: RideLifecycleEngine = Depends(get_engine),
):
    return await engine.request_ride(
        user.id, body.pickup.to_domain(), body.dropoff.to_domain()
    )


@router.post(
    "/estimate",
    response_model=FareEstimateResponse,
    summary="Quote fare and distance without creating a ride",
)
async def estimate_fare(
    body: RideCreateRequest,
    user: User = Depends(get_current_user),
    engine: RideLifecycleEngine = Depends(get_engine),
):
    return engine.estimate_fare(body.pickup.to_domain(), body.dropoff.to_domain())


@router.get("", response_model=list[RideResponse], summary="List all rides (admin)")
async def all_rides(
    user: User = Depends(get_current_user),
    engine: RideLifecycleEngine = Depends(get_engine),
):
    return await engine.all_rides(actor_id=user.id)


@router.get(
    "/open",
    response_model=list[RideResponse],
    summary="Rides waiting for a driver, oldest first",
)
async def open_rides(
    user: User = Depends(get_current_user),
    engine: RideLifecycleEngine = Depends(get_engine),
):
    return await engine.open_rides(actor_id=user.id)


@router.get(
    "/customer/{customer_id}",
    response_model=list[RideResponse],
    summary="Customer's ride history",
)
async def customer_rides(
    customer_id: int,
    user: User = Depends(get_current_user),
    engine: RideLifecycleEngine = Depends(get_engine),
):
    return await engine.rides_for_customer(customer_id, actor_id=user.id)


@router.get(
    "/driver/{driver_id}",
    response_model=list[RideResponse],
    summary="Driver's ride history",
)
async def driver_rides(
    driver_id: int,
    user: User = Depends(get_current_user),
    engine: RideLifecycleEngine = Depends(get_engine),
):
    return await engine.rides_for_driver(driver_id, actor_id=user.id)


@router.get("/{ride_id}", response_model=RideResponse, summary="Get a ride")
async def get_ride(
    ride_id: int,
    user: User = Depends(get_current_user),
    engine: RideLifecycleEngine = Depends(get_engine),
):
    return await engine.get_ride(ride_id, actor_id=user.id)


@router.get(
    "/{ride_id}/nearby-drivers",
    response_model=list[DriverCandidateResponse],
    summary="Available drivers near the pickup, nearest first",
)
async def nearby_drivers(
    ride_id: int,
    user: User = Depends(get_current_user),
    engine: RideLifecycleEngine = Depends(get_engine),
    directory: UserDirectory = Depends(get_directory),
    locations: LocationStore = Depends(get_location_store),
):
    ride = await engine.get_ride(ride_id, actor_id=user.id)
    authorize(Action.VIEW_NEARBY_DRIVERS, user, ride)
    matching = MatchingService(
        locations,
        directory,
        initial_radius_km=settings.match_initial_radius_km,
        max_radius_km=settings.match_max_radius_km,
        step_km=settings.match_radius_step_km,
        limit=settings.match_max_candidates,
    )
    return await matching.find_nearby_drivers(
        ride.pickup.latitude, ride.pickup.longitude
    )


@router.put(
    "/{ride_id}/accept",
    response_model=RideResponse,
    summary="Driver accepts a ride",
    responses={409: {"description": "Another driver accepted first."}},
)
@limiter.limit(settings.rate_limit)
async def accept_ride(
    request: Request,
    ride_id: int,
    user: User = Depends(get_current_user),
    engine: RideLifecycleEngine = Depends(get_engine),
):
    return await engine.accept_ride(ride_id, user.id)


@router.put(
    "/{ride_id}/start",
    response_model=RideResponse,
    summary="Driver starts the ride after pickup",
)
@limiter.limit(settings.rate_limit)
async def start_ride(
    request: Request,
    ride_id: int,
    user: User = Depends(get_current_user),
    engine: RideLifecycleEngine = Depends(get_engine),
):
    return await engine.start_ride(ride_id, user.id)


@router.put(
    "/{ride_id}/complete",
    response_model=RideResponse,
    summary="Driver completes the ride",
    description=(
        "Computes fare and distance.  The driver's stored position is moved "
        "to the dropoff after the response is sent."
    ),
)
@limiter.limit(settings.rate_limit)
async def complete_ride(
    request: Request,
    ride_id: int,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    engine: RideLifecycleEngine = Depends(get_engine),
    locations: LocationStore = Depends(get_location_store),
):
    ride = await engine.complete_ride(ride_id, user.id)
    background_tasks.add_task(
        locations.update_location,
        user.id,
        ride.dropoff.latitude,
        ride.dropoff.longitude,
    )
    return ride


@router.put(
    "/{ride_id}/cancel",
    response_model=RideResponse,
    summary="Cancel a ride",
    description=(
        "Customer or assigned driver cancels a REQUESTED or ACCEPTED ride. "
        "Rides already in progress can only be completed."
    ),
)
@limiter.limit(settings.rate_limit)
async def cancel_ride(
    request: Request,
    ride_id: int,
    body: Optional[RideCancelRequest] = None,
    user: User = Depends(get_current_user),
    engine: RideLifecycleEngine = Depends(get_engine),
):
    reason = body.reason if body else None
    return await engine.cancel_ride(ride_id, user.id, reason)
