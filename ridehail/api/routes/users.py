"""
User directory endpoints
========================

GET   /api/v1/users/me                      -- the calling user
GET   /api/v1/users                         -- all users (admin)
POST  /api/v1/users                         -- register a user (admin)
GET   /api/v1/users/drivers                 -- drivers currently AVAILABLE
GET   /api/v1/users/drivers/all             -- every driver (admin)
PUT   /api/v1/users/drivers/{id}/status     -- AVAILABLE / BUSY / OFFLINE
PUT   /api/v1/users/{id}/status             -- activate / deactivate (admin)
PATCH /api/v1/users/{id}                    -- partial profile update
"""

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.api.dependencies import (
    get_current_user,
    get_db,
    get_directory,
    get_location_store,
)
from ridehail.api.schemas import (
    DriverStatusUpdate,
    UserCreateRequest,
    UserResponse,
    UserStatusUpdate,
    UserUpdateRequest,
)
from ridehail.domain.authorization import Action, authorize
from ridehail.domain.entities import User
from ridehail.domain.enums import DriverStatus
from ridehail.infrastructure.location_store import LocationStore
from ridehail.services.user_directory import UserDirectory

router = APIRouter(prefix="/users", tags=["users"])


def _to_response(u: User) -> UserResponse:
    vehicle = u.vehicle_type
    return UserResponse(
        id=u.id,
        email=u.email,
        first_name=u.first_name,
        last_name=u.last_name,
        full_name=u.full_name,
        phone_number=u.phone_number,
        role=u.role,
        driver_status=u.driver_status,
        vehicle_type=vehicle,
        vehicle_name=vehicle.display_name if vehicle else None,
        max_passengers=vehicle.max_passengers if vehicle else None,
        license_plate=u.license_plate,
        active=u.active,
        created_at=u.created_at,
    )


@router.get("/me", response_model=UserResponse, summary="Current user")
async def me(user: User = Depends(get_current_user)):
    return _to_response(user)


@router.get("", response_model=list[UserResponse], summary="List users (admin)")
async def list_users(
    user: User = Depends(get_current_user),
    directory: UserDirectory = Depends(get_directory),
):
    authorize(Action.MANAGE_USERS, user)
    return [_to_response(u) for u in await directory.list_users()]


@router.post(
    "",
    status_code=201,
    response_model=UserResponse,
    summary="Register a customer, driver or admin (admin)",
    responses={409: {"description": "Email or mobile number already exists."}},
)
async def create_user(
    body: UserCreateRequest,
    user: User = Depends(get_current_user),
    directory: UserDirectory = Depends(get_directory),
    db: AsyncSession = Depends(get_db),
):
    authorize(Action.MANAGE_USERS, user)
    created = await directory.create_user(**body.model_dump())
    await db.commit()
    return _to_response(created)


@router.get(
    "/drivers",
    response_model=list[UserResponse],
    summary="Drivers currently available for rides",
)
async def available_drivers(
    user: User = Depends(get_current_user),
    directory: UserDirectory = Depends(get_directory),
):
    return [_to_response(u) for u in await directory.available_drivers()]


@router.get(
    "/drivers/all",
    response_model=list[UserResponse],
    summary="All drivers regardless of status (admin)",
)
async def all_drivers(
    user: User = Depends(get_current_user),
    directory: UserDirectory = Depends(get_directory),
):
    authorize(Action.MANAGE_USERS, user)
    return [_to_response(u) for u in await directory.list_drivers()]


@router.put(
    "/drivers/{driver_id}/status",
    response_model=UserResponse,
    summary="Set a driver's availability",
    description="Going OFFLINE also drops the driver's stored location.",
)
async def set_driver_status(
    driver_id: int,
    body: DriverStatusUpdate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    directory: UserDirectory = Depends(get_directory),
    locations: LocationStore = Depends(get_location_store),
    db: AsyncSession = Depends(get_db),
):
    authorize(Action.UPDATE_DRIVER_STATUS, user, subject_id=driver_id)
    updated = await directory.set_driver_status(driver_id, body.status)
    await db.commit()
    if body.status == DriverStatus.OFFLINE:
        background_tasks.add_task(locations.remove_location, driver_id)
    return _to_response(updated)


@router.put(
    "/{user_id}/status",
    response_model=UserResponse,
    summary="Activate or deactivate a user (admin)",
)
async def set_user_active(
    user_id: int,
    body: UserStatusUpdate,
    user: User = Depends(get_current_user),
    directory: UserDirectory = Depends(get_directory),
    db: AsyncSession = Depends(get_db),
):
    authorize(Action.MANAGE_USERS, user)
    updated = await directory.set_user_active(user_id, body.active)
    await db.commit()
    return _to_response(updated)


@router.patch("/{user_id}", response_model=UserResponse, summary="Update a profile")
async def update_user(
    user_id: int,
    body: UserUpdateRequest,
    user: User = Depends(get_current_user),
    directory: UserDirectory = Depends(get_directory),
    db: AsyncSession = Depends(get_db),
):
    authorize(Action.UPDATE_PROFILE, user, subject_id=user_id)
    updated = await directory.update_user(user_id, body.model_dump(exclude_unset=True))
    await db.commit()
    return _to_response(updated)
