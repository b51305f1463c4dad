"""
Capability matrix for customers, drivers and admins.

Every engine / directory operation calls ``authorize`` with the acting user
instead of branching on roles locally.  Deactivated accounts may do nothing.

==========================  ======================================================
Action                      Allowed for
==========================  ======================================================
REQUEST_RIDE                customers
ACCEPT_RIDE                 drivers
START_RIDE / COMPLETE_RIDE  the ride's assigned driver
CANCEL_RIDE                 the ride's customer or its assigned driver
VIEW_RIDE                   customer, assigned driver, admin; any driver while
                            the ride is still REQUESTED
LIST_CUSTOMER_RIDES         that customer, admins
LIST_DRIVER_RIDES           that driver, admins
LIST_OPEN_RIDES             drivers, admins
LIST_ALL_RIDES              admins
VIEW_NEARBY_DRIVERS         the ride's customer, admins
MANAGE_USERS                admins
UPDATE_PROFILE              the user themself, admins
UPDATE_DRIVER_STATUS        the driver themself, admins
UPDATE_LOCATION             the driver themself
VIEW_LOCATION               the driver themself, admins
==========================  ======================================================
"""

from __future__ import annotations

import enum
from typing import Callable, Optional

from .entities import Ride, User
from .enums import RideStatus, Role
from .errors import Unauthorized


class Action(str, enum.Enum):
    REQUEST_RIDE = "request a ride"
    ACCEPT_RIDE = "accept this ride"
    START_RIDE = "start this ride"
    COMPLETE_RIDE = "complete this ride"
    CANCEL_RIDE = "cancel this ride"
    VIEW_RIDE = "view this ride"
    LIST_CUSTOMER_RIDES = "list this customer's rides"
    LIST_DRIVER_RIDES = "list this driver's rides"
    LIST_OPEN_RIDES = "list open rides"
    LIST_ALL_RIDES = "list all rides"
    VIEW_NEARBY_DRIVERS = "view drivers near this ride"
    MANAGE_USERS = "manage users"
    UPDATE_PROFILE = "update this profile"
    UPDATE_DRIVER_STATUS = "change this driver's status"
    UPDATE_LOCATION = "update this driver's location"
    VIEW_LOCATION = "view this driver's location"


Rule = Callable[[User, Optional[Ride], Optional[int]], bool]


def _is_ride_customer(actor: User, ride: Optional[Ride]) -> bool:
    return ride is not None and ride.customer_id == actor.id


def _is_ride_driver(actor: User, ride: Optional[Ride]) -> bool:
    return ride is not None and ride.driver_id is not None and ride.driver_id == actor.id


def _is_self(actor: User, subject_id: Optional[int]) -> bool:
    return subject_id is not None and subject_id == actor.id


_RULES: dict[Action, Rule] = {
    Action.REQUEST_RIDE: lambda a, r, s: a.role == Role.CUSTOMER,
    Action.ACCEPT_RIDE: lambda a, r, s: a.role == Role.DRIVER,
    Action.START_RIDE: lambda a, r, s: _is_ride_driver(a, r),
    Action.COMPLETE_RIDE: lambda a, r, s: _is_ride_driver(a, r),
    Action.CANCEL_RIDE: lambda a, r, s: (
        _is_ride_customer(a, r) or _is_ride_driver(a, r)
    ),
    Action.VIEW_RIDE: lambda a, r, s: (
        a.is_admin
        or _is_ride_customer(a, r)
        or _is_ride_driver(a, r)
        or (a.is_driver and r is not None and r.status == RideStatus.REQUESTED)
    ),
    Action.LIST_CUSTOMER_RIDES: lambda a, r, s: a.is_admin or _is_self(a, s),
    Action.LIST_DRIVER_RIDES: lambda a, r, s: a.is_admin or _is_self(a, s),
    Action.LIST_OPEN_RIDES: lambda a, r, s: a.is_admin or a.is_driver,
    Action.LIST_ALL_RIDES: lambda a, r, s: a.is_admin,
    Action.VIEW_NEARBY_DRIVERS: lambda a, r, s: a.is_admin or _is_ride_customer(a, r),
    Action.MANAGE_USERS: lambda a, r, s: a.is_admin,
    Action.UPDATE_PROFILE: lambda a, r, s: a.is_admin or _is_self(a, s),
    Action.UPDATE_DRIVER_STATUS: lambda a, r, s: a.is_admin or _is_self(a, s),
    Action.UPDATE_LOCATION: lambda a, r, s: a.is_driver and _is_self(a, s),
    Action.VIEW_LOCATION: lambda a, r, s: a.is_admin or _is_self(a, s),
}


def is_allowed(
    action: Action,
    actor: User,
    ride: Optional[Ride] = None,
    subject_id: Optional[int] = None,
) -> bool:
    if not actor.active:
        return False
    return _RULES[action](actor, ride, subject_id)


def authorize(
    action: Action,
    actor: User,
    ride: Optional[Ride] = None,
    subject_id: Optional[int] = None,
) -> None:
    """Raise ``Unauthorized`` unless *actor* may perform *action*."""
    if not actor.active:
        raise Unauthorized(f"User {actor.id} is deactivated")
    if not _RULES[action](actor, ride, subject_id):
        raise Unauthorized(
            f"User {actor.id} ({actor.role.value}) may not {action.value}"
        )
