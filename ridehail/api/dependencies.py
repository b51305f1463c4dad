"""FastAPI dependency injection helpers.

The app factory stores the session factory, lifecycle engine and location
store on ``app.state``; these helpers hand them to the routes.  The caller's
identity is the ``X-User-Id`` header resolved through the user directory
into an explicit ``User`` passed to every operation.

A request never holds more than one pooled connection at a time: the
request-scoped session holds one only while its transaction is open, and
the identity lookup closes that transaction before the route runs.
"""

from typing import AsyncIterator, Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ridehail.domain.entities import User
from ridehail.domain.errors import NotFound
from ridehail.infrastructure.location_store import LocationStore
from ridehail.services.ride_engine import RideLifecycleEngine
from ridehail.services.user_directory import UserDirectory


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield an async DB session; commit on success, rollback on error."""
    async with request.app.state.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_directory(db: AsyncSession = Depends(get_db)) -> UserDirectory:
    return UserDirectory(db)


def get_engine(request: Request) -> RideLifecycleEngine:
    return request.app.state.ride_engine


def get_location_store(request: Request) -> LocationStore:
    return request.app.state.location_store


async def get_current_user(
    x_user_id: Optional[int] = Header(None, alias="X-User-Id"),
    directory: UserDirectory = Depends(get_directory),
) -> User:
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    try:
        user = await directory.get_user(x_user_id)
    except NotFound:
        raise HTTPException(status_code=401, detail="Unknown user") from None
    # End the read so its connection goes back to the pool; the lifecycle
    # engine opens its own session, and the directory reconnects on demand.
    await directory.session.commit()
    return user
