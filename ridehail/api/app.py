"""
FastAPI application factory.

* Registers routes for rides, users, driver locations and admin.
* Wires the lifecycle engine to the configured lock backend.
* Translates domain errors into JSON error responses.
* Applies rate-limiting and request-id middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from ridehail.api.middleware import RequestIDMiddleware, limiter
from ridehail.api.routes import admin, location, rides, users
from ridehail.api.schemas import ErrorResponse
from ridehail.config import settings
from ridehail.domain.errors import RideError
from ridehail.domain.pricing import PricingEngine
from ridehail.infrastructure.database import async_session_factory
from ridehail.infrastructure.location_store import LocationStore
from ridehail.infrastructure.locks import LocalLockManager, RedisLockManager
from ridehail.infrastructure.redis_client import get_redis
from ridehail.services.ride_engine import RideLifecycleEngine

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Dispose the DB pool on shutdown."""
    yield
    bind = app.state.session_factory.kw.get("bind")
    if bind is not None:
        await bind.dispose()


async def ride_error_handler(request: Request, exc: RideError) -> JSONResponse:
    logger.warning(
        "%s %s -> %s: %s", request.method, request.url.path, exc.error, exc
    )
    body = ErrorResponse(error=exc.error, detail=str(exc))
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


def _default_lock_manager():
    if settings.lock_backend == "local":
        return LocalLockManager(wait_timeout=settings.lock_wait_timeout_seconds)
    return RedisLockManager(
        get_redis(),
        ttl_seconds=settings.lock_ttl_seconds,
        wait_timeout=settings.lock_wait_timeout_seconds,
    )


def create_app(
    session_factory=None,
    lock_manager=None,
    location_store=None,
    fare_policy=None,
) -> FastAPI:
    app = FastAPI(
        title="Ride Lifecycle API",
        description=(
            "Ride requests, exclusive driver acceptance, trip start / "
            "completion with fare computation, cancellation, and the "
            "user directory and driver locations behind a ride-hailing "
            "dashboard."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    if session_factory is None:
        session_factory = async_session_factory
    if location_store is None:
        location_store = LocationStore(get_redis())
    if lock_manager is None:
        lock_manager = _default_lock_manager()
    if fare_policy is None:
        fare_policy = PricingEngine(settings.base_fare, settings.rate_per_km).quote

    app.state.session_factory = session_factory
    app.state.location_store = location_store
    app.state.ride_engine = RideLifecycleEngine(
        session_factory,
        lock_manager,
        fare_policy,
    )

    # Errors
    app.add_exception_handler(RideError, ride_error_handler)

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_middleware(RequestIDMiddleware)

    # Routers
    app.include_router(rides.router, prefix="/api/v1")
    app.include_router(users.router, prefix="/api/v1")
    app.include_router(location.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
