"""
FastAPI Application Entry Point.

This is the main application file for the Convoy ride-tracking backend.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from convoy.app.core.config import settings
from convoy.app.api.v1.router import router as api_v1_router
from convoy.app.core.observability import ObservabilityMiddleware
from convoy.app.core.redis_client import create_redis_client, ping_redis
from convoy.app.db.session import engine, Base
from convoy.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from convoy.app.models.user import User  # noqa: F401
from convoy.app.models.ride import Ride, RideParticipant  # noqa: F401
from convoy.app.models.ride_tracking import TrackingRecord, TrackingSample  # noqa: F401
from convoy.app.models.audit_log import AuditLog  # noqa: F401
from convoy.app.models.notification import Notification  # noqa: F401

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("convoy")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Opens the Redis client used for token revocation checks.
    3. Closes Redis and disposes the engine on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    app.state.redis = create_redis_client()
    if not await ping_redis(app.state.redis):
        logger.warning("Redis unreachable at startup; token revocation checks will fail open")

    if not settings.realtime_webhook_secret:
        logger.warning("REALTIME_WEBHOOK_SECRET is not set; webhook batches are not authenticated")

    yield

    await app.state.redis.aclose()
    await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Live ride tracking and ride statistics for group rides",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": await ping_redis(getattr(request.app.state, "redis", None)),
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to the Convoy Ride Tracking API",
        "docs": "/docs",
        "health": "/health",
    }
