"""
FastAPI Application Entry Point.

This is the main application file for the eDrive Hafizabad Dispatch Backend.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from edrive.app.core.config import settings
from edrive.app.core.logging_config import setup_logging
from edrive.app.core.observability import ObservabilityMiddleware
from edrive.app.core.redis_client import ping_redis
from edrive.app.api.v1.router import router as api_v1_router
from edrive.app.db.session import engine, Base
from edrive.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from edrive.app.models.user import User  # noqa: F401
from edrive.app.models.audit_log import AuditLog  # noqa: F401
from edrive.app.models.driver_profile import DriverProfile  # noqa: F401
from edrive.app.models.ride_request import RideRequest  # noqa: F401
from edrive.app.models.ride_offer import RideOffer  # noqa: F401
from edrive.app.models.trip_presence import TripPresence  # noqa: F401
from edrive.app.models.chat_message import ChatMessage  # noqa: F401
from edrive.app.models.safety import UserBlock, SafetyReport  # noqa: F401
from edrive.app.models.ride_review import RideReview  # noqa: F401
from edrive.app.models.notification import Notification  # noqa: F401

setup_logging(level=settings.log_level, json_output=settings.log_json, environment=settings.environment)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Checks Redis (token revocation degrades to allow-all without it).
    3. Disposes the engine on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await ping_redis()
    logger.info("%s %s started (%s)", settings.app_name, settings.api_version, settings.environment)
    yield
    await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Ride request lifecycle and driver bidding backend for eDrive Hafizabad",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    The API stays up without Redis (logout and suspension stop taking
    effect until it is back), so Redis only degrades the status.
    """
    redis_ok = await ping_redis()
    return {
        "status": "healthy" if redis_ok else "degraded",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "up" if redis_ok else "down",
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
        "message": "Welcome to the eDrive Hafizabad Dispatch API",
        "docs": "/docs",
        "health": "/health",
    }
