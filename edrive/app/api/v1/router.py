"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from edrive.app.api.v1.endpoints import (
    auth, admin, complaints, ride_requests, ride_lifecycle,
    trips, drivers, notifications, realtime
)

router = APIRouter()

# Authentication
router.include_router(auth.router)

# Ride lifecycle
router.include_router(ride_requests.router)
router.include_router(ride_lifecycle.router)

# Trip session: location, chat, safety, reviews
router.include_router(trips.router)

# Driver onboarding, feed and earnings
router.include_router(drivers.router)

# Notifications
router.include_router(notifications.router)
router.include_router(notifications.admin_router)

# Complaints to HQ
router.include_router(complaints.router)

# Admin tooling
router.include_router(admin.router)

# WebSocket subscriptions
router.include_router(realtime.router)
