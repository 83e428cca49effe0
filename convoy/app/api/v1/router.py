"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from convoy.app.api.v1.endpoints import ride_tracking, ride_lifecycle, realtime

router = APIRouter()

# Rider location ingestion and tracking views
router.include_router(ride_tracking.router)

# Ride start / complete / cancel and ride statistics
router.include_router(ride_lifecycle.router)

# Realtime transport webhook
router.include_router(realtime.router)
