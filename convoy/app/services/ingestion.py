"""
Location Ingestion Gateway.

Both ways a GPS sample can enter the system (the authenticated API and the
realtime transport webhook) go through the same ordered checks:

1. identifiers well formed          -> InvalidIdFormatError
2. coordinates present and in range -> InvalidCoordinatesError
   (timestamp parseable            -> InvalidTimestampError)
3. ride exists                      -> RideNotFoundError
4. ride is active                   -> RideNotActiveError
5. user is owner or approved member -> UnauthorizedRideAccessError

Each rule is a standalone function so it can be exercised on its own.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from convoy.app.core.exceptions import (
    InvalidCoordinatesError, InvalidIdFormatError, InvalidTimestampError,
    RideNotActiveError, RideNotFoundError, UnauthorizedRideAccessError
)
from convoy.app.db.errors import store_errors
from convoy.app.domain.tracking.statistics import PathSample
from convoy.app.models.enums import RideStatus, TrackingStatus
from convoy.app.models.identifiers import is_valid_object_id, utc_now
from convoy.app.models.ride import Ride
from convoy.app.models.ride_tracking import TrackingRecord
from convoy.app.services.tracking_store import TrackingStore

logger = logging.getLogger("convoy.ingestion")


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)


def validate_object_id(field: str, value: Any) -> None:
    if not is_valid_object_id(value):
        raise InvalidIdFormatError(field, value)


def validate_identifiers(ride_id: Any, user_id: Any) -> None:
    validate_object_id("ride ID", ride_id)
    validate_object_id("user ID", user_id)


def validate_coordinates(latitude: Any, longitude: Any) -> Tuple[float, float]:
    """
    Returns:
        (longitude, latitude) as floats, GeoJSON order
    """
    if latitude is None or longitude is None:
        raise InvalidCoordinatesError("latitude and longitude are required")
    if not _is_number(latitude) or not _is_number(longitude):
        raise InvalidCoordinatesError("latitude and longitude must be numbers")
    if latitude < -90 or latitude > 90:
        raise InvalidCoordinatesError("latitude must be between -90 and 90")
    if longitude < -180 or longitude > 180:
        raise InvalidCoordinatesError("longitude must be between -180 and 180")
    return (float(longitude), float(latitude))


def validate_motion(speed: Any, heading: Any) -> Tuple[Optional[float], Optional[float]]:
    """Optional device readings: speed >= 0 m/s, heading within [0, 360]."""
    if speed is not None and (not _is_number(speed) or speed < 0):
        raise InvalidCoordinatesError("speed must be a non-negative number")
    if heading is not None and (not _is_number(heading) or not 0 <= heading <= 360):
        raise InvalidCoordinatesError("heading must be between 0 and 360")
    return (
        float(speed) if speed is not None else None,
        float(heading) if heading is not None else None,
    )


def parse_timestamp(value: Any) -> datetime:
    """
    Accept an ISO-8601 string, epoch milliseconds, a datetime, or nothing
    (server time). Naive values are taken as UTC.
    """
    if value is None:
        return utc_now()

    if isinstance(value, datetime):
        parsed = value
    elif _is_number(value):
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            raise InvalidTimestampError(value)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise InvalidTimestampError(value)
    else:
        raise InvalidTimestampError(value)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


async def load_ride(db: AsyncSession, ride_id: str) -> Ride:
    with store_errors("load_ride"):
        result = await db.execute(select(Ride).where(Ride.id == ride_id))
        ride = result.scalar_one_or_none()
    if ride is None:
        raise RideNotFoundError(ride_id)
    return ride


def ensure_ride_active(ride: Ride) -> None:
    if ride.status != RideStatus.ACTIVE:
        raise RideNotActiveError(ride.status.value)


def ensure_can_track(ride: Ride, user_id: str) -> None:
    if not ride.can_track(user_id):
        raise UnauthorizedRideAccessError()


class IngestionGateway:
    """
    Validates, authorizes and applies location samples.

    The caller decides who the acting user is: the API passes the
    authenticated session's user, the webhook passes the transport's
    client id.
    """

    def __init__(self, db: AsyncSession, store: Optional[TrackingStore] = None):
        self._db = db
        self._store = store or TrackingStore(db)

    async def authorize(self, ride_id: str, user_id: str) -> Ride:
        """Steps 3-5: ride exists, is active, and the user may track it."""
        ride = await load_ride(self._db, ride_id)
        ensure_ride_active(ride)
        ensure_can_track(ride, user_id)
        return ride

    async def submit_location(
        self,
        ride_id: Any,
        user_id: Any,
        latitude: Any,
        longitude: Any,
        timestamp: Any = None,
        speed: Any = None,
        heading: Any = None,
    ) -> TrackingRecord:
        """
        Run the full pipeline and append the sample.

        Returns:
            The updated tracking record
        """
        validate_identifiers(ride_id, user_id)
        coordinates = validate_coordinates(latitude, longitude)
        speed, heading = validate_motion(speed, heading)
        sample_time = parse_timestamp(timestamp)

        await self.authorize(ride_id, user_id)

        sample = PathSample(
            timestamp=sample_time,
            coordinates=coordinates,
            speed=speed,
            heading=heading,
        )
        record = await self._store.upsert_sample(ride_id, user_id, sample)
        logger.debug("Location recorded for user %s on ride %s", user_id, ride_id)
        return record

    async def stop_tracking(self, ride_id: Any, user_id: Any) -> TrackingRecord:
        """Close the user's tracking session as completed."""
        validate_identifiers(ride_id, user_id)
        await self.authorize(ride_id, user_id)
        return await self._store.set_status(
            ride_id, user_id, TrackingStatus.COMPLETED, end_time=utc_now()
        )
