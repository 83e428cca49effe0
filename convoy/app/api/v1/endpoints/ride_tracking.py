"""
Ride Tracking API Endpoints.

Riders post their own location and manage their own tracking session;
the ride owner gets an organizer view over every participant.
"""

from fastapi import APIRouter, Depends, Path, Body
from sqlalchemy.ext.asyncio import AsyncSession

from convoy.app.db.session import get_db
from convoy.app.core.exceptions import UnauthorizedRideAccessError
from convoy.app.core.guards import current_user_id, ride_guard
from convoy.app.schemas.tracking import (
    LocationUpdate, LocationAccepted, TrackingStatusUpdate,
    TrackingRecordOut, RideTrackingOverview,
    record_detail, record_summary, stats_out
)
from convoy.app.services.audit import log_event, AuditAction
from convoy.app.services.ingestion import (
    IngestionGateway, load_ride, validate_identifiers, validate_object_id
)
from convoy.app.services.tracking_store import TrackingStore

router = APIRouter(prefix="/rides", tags=["Ride Tracking"])


@router.post("/{ride_id}/location", response_model=LocationAccepted)
async def record_location(
    ride_id: str = Path(..., description="Ride ID"),
    update: LocationUpdate = Body(...),
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Record a GPS sample for the authenticated rider.

    Validates, in order: id format, coordinates, ride exists, ride active,
    rider is owner or approved participant. The first accepted sample
    opens the rider's tracking session.
    """
    validate_identifiers(ride_id, user_id)
    if update.user_id is not None and update.user_id != user_id:
        raise UnauthorizedRideAccessError("Cannot submit location for another user")

    record = await IngestionGateway(db).submit_location(
        ride_id,
        user_id,
        update.latitude,
        update.longitude,
        timestamp=update.timestamp,
        speed=update.speed,
        heading=update.heading,
    )

    return LocationAccepted(
        ride_id=record.ride_id,
        user_id=record.user_id,
        coordinates=[record.last_longitude, record.last_latitude],
        timestamp=record.last_position_at,
        tracking_status=record.tracking_status,
        total_points=len(record.samples),
        calculated_stats=stats_out(record.calculated_stats),
    )


@router.get("/{ride_id}/tracking", response_model=TrackingRecordOut)
async def get_my_tracking(
    ride_id: str = Path(..., description="Ride ID"),
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """The authenticated rider's own tracking record, path included."""
    validate_object_id("ride ID", ride_id)
    ride = await load_ride(db, ride_id)
    ride_guard.require_member(ride, user_id)

    record = await TrackingStore(db).get(ride_id, user_id)
    return record_detail(record)


@router.get("/{ride_id}/tracking/all", response_model=RideTrackingOverview)
async def get_all_tracking(
    ride_id: str = Path(..., description="Ride ID"),
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Organizer view: every participant's status, position and stats (owner only)."""
    validate_object_id("ride ID", ride_id)
    ride = await load_ride(db, ride_id)
    ride_guard.require_owner(ride, user_id, action="view all participants' tracking")

    records = await TrackingStore(db).list_for_ride(ride_id)
    return RideTrackingOverview(
        ride_id=ride_id,
        participants=[record_summary(record) for record in records],
        total_participants=len(records),
    )


@router.get("/{ride_id}/tracking/{target_user_id}", response_model=TrackingRecordOut)
async def get_user_tracking(
    ride_id: str = Path(..., description="Ride ID"),
    target_user_id: str = Path(..., description="Participant user ID"),
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """One participant's record. Visible to the ride owner and to that participant."""
    validate_identifiers(ride_id, target_user_id)
    ride = await load_ride(db, ride_id)
    ride_guard.require_owner_or_self(ride, user_id, target_user_id)

    record = await TrackingStore(db).get(ride_id, target_user_id)
    return record_detail(record)


@router.patch("/{ride_id}/tracking/status", response_model=TrackingRecordOut)
async def update_tracking_status(
    ride_id: str = Path(..., description="Ride ID"),
    update: TrackingStatusUpdate = Body(...),
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Pause, resume or stop the rider's own tracking session.

    Allowed: active <-> paused, and either to completed or stopped.
    Completed and stopped are final.
    """
    validate_object_id("ride ID", ride_id)
    ride = await load_ride(db, ride_id)
    ride_guard.require_member(ride, user_id)

    store = TrackingStore(db)
    record = await store.set_status(ride_id, user_id, update.status)

    await log_event(
        db,
        action=AuditAction.TRACKING_STATUS_CHANGED,
        actor_id=user_id,
        ride_id=ride_id,
        metadata={"status": update.status.value},
    )
    await db.commit()

    record = await store.get(ride_id, user_id)
    return record_detail(record)
