"""
Ride Lifecycle API Endpoints.

Owner-only status transitions, and the ride statistics view.
"""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from convoy.app.db.session import get_db, get_session_factory
from convoy.app.core.guards import current_user_id
from convoy.app.schemas.ride import (
    RideStatusOut, RideCompleteOut, RideStatsOut, AggregateStatsOut
)
from convoy.app.schemas.tracking import StatsOut
from convoy.app.services.ride_lifecycle import RideLifecycleCoordinator

router = APIRouter(prefix="/rides", tags=["Ride Lifecycle"])


def _status_out(ride) -> RideStatusOut:
    return RideStatusOut(
        id=ride.id,
        name=ride.name,
        status=ride.status,
        start_time=ride.start_time,
        end_time=ride.end_time,
    )


@router.post("/{ride_id}/start", response_model=RideStatusOut)
async def start_ride(
    ride_id: str = Path(..., description="Ride ID"),
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    """
    Start a planned ride (owner only).

    Allowed from a few minutes before the scheduled start onwards.
    Approved participants get a notification.
    """
    ride = await RideLifecycleCoordinator(db, session_factory).start_ride(ride_id, user_id)
    return _status_out(ride)


@router.post("/{ride_id}/complete", response_model=RideCompleteOut)
async def complete_ride(
    ride_id: str = Path(..., description="Ride ID"),
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    """
    Complete an active ride (owner only).

    Closes every participant's tracking session and stores per-participant
    and ride-level statistics.
    """
    ride = await RideLifecycleCoordinator(db, session_factory).complete_ride(ride_id, user_id)
    return RideCompleteOut(
        **_status_out(ride).model_dump(),
        ride_stats=AggregateStatsOut.model_validate(ride.ride_stats or {}),
    )


@router.post("/{ride_id}/cancel", response_model=RideStatusOut)
async def cancel_ride(
    ride_id: str = Path(..., description="Ride ID"),
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    """Cancel a planned ride (owner only)."""
    ride = await RideLifecycleCoordinator(db, session_factory).cancel_ride(ride_id, user_id)
    return _status_out(ride)


@router.get("/{ride_id}/stats", response_model=RideStatsOut)
async def get_ride_stats(
    ride_id: str = Path(..., description="Ride ID"),
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker = Depends(get_session_factory)
):
    """
    Ride-level and per-participant statistics (any ride member).

    Live figures while the ride is running, the stored rollup once it is completed.
    """
    ride, summary, per_user = await RideLifecycleCoordinator(db, session_factory).ride_summary(
        ride_id, user_id
    )
    return RideStatsOut(
        ride_id=ride.id,
        status=ride.status,
        ride_stats=AggregateStatsOut.model_validate(summary.to_document()),
        participants={
            uid: StatsOut.model_validate(stats.to_document()) for uid, stats in per_user.items()
        },
    )
