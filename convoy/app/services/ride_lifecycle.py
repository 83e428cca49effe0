"""
Ride Lifecycle Coordinator.

Owns the ride status transitions

    planned -> active -> completed
    planned -> cancelled

and, on completion, the statistics rollup: every tracking record of the
ride is finalized, each participant's numbers are copied onto their
membership row, and the ride-level aggregate is written to the ride.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from pydantic import ValidationError

from convoy.app.core.config import settings
from convoy.app.core.exceptions import AppException, RideStateError
from convoy.app.core.guards import ride_guard
from convoy.app.db.errors import store_errors
from convoy.app.db.session import get_session_factory
from convoy.app.domain.tracking.statistics import AggregateRideStats, RideStats, aggregate
from convoy.app.models.enums import RideStatus
from convoy.app.models.identifiers import as_utc, utc_now
from convoy.app.models.notification import NotificationType
from convoy.app.models.ride import Ride
from convoy.app.models.ride_tracking import TrackingRecord
from convoy.app.services.audit import AuditAction, log_event
from convoy.app.services.ingestion import load_ride, validate_object_id
from convoy.app.services.notification_service import NotificationService
from convoy.app.services.tracking_store import TrackingStore

logger = logging.getLogger("convoy.lifecycle")


def stored_stats(document: Optional[dict]) -> RideStats:
    """Parse a persisted camelCase stats document, zeros when missing or unreadable."""
    if not document:
        return RideStats()
    try:
        return RideStats.model_validate(document)
    except ValidationError:
        return RideStats()


class RideLifecycleCoordinator:
    """
    Ride status transitions for the ride owner.

    Usage:
        coordinator = RideLifecycleCoordinator(db)
        ride = await coordinator.complete_ride(ride_id, owner_id)
    """

    def __init__(self, db: AsyncSession, session_factory: Optional[async_sessionmaker] = None):
        self._db = db
        self._session_factory = session_factory or get_session_factory()

    async def _load_for_owner(self, ride_id: str, actor_id: str, action: str) -> Ride:
        validate_object_id("ride ID", ride_id)
        ride = await load_ride(self._db, ride_id)
        ride_guard.require_owner(ride, actor_id, action=action)
        return ride

    async def _record_transition(
        self,
        ride: Ride,
        actor_id: str,
        action: str,
        notification_type: NotificationType,
        title: str,
        message: str,
    ) -> None:
        await log_event(
            self._db,
            action=action,
            actor_id=actor_id,
            ride_id=ride.id,
            metadata={"status": ride.status.value},
        )
        queued = await NotificationService.notify_participants(
            self._db,
            ride.approved_user_ids(),
            title=title,
            message=message,
            type=notification_type,
            metadata={"rideId": ride.id, "rideName": ride.name},
            exclude=actor_id,
        )
        logger.info("Ride %s -> %s, %d notifications queued", ride.id, ride.status.value, queued)

    async def start_ride(self, ride_id: str, actor_id: str) -> Ride:
        """
        planned -> active. Allowed from `early_start_threshold_minutes`
        before the scheduled start onwards.

        Raises:
            RideNotFoundError / InsufficientPermissionsError / RideStateError
        """
        ride = await self._load_for_owner(ride_id, actor_id, "start the ride")

        if ride.status != RideStatus.PLANNED:
            raise RideStateError(
                ride.status.value,
                f"Cannot start ride. Current status is '{ride.status.value}'. "
                "Only planned rides can be started."
            )

        threshold = timedelta(minutes=settings.early_start_threshold_minutes)
        if as_utc(ride.start_time) - utc_now() > threshold:
            raise RideStateError(
                ride.status.value,
                f"Cannot start ride. Ride is scheduled for {as_utc(ride.start_time).isoformat()}. "
                f"Please wait until {settings.early_start_threshold_minutes} minutes "
                "before the scheduled start time."
            )

        with store_errors("start_ride"):
            ride.status = RideStatus.ACTIVE
            await self._record_transition(
                ride, actor_id, AuditAction.RIDE_STARTED, NotificationType.RIDE_STARTED,
                title="Ride Started!",
                message=f'The ride "{ride.name}" has started. Safe travels ahead',
            )
            await self._db.commit()
            await self._db.refresh(ride)
        return ride

    async def cancel_ride(self, ride_id: str, actor_id: str) -> Ride:
        """planned -> cancelled."""
        ride = await self._load_for_owner(ride_id, actor_id, "cancel the ride")

        if ride.status != RideStatus.PLANNED:
            raise RideStateError(
                ride.status.value,
                f"Cannot cancel ride. Current status is '{ride.status.value}'. "
                "Only planned rides can be cancelled."
            )

        with store_errors("cancel_ride"):
            ride.status = RideStatus.CANCELLED
            await self._record_transition(
                ride, actor_id, AuditAction.RIDE_CANCELLED, NotificationType.RIDE_CANCELLED,
                title="Ride Cancelled",
                message=f'The ride "{ride.name}" has been cancelled.',
            )
            await self._db.commit()
            await self._db.refresh(ride)
        return ride

    async def complete_ride(self, ride_id: str, actor_id: str) -> Ride:
        """
        active -> completed, then roll statistics up.

        The status change is committed before the rollup starts, so a
        failing rollup never leaves the ride active.
        """
        ride = await self._load_for_owner(ride_id, actor_id, "complete the ride")

        if ride.status != RideStatus.ACTIVE:
            raise RideStateError(
                ride.status.value,
                f"Cannot complete ride. Current status is '{ride.status.value}'. "
                "Only active rides can be completed."
            )

        end_time = utc_now()
        with store_errors("complete_ride"):
            ride.status = RideStatus.COMPLETED
            ride.end_time = end_time
            await self._record_transition(
                ride, actor_id, AuditAction.RIDE_COMPLETED, NotificationType.RIDE_COMPLETED,
                title="Ride Completed",
                message=f'The ride "{ride.name}" is complete. Check out your ride stats!',
            )
            await self._db.commit()

        await self.rollup(ride, end_time=end_time)
        await self._db.refresh(ride)
        return ride

    async def rollup(self, ride: Ride, end_time: Optional[datetime] = None) -> AggregateRideStats:
        """
        Finalize every tracking record of the ride and write the aggregate.

        Each record is finalized in its own session; a record that fails is
        logged and contributes its last persisted stats instead.
        """
        records = await TrackingStore(self._db).list_for_ride(ride.id)

        per_user: Dict[str, RideStats] = {}
        failures: List[str] = []
        for record in records:
            stats = await self._finalize_one(record, end_time)
            if stats is None:
                failures.append(record.user_id)
                stats = stored_stats(record.calculated_stats)
            per_user[record.user_id] = stats

        with store_errors("rollup"):
            for participant in ride.participants:
                if participant.user_id in per_user:
                    participant.ride_stats = per_user[participant.user_id].to_document()

            result = aggregate([
                per_user.get(user_id, RideStats()) for user_id in ride.approved_user_ids()
            ])
            ride.ride_stats = result.to_document()

            await log_event(
                self._db,
                action=AuditAction.RIDE_STATS_AGGREGATED,
                ride_id=ride.id,
                metadata={
                    "participants": len(ride.approved_user_ids()),
                    "tracked": len(records),
                    "failed": failures,
                },
            )
            await self._db.commit()

        logger.info(
            "Ride %s stats aggregated over %d participants (%d records, %d failed)",
            ride.id, len(ride.approved_user_ids()), len(records), len(failures)
        )
        return result

    async def _finalize_one(self, record: TrackingRecord, end_time: Optional[datetime]) -> Optional[RideStats]:
        try:
            async with self._session_factory() as session:
                return await TrackingStore(session).finalize(record.ride_id, record.user_id, end_time)
        except AppException as exc:
            logger.warning(
                "Finalizing tracking for user %s on ride %s failed: %s",
                record.user_id, record.ride_id, exc.message
            )
        except Exception:
            logger.exception(
                "Finalizing tracking for user %s on ride %s failed", record.user_id, record.ride_id
            )
        return None

    async def ride_summary(self, ride_id: str, actor_id: str):
        """
        Aggregate and per-participant statistics for a member of the ride.

        Completed rides report what the rollup stored; rides still in
        progress are aggregated on the fly from current tracking records.

        Returns:
            (ride, AggregateRideStats, {user_id: RideStats})
        """
        validate_object_id("ride ID", ride_id)
        ride = await load_ride(self._db, ride_id)
        ride_guard.require_member(ride, actor_id)

        records = await TrackingStore(self._db).list_for_ride(ride_id)
        per_user = {record.user_id: stored_stats(record.calculated_stats) for record in records}

        if ride.ride_stats:
            summary = AggregateRideStats.model_validate(ride.ride_stats)
        else:
            summary = aggregate([
                per_user.get(user_id, RideStats()) for user_id in ride.approved_user_ids()
            ])
        return ride, summary, per_user
