"""
Tracking Store.

Durable per-(ride, user) tracking records. Every mutation runs under the
key's lock and a row lock, writes the path first and then refreshes the
derived statistics, so a record's stats always describe its current path.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from convoy.app.core.exceptions import (
    InvalidTransitionError, TrackingNotActiveError, TrackingNotFoundError
)
from convoy.app.db.errors import store_errors
from convoy.app.domain.tracking.statistics import PathSample, RideStats, compute_stats
from convoy.app.models.enums import TrackingStatus
from convoy.app.models.identifiers import utc_now
from convoy.app.models.ride_tracking import EMPTY_STATS, TrackingRecord, TrackingSample
from convoy.app.services.keyed_lock import KeyedLock, tracking_locks

logger = logging.getLogger("convoy.tracking")


ALLOWED_TRANSITIONS = {
    TrackingStatus.ACTIVE: {TrackingStatus.PAUSED, TrackingStatus.COMPLETED, TrackingStatus.STOPPED},
    TrackingStatus.PAUSED: {TrackingStatus.ACTIVE, TrackingStatus.COMPLETED, TrackingStatus.STOPPED},
    TrackingStatus.COMPLETED: set(),
    TrackingStatus.STOPPED: set(),
}


def _conditional_insert(dialect_name: str):
    """INSERT ... ON CONFLICT DO NOTHING for dialects that have it."""
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
        return insert
    if dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
        return insert
    return None


class TrackingStore:
    """
    Tracking record repository bound to one session.

    Usage:
        store = TrackingStore(db)
        record = await store.upsert_sample(ride_id, user_id, sample)
    """

    def __init__(self, db: AsyncSession, locks: KeyedLock = tracking_locks):
        self._db = db
        self._locks = locks

    async def upsert_sample(self, ride_id: str, user_id: str, sample: PathSample) -> TrackingRecord:
        """
        Append a sample to the (ride, user) path, creating the record if absent.

        The last known position follows call order, not timestamp order.

        Raises:
            TrackingNotActiveError: record exists but is paused or finished
            StoreUnavailableError: database unreachable
        """
        longitude, latitude = sample.coordinates

        async with self._locks.hold((ride_id, user_id)):
            with store_errors("upsert_sample"):
                record = await self._initialize_if_absent(ride_id, user_id)

                current = record.tracking_status
                if current != TrackingStatus.ACTIVE:
                    await self._db.rollback()
                    raise TrackingNotActiveError(current.value)

                record.samples.append(TrackingSample(
                    timestamp=sample.timestamp,
                    longitude=longitude,
                    latitude=latitude,
                    speed=sample.speed,
                    heading=sample.heading,
                ))
                record.last_longitude = longitude
                record.last_latitude = latitude
                record.last_position_at = sample.timestamp
                await self._db.flush()

                record.calculated_stats = compute_stats(record.samples).to_document()
                await self._db.commit()
                await self._db.refresh(record)

        return record

    async def set_status(
        self,
        ride_id: str,
        user_id: str,
        status: TrackingStatus,
        end_time: Optional[datetime] = None
    ) -> TrackingRecord:
        """
        Move a tracking record to a new status.

        Terminal statuses (completed, stopped) stamp `end_time`.

        Raises:
            TrackingNotFoundError: no record for the pair
            InvalidTransitionError: transition not allowed from the current status
        """
        async with self._locks.hold((ride_id, user_id)):
            with store_errors("set_status"):
                record = await self._lock_record(ride_id, user_id)
                if record is None:
                    await self._db.rollback()
                    raise TrackingNotFoundError(ride_id, user_id)

                current = record.tracking_status
                if status not in ALLOWED_TRANSITIONS[current]:
                    await self._db.rollback()
                    raise InvalidTransitionError(current.value, status.value)

                record.tracking_status = status
                if status.is_terminal:
                    record.end_time = end_time or utc_now()
                if record.samples:
                    record.calculated_stats = compute_stats(record.samples).to_document()

                await self._db.commit()
                await self._db.refresh(record)

        logger.info(
            "Tracking %s -> %s for user %s on ride %s",
            current.value, status.value, user_id, ride_id
        )
        return record

    async def finalize(self, ride_id: str, user_id: str, end_time: Optional[datetime] = None) -> RideStats:
        """
        Recompute a record's stats one last time and close it as completed.

        Records already stopped keep their status; only their stats are refreshed.
        """
        async with self._locks.hold((ride_id, user_id)):
            with store_errors("finalize"):
                record = await self._lock_record(ride_id, user_id)
                if record is None:
                    await self._db.rollback()
                    raise TrackingNotFoundError(ride_id, user_id)

                stats = compute_stats(record.samples)
                record.calculated_stats = stats.to_document()
                if not record.tracking_status.is_terminal:
                    record.tracking_status = TrackingStatus.COMPLETED
                    record.end_time = end_time or utc_now()

                await self._db.commit()

        return stats

    async def get(self, ride_id: str, user_id: str) -> TrackingRecord:
        """
        Raises:
            TrackingNotFoundError: no record for the pair
        """
        with store_errors("get"):
            result = await self._db.execute(
                select(TrackingRecord).where(
                    TrackingRecord.ride_id == ride_id,
                    TrackingRecord.user_id == user_id
                )
            )
            record = result.scalar_one_or_none()

        if record is None:
            raise TrackingNotFoundError(ride_id, user_id)
        return record

    async def list_for_ride(self, ride_id: str) -> List[TrackingRecord]:
        with store_errors("list_for_ride"):
            result = await self._db.execute(
                select(TrackingRecord)
                .where(TrackingRecord.ride_id == ride_id)
                .order_by(TrackingRecord.created_at, TrackingRecord.id)
            )
            return list(result.scalars().all())

    async def _lock_record(self, ride_id: str, user_id: str) -> Optional[TrackingRecord]:
        result = await self._db.execute(
            select(TrackingRecord)
            .where(TrackingRecord.ride_id == ride_id, TrackingRecord.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _initialize_if_absent(self, ride_id: str, user_id: str) -> TrackingRecord:
        """
        Return the locked record for the pair, inserting an active one first if needed.

        The insert is a conditional insert keyed on the (ride, user) unique
        constraint, so two processes racing on the first sample both end up
        reading the same row.
        """
        record = await self._lock_record(ride_id, user_id)
        if record is not None:
            return record

        values = {
            "ride_id": ride_id,
            "user_id": user_id,
            "tracking_status": TrackingStatus.ACTIVE,
            "start_time": utc_now(),
            "calculated_stats": dict(EMPTY_STATS),
        }

        insert = _conditional_insert(self._db.get_bind().dialect.name)
        if insert is not None:
            await self._db.execute(
                insert(TrackingRecord)
                .values(**values)
                .on_conflict_do_nothing(index_elements=["ride_id", "user_id"])
            )
        else:
            try:
                async with self._db.begin_nested():
                    self._db.add(TrackingRecord(**values))
            except IntegrityError:
                logger.debug("Tracking record for %s/%s created concurrently", ride_id, user_id)

        record = await self._lock_record(ride_id, user_id)
        logger.info("Tracking started for user %s on ride %s", user_id, ride_id)
        return record
