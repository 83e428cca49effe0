"""
Audit logging service for ride lifecycle and tracking events.

Events are added to the caller's transaction and flushed, never committed
here, so an audit row exists exactly when the change it describes does.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from convoy.app.models.audit_log import AuditLog


class AuditAction:
    """Standardized audit action constants."""
    RIDE_STARTED = "RIDE_STARTED"
    RIDE_COMPLETED = "RIDE_COMPLETED"
    RIDE_CANCELLED = "RIDE_CANCELLED"
    RIDE_STATS_AGGREGATED = "RIDE_STATS_AGGREGATED"
    TRACKING_STATUS_CHANGED = "TRACKING_STATUS_CHANGED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[str] = None,
    ride_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Record an event in the current transaction.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_id: ID of user performing the action, None for the system
        ride_id: Ride the event concerns
        metadata: Additional context as JSON

    Returns:
        Pending AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        action=action,
        ride_id=ride_id,
        meta_data=metadata,
    )
    db.add(audit_log)
    await db.flush()
    return audit_log


async def get_ride_audit_trail(
    db: AsyncSession,
    ride_id: str,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Events for one ride, most recent first.
    """
    query = select(AuditLog).where(AuditLog.ride_id == ride_id)
    if action:
        query = query.where(AuditLog.action == action)
    query = query.order_by(desc(AuditLog.timestamp), desc(AuditLog.id)).limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())
