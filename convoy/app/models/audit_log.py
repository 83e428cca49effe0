"""
Audit Log Database Model.

Tracks ride lifecycle and tracking session events.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from convoy.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - RIDE_STARTED / RIDE_COMPLETED / RIDE_CANCELLED
    - RIDE_STATS_AGGREGATED
    - TRACKING_STATUS_CHANGED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(String(24), index=True, nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Which ride it concerns
    ride_id = Column(String(24), index=True, nullable=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_id}, ride={self.ride_id})>"
