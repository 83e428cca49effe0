"""
Notification outbox model.

Rows are written in the same transaction as the ride state change that
produced them; a separate delivery worker turns them into push messages.
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON, Enum
from sqlalchemy.sql import func
from convoy.app.db.session import Base
import enum


class NotificationType(str, enum.Enum):
    INFO = "INFO"
    RIDE_STARTED = "NOTIFICATION__RIDE_STARTED"
    RIDE_COMPLETED = "NOTIFICATION__RIDE_COMPLETED"
    RIDE_CANCELLED = "NOTIFICATION__RIDE_CANCELLED"


class Notification(Base):
    """
    Pending in-app / push notification for one user.
    """
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Recipient
    user_id = Column(String(24), ForeignKey("users.id"), nullable=False, index=True)

    # Content
    type = Column(Enum(NotificationType), default=NotificationType.INFO, nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    metadata_payload = Column(JSON, nullable=True)

    # Delivery state
    is_dispatched = Column(Boolean, default=False, nullable=False, index=True)
    dispatched_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Notification(id={self.id}, user={self.user_id}, type='{self.type.value}')>"
