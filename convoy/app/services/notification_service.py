"""
Notification Service.

Writes notification outbox rows for ride participants. Delivery (push,
in-app) happens elsewhere; rows are only flushed here so they commit or
roll back together with the ride change that caused them.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional, Dict, Any, Iterable, List

from convoy.app.models.notification import Notification, NotificationType


class NotificationService:

    @staticmethod
    async def notify_participants(
        db: AsyncSession,
        user_ids: Iterable[str],
        title: str,
        message: str,
        type: NotificationType,
        metadata: Optional[Dict[str, Any]] = None,
        exclude: Optional[str] = None
    ) -> int:
        """
        Queue the same notification for every listed user except `exclude`.

        Returns:
            Number of notifications queued
        """
        notifications = [
            Notification(
                user_id=uid,
                title=title,
                message=message,
                type=type,
                metadata_payload=metadata
            )
            for uid in dict.fromkeys(user_ids)
            if uid != exclude
        ]

        if notifications:
            db.add_all(notifications)
            await db.flush()

        return len(notifications)

    @staticmethod
    async def pending_for_user(db: AsyncSession, user_id: str) -> List[Notification]:
        """Undispatched notifications for a user, oldest first."""
        result = await db.execute(
            select(Notification)
            .where(Notification.user_id == user_id, Notification.is_dispatched.is_(False))
            .order_by(Notification.created_at, Notification.id)
        )
        return list(result.scalars().all())
