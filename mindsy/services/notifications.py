"""User notification records."""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mindsy.db.models import Notification, NotificationCategory, NotificationType

logger = logging.getLogger(__name__)


def notification_to_dict(notification: Notification) -> dict:
    return {
        "id": notification.id,
        "title": notification.title,
        "message": notification.message,
        "type": notification.type.value,
        "category": notification.category.value,
        "read": notification.read,
        "related_id": notification.related_id,
        "related_type": notification.related_type,
        "action_url": notification.action_url,
        "metadata": notification.notification_metadata or {},
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
        "updated_at": notification.updated_at.isoformat() if notification.updated_at else None,
    }


class NotificationService:
    """Service for creating and reading notifications."""

    async def create(
        self,
        db: AsyncSession,
        user_id: str,
        title: str,
        message: Optional[str] = None,
        type: NotificationType = NotificationType.INFO,
        category: NotificationCategory = NotificationCategory.GENERAL,
        related_id: Optional[str] = None,
        related_type: Optional[str] = None,
        action_url: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            category=category,
            related_id=related_id,
            related_type=related_type,
            action_url=action_url,
            notification_metadata=metadata or {},
        )
        db.add(notification)
        await db.flush()
        return notification

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        limit: int = 50,
        unread_only: bool = False,
    ) -> tuple[list[Notification], int]:
        """
        Newest notifications for a user.

        Returns:
            Tuple of (notifications, unread_count)
        """
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.read.is_(False))
        result = await db.execute(query.order_by(Notification.created_at.desc()).limit(limit))

        unread = await db.execute(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
        )
        return list(result.scalars().all()), unread.scalar() or 0

    async def mark_read(self, db: AsyncSession, user_id: str, notification_id: str) -> Optional[Notification]:
        result = await db.execute(
            select(Notification).where(
                Notification.id == notification_id, Notification.user_id == user_id
            )
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            return None
        notification.read = True
        notification.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return notification

    async def mark_all_read(self, db: AsyncSession, user_id: str) -> int:
        result = await db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True, updated_at=datetime.now(timezone.utc))
        )
        return result.rowcount or 0

    async def delete(self, db: AsyncSession, user_id: str, notification_id: str) -> bool:
        result = await db.execute(
            delete(Notification).where(
                Notification.id == notification_id, Notification.user_id == user_id
            )
        )
        return bool(result.rowcount)

    async def notify_job_finished(
        self,
        db: AsyncSession,
        user_id: str,
        job_id: str,
        lecture_title: str,
        error: Optional[str] = None,
    ) -> bool:
        """Best-effort notification for a finished pipeline run. Returns success."""
        if error is None:
            title = "Notes ready"
            message = f'Your notes for "{lecture_title}" are ready.'
            kind = NotificationType.SUCCESS
        else:
            title = "Processing failed"
            message = f'We could not process "{lecture_title}": {error}'
            kind = NotificationType.ERROR

        try:
            await self.create(
                db,
                user_id=user_id,
                title=title,
                message=message,
                type=kind,
                category=NotificationCategory.LECTURE,
                related_id=job_id,
                related_type="job",
                action_url=f"/dashboard/notes/{job_id}",
            )
            await db.commit()
            return True
        except Exception as e:
            logger.warning(f"Could not record notification for job {job_id}: {e}")
            await db.rollback()
            return False


# Singleton instance
notification_service = NotificationService()
