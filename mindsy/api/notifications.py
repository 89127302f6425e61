"""User notification routes."""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from mindsy.auth.security import AuthenticatedUser, require_user
from mindsy.db.models import NotificationCategory, NotificationType
from mindsy.db.session import get_db
from mindsy.schemas.schemas import NotificationCreate
from mindsy.services.notifications import notification_service, notification_to_dict

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("", summary="List notifications", description="Newest first, with the unread count.")
async def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    unread: bool = Query(False, description="Only unread notifications"),
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
):
    notifications, unread_count = await notification_service.list_for_user(
        db, user.id, limit=limit, unread_only=unread
    )
    return {
        "data": {
            "notifications": [notification_to_dict(n) for n in notifications],
            "unread_count": unread_count,
        }
    }


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create a notification")
async def create_notification(
    body: NotificationCreate,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
):
    notification = await notification_service.create(
        db,
        user.id,
        title=body.title,
        message=body.message,
        type=NotificationType(body.type),
        category=NotificationCategory(body.category),
        related_id=body.related_id,
        related_type=body.related_type,
        action_url=body.action_url,
        metadata=body.metadata,
    )
    await db.commit()
    return {"data": {"notification": notification_to_dict(notification)}}


@router.post("/mark-all-read", summary="Mark every notification read")
async def mark_all_read(
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
):
    updated = await notification_service.mark_all_read(db, user.id)
    await db.commit()
    return {"data": {"success": True, "updated": updated}}


@router.patch("/{notification_id}/read", summary="Mark a notification read")
async def mark_read(
    notification_id: str,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
):
    notification = await notification_service.mark_read(db, user.id, notification_id)
    if notification is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    await db.commit()
    return {"data": {"notification": notification_to_dict(notification)}}


@router.delete("/{notification_id}", summary="Delete a notification")
async def delete_notification(
    notification_id: str,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
):
    if not await notification_service.delete(db, user.id, notification_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    await db.commit()
    return {"data": {"success": True}}
