from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from portal import crud, models, schemas
from portal.auth import get_current_user, require_admin
from portal.database import get_db
from portal.notification_service import NotificationService
from portal.utils import Pagination, success

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


def _own_live_notifications(user: models.User):
    return select(models.Notification).filter(
        models.Notification.recipient_id == user.id,
        or_(models.Notification.expires_at.is_(None), models.Notification.expires_at > datetime.utcnow()),
    )


async def _unread_count(db: AsyncSession, user: models.User) -> int:
    return await crud.count(db, _own_live_notifications(user).filter(models.Notification.is_read.is_(False)))


@router.get("", summary="Get my notifications")
async def get_notifications(
    pagination: Pagination = Depends(),
    unread_only: bool = Query(False, alias="unreadOnly"),
    type: Optional[schemas.NotificationType] = None,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Async: Returns the current user's notifications, newest first.
    Supports filtering by read state and type.
    """
    stmt = _own_live_notifications(current_user)
    if unread_only:
        stmt = stmt.filter(models.Notification.is_read.is_(False))
    if type:
        stmt = stmt.filter(models.Notification.type == type.value)
    total = await crud.count(db, stmt)
    result = await db.execute(
        stmt.order_by(models.Notification.created_at.desc(), models.Notification.id.desc())
        .offset(pagination.offset).limit(pagination.limit)
    )
    items = [schemas.NotificationResponse.model_validate(n) for n in result.scalars().all()]
    return success({
        "notifications": items,
        "pagination": pagination.meta(total),
        "unreadCount": await _unread_count(db, current_user),
    })


@router.get("/unread-count", summary="Unread notification count")
async def unread_count(db: AsyncSession = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    return success({"unreadCount": await _unread_count(db, current_user)})


@router.put("/read-all", summary="Mark all notifications as read")
async def mark_all_read(db: AsyncSession = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    result = await db.execute(
        update(models.Notification)
        .where(models.Notification.recipient_id == current_user.id, models.Notification.is_read.is_(False))
        .values(is_read=True, read_at=datetime.utcnow())
    )
    await db.commit()
    return success({"updated": result.rowcount or 0}, message="All notifications marked as read")


async def _own_notification(db: AsyncSession, notification_id: int, user: models.User) -> models.Notification:
    result = await db.execute(
        select(models.Notification).filter(
            models.Notification.id == notification_id, models.Notification.recipient_id == user.id
        )
    )
    notification = result.scalars().first()
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification


@router.put("/{notification_id}/read", summary="Mark a notification as read")
async def mark_read(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    notification = await _own_notification(db, notification_id, current_user)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.utcnow()
        await db.commit()
    return success({"notification": schemas.NotificationResponse.model_validate(notification)})


@router.delete("/{notification_id}", summary="Delete a notification")
async def delete_notification(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    notification = await _own_notification(db, notification_id, current_user)
    await db.delete(notification)
    await db.commit()
    return success(message="Notification deleted")


@router.post("/announcements", status_code=status.HTTP_201_CREATED, summary="Send a system announcement")
async def send_announcement(
    payload: schemas.AnnouncementCreate,
    db: AsyncSession = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    stmt = select(models.User).filter(models.User.is_active.is_(True), models.User.approval_status == "approved")
    if payload.recipient_ids:
        stmt = stmt.filter(models.User.id.in_(payload.recipient_ids))
    result = await db.execute(stmt)
    recipients = result.scalars().all()
    created = await NotificationService.system_announcement(
        db, recipients, payload.title, payload.message, admin, payload.priority, payload.send_email
    )
    await db.commit()
    return success({"recipients": len(created)}, message="Announcement sent")
