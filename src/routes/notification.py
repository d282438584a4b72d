"""
Notification Routes
In-app inbox: approval alerts and decision updates
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from src.config.database import get_db
from src.services.auth_service import auth_service
from src.services.notification_service import notification_service
from src.models.user import User
from src.utils.logger import setup_logger

logger = setup_logger()
router = APIRouter()


def _not_found():
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Notification not found"
    )


@router.get("/my-notifications")
async def get_my_notifications(
    unread_only: bool = False,
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Get current user's notifications

    **Parameters:**
    - unread_only: If True, only return unread notifications
    - skip / limit: Pagination

    Each notification includes the current type and status of its request.
    """
    total, notifications = notification_service.list_for_user(db, current_user.id, unread_only, skip, limit)
    unread_count = notification_service.unread_count(db, current_user.id)

    logger.debug(f"{current_user.username} fetched {len(notifications)} notification(s), {unread_count} unread")
    return {
        "success": True,
        "total": total,
        "unread_count": unread_count,
        "notifications": notifications
    }


@router.get("/unread-count")
async def get_unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Unread badge count, cheap enough for polling"""
    return {
        "success": True,
        "unread_count": notification_service.unread_count(db, current_user.id)
    }


@router.put("/mark-all-read")
async def mark_all_notifications_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    count = notification_service.mark_all_read(db, current_user.id)
    if count:
        logger.info(f"User {current_user.username} marked {count} notification(s) as read")
    return {
        "success": True,
        "message": "All notifications marked as read" if count else "No unread notifications to mark",
        "count": count
    }


@router.put("/{notification_id}/read")
async def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Mark one of your notifications as read"""
    changed = notification_service.mark_read(db, current_user.id, notification_id)
    if changed is None:
        raise _not_found()

    return {
        "success": True,
        "message": "Notification marked as read" if changed else "Notification was already marked as read"
    }


@router.delete("/clear-all")
async def clear_all_notifications(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Delete every notification of the current user"""
    count = notification_service.delete(db, current_user.id)
    logger.info(f"User {current_user.username} cleared {count} notification(s)")
    return {
        "success": True,
        "message": "All notifications cleared" if count else "No notifications to clear",
        "count": count
    }


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    if not notification_service.delete(db, current_user.id, notification_id):
        raise _not_found()

    return {
        "success": True,
        "message": "Notification deleted successfully"
    }
