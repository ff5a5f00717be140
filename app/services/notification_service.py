"""
In-app notification service
Writes rows to user_notifications for workflow events (booking actions,
milestone approvals). Rows are added to the caller's session so they commit
together with the change that triggered them.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models import UserNotification

logger = logging.getLogger(__name__)


def create_notification(
    db: Session,
    user_id: str,
    notification_type: str,
    title: str,
    message: Optional[str] = None,
    data: Optional[dict] = None,
    priority: str = "normal",
) -> UserNotification:
    """Queue a notification for a user on the current session"""
    notification = UserNotification(
        user_id=user_id,
        type=notification_type,
        title=title,
        message=message,
        data=data or {},
        priority=priority,
    )
    db.add(notification)
    logger.info(f"🔔 Queued {notification_type} notification for user {user_id}")
    return notification


def get_notifications(db: Session, user_id: str, unread_only: bool = False, limit: int = 50):
    query = db.query(UserNotification).filter(UserNotification.user_id == user_id)
    if unread_only:
        query = query.filter(UserNotification.is_read.is_(False))
    return query.order_by(UserNotification.created_at.desc()).limit(limit).all()


def mark_as_read(db: Session, user_id: str, notification_id: str) -> Optional[UserNotification]:
    notification = (
        db.query(UserNotification)
        .filter(UserNotification.id == notification_id, UserNotification.user_id == user_id)
        .first()
    )
    if not notification:
        return None
    notification.is_read = True
    db.commit()
    db.refresh(notification)
    return notification


def mark_all_as_read(db: Session, user_id: str) -> int:
    updated = (
        db.query(UserNotification)
        .filter(UserNotification.user_id == user_id, UserNotification.is_read.is_(False))
        .update({UserNotification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    logger.info(f"✅ Marked {updated} notifications read for user {user_id}")
    return updated
