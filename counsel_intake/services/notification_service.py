# counsel_intake/services/notification_service.py
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from counsel_intake.core.errors import NotFoundError, ValidationError
from counsel_intake.models.orm import NOTIFICATION_TYPES, Notification

logger = logging.getLogger("intake.notifications")


def create_notification(
    db: Session,
    user_id: int,
    message: str,
    type: str = "info",
    link: Optional[str] = None,
) -> Notification:
    """
    Queue a notification in the caller's transaction; it is stored when the
    caller commits, together with the change it announces.
    """
    if type not in NOTIFICATION_TYPES:
        raise ValidationError(f"Unknown notification type: {type}")
    n = Notification(user_id=user_id, message=message, type=type, link=link)
    db.add(n)
    db.flush()
    logger.info("Notification user_id=%s type=%s", user_id, type)
    return n


def list_notifications(db: Session, user_id: int, unread_only: bool = False) -> List[Notification]:
    q = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        q = q.where(Notification.read.is_(False))
    return list(db.scalars(q.order_by(Notification.created_at.desc(), Notification.id.desc())))


def _get_owned(db: Session, user_id: int, notification_id: int) -> Notification:
    n = db.get(Notification, notification_id)
    if not n or n.user_id != user_id:
        raise NotFoundError("Notification not found")
    return n


def mark_read(db: Session, user_id: int, notification_id: int) -> Notification:
    n = _get_owned(db, user_id, notification_id)
    n.read = True
    db.commit()
    db.refresh(n)
    return n


def delete_notification(db: Session, user_id: int, notification_id: int) -> None:
    n = _get_owned(db, user_id, notification_id)
    db.delete(n)
    db.commit()
