# counsel_intake/api/notifications.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from counsel_intake.auth.permissions import AuthContext, get_auth_context
from counsel_intake.core.db import get_db
from counsel_intake.models.schemas import NotificationOut
from counsel_intake.services import notification_service

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationOut])
def list_notifications(
    unread: bool = False,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    return notification_service.list_notifications(db, auth.user_id, unread_only=unread)


@router.put("/{notification_id}/read", response_model=NotificationOut)
def mark_read(notification_id: int, auth: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    return notification_service.mark_read(db, auth.user_id, notification_id)


@router.delete("/{notification_id}")
def delete_notification(notification_id: int, auth: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    notification_service.delete_notification(db, auth.user_id, notification_id)
    return {"success": True, "message": "Notification deleted"}
