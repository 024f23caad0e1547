# routes/notifications.py
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from models import NotificationCategory
from schemas import NotificationOut, dump_all
from services.notification_service import notification_service
from utils.permissions import AuthContext, get_auth_context

router = APIRouter()

@router.get("")
async def get_notifications(
    category: Optional[NotificationCategory] = Query(None),
    unread_only: bool = Query(False),
    db: Session = Depends(get_db),
    context: AuthContext = Depends(get_auth_context),
):
    """Get the caller's notifications, newest first"""
    notifications = notification_service.list_for_user(
        db, context.user_id, category=category, unread_only=unread_only
    )
    return {
        "success": True,
        "notifications": dump_all(NotificationOut, notifications),
        "unread": notification_service.unread_count(db, context.user_id, category=category),
    }

@router.get("/unread-count")
async def get_unread_count(
    category: Optional[NotificationCategory] = Query(None),
    db: Session = Depends(get_db),
    context: AuthContext = Depends(get_auth_context),
):
    return {"success": True, "count": notification_service.unread_count(db, context.user_id, category=category)}

@router.post("/read-all")
async def mark_all_read(
    category: Optional[NotificationCategory] = Query(None),
    db: Session = Depends(get_db),
    context: AuthContext = Depends(get_auth_context),
):
    updated = notification_service.mark_all_read(db, context.user_id, category=category)
    return {"success": True, "message": f"Marked {updated} notification(s) as read", "updated": updated}

@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: UUID,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(get_auth_context),
):
    notification_service.mark_read(db, context.user_id, notification_id)
    return {"success": True, "message": "Notification marked as read"}

@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: UUID,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(get_auth_context),
):
    notification_service.delete(db, context.user_id, notification_id)
    return {"success": True, "message": "Notification deleted"}
