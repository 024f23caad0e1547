from typing import Iterable, List, Optional
from sqlalchemy.orm import Session
from models import (
    Notification, NotificationCategory, NotificationPriority, NotificationType,
    Profile, Role,
)
from config import settings
from utils.errors import ResourceNotFound
from datetime import datetime, timezone
import logging
import uuid

logger = logging.getLogger(__name__)

class NotificationService:
    """
    In-app notification rows for batch and transport events.

    Creation helpers write one row per recipient. Callers reach them through
    ``fan_out`` so that a failed notification never aborts the transition that
    triggered it.
    """

    def create_notification(
        self,
        db: Session,
        user_id: uuid.UUID,
        notification_type: NotificationType,
        category: NotificationCategory,
        title: str,
        message: str,
        metadata: Optional[dict] = None,
        action_url: Optional[str] = None,
        priority: NotificationPriority = NotificationPriority.NORMAL,
        created_by: Optional[uuid.UUID] = None,
    ) -> Notification:
        """Create a single in-app notification"""
        notification = Notification(
            user_id=user_id,
            notification_type=notification_type,
            category=category,
            priority=priority,
            title=title,
            message=message,
            meta=metadata,
            action_url=action_url,
            created_by=created_by,
        )
        db.add(notification)
        db.commit()
        db.refresh(notification)
        return notification

    def create_bulk(
        self,
        db: Session,
        user_ids: Iterable[uuid.UUID],
        notification_type: NotificationType,
        category: NotificationCategory,
        title: str,
        message: str,
        metadata: Optional[dict] = None,
        action_url: Optional[str] = None,
        priority: NotificationPriority = NotificationPriority.NORMAL,
        created_by: Optional[uuid.UUID] = None,
    ) -> int:
        """Create one notification per distinct recipient, in one commit"""
        recipients = list(dict.fromkeys(user_ids))
        for user_id in recipients:
            db.add(Notification(
                user_id=user_id,
                notification_type=notification_type,
                category=category,
                priority=priority,
                title=title,
                message=message,
                meta=metadata,
                action_url=action_url,
                created_by=created_by,
            ))
        db.commit()
        return len(recipients)

    def active_user_ids(
        self,
        db: Session,
        role: Role,
        warehouse_id: Optional[uuid.UUID] = None,
    ) -> List[uuid.UUID]:
        query = db.query(Profile.user_id).filter(
            Profile.role == role,
            Profile.is_active.is_(True),
        )
        if warehouse_id:
            query = query.filter(Profile.warehouse_id == warehouse_id)
        return [row.user_id for row in query.all()]

    def notify_role(
        self,
        db: Session,
        role: Role,
        notification_type: NotificationType,
        category: NotificationCategory,
        title: str,
        message: str,
        metadata: Optional[dict] = None,
        warehouse_id: Optional[uuid.UUID] = None,
        **kwargs,
    ) -> int:
        """Notify every active profile holding ``role`` (optionally one warehouse's staff)"""
        user_ids = self.active_user_ids(db, role, warehouse_id=warehouse_id)
        if not user_ids:
            return 0
        return self.create_bulk(
            db, user_ids, notification_type, category, title, message,
            metadata=metadata, **kwargs
        )

    def notify_users(
        self,
        db: Session,
        user_ids: Iterable[Optional[uuid.UUID]],
        notification_type: NotificationType,
        category: NotificationCategory,
        title: str,
        message: str,
        metadata: Optional[dict] = None,
        **kwargs,
    ) -> int:
        recipients = [u for u in user_ids if u]
        if not recipients:
            return 0
        return self.create_bulk(
            db, recipients, notification_type, category, title, message,
            metadata=metadata, **kwargs
        )

    def fan_out(self, db: Session, send, *args, **kwargs) -> int:
        """
        Run a notification helper best-effort.

        Returns the number of rows written; a failure is rolled back, logged
        and reported as 0.
        """
        try:
            return send(db, *args, **kwargs)
        except Exception as e:
            db.rollback()
            logger.warning(f"⚠️ Notification fan-out failed ({getattr(send, '__name__', send)}): {str(e)}")
            return 0

    # ========================================================================
    # RECIPIENT SIDE
    # ========================================================================

    def list_for_user(
        self,
        db: Session,
        user_id: uuid.UUID,
        category: Optional[NotificationCategory] = None,
        unread_only: bool = False,
    ) -> List[Notification]:
        query = db.query(Notification).filter(Notification.user_id == user_id)
        if category:
            query = query.filter(Notification.category == category)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return (
            query.order_by(Notification.created_at.desc())
            .limit(settings.NOTIFICATION_PAGE_SIZE)
            .all()
        )

    def unread_count(
        self,
        db: Session,
        user_id: uuid.UUID,
        category: Optional[NotificationCategory] = None,
    ) -> int:
        query = db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        )
        if category:
            query = query.filter(Notification.category == category)
        return query.count()

    def mark_read(self, db: Session, user_id: uuid.UUID, notification_id: uuid.UUID) -> None:
        updated = (
            db.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == user_id)
            .update(
                {"is_read": True, "read_at": datetime.now(timezone.utc)},
                synchronize_session=False,
            )
        )
        if updated == 0:
            db.rollback()
            raise ResourceNotFound("Notification not found")
        db.commit()

    def mark_all_read(
        self,
        db: Session,
        user_id: uuid.UUID,
        category: Optional[NotificationCategory] = None,
    ) -> int:
        query = db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        )
        if category:
            query = query.filter(Notification.category == category)
        updated = query.update(
            {"is_read": True, "read_at": datetime.now(timezone.utc)},
            synchronize_session=False,
        )
        db.commit()
        return updated

    def delete(self, db: Session, user_id: uuid.UUID, notification_id: uuid.UUID) -> None:
        deleted = (
            db.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == user_id)
            .delete(synchronize_session=False)
        )
        if deleted == 0:
            db.rollback()
            raise ResourceNotFound("Notification not found")
        db.commit()

notification_service = NotificationService()
