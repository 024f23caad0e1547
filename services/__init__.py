from .notification_service import NotificationService, notification_service

__all__ = ["NotificationService", "notification_service"]
