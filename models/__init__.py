from .profile import Profile, Role
from .warehouse import Warehouse, UnitOfMeasurement
from .farm import Farmer, Farm
from .crop_batch import CropBatch, BatchStatus, StockRequirement
from .transport import (
    Driver, Vehicle, TransportTask, TransportIssue,
    DriverStatus, VehicleType, VehicleStatus, TransportStatus, IssueType, IssueStatus,
)
from .notification import Notification, NotificationType, NotificationCategory, NotificationPriority
from .audit import ActivityLog

__all__ = [
    "Profile", "Role", "Warehouse", "UnitOfMeasurement", "Farmer", "Farm",
    "CropBatch", "BatchStatus", "StockRequirement", "Driver", "Vehicle",
    "TransportTask", "TransportIssue", "DriverStatus", "VehicleType",
    "VehicleStatus", "TransportStatus", "IssueType", "IssueStatus",
    "Notification", "NotificationType", "NotificationCategory",
    "NotificationPriority", "ActivityLog"
]
