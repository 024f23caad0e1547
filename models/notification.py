from sqlalchemy import Column, Text, Boolean, DateTime, Enum, func
from sqlalchemy.dialects.postgresql import UUID
from database import Base, JSONType
import enum
import uuid

class NotificationType(str, enum.Enum):
    HARVEST_READY = "HARVEST_READY"
    BATCH_APPROVED = "BATCH_APPROVED"
    BATCH_REJECTED = "BATCH_REJECTED"
    TRANSPORT_REQUESTED = "TRANSPORT_REQUESTED"
    TASK_ASSIGNED = "TASK_ASSIGNED"
    PICKUP_READY = "PICKUP_READY"
    SHIPMENT_ARRIVING = "SHIPMENT_ARRIVING"
    DELIVERY_CONFIRMED = "DELIVERY_CONFIRMED"
    BATCH_RECEIVED = "BATCH_RECEIVED"
    BATCH_STORED = "BATCH_STORED"
    ISSUE_REPORTED = "ISSUE_REPORTED"
    LOW_STOCK = "LOW_STOCK"
    GENERAL = "GENERAL"

class NotificationCategory(str, enum.Enum):
    CROP_MANAGEMENT = "CROP_MANAGEMENT"
    PROCUREMENT = "PROCUREMENT"
    TRANSPORT = "TRANSPORT"
    WAREHOUSE = "WAREHOUSE"
    SYSTEM = "SYSTEM"

class NotificationPriority(str, enum.Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Auth provider user id of the recipient
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    notification_type = Column(Enum(NotificationType, name="notification_type", native_enum=False), nullable=False)
    category = Column(Enum(NotificationCategory, name="notification_category", native_enum=False), nullable=False, index=True)
    priority = Column(Enum(NotificationPriority, name="notification_priority", native_enum=False), default=NotificationPriority.NORMAL)
    title = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    meta = Column("metadata", JSONType)
    action_url = Column(Text)
    is_read = Column(Boolean, default=False, index=True)
    read_at = Column(DateTime(timezone=True))
    created_by = Column(UUID(as_uuid=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
