from datetime import date, datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from models import (
    BatchStatus, DriverStatus, IssueStatus, IssueType, NotificationCategory,
    NotificationPriority, NotificationType, Role, TransportStatus,
    VehicleStatus, VehicleType,
)

class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

class ProfileOut(ORMModel):
    id: UUID
    user_id: UUID
    email: str
    name: Optional[str] = None
    role: Role
    warehouse_id: Optional[UUID] = None
    is_active: bool

class WarehouseOut(ORMModel):
    id: UUID
    name: str
    code: str
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    capacity: Optional[int] = None
    is_active: bool

class UnitOut(ORMModel):
    id: UUID
    name: str
    code: str
    category: str
    base_unit: Optional[str] = None
    conversion_factor: Optional[float] = None
    is_active: bool

class FarmerOut(ORMModel):
    id: UUID
    farmer_code: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    is_active: bool

class FarmOut(ORMModel):
    id: UUID
    farm_code: str
    name: str
    farmer_id: UUID
    location: Optional[str] = None
    region: Optional[str] = None
    coordinates: Optional[str] = None
    area: Optional[float] = None
    soil_type: Optional[str] = None
    is_active: bool

class BatchOut(ORMModel):
    id: UUID
    batch_code: str
    qr_code: Optional[str] = None
    crop_type: str
    variety: Optional[str] = None
    quantity: Optional[float] = None
    unit: Optional[str] = None
    status: BatchStatus
    planting_date: Optional[date] = None
    expected_harvest: Optional[date] = None
    actual_harvest: Optional[datetime] = None
    notes: Optional[str] = None
    received_quantity: Optional[float] = None
    storage_location: Optional[str] = None
    approval_data: Optional[Dict[str, Any]] = None
    warehouse_id: Optional[UUID] = None
    farm_id: UUID
    farmer_id: UUID
    created_by: Optional[UUID] = None
    updated_at: Optional[datetime] = None

class DriverOut(ORMModel):
    id: UUID
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    license_number: str
    status: DriverStatus
    profile_id: Optional[UUID] = None

class VehicleOut(ORMModel):
    id: UUID
    plate_number: str
    vehicle_type: VehicleType
    capacity: float
    status: VehicleStatus

class TaskOut(ORMModel):
    id: UUID
    crop_batch_id: UUID
    driver_id: Optional[UUID] = None
    vehicle_id: Optional[UUID] = None
    coordinator_id: UUID
    status: TransportStatus
    scheduled_date: datetime
    actual_pickup_date: Optional[datetime] = None
    actual_delivery_date: Optional[datetime] = None
    pickup_location: str
    delivery_location: str
    notes: Optional[str] = None

class IssueOut(ORMModel):
    id: UUID
    transport_task_id: UUID
    issue_type: IssueType
    status: IssueStatus
    description: str
    resolution: Optional[str] = None
    reported_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

class NotificationOut(ORMModel):
    id: UUID
    user_id: UUID
    notification_type: NotificationType
    category: NotificationCategory
    priority: Optional[NotificationPriority] = None
    title: str
    message: str
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="meta")
    action_url: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

class ActivityLogOut(ORMModel):
    id: UUID
    user_id: Optional[UUID] = None
    action: str
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    details: Optional[Any] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: Optional[datetime] = None

class StockRequirementOut(ORMModel):
    crop_type: str
    min_stock: float
    unit: Optional[str] = None

def dump(schema, obj) -> dict:
    """Serialize an ORM row through its response schema into JSON-safe data"""
    return schema.model_validate(obj).model_dump(mode="json")

def dump_all(schema, rows) -> list:
    return [dump(schema, row) for row in rows]
