from sqlalchemy import Column, String, Text, Numeric, DateTime, Enum, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy import ForeignKey
from sqlalchemy.orm import relationship
from database import Base
import enum
import uuid

class DriverStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    ON_DUTY = "ON_DUTY"
    OFF_DUTY = "OFF_DUTY"
    SICK_LEAVE = "SICK_LEAVE"

class VehicleType(str, enum.Enum):
    TRUCK = "TRUCK"
    VAN = "VAN"
    PICKUP = "PICKUP"
    REFRIGERATED_TRUCK = "REFRIGERATED_TRUCK"
    CONTAINER_TRUCK = "CONTAINER_TRUCK"

class VehicleStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    IN_USE = "IN_USE"
    MAINTENANCE = "MAINTENANCE"
    OUT_OF_SERVICE = "OUT_OF_SERVICE"

class TransportStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    DELAYED = "DELAYED"
    CANCELLED = "CANCELLED"

class IssueType(str, enum.Enum):
    VEHICLE_BREAKDOWN = "VEHICLE_BREAKDOWN"
    TRAFFIC_DELAY = "TRAFFIC_DELAY"
    WEATHER_DELAY = "WEATHER_DELAY"
    DAMAGED_GOODS = "DAMAGED_GOODS"
    ROUTE_CHANGE = "ROUTE_CHANGE"
    OTHER = "OTHER"

class IssueStatus(str, enum.Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    ESCALATED = "ESCALATED"

class Driver(Base):
    __tablename__ = "drivers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    email = Column(Text, index=True)
    phone = Column(Text)
    license_number = Column(String, unique=True, nullable=False)
    status = Column(Enum(DriverStatus, name="driver_status", native_enum=False), default=DriverStatus.AVAILABLE, index=True)
    profile_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id"), unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    profile = relationship("Profile")
    transport_tasks = relationship("TransportTask", back_populates="driver")

class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    plate_number = Column(String, unique=True, nullable=False)
    vehicle_type = Column(Enum(VehicleType, name="vehicle_type", native_enum=False), nullable=False)
    capacity = Column(Numeric, nullable=False)
    status = Column(Enum(VehicleStatus, name="vehicle_status", native_enum=False), default=VehicleStatus.AVAILABLE, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    transport_tasks = relationship("TransportTask", back_populates="vehicle")

class TransportTask(Base):
    __tablename__ = "transport_tasks"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    crop_batch_id = Column(UUID(as_uuid=True), ForeignKey("crop_batches.id"), nullable=False, index=True)
    driver_id = Column(UUID(as_uuid=True), ForeignKey("drivers.id"), index=True)
    vehicle_id = Column(UUID(as_uuid=True), ForeignKey("vehicles.id"), index=True)
    coordinator_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    status = Column(Enum(TransportStatus, name="transport_status", native_enum=False), nullable=False, default=TransportStatus.SCHEDULED, index=True)
    scheduled_date = Column(DateTime(timezone=True), nullable=False)
    actual_pickup_date = Column(DateTime(timezone=True))
    actual_delivery_date = Column(DateTime(timezone=True))
    pickup_location = Column(Text, nullable=False)
    delivery_location = Column(Text, nullable=False)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    crop_batch = relationship("CropBatch", back_populates="transport_tasks")
    driver = relationship("Driver", back_populates="transport_tasks")
    vehicle = relationship("Vehicle", back_populates="transport_tasks")
    coordinator = relationship("Profile")
    issues = relationship("TransportIssue", back_populates="transport_task")

class TransportIssue(Base):
    __tablename__ = "transport_issues"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    transport_task_id = Column(UUID(as_uuid=True), ForeignKey("transport_tasks.id"), nullable=False, index=True)
    issue_type = Column(Enum(IssueType, name="issue_type", native_enum=False), nullable=False)
    status = Column(Enum(IssueStatus, name="issue_status", native_enum=False), nullable=False, default=IssueStatus.OPEN, index=True)
    description = Column(Text, nullable=False)
    resolution = Column(Text)
    reported_by = Column(UUID(as_uuid=True))
    reported_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    resolved_at = Column(DateTime(timezone=True))

    transport_task = relationship("TransportTask", back_populates="issues")
