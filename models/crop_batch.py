from sqlalchemy import Column, String, Text, Date, Numeric, DateTime, Enum, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy import ForeignKey
from sqlalchemy.orm import relationship
from database import Base, JSONType
import enum
import uuid

class BatchStatus(str, enum.Enum):
    PLANTED = "PLANTED"
    GROWING = "GROWING"
    READY_FOR_HARVEST = "READY_FOR_HARVEST"
    HARVESTED = "HARVESTED"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    PROCESSED = "PROCESSED"
    READY_FOR_PACKAGING = "READY_FOR_PACKAGING"
    PACKAGING = "PACKAGING"
    PACKAGED = "PACKAGED"
    SHIPPED = "SHIPPED"
    RECEIVED = "RECEIVED"
    STORED = "STORED"

class CropBatch(Base):
    __tablename__ = "crop_batches"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    batch_code = Column(String, unique=True, nullable=False, index=True)
    qr_code = Column(Text, unique=True)
    crop_type = Column(Text, nullable=False, index=True)
    variety = Column(Text)
    quantity = Column(Numeric)
    unit = Column(Text)
    status = Column(Enum(BatchStatus, name="batch_status", native_enum=False), nullable=False, default=BatchStatus.PLANTED, index=True)
    planting_date = Column(Date)
    expected_harvest = Column(Date)
    actual_harvest = Column(DateTime(timezone=True))
    # Append-only operational log, one annotation per line
    notes = Column(Text)
    received_quantity = Column(Numeric)
    storage_location = Column(Text)
    approval_data = Column(JSONType)

    warehouse_id = Column(UUID(as_uuid=True), ForeignKey("warehouses.id"), index=True)
    farm_id = Column(UUID(as_uuid=True), ForeignKey("farms.id"), nullable=False, index=True)
    farmer_id = Column(UUID(as_uuid=True), ForeignKey("farmers.id"), nullable=False, index=True)
    created_by = Column(UUID(as_uuid=True), index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    farm = relationship("Farm", back_populates="crop_batches")
    farmer = relationship("Farmer")
    warehouse = relationship("Warehouse", back_populates="crop_batches")
    transport_tasks = relationship("TransportTask", back_populates="crop_batch")

class StockRequirement(Base):
    __tablename__ = "stock_requirements"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    crop_type = Column(Text, unique=True, nullable=False)
    min_stock = Column(Numeric, nullable=False)
    unit = Column(Text, default="kg")
    created_by = Column(UUID(as_uuid=True))
    updated_by = Column(UUID(as_uuid=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
