from sqlalchemy import Column, String, Text, Boolean, Integer, Numeric, DateTime, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from database import Base
import uuid

class Warehouse(Base):
    __tablename__ = "warehouses"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    code = Column(String, unique=True, nullable=False, index=True)
    address = Column(Text)
    city = Column(Text)
    country = Column(Text)
    capacity = Column(Integer)
    is_active = Column(Boolean, default=True, index=True)
    created_by = Column(UUID(as_uuid=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    managers = relationship("Profile", back_populates="warehouse")
    crop_batches = relationship("CropBatch", back_populates="warehouse")

    @property
    def label(self) -> str:
        return f"{self.name} ({self.code})"

class UnitOfMeasurement(Base):
    __tablename__ = "units_of_measurement"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    code = Column(String, unique=True, nullable=False)
    category = Column(Text, nullable=False)
    base_unit = Column(Text)
    conversion_factor = Column(Numeric)
    is_active = Column(Boolean, default=True, index=True)
    created_by = Column(UUID(as_uuid=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
