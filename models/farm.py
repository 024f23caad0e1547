from sqlalchemy import Column, String, Text, Boolean, Numeric, DateTime, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy import ForeignKey
from sqlalchemy.orm import relationship
from database import Base
import uuid

class Farmer(Base):
    __tablename__ = "farmers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    farmer_code = Column(String, unique=True, nullable=False, index=True)
    name = Column(Text, nullable=False)
    email = Column(Text)
    phone = Column(Text)
    address = Column(Text)
    city = Column(Text)
    state = Column(Text)
    country = Column(Text)
    is_active = Column(Boolean, default=True, index=True)
    registered_by = Column(UUID(as_uuid=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    farms = relationship("Farm", back_populates="farmer")

class Farm(Base):
    __tablename__ = "farms"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    farm_code = Column(String, unique=True, nullable=False, index=True)
    name = Column(Text, nullable=False)
    farmer_id = Column(UUID(as_uuid=True), ForeignKey("farmers.id"), nullable=False, index=True)
    location = Column(Text)
    region = Column(Text)
    coordinates = Column(Text)
    area = Column(Numeric)
    soil_type = Column(Text)
    is_active = Column(Boolean, default=True, index=True)
    registered_by = Column(UUID(as_uuid=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    farmer = relationship("Farmer", back_populates="farms")
    crop_batches = relationship("CropBatch", back_populates="farm")
