from sqlalchemy import Column, String, Text, Boolean, DateTime, Enum, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy import ForeignKey
from sqlalchemy.orm import relationship
from database import Base
import enum
import uuid

class Role(str, enum.Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    FIELD_AGENT = "field_agent"
    PROCUREMENT_OFFICER = "procurement_officer"
    WAREHOUSE_MANAGER = "warehouse_manager"
    TRANSPORT_DRIVER = "transport_driver"
    TRANSPORT_COORDINATOR = "transport_coordinator"

class Profile(Base):
    __tablename__ = "profiles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Identifier issued by the auth provider (JWT "sub")
    user_id = Column(UUID(as_uuid=True), unique=True, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False)
    name = Column(Text)
    role = Column(Enum(Role, name="role", native_enum=False, values_callable=lambda e: [m.value for m in e]), nullable=False, index=True)
    warehouse_id = Column(UUID(as_uuid=True), ForeignKey("warehouses.id"), index=True)
    is_active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    warehouse = relationship("Warehouse", back_populates="managers")
