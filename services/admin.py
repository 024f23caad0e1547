"""
Admin operations: user provisioning, warehouses and units of measurement.
"""

from typing import Optional
import logging
import uuid

from fastapi import Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import CropBatch, Profile, Role, UnitOfMeasurement, Warehouse
from services.activity_logger import log_activity
from services.auth_provider import AuthAdmin
from utils.errors import Conflict, ResourceNotFound, ValidationError
from utils.permissions import AuthContext

logger = logging.getLogger(__name__)

def _role(value) -> Role:
    try:
        return Role(value)
    except ValueError:
        raise ValidationError(f"Invalid role: {value}")

def _get_profile(db: Session, profile_id) -> Profile:
    profile = db.query(Profile).filter(Profile.id == profile_id).first()
    if not profile:
        raise ResourceNotFound("User not found")
    return profile

def _get_warehouse(db: Session, warehouse_id) -> Warehouse:
    warehouse = db.query(Warehouse).filter(Warehouse.id == warehouse_id).first()
    if not warehouse:
        raise ResourceNotFound("Warehouse not found")
    return warehouse

# ============================================================================
# USERS
# ============================================================================

def list_users(db: Session, role: Optional[str] = None):
    query = db.query(Profile)
    if role:
        query = query.filter(Profile.role == _role(role))
    return query.order_by(Profile.created_at.desc()).all()

def create_user(
    db: Session,
    context: AuthContext,
    auth_admin: AuthAdmin,
    email: str,
    password: str,
    name: Optional[str],
    role,
    warehouse_id: Optional[uuid.UUID] = None,
    request: Optional[Request] = None,
) -> Profile:
    email = (email or "").strip().lower()
    if not email or not password:
        raise ValidationError("Email and password are required")
    if len(password) < 8:
        raise ValidationError("Password must be at least 8 characters")
    role = _role(role)

    if db.query(Profile).filter(Profile.email == email).first():
        raise Conflict("A user with this email already exists")

    if warehouse_id:
        if role != Role.WAREHOUSE_MANAGER:
            raise ValidationError("Only warehouse managers can be assigned a warehouse")
        warehouse = _get_warehouse(db, warehouse_id)
        if not warehouse.is_active:
            raise ValidationError("Warehouse is inactive")

    user_id = auth_admin.create_user(email, password, {"name": name, "role": role.value})

    profile = Profile(
        user_id=uuid.UUID(user_id),
        email=email,
        name=(name or "").strip() or None,
        role=role,
        warehouse_id=warehouse_id,
        is_active=True,
    )
    db.add(profile)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.error(f"❌ Auth user {user_id} created but profile insert failed for {email}")
        raise Conflict("A user with this email already exists")
    db.refresh(profile)
    logger.info(f"✅ Created {role.value} user {email}")

    log_activity(
        db, context.user_id, "CREATE_USER", "Profile", profile.id,
        {"email": email, "role": role.value, "warehouseId": str(warehouse_id) if warehouse_id else None},
        request=request,
    )
    return profile

def update_user_role(db: Session, context: AuthContext, profile_id: uuid.UUID, role, request: Optional[Request] = None) -> Profile:
    profile = _get_profile(db, profile_id)
    target = _role(role)
    previous = Role(profile.role)

    profile.role = target
    if target != Role.WAREHOUSE_MANAGER:
        profile.warehouse_id = None
    db.commit()
    db.refresh(profile)

    log_activity(
        db, context.user_id, "UPDATE_USER_ROLE", "Profile", profile.id,
        {"email": profile.email, "roleFrom": previous.value, "roleTo": target.value},
        request=request,
    )
    return profile

def assign_warehouse(
    db: Session,
    context: AuthContext,
    profile_id: uuid.UUID,
    warehouse_id: Optional[uuid.UUID],
    request: Optional[Request] = None,
) -> Profile:
    """Assign (or with ``None``, clear) a warehouse manager's warehouse"""
    profile = _get_profile(db, profile_id)
    if Role(profile.role) != Role.WAREHOUSE_MANAGER:
        raise ValidationError("Only warehouse managers can be assigned a warehouse")

    if warehouse_id:
        warehouse = _get_warehouse(db, warehouse_id)
        if not warehouse.is_active:
            raise ValidationError("Warehouse is inactive")

    previous = profile.warehouse_id
    profile.warehouse_id = warehouse_id
    db.commit()
    db.refresh(profile)

    log_activity(
        db, context.user_id, "ASSIGN_WAREHOUSE", "Profile", profile.id,
        {
            "email": profile.email,
            "warehouseFrom": str(previous) if previous else None,
            "warehouseTo": str(warehouse_id) if warehouse_id else None,
        },
        request=request,
    )
    return profile

def set_user_active(
    db: Session,
    context: AuthContext,
    auth_admin: AuthAdmin,
    profile_id: uuid.UUID,
    active: bool,
    request: Optional[Request] = None,
) -> Profile:
    profile = _get_profile(db, profile_id)
    if profile.user_id == context.user_id and not active:
        raise ValidationError("You cannot deactivate your own account")

    auth_admin.set_banned(profile.user_id, banned=not active)
    profile.is_active = active
    db.commit()
    db.refresh(profile)

    log_activity(
        db, context.user_id, "ACTIVATE_USER" if active else "DEACTIVATE_USER", "Profile", profile.id,
        {"email": profile.email},
        request=request,
    )
    return profile

# ============================================================================
# WAREHOUSES
# ============================================================================

def list_warehouses(db: Session, active_only: bool = False):
    query = db.query(Warehouse)
    if active_only:
        query = query.filter(Warehouse.is_active.is_(True))
    return query.order_by(Warehouse.name.asc()).all()

def create_warehouse(db: Session, context: AuthContext, data: dict, request: Optional[Request] = None) -> Warehouse:
    name = (data.get("name") or "").strip()
    code = (data.get("code") or "").strip().upper()
    if not name or not code:
        raise ValidationError("Name and code are required")
    if db.query(Warehouse).filter(Warehouse.code == code).first():
        raise Conflict("A warehouse with this code already exists")

    warehouse = Warehouse(
        name=name,
        code=code,
        address=data.get("address"),
        city=data.get("city"),
        country=data.get("country"),
        capacity=data.get("capacity"),
        is_active=True,
        created_by=context.user_id,
    )
    db.add(warehouse)
    db.commit()
    db.refresh(warehouse)

    log_activity(db, context.user_id, "CREATE_WAREHOUSE", "Warehouse", warehouse.id, {"name": name, "code": code}, request=request)
    return warehouse

def update_warehouse(db: Session, context: AuthContext, warehouse_id: uuid.UUID, data: dict, request: Optional[Request] = None) -> Warehouse:
    warehouse = _get_warehouse(db, warehouse_id)

    if data.get("code"):
        code = data["code"].strip().upper()
        clash = db.query(Warehouse).filter(Warehouse.code == code, Warehouse.id != warehouse.id).first()
        if clash:
            raise Conflict("A warehouse with this code already exists")
        warehouse.code = code
    if data.get("name"):
        warehouse.name = data["name"].strip()
    for field in ("address", "city", "country", "capacity"):
        if field in data:
            setattr(warehouse, field, data[field])
    db.commit()
    db.refresh(warehouse)

    log_activity(db, context.user_id, "UPDATE_WAREHOUSE", "Warehouse", warehouse.id, {"name": warehouse.name, "code": warehouse.code}, request=request)
    return warehouse

def toggle_warehouse(db: Session, context: AuthContext, warehouse_id: uuid.UUID, request: Optional[Request] = None) -> Warehouse:
    warehouse = _get_warehouse(db, warehouse_id)
    warehouse.is_active = not warehouse.is_active
    db.commit()
    db.refresh(warehouse)

    log_activity(
        db, context.user_id, "TOGGLE_WAREHOUSE", "Warehouse", warehouse.id,
        {"code": warehouse.code, "isActive": warehouse.is_active},
        request=request,
    )
    return warehouse

def delete_warehouse(db: Session, context: AuthContext, warehouse_id: uuid.UUID, request: Optional[Request] = None) -> None:
    warehouse = _get_warehouse(db, warehouse_id)
    in_use = db.query(CropBatch).filter(CropBatch.warehouse_id == warehouse.id).count()
    if in_use:
        raise Conflict(f"Warehouse has {in_use} crop batch(es) and cannot be deleted")

    code = warehouse.code
    db.query(Profile).filter(Profile.warehouse_id == warehouse.id).update(
        {"warehouse_id": None}, synchronize_session=False
    )
    db.delete(warehouse)
    db.commit()

    log_activity(db, context.user_id, "DELETE_WAREHOUSE", "Warehouse", warehouse_id, {"code": code}, request=request)

# ============================================================================
# UNITS OF MEASUREMENT
# ============================================================================

def _get_unit(db: Session, unit_id) -> UnitOfMeasurement:
    unit = db.query(UnitOfMeasurement).filter(UnitOfMeasurement.id == unit_id).first()
    if not unit:
        raise ResourceNotFound("Unit not found")
    return unit

def list_units(db: Session, active_only: bool = False):
    query = db.query(UnitOfMeasurement)
    if active_only:
        query = query.filter(UnitOfMeasurement.is_active.is_(True))
    return query.order_by(UnitOfMeasurement.category.asc(), UnitOfMeasurement.name.asc()).all()

def create_unit(db: Session, context: AuthContext, data: dict, request: Optional[Request] = None) -> UnitOfMeasurement:
    name = (data.get("name") or "").strip()
    code = (data.get("code") or "").strip().lower()
    category = (data.get("category") or "").strip()
    if not name or not code or not category:
        raise ValidationError("Name, code and category are required")
    if db.query(UnitOfMeasurement).filter(UnitOfMeasurement.code == code).first():
        raise Conflict("A unit with this code already exists")

    unit = UnitOfMeasurement(
        name=name,
        code=code,
        category=category,
        base_unit=data.get("base_unit"),
        conversion_factor=data.get("conversion_factor"),
        is_active=True,
        created_by=context.user_id,
    )
    db.add(unit)
    db.commit()
    db.refresh(unit)

    log_activity(db, context.user_id, "CREATE_UNIT", "UnitOfMeasurement", unit.id, {"name": name, "code": code}, request=request)
    return unit

def update_unit(db: Session, context: AuthContext, unit_id: uuid.UUID, data: dict, request: Optional[Request] = None) -> UnitOfMeasurement:
    unit = _get_unit(db, unit_id)
    if data.get("code"):
        code = data["code"].strip().lower()
        clash = db.query(UnitOfMeasurement).filter(
            UnitOfMeasurement.code == code, UnitOfMeasurement.id != unit.id
        ).first()
        if clash:
            raise Conflict("A unit with this code already exists")
        unit.code = code
    for field in ("name", "category"):
        if data.get(field):
            setattr(unit, field, data[field].strip())
    for field in ("base_unit", "conversion_factor"):
        if field in data:
            setattr(unit, field, data[field])
    db.commit()
    db.refresh(unit)

    log_activity(db, context.user_id, "UPDATE_UNIT", "UnitOfMeasurement", unit.id, {"code": unit.code}, request=request)
    return unit

def toggle_unit(db: Session, context: AuthContext, unit_id: uuid.UUID, request: Optional[Request] = None) -> UnitOfMeasurement:
    unit = _get_unit(db, unit_id)
    unit.is_active = not unit.is_active
    db.commit()
    db.refresh(unit)

    log_activity(
        db, context.user_id, "TOGGLE_UNIT", "UnitOfMeasurement", unit.id,
        {"code": unit.code, "isActive": unit.is_active},
        request=request,
    )
    return unit

def delete_unit(db: Session, context: AuthContext, unit_id: uuid.UUID, request: Optional[Request] = None) -> None:
    unit = _get_unit(db, unit_id)
    code = unit.code
    db.delete(unit)
    db.commit()

    log_activity(db, context.user_id, "DELETE_UNIT", "UnitOfMeasurement", unit_id, {"code": code}, request=request)
