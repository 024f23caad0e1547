"""
Field agent operations: farmer/farm registration, batch creation and the
pre-shipment part of the batch lifecycle.
"""

from datetime import date, datetime, timezone
from typing import Optional
import logging
import uuid

from fastapi import Request
from sqlalchemy.orm import Session

from config import settings
from models import (
    BatchStatus, CropBatch, Farm, Farmer, NotificationCategory,
    NotificationType, Role,
)
from services.activity_logger import log_activity
from services.batch_workflow import (
    ensure_transition, get_batch, parse_batch_status, transition_batch,
)
from services.notification_service import notification_service
from utils.errors import IllegalStatusTransition, ResourceNotFound, ValidationError
from utils.permissions import AuthContext

logger = logging.getLogger(__name__)

# Statuses a field agent may set; approval, shipment and warehouse steps belong to other roles
FIELD_AGENT_TARGETS = frozenset({
    BatchStatus.GROWING,
    BatchStatus.READY_FOR_HARVEST,
    BatchStatus.HARVESTED,
    BatchStatus.PENDING_APPROVAL,
})

HANDED_OFF = frozenset({
    BatchStatus.PACKAGING,
    BatchStatus.PACKAGED,
    BatchStatus.SHIPPED,
    BatchStatus.RECEIVED,
    BatchStatus.STORED,
})

# Events that procurement officers need to hear about
PROCUREMENT_ALERTS = {
    BatchStatus.READY_FOR_HARVEST: NotificationType.HARVEST_READY,
    BatchStatus.PENDING_APPROVAL: NotificationType.GENERAL,
}

def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None

# ============================================================================
# FARMERS
# ============================================================================

def create_farmer(db: Session, context: AuthContext, data: dict, request: Optional[Request] = None) -> Farmer:
    name = _clean(data.get("name"))
    if not name:
        raise ValidationError("Name is required")

    farmer_code = f"FAR-{db.query(Farmer).count() + 1:04d}"
    farmer = Farmer(
        farmer_code=farmer_code,
        name=name,
        email=_clean(data.get("email")),
        phone=_clean(data.get("phone")),
        address=_clean(data.get("address")),
        city=_clean(data.get("city")),
        state=_clean(data.get("state")),
        country=_clean(data.get("country")),
        registered_by=context.user_id,
    )
    db.add(farmer)
    db.commit()
    db.refresh(farmer)

    log_activity(
        db, context.user_id, "CREATE_FARMER", "Farmer", farmer.id,
        {"farmerName": name, "farmerCode": farmer_code, "email": farmer.email},
        request=request,
    )
    return farmer

def update_farmer(db: Session, context: AuthContext, farmer_id: uuid.UUID, data: dict, request: Optional[Request] = None) -> Farmer:
    farmer = db.query(Farmer).filter(Farmer.id == farmer_id).first()
    if not farmer:
        raise ResourceNotFound("Farmer not found")

    name = _clean(data.get("name"))
    if not name:
        raise ValidationError("ID and name are required")

    farmer.name = name
    for field in ("email", "phone", "address", "city", "state", "country"):
        setattr(farmer, field, _clean(data.get(field)))
    db.commit()
    db.refresh(farmer)

    log_activity(db, context.user_id, "UPDATE_FARMER", "Farmer", farmer.id, {"farmerName": name}, request=request)
    return farmer

def deactivate_farmer(db: Session, context: AuthContext, farmer_id: uuid.UUID, request: Optional[Request] = None) -> Farmer:
    farmer = db.query(Farmer).filter(Farmer.id == farmer_id).first()
    if not farmer:
        raise ResourceNotFound("Farmer not found")

    # Soft delete; batches keep referencing the farmer
    farmer.is_active = False
    db.commit()
    db.refresh(farmer)

    log_activity(db, context.user_id, "DEACTIVATE_FARMER", "Farmer", farmer.id, {"farmerName": farmer.name}, request=request)
    return farmer

def list_farmers(db: Session):
    return (
        db.query(Farmer)
        .filter(Farmer.is_active.is_(True))
        .order_by(Farmer.created_at.desc())
        .all()
    )

# ============================================================================
# FARMS
# ============================================================================

def create_farm(db: Session, context: AuthContext, data: dict, request: Optional[Request] = None) -> Farm:
    name = _clean(data.get("name"))
    farmer_id = data.get("farmer_id")
    if not name or not farmer_id:
        raise ValidationError("Name and farmer are required")

    farmer = db.query(Farmer).filter(Farmer.id == farmer_id, Farmer.is_active.is_(True)).first()
    if not farmer:
        raise ResourceNotFound("Farmer not found")

    farm_code = f"FM-{db.query(Farm).count() + 1:04d}"
    farm = Farm(
        name=name,
        farm_code=farm_code,
        farmer_id=farmer.id,
        location=_clean(data.get("location")),
        region=_clean(data.get("region")),
        coordinates=_clean(data.get("coordinates")),
        area=data.get("area"),
        soil_type=_clean(data.get("soil_type")),
        registered_by=context.user_id,
    )
    db.add(farm)
    db.commit()
    db.refresh(farm)

    log_activity(
        db, context.user_id, "CREATE_FARM", "Farm", farm.id,
        {"farmName": name, "farmCode": farm_code, "farmerName": farmer.name, "area": farm.area and float(farm.area)},
        request=request,
    )
    return farm

def list_farms(db: Session):
    return (
        db.query(Farm)
        .filter(Farm.is_active.is_(True))
        .order_by(Farm.created_at.desc())
        .all()
    )

# ============================================================================
# CROP BATCHES
# ============================================================================

def create_crop_batch(db: Session, context: AuthContext, data: dict, request: Optional[Request] = None) -> CropBatch:
    crop_type = _clean(data.get("crop_type"))
    farm_id = data.get("farm_id")
    if not crop_type or not farm_id:
        raise ValidationError("Crop type and farm are required")

    farm = db.query(Farm).filter(Farm.id == farm_id).first()
    if not farm:
        raise ResourceNotFound("Farm not found")

    year = datetime.now(timezone.utc).year
    batch_code = f"CB-{year}-{db.query(CropBatch).count() + 1:03d}"
    qr_code = f"{batch_code}-{farm.id}-{int(datetime.now(timezone.utc).timestamp() * 1000)}"

    batch = CropBatch(
        batch_code=batch_code,
        qr_code=qr_code,
        crop_type=crop_type,
        variety=_clean(data.get("variety")),
        farm_id=farm.id,
        farmer_id=farm.farmer_id,
        planting_date=data.get("planting_date"),
        expected_harvest=data.get("expected_harvest"),
        quantity=data.get("quantity"),
        unit=_clean(data.get("unit")) or settings.DEFAULT_UNIT,
        notes=_clean(data.get("notes")),
        status=BatchStatus.PLANTED,
        created_by=context.user_id,
    )
    db.add(batch)
    db.commit()
    db.refresh(batch)

    log_activity(
        db, context.user_id, "CREATE_CROP_BATCH", "CropBatch", batch.id,
        {
            "batchCode": batch_code,
            "cropType": crop_type,
            "variety": batch.variety,
            "farmName": farm.name,
            "farmerName": farm.farmer.name if farm.farmer else None,
            "qrCode": qr_code,
        },
        request=request,
    )
    return batch

def list_my_batches(db: Session, context: AuthContext):
    return (
        db.query(CropBatch)
        .filter(CropBatch.created_by == context.user_id)
        .order_by(CropBatch.updated_at.desc())
        .all()
    )

def update_crop_status(
    db: Session,
    context: AuthContext,
    batch_id: uuid.UUID,
    status,
    notes: Optional[str],
    quantity: Optional[float] = None,
    actual_harvest: Optional[datetime] = None,
    request: Optional[Request] = None,
) -> CropBatch:
    """Advance a batch through the field stages, from planting to submission for approval."""
    if not notes or not notes.strip():
        raise ValidationError("Please provide status notes")

    target = parse_batch_status(status)
    batch = get_batch(db, batch_id)
    current = BatchStatus(batch.status)

    if current in HANDED_OFF:
        raise IllegalStatusTransition(
            current, target,
            message="This crop batch is ready for shipment. Transport coordinator will handle the next steps.",
        )
    if current == BatchStatus.PENDING_APPROVAL:
        raise IllegalStatusTransition(
            current, target,
            message="This crop batch is awaiting procurement approval.",
        )
    if target not in FIELD_AGENT_TARGETS:
        raise IllegalStatusTransition(
            current, target,
            message=f"Field agents cannot set {target.value}.",
        )
    ensure_transition(current, target)

    changes = {}
    if target == BatchStatus.HARVESTED:
        changes["actual_harvest"] = actual_harvest or datetime.now(timezone.utc)
    if quantity is not None:
        changes["quantity"] = quantity

    batch = transition_batch(db, batch, target, changes=changes, note=notes)

    alert = PROCUREMENT_ALERTS.get(target)
    if alert:
        readable = target.value.replace("_", " ").lower()
        notification_service.fan_out(
            db,
            notification_service.notify_role,
            Role.PROCUREMENT_OFFICER,
            alert,
            NotificationCategory.CROP_MANAGEMENT,
            f"Batch {batch.batch_code} {readable}",
            f"Crop batch {batch.batch_code} is now {readable}. Status notes: {notes.strip()}",
            metadata={"batchId": str(batch.id), "batchCode": batch.batch_code},
            created_by=context.user_id,
        )

    log_activity(
        db, context.user_id, "UPDATE_CROP_STATUS", "CropBatch", batch.id,
        {
            "batchCode": batch.batch_code,
            "statusFrom": current.value,
            "statusTo": target.value,
            "notes": notes.strip(),
            "quantity": quantity,
        },
        request=request,
    )
    return batch
