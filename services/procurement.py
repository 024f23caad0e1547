"""
Procurement operations: harvest review (approve / reject), transport requests,
stock requirements and inventory.
"""

from datetime import datetime, timezone
from typing import Optional
import logging
import uuid

from fastapi import Request
from sqlalchemy import func
from sqlalchemy.orm import Session

from config import settings
from models import (
    BatchStatus, CropBatch, NotificationCategory, NotificationPriority,
    NotificationType, Profile, Role, StockRequirement, Warehouse,
)
from services.activity_logger import log_activity
from services.batch_workflow import ensure_transition, get_batch, transition_batch
from services.notification_service import notification_service
from utils.errors import IllegalStatusTransition, ResourceNotFound, ValidationError
from utils.permissions import AuthContext

logger = logging.getLogger(__name__)

REVIEWABLE = (BatchStatus.HARVESTED, BatchStatus.PENDING_APPROVAL)

# Statuses that count as stock on hand
IN_STOCK = (BatchStatus.PROCESSED, BatchStatus.RECEIVED, BatchStatus.STORED)

def list_pending_reviews(db: Session):
    return (
        db.query(CropBatch)
        .filter(CropBatch.status.in_(REVIEWABLE))
        .order_by(CropBatch.updated_at.asc())
        .all()
    )

def approve_batch(
    db: Session,
    context: AuthContext,
    batch_id: uuid.UUID,
    quality: dict,
    harvest: Optional[dict] = None,
    photos: Optional[list] = None,
    notes: Optional[str] = None,
    request: Optional[Request] = None,
) -> CropBatch:
    """
    Approve a harvested batch into PROCESSED.

    ``approval_data`` snapshots the farmer, farm, harvest and quality details
    as they stood at approval time so later edits to the farm or farmer do not
    rewrite the review record.
    """
    batch = get_batch(db, batch_id)
    current = BatchStatus(batch.status)
    if current not in REVIEWABLE:
        raise IllegalStatusTransition(
            current, BatchStatus.PROCESSED,
            message=f"Batch is not awaiting review (current status {current.value})",
        )
    ensure_transition(current, BatchStatus.PROCESSED)

    farmer = batch.farmer
    farm = batch.farm
    approved_at = datetime.now(timezone.utc)
    approval_data = {
        "farmer": {
            "id": str(farmer.id),
            "code": farmer.farmer_code,
            "name": farmer.name,
            "phone": farmer.phone,
        } if farmer else None,
        "farm": {
            "id": str(farm.id),
            "code": farm.farm_code,
            "name": farm.name,
            "location": farm.location,
            "region": farm.region,
        } if farm else None,
        "harvest": {
            "date": batch.actual_harvest.isoformat() if batch.actual_harvest else None,
            "quantity": float(batch.quantity) if batch.quantity is not None else None,
            "unit": batch.unit,
            **(harvest or {}),
        },
        "quality": quality,
        "photos": photos or [],
        "approvedBy": {
            "id": str(context.user_id),
            "name": context.profile.name,
            "email": context.email,
        },
        "approvedAt": approved_at.isoformat(),
    }

    note = f"Approved by procurement on {approved_at.date().isoformat()}"
    grade = quality.get("grade") if isinstance(quality, dict) else None
    if grade:
        note = f"{note} (grade {grade})"
    if notes and notes.strip():
        note = f"{note}: {notes.strip()}"

    batch = transition_batch(
        db, batch, BatchStatus.PROCESSED,
        changes={"approval_data": approval_data}, note=note,
    )
    logger.info(f"✅ Batch {batch.batch_code} approved by {context.email}")

    notification_service.fan_out(
        db,
        notification_service.notify_users,
        [batch.created_by],
        NotificationType.BATCH_APPROVED,
        NotificationCategory.PROCUREMENT,
        f"Batch {batch.batch_code} approved",
        f"Your crop batch {batch.batch_code} ({batch.crop_type}) passed quality review.",
        metadata={"batchId": str(batch.id), "batchCode": batch.batch_code, "grade": grade},
        created_by=context.user_id,
    )

    log_activity(
        db, context.user_id, "APPROVE_BATCH", "CropBatch", batch.id,
        {
            "batchCode": batch.batch_code,
            "statusFrom": current.value,
            "statusTo": BatchStatus.PROCESSED.value,
            "quality": quality,
        },
        request=request,
    )
    return batch

def reject_batch(
    db: Session,
    context: AuthContext,
    batch_id: uuid.UUID,
    reason: str,
    request: Optional[Request] = None,
) -> CropBatch:
    """Send a batch awaiting approval back to the field for rework"""
    if not reason or not reason.strip():
        raise ValidationError("Rejection reason is required")

    batch = get_batch(db, batch_id)
    current = BatchStatus(batch.status)
    # GROWING -> READY_FOR_HARVEST is also legal but is not a rejection
    if current != BatchStatus.PENDING_APPROVAL:
        raise IllegalStatusTransition(
            current, BatchStatus.READY_FOR_HARVEST,
            message=f"Only batches pending approval can be rejected (current status {current.value})",
        )

    batch = transition_batch(
        db, batch, BatchStatus.READY_FOR_HARVEST,
        note=f"Rejected by procurement: {reason.strip()}",
    )
    logger.info(f"↩️ Batch {batch.batch_code} rejected by {context.email}")

    notification_service.fan_out(
        db,
        notification_service.notify_users,
        [batch.created_by],
        NotificationType.BATCH_REJECTED,
        NotificationCategory.PROCUREMENT,
        f"Batch {batch.batch_code} rejected",
        f"Crop batch {batch.batch_code} was sent back for rework. Reason: {reason.strip()}",
        metadata={"batchId": str(batch.id), "batchCode": batch.batch_code, "reason": reason.strip()},
        priority=NotificationPriority.HIGH,
        created_by=context.user_id,
    )

    log_activity(
        db, context.user_id, "REJECT_BATCH", "CropBatch", batch.id,
        {
            "batchCode": batch.batch_code,
            "statusFrom": current.value,
            "statusTo": BatchStatus.READY_FOR_HARVEST.value,
            "reason": reason.strip(),
        },
        request=request,
    )
    return batch

def request_transport(
    db: Session,
    context: AuthContext,
    batch_id: uuid.UUID,
    warehouse_id: uuid.UUID,
    coordinator_id: uuid.UUID,
    pickup_location: Optional[str] = None,
    scheduled_date: Optional[datetime] = None,
    notes: Optional[str] = None,
    request: Optional[Request] = None,
) -> CropBatch:
    """
    Assign a processed batch to a destination warehouse and hand it to a
    transport coordinator. The batch moves on to READY_FOR_PACKAGING.
    """
    batch = get_batch(db, batch_id)
    current = BatchStatus(batch.status)
    if current != BatchStatus.PROCESSED:
        raise IllegalStatusTransition(
            current, BatchStatus.READY_FOR_PACKAGING,
            message="Only processed batches can be assigned for transport",
        )

    warehouse = db.query(Warehouse).filter(Warehouse.id == warehouse_id).first()
    if not warehouse or not warehouse.is_active:
        raise ResourceNotFound("Warehouse not found")

    coordinator = (
        db.query(Profile)
        .filter(
            Profile.id == coordinator_id,
            Profile.role == Role.TRANSPORT_COORDINATOR,
            Profile.is_active.is_(True),
        )
        .first()
    )
    if not coordinator:
        raise ResourceNotFound("Transport coordinator not found")

    pickup = (pickup_location or "").strip() or (batch.farm.location if batch.farm else None)
    note = f"Assigned to {warehouse.label} for transport"
    if notes and notes.strip():
        note = f"{note}: {notes.strip()}"

    batch = transition_batch(
        db, batch, BatchStatus.READY_FOR_PACKAGING,
        changes={"warehouse_id": warehouse.id}, note=note,
    )
    logger.info(f"🚚 Transport requested for batch {batch.batch_code} to {warehouse.code}")

    metadata = {
        "batchId": str(batch.id),
        "batchCode": batch.batch_code,
        "warehouseId": str(warehouse.id),
        "pickupLocation": pickup,
        "deliveryLocation": warehouse.address or warehouse.name,
        "scheduledDate": scheduled_date.isoformat() if scheduled_date else None,
    }
    notification_service.fan_out(
        db,
        notification_service.notify_users,
        [coordinator.user_id],
        NotificationType.TRANSPORT_REQUESTED,
        NotificationCategory.TRANSPORT,
        f"Transport requested for {batch.batch_code}",
        f"Batch {batch.batch_code} ({batch.crop_type}) needs transport to {warehouse.label}.",
        metadata=metadata,
        created_by=context.user_id,
    )
    notification_service.fan_out(
        db,
        notification_service.notify_role,
        Role.WAREHOUSE_MANAGER,
        NotificationType.SHIPMENT_ARRIVING,
        NotificationCategory.WAREHOUSE,
        f"Batch {batch.batch_code} assigned to your warehouse",
        f"Batch {batch.batch_code} ({batch.crop_type}) is ready for packaging at {warehouse.name}.",
        metadata=metadata,
        warehouse_id=warehouse.id,
        created_by=context.user_id,
    )

    log_activity(
        db, context.user_id, "ASSIGN_TRANSPORT", "CropBatch", batch.id,
        {
            "batchCode": batch.batch_code,
            "statusFrom": current.value,
            "statusTo": BatchStatus.READY_FOR_PACKAGING.value,
            "warehouseId": str(warehouse.id),
            "coordinatorId": str(coordinator.id),
        },
        request=request,
    )
    return batch

# ============================================================================
# STOCK
# ============================================================================

def list_stock_requirements(db: Session):
    return db.query(StockRequirement).order_by(StockRequirement.crop_type.asc()).all()

def upsert_stock_requirement(
    db: Session,
    context: AuthContext,
    crop_type: str,
    min_stock: float,
    unit: Optional[str] = None,
    request: Optional[Request] = None,
) -> StockRequirement:
    crop_type = (crop_type or "").strip()
    if not crop_type:
        raise ValidationError("Crop type is required")
    if min_stock is None or min_stock < 0:
        raise ValidationError("Minimum stock must be zero or more")

    requirement = db.query(StockRequirement).filter(StockRequirement.crop_type == crop_type).first()
    if requirement:
        requirement.min_stock = min_stock
        requirement.unit = unit or requirement.unit or settings.DEFAULT_UNIT
        requirement.updated_by = context.user_id
    else:
        requirement = StockRequirement(
            crop_type=crop_type,
            min_stock=min_stock,
            unit=unit or settings.DEFAULT_UNIT,
            created_by=context.user_id,
            updated_by=context.user_id,
        )
        db.add(requirement)
    db.commit()
    db.refresh(requirement)

    log_activity(
        db, context.user_id, "UPDATE_STOCK_REQUIREMENT", "StockRequirement", requirement.id,
        {"cropType": crop_type, "minStock": float(min_stock), "unit": requirement.unit},
        request=request,
    )
    return requirement

def current_stock(db: Session, crop_type: Optional[str] = None) -> dict:
    query = (
        db.query(CropBatch.crop_type, func.coalesce(func.sum(CropBatch.quantity), 0))
        .filter(CropBatch.status.in_(IN_STOCK))
    )
    if crop_type:
        query = query.filter(CropBatch.crop_type == crop_type)
    return {row[0]: float(row[1]) for row in query.group_by(CropBatch.crop_type).all()}

def inventory_summary(db: Session) -> list:
    stock = current_stock(db)
    requirements = {r.crop_type: r for r in list_stock_requirements(db)}

    summary = []
    for crop_type in sorted(set(stock) | set(requirements)):
        requirement = requirements.get(crop_type)
        on_hand = stock.get(crop_type, 0.0)
        minimum = float(requirement.min_stock) if requirement else None
        summary.append({
            "cropType": crop_type,
            "currentStock": on_hand,
            "minStock": minimum,
            "unit": requirement.unit if requirement else settings.DEFAULT_UNIT,
            "belowMinimum": minimum is not None and on_hand < minimum,
        })
    return summary

def notify_field_agents_low_stock(
    db: Session,
    context: AuthContext,
    crop_type: str,
    request: Optional[Request] = None,
) -> int:
    """Ask field agents for more of ``crop_type``; does nothing while stock is at or above minimum"""
    requirement = db.query(StockRequirement).filter(StockRequirement.crop_type == crop_type).first()
    if not requirement:
        raise ResourceNotFound("Stock requirement not found")

    on_hand = current_stock(db, crop_type).get(crop_type, 0.0)
    minimum = float(requirement.min_stock)
    if on_hand >= minimum:
        return 0

    shortfall = minimum - on_hand
    sent = notification_service.fan_out(
        db,
        notification_service.notify_role,
        Role.FIELD_AGENT,
        NotificationType.LOW_STOCK,
        NotificationCategory.PROCUREMENT,
        f"Low stock: {crop_type}",
        f"{crop_type} stock is {on_hand:g} {requirement.unit}, below the minimum of {minimum:g}. "
        f"{shortfall:g} {requirement.unit} more is needed.",
        metadata={"cropType": crop_type, "currentStock": on_hand, "minStock": minimum},
        priority=NotificationPriority.HIGH,
        created_by=context.user_id,
    )

    log_activity(
        db, context.user_id, "NOTIFY_LOW_STOCK", "StockRequirement", requirement.id,
        {"cropType": crop_type, "currentStock": on_hand, "minStock": minimum, "notified": sent},
        request=request,
    )
    return sent
