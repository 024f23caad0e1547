"""
Warehouse manager operations: packaging, scanner verification, receipt and
storage. Every mutation is scoped to the caller's assigned warehouse.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional
import logging
import math
import uuid

from fastapi import Request
from sqlalchemy.orm import Session

from models import (
    BatchStatus, CropBatch, NotificationCategory, NotificationType, Role,
    TransportStatus, TransportTask,
)
from services.activity_logger import log_activity
from services.batch_workflow import get_batch, parse_batch_status, transition_batch
from services.notification_service import notification_service
from utils.errors import IllegalStatusTransition, ResourceNotFound, ValidationError
from utils.permissions import AuthContext

logger = logging.getLogger(__name__)

PACKAGING_TARGETS = (BatchStatus.PACKAGING, BatchStatus.PACKAGED)

# Batches a warehouse manager sees on the dashboard by default
WAREHOUSE_VISIBLE = (
    BatchStatus.READY_FOR_PACKAGING,
    BatchStatus.PACKAGING,
    BatchStatus.PACKAGED,
    BatchStatus.SHIPPED,
    BatchStatus.RECEIVED,
    BatchStatus.STORED,
)

def _batch_metadata(batch: CropBatch, **extra) -> dict:
    metadata = {"batchId": str(batch.id), "batchCode": batch.batch_code}
    metadata.update(extra)
    return metadata

def _scoped_batch(db: Session, context: AuthContext, batch_id) -> CropBatch:
    context.require_warehouse()
    batch = get_batch(db, batch_id)
    context.ensure_same_warehouse(batch.warehouse_id)
    return batch

def _latest_task(db: Session, batch: CropBatch, statuses: Optional[Iterable[TransportStatus]] = None):
    query = db.query(TransportTask).filter(TransportTask.crop_batch_id == batch.id)
    if statuses:
        query = query.filter(TransportTask.status.in_(list(statuses)))
    return query.order_by(TransportTask.created_at.desc()).first()

# ============================================================================
# PACKAGING
# ============================================================================

def update_packaging_status(
    db: Session,
    context: AuthContext,
    batch_id: uuid.UUID,
    status,
    notes: Optional[str] = None,
    request: Optional[Request] = None,
) -> CropBatch:
    batch = _scoped_batch(db, context, batch_id)
    current = BatchStatus(batch.status)
    target = parse_batch_status(status)

    if target not in PACKAGING_TARGETS:
        raise IllegalStatusTransition(
            current, target,
            message="Invalid status. Must be PACKAGING or PACKAGED",
        )
    if current == BatchStatus.SHIPPED:
        raise IllegalStatusTransition(
            current, target,
            message="Batch is with transport. Only cancelling its transport task returns it to PACKAGED",
        )

    label = "Packaging started" if target == BatchStatus.PACKAGING else "Packaging completed"
    note = f"{label} by warehouse manager"
    if notes and notes.strip():
        note = f"{note}: {notes.strip()}"

    batch = transition_batch(db, batch, target, note=note)
    logger.info(f"📦 Batch {batch.batch_code}: {current.value} -> {target.value}")

    if target == BatchStatus.PACKAGED:
        notification_service.fan_out(
            db,
            notification_service.notify_role,
            Role.TRANSPORT_COORDINATOR,
            NotificationType.PICKUP_READY,
            NotificationCategory.TRANSPORT,
            f"Batch {batch.batch_code} ready for pickup",
            f"Batch {batch.batch_code} ({batch.crop_type}) has been packaged and is ready for transport scheduling.",
            metadata=_batch_metadata(batch, warehouseId=str(batch.warehouse_id)),
            created_by=context.user_id,
        )

    log_activity(
        db, context.user_id, "PACKAGING_STATUS_UPDATE", "CropBatch", batch.id,
        {
            "batchCode": batch.batch_code,
            "statusFrom": current.value,
            "statusTo": target.value,
            "warehouseId": str(context.warehouse_id),
        },
        request=request,
    )
    return batch

# ============================================================================
# SCANNER
# ============================================================================

def verify_batch(
    db: Session,
    context: AuthContext,
    batch_code: str,
    request: Optional[Request] = None,
) -> dict:
    """
    Look a batch up by its printed code at the receiving dock.

    A batch only verifies once its transport task reports DELIVERED, except a
    batch packaged on site, which never left the warehouse.
    """
    batch_code = (batch_code or "").strip()
    if not batch_code:
        raise ValidationError("Batch code is required")

    warehouse_id = context.require_warehouse()
    batch = (
        db.query(CropBatch)
        .filter(CropBatch.batch_code == batch_code, CropBatch.warehouse_id == warehouse_id)
        .first()
    )
    if not batch:
        raise ResourceNotFound("Batch not found or not assigned to your warehouse")

    current = BatchStatus(batch.status)
    task = _latest_task(db, batch, [TransportStatus.DELIVERED])
    if not task and current != BatchStatus.PACKAGED:
        raise ValidationError("Batch has not been delivered yet")

    if current not in (BatchStatus.SHIPPED, BatchStatus.PACKAGED):
        raise IllegalStatusTransition(
            current, BatchStatus.RECEIVED,
            message=f"Batch cannot be received in status {current.value}",
        )

    delivery = None
    if task:
        delivery = {
            "taskId": str(task.id),
            "deliveredAt": task.actual_delivery_date.isoformat() if task.actual_delivery_date else None,
            "driverName": task.driver.name if task.driver else None,
            "vehiclePlate": task.vehicle.plate_number if task.vehicle else None,
            "deliveryLocation": task.delivery_location,
        }

    log_activity(
        db, context.user_id, "BATCH_VERIFICATION", "CropBatch", batch.id,
        {"batchCode": batch.batch_code, "status": current.value, "delivered": task is not None},
        request=request,
    )
    return {"batch": batch, "delivery": delivery}

def confirm_receipt(
    db: Session,
    context: AuthContext,
    batch_id: uuid.UUID,
    received_quantity: Optional[float] = None,
    quality_notes: Optional[str] = None,
    request: Optional[Request] = None,
) -> CropBatch:
    batch = _scoped_batch(db, context, batch_id)
    current = BatchStatus(batch.status)

    if current == BatchStatus.SHIPPED and not _latest_task(db, batch, [TransportStatus.DELIVERED]):
        raise ValidationError("Batch has not been delivered yet")
    if received_quantity is not None and (not math.isfinite(received_quantity) or received_quantity < 0):
        raise ValidationError("Received quantity must be zero or more")

    changes = {}
    note = f"Received at warehouse on {datetime.now(timezone.utc).date().isoformat()}"
    if received_quantity is not None:
        changes["received_quantity"] = received_quantity
        note = f"{note}, quantity {received_quantity:g}"
    if quality_notes and quality_notes.strip():
        note = f"{note}. Quality notes: {quality_notes.strip()}"

    batch = transition_batch(db, batch, BatchStatus.RECEIVED, changes=changes, note=note)
    logger.info(f"✅ Batch {batch.batch_code} received at warehouse {context.warehouse_id}")

    task = _latest_task(db, batch)
    title = f"Batch {batch.batch_code} received"
    message = f"Batch {batch.batch_code} ({batch.crop_type}) has been received at the warehouse."
    metadata = _batch_metadata(batch, receivedQuantity=received_quantity)
    if task:
        notification_service.fan_out(
            db,
            notification_service.notify_users,
            [task.coordinator.user_id if task.coordinator else None],
            NotificationType.BATCH_RECEIVED,
            NotificationCategory.TRANSPORT,
            title, message,
            metadata=metadata,
            created_by=context.user_id,
        )
    notification_service.fan_out(
        db,
        notification_service.notify_role,
        Role.PROCUREMENT_OFFICER,
        NotificationType.BATCH_RECEIVED,
        NotificationCategory.WAREHOUSE,
        title, message,
        metadata=metadata,
        created_by=context.user_id,
    )

    log_activity(
        db, context.user_id, "BATCH_RECEIPT_CONFIRMATION", "CropBatch", batch.id,
        {
            "batchCode": batch.batch_code,
            "statusFrom": current.value,
            "statusTo": BatchStatus.RECEIVED.value,
            "receivedQuantity": received_quantity,
            "qualityNotes": quality_notes,
        },
        request=request,
    )
    return batch

# ============================================================================
# STORAGE
# ============================================================================

def update_storage_status(
    db: Session,
    context: AuthContext,
    batch_id: uuid.UUID,
    storage_location: Optional[str] = None,
    notes: Optional[str] = None,
    request: Optional[Request] = None,
) -> CropBatch:
    batch = _scoped_batch(db, context, batch_id)
    current = BatchStatus(batch.status)

    location = (storage_location or "").strip() or None
    lines = []
    if location:
        lines.append(f"Storage location: {location}")
    if notes and notes.strip():
        lines.append(notes.strip())

    changes = {"storage_location": location} if location else {}
    batch = transition_batch(
        db, batch, BatchStatus.STORED, changes=changes,
        note="\n".join(lines) or None,
    )
    logger.info(f"🏬 Batch {batch.batch_code} stored at {location or 'unspecified location'}")

    notification_service.fan_out(
        db,
        notification_service.notify_role,
        Role.PROCUREMENT_OFFICER,
        NotificationType.BATCH_STORED,
        NotificationCategory.WAREHOUSE,
        f"Batch {batch.batch_code} stored",
        f"Batch {batch.batch_code} ({batch.crop_type}) is now in storage"
        + (f" at {location}." if location else "."),
        metadata=_batch_metadata(batch, storageLocation=location),
        created_by=context.user_id,
    )

    log_activity(
        db, context.user_id, "BATCH_STORAGE_UPDATE", "CropBatch", batch.id,
        {
            "batchCode": batch.batch_code,
            "statusFrom": current.value,
            "statusTo": BatchStatus.STORED.value,
            "storageLocation": location,
        },
        request=request,
    )
    return batch

# ============================================================================
# READ
# ============================================================================

def list_warehouse_batches(db: Session, context: AuthContext, statuses: Optional[Iterable] = None):
    warehouse_id = context.require_warehouse()
    wanted = [parse_batch_status(s) for s in statuses] if statuses else list(WAREHOUSE_VISIBLE)
    return (
        db.query(CropBatch)
        .filter(CropBatch.warehouse_id == warehouse_id, CropBatch.status.in_(wanted))
        .order_by(CropBatch.updated_at.desc())
        .all()
    )
