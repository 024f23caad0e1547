"""
Transport driver operations: pickup and delivery confirmation by QR scan,
issue reporting and the driver's own task list.
"""

from datetime import datetime, timezone
from typing import Optional
import json
import logging
import uuid

from fastapi import Request
from sqlalchemy.orm import Session

from models import (
    Driver, DriverStatus, IssueStatus, IssueType, NotificationCategory,
    NotificationPriority, NotificationType, Role, TransportIssue,
    TransportStatus, TransportTask,
)
from services.activity_logger import log_activity
from services.batch_workflow import append_note, can_transition_task, transition_task
from services.notification_service import notification_service
from services.transport import get_task, release_resources
from utils.errors import (
    IllegalStatusTransition, InsufficientRole, ResourceNotFound, ValidationError,
)
from utils.permissions import AuthContext

logger = logging.getLogger(__name__)

OPEN_TASK_STATUSES = (TransportStatus.SCHEDULED, TransportStatus.IN_TRANSIT, TransportStatus.DELAYED)

def get_driver_for(db: Session, context: AuthContext) -> Driver:
    """The Driver record behind the caller: linked profile first, then email"""
    driver = db.query(Driver).filter(Driver.profile_id == context.profile.id).first()
    if not driver and context.email:
        driver = db.query(Driver).filter(Driver.email == context.email).first()
    if not driver:
        raise ResourceNotFound("Driver profile not found")
    return driver

def _own_task(db: Session, driver: Driver, task_id) -> TransportTask:
    task = get_task(db, task_id)
    if task.driver_id != driver.id:
        raise InsufficientRole("This task is not assigned to you")
    return task

def scanned_codes(scanned: str) -> set:
    """
    Values a scan may carry: the raw text, or the ``batchCode`` / ``qrCode``
    fields when the label encodes a JSON object.
    """
    scanned = (scanned or "").strip()
    codes = {scanned} if scanned else set()
    if scanned.startswith("{"):
        try:
            payload = json.loads(scanned)
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            for key in ("batchCode", "qrCode"):
                value = payload.get(key)
                if isinstance(value, str) and value.strip():
                    codes.add(value.strip())
    return codes

def qr_matches(scanned: str, batch) -> bool:
    codes = scanned_codes(scanned)
    return bool(codes) and (batch.batch_code in codes or (batch.qr_code is not None and batch.qr_code in codes))

def confirm_pickup(
    db: Session,
    context: AuthContext,
    task_id: uuid.UUID,
    qr_code: str,
    notes: Optional[str] = None,
    request: Optional[Request] = None,
) -> TransportTask:
    driver = get_driver_for(db, context)
    task = _own_task(db, driver, task_id)
    current = TransportStatus(task.status)
    batch = task.crop_batch

    if current != TransportStatus.SCHEDULED:
        raise IllegalStatusTransition(current, TransportStatus.IN_TRANSIT, message="Task is not awaiting pickup")
    if not qr_matches(qr_code, batch):
        raise ValidationError("Scanned code does not match this batch")

    now = datetime.now(timezone.utc)
    task = transition_task(
        db, task, TransportStatus.IN_TRANSIT,
        changes={"actual_pickup_date": now, "notes": append_note(task.notes, notes)},
        commit=False,
    )
    db.query(Driver).filter(Driver.id == driver.id).update(
        {"status": DriverStatus.ON_DUTY}, synchronize_session=False
    )
    db.commit()
    db.refresh(task)
    logger.info(f"🚚 Pickup confirmed for batch {batch.batch_code} by {driver.name}")

    metadata = {"taskId": str(task.id), "batchId": str(batch.id), "batchCode": batch.batch_code}
    title = f"Batch {batch.batch_code} picked up"
    message = f"{driver.name} picked up batch {batch.batch_code} and is on the way to {task.delivery_location}."
    notification_service.fan_out(
        db,
        notification_service.notify_users,
        [task.coordinator.user_id if task.coordinator else None],
        NotificationType.PICKUP_READY,
        NotificationCategory.TRANSPORT,
        title, message,
        metadata=metadata,
        created_by=context.user_id,
    )
    notification_service.fan_out(
        db,
        notification_service.notify_role,
        Role.PROCUREMENT_OFFICER,
        NotificationType.SHIPMENT_ARRIVING,
        NotificationCategory.TRANSPORT,
        title, message,
        metadata=metadata,
        created_by=context.user_id,
    )
    if batch.warehouse_id:
        notification_service.fan_out(
            db,
            notification_service.notify_role,
            Role.WAREHOUSE_MANAGER,
            NotificationType.SHIPMENT_ARRIVING,
            NotificationCategory.WAREHOUSE,
            f"Batch {batch.batch_code} on the way",
            message,
            metadata=metadata,
            warehouse_id=batch.warehouse_id,
            created_by=context.user_id,
        )

    log_activity(
        db, context.user_id, "CONFIRM_PICKUP", "TransportTask", task.id,
        {
            "batchCode": batch.batch_code,
            "statusFrom": current.value,
            "statusTo": TransportStatus.IN_TRANSIT.value,
            "notes": notes,
        },
        request=request,
    )
    return task

def confirm_delivery(
    db: Session,
    context: AuthContext,
    task_id: uuid.UUID,
    qr_code: str,
    notes: Optional[str] = None,
    request: Optional[Request] = None,
) -> TransportTask:
    driver = get_driver_for(db, context)
    task = _own_task(db, driver, task_id)
    current = TransportStatus(task.status)
    batch = task.crop_batch

    if current != TransportStatus.IN_TRANSIT:
        raise IllegalStatusTransition(current, TransportStatus.DELIVERED, message="Task is not in transit")
    if not qr_matches(qr_code, batch):
        raise ValidationError("Scanned code does not match this batch")

    task = transition_task(
        db, task, TransportStatus.DELIVERED,
        changes={"actual_delivery_date": datetime.now(timezone.utc), "notes": append_note(task.notes, notes)},
        commit=False,
    )
    release_resources(db, task)
    db.commit()
    db.refresh(task)
    logger.info(f"✅ Delivery confirmed for batch {batch.batch_code} by {driver.name}")

    metadata = {"taskId": str(task.id), "batchId": str(batch.id), "batchCode": batch.batch_code}
    message = f"Batch {batch.batch_code} was delivered to {task.delivery_location} and awaits receipt confirmation."
    notification_service.fan_out(
        db,
        notification_service.notify_users,
        [task.coordinator.user_id if task.coordinator else None],
        NotificationType.DELIVERY_CONFIRMED,
        NotificationCategory.TRANSPORT,
        f"Batch {batch.batch_code} delivered",
        message,
        metadata=metadata,
        created_by=context.user_id,
    )
    if batch.warehouse_id:
        notification_service.fan_out(
            db,
            notification_service.notify_role,
            Role.WAREHOUSE_MANAGER,
            NotificationType.DELIVERY_CONFIRMED,
            NotificationCategory.WAREHOUSE,
            f"Batch {batch.batch_code} delivered",
            message,
            metadata=metadata,
            warehouse_id=batch.warehouse_id,
            created_by=context.user_id,
        )

    log_activity(
        db, context.user_id, "CONFIRM_DELIVERY", "TransportTask", task.id,
        {
            "batchCode": batch.batch_code,
            "statusFrom": current.value,
            "statusTo": TransportStatus.DELIVERED.value,
            "notes": notes,
        },
        request=request,
    )
    return task

def report_issue(
    db: Session,
    context: AuthContext,
    task_id: uuid.UUID,
    issue_type,
    description: str,
    request: Optional[Request] = None,
) -> TransportIssue:
    driver = get_driver_for(db, context)
    task = _own_task(db, driver, task_id)
    try:
        issue_type = IssueType(issue_type)
    except ValueError:
        raise ValidationError(f"Invalid issue type: {issue_type}")
    description = (description or "").strip()
    if not description:
        raise ValidationError("Description is required")

    current = TransportStatus(task.status)
    if issue_type == IssueType.VEHICLE_BREAKDOWN and can_transition_task(current, TransportStatus.DELAYED):
        transition_task(db, task, TransportStatus.DELAYED, commit=False)

    issue = TransportIssue(
        transport_task_id=task.id,
        issue_type=issue_type,
        status=IssueStatus.OPEN,
        description=description,
        reported_by=context.user_id,
    )
    db.add(issue)
    db.commit()
    db.refresh(issue)
    logger.warning(f"⚠️ {issue_type.value} reported on task {task.id} by {driver.name}")

    batch = task.crop_batch
    notification_service.fan_out(
        db,
        notification_service.notify_users,
        [task.coordinator.user_id if task.coordinator else None],
        NotificationType.ISSUE_REPORTED,
        NotificationCategory.TRANSPORT,
        f"Issue reported on {batch.batch_code}",
        f"{driver.name} reported {issue_type.value.replace('_', ' ').lower()}: {description}",
        metadata={
            "taskId": str(task.id),
            "issueId": str(issue.id),
            "batchId": str(batch.id),
            "batchCode": batch.batch_code,
        },
        priority=NotificationPriority.HIGH,
        created_by=context.user_id,
    )

    log_activity(
        db, context.user_id, "REPORT_TRANSPORT_ISSUE", "TransportIssue", issue.id,
        {"taskId": str(task.id), "issueType": issue_type.value, "description": description},
        request=request,
    )
    return issue

def my_tasks(db: Session, context: AuthContext, include_finished: bool = False):
    driver = get_driver_for(db, context)
    query = db.query(TransportTask).filter(TransportTask.driver_id == driver.id)
    if not include_finished:
        query = query.filter(TransportTask.status.in_(OPEN_TASK_STATUSES))
    return query.order_by(TransportTask.scheduled_date.asc()).all()

def my_stats(db: Session, context: AuthContext) -> dict:
    driver = get_driver_for(db, context)
    tasks = db.query(TransportTask).filter(TransportTask.driver_id == driver.id).all()
    today = datetime.now(timezone.utc).date()
    return {
        "driverStatus": DriverStatus(driver.status).value,
        "total": len(tasks),
        "scheduled": sum(1 for t in tasks if t.status == TransportStatus.SCHEDULED),
        "inTransit": sum(1 for t in tasks if t.status == TransportStatus.IN_TRANSIT),
        "delivered": sum(1 for t in tasks if t.status == TransportStatus.DELIVERED),
        "deliveredToday": sum(
            1 for t in tasks
            if t.status == TransportStatus.DELIVERED
            and t.actual_delivery_date
            and t.actual_delivery_date.date() == today
        ),
    }
