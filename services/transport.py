"""
Transport coordinator operations: fleet (vehicles, drivers), scheduling,
task status, issues and dashboard stats.
"""

from datetime import datetime, timezone
from typing import Optional
import logging
import uuid

from fastapi import Request
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import (
    BatchStatus, Driver, DriverStatus, IssueStatus, IssueType,
    NotificationCategory, NotificationType, Profile, Role, TransportIssue,
    TransportStatus, TransportTask, Vehicle, VehicleStatus, VehicleType,
)
from services.activity_logger import log_activity
from services.batch_workflow import (
    ACTIVE_TASK_STATUSES, ensure_transition, get_batch, transition_batch,
    transition_task,
)
from services.notification_service import notification_service
from utils.errors import Conflict, IllegalStatusTransition, ResourceNotFound, ValidationError
from utils.permissions import AuthContext

logger = logging.getLogger(__name__)

# A task holding a driver/vehicle for the day
BOOKED_TASK_STATUSES = (TransportStatus.SCHEDULED, TransportStatus.IN_TRANSIT, TransportStatus.DELAYED)

def _enum(enum_cls, value, label: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Invalid {label}: {value}")

def _task_metadata(task: TransportTask, batch=None) -> dict:
    batch = batch or task.crop_batch
    return {
        "taskId": str(task.id),
        "batchId": str(batch.id),
        "batchCode": batch.batch_code,
    }

def get_task(db: Session, task_id) -> TransportTask:
    task = db.query(TransportTask).filter(TransportTask.id == task_id).first()
    if not task:
        raise ResourceNotFound("Transport task not found")
    return task

def release_resources(db: Session, task: TransportTask) -> None:
    """
    Put the task's driver and vehicle back into the pool once the task ends.

    A driver with another active task stays ON_DUTY. Not committed here.
    """
    if task.driver_id:
        busy = (
            db.query(TransportTask)
            .filter(
                TransportTask.driver_id == task.driver_id,
                TransportTask.id != task.id,
                TransportTask.status.in_(ACTIVE_TASK_STATUSES),
            )
            .count()
        )
        if not busy:
            db.query(Driver).filter(
                Driver.id == task.driver_id, Driver.status == DriverStatus.ON_DUTY
            ).update({"status": DriverStatus.AVAILABLE}, synchronize_session=False)
    if task.vehicle_id:
        db.query(Vehicle).filter(
            Vehicle.id == task.vehicle_id, Vehicle.status == VehicleStatus.IN_USE
        ).update({"status": VehicleStatus.AVAILABLE}, synchronize_session=False)

# ============================================================================
# VEHICLES
# ============================================================================

def list_vehicles(db: Session, status: Optional[str] = None):
    query = db.query(Vehicle)
    if status:
        query = query.filter(Vehicle.status == _enum(VehicleStatus, status, "vehicle status"))
    return query.order_by(Vehicle.plate_number.asc()).all()

def create_vehicle(db: Session, context: AuthContext, data: dict, request: Optional[Request] = None) -> Vehicle:
    plate_number = (data.get("plate_number") or "").strip().upper()
    if not plate_number:
        raise ValidationError("Plate number is required")
    vehicle_type = _enum(VehicleType, data.get("vehicle_type"), "vehicle type")
    capacity = data.get("capacity")
    if capacity is None or capacity <= 0:
        raise ValidationError("Capacity must be greater than zero")

    if db.query(Vehicle).filter(Vehicle.plate_number == plate_number).first():
        raise Conflict("A vehicle with this plate number already exists")

    vehicle = Vehicle(
        plate_number=plate_number,
        vehicle_type=vehicle_type,
        capacity=capacity,
        status=VehicleStatus.AVAILABLE,
    )
    db.add(vehicle)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("A vehicle with this plate number already exists")
    db.refresh(vehicle)

    log_activity(
        db, context.user_id, "CREATE_VEHICLE", "Vehicle", vehicle.id,
        {"plateNumber": plate_number, "vehicleType": vehicle_type.value, "capacity": float(capacity)},
        request=request,
    )
    return vehicle

def update_vehicle_status(db: Session, context: AuthContext, vehicle_id: uuid.UUID, status, request: Optional[Request] = None) -> Vehicle:
    vehicle = db.query(Vehicle).filter(Vehicle.id == vehicle_id).first()
    if not vehicle:
        raise ResourceNotFound("Vehicle not found")
    target = _enum(VehicleStatus, status, "vehicle status")
    previous = VehicleStatus(vehicle.status)

    vehicle.status = target
    db.commit()
    db.refresh(vehicle)

    log_activity(
        db, context.user_id, "UPDATE_VEHICLE_STATUS", "Vehicle", vehicle.id,
        {"plateNumber": vehicle.plate_number, "statusFrom": previous.value, "statusTo": target.value},
        request=request,
    )
    return vehicle

# ============================================================================
# DRIVERS
# ============================================================================

def list_drivers(db: Session, status: Optional[str] = None):
    query = db.query(Driver)
    if status:
        query = query.filter(Driver.status == _enum(DriverStatus, status, "driver status"))
    return query.order_by(Driver.name.asc()).all()

def create_driver(db: Session, context: AuthContext, data: dict, request: Optional[Request] = None) -> Driver:
    name = (data.get("name") or "").strip()
    license_number = (data.get("license_number") or "").strip()
    if not name or not license_number:
        raise ValidationError("Name and license number are required")

    if db.query(Driver).filter(Driver.license_number == license_number).first():
        raise Conflict("A driver with this license number already exists")

    profile_id = data.get("profile_id")
    email = (data.get("email") or "").strip() or None
    if profile_id:
        profile = (
            db.query(Profile)
            .filter(Profile.id == profile_id, Profile.role == Role.TRANSPORT_DRIVER)
            .first()
        )
        if not profile:
            raise ResourceNotFound("Driver profile not found")
        email = email or profile.email

    driver = Driver(
        name=name,
        email=email,
        phone=(data.get("phone") or "").strip() or None,
        license_number=license_number,
        profile_id=profile_id,
        status=DriverStatus.AVAILABLE,
    )
    db.add(driver)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Driver already exists for this license or profile")
    db.refresh(driver)

    log_activity(
        db, context.user_id, "CREATE_DRIVER", "Driver", driver.id,
        {"name": name, "licenseNumber": license_number},
        request=request,
    )
    return driver

def update_driver_status(db: Session, context: AuthContext, driver_id: uuid.UUID, status, request: Optional[Request] = None) -> Driver:
    driver = db.query(Driver).filter(Driver.id == driver_id).first()
    if not driver:
        raise ResourceNotFound("Driver not found")
    target = _enum(DriverStatus, status, "driver status")
    previous = DriverStatus(driver.status)

    driver.status = target
    db.commit()
    db.refresh(driver)

    log_activity(
        db, context.user_id, "UPDATE_DRIVER_STATUS", "Driver", driver.id,
        {"name": driver.name, "statusFrom": previous.value, "statusTo": target.value},
        request=request,
    )
    return driver

# ============================================================================
# SCHEDULING
# ============================================================================

def _booked_on(db: Session, column, resource_id, day) -> bool:
    tasks = (
        db.query(TransportTask.scheduled_date)
        .filter(column == resource_id, TransportTask.status.in_(BOOKED_TASK_STATUSES))
        .all()
    )
    # compared in Python: SQLite returns naive datetimes
    return any(row.scheduled_date and row.scheduled_date.date() == day for row in tasks)

def schedule_transport(
    db: Session,
    context: AuthContext,
    batch_id: uuid.UUID,
    driver_id: uuid.UUID,
    vehicle_id: uuid.UUID,
    scheduled_date: datetime,
    pickup_location: str,
    delivery_location: str,
    notes: Optional[str] = None,
    request: Optional[Request] = None,
) -> TransportTask:
    """
    Create a SCHEDULED task for a packaged batch.

    The task row, the driver/vehicle reservations and the batch's move to
    SHIPPED are committed together by ``transition_batch``; if the batch was
    moved by someone else first, all of it is rolled back.
    """
    pickup_location = (pickup_location or "").strip()
    delivery_location = (delivery_location or "").strip()
    if not pickup_location or not delivery_location:
        raise ValidationError("Pickup and delivery locations are required")
    if scheduled_date is None:
        raise ValidationError("Scheduled date is required")

    batch = get_batch(db, batch_id)
    current = BatchStatus(batch.status)
    if current != BatchStatus.PACKAGED:
        raise IllegalStatusTransition(
            current, BatchStatus.SHIPPED,
            message="Only packaged batches can be scheduled for transport",
        )
    ensure_transition(current, BatchStatus.SHIPPED)
    if not batch.warehouse_id:
        raise ValidationError("Batch has no destination warehouse")

    existing = (
        db.query(TransportTask)
        .filter(
            TransportTask.crop_batch_id == batch.id,
            TransportTask.status.in_(ACTIVE_TASK_STATUSES),
        )
        .first()
    )
    if existing:
        raise Conflict("Batch already has an active transport task")

    driver = db.query(Driver).filter(Driver.id == driver_id).first()
    if not driver:
        raise ResourceNotFound("Driver not found")
    vehicle = db.query(Vehicle).filter(Vehicle.id == vehicle_id).first()
    if not vehicle:
        raise ResourceNotFound("Vehicle not found")
    if DriverStatus(driver.status) != DriverStatus.AVAILABLE:
        raise Conflict("Driver is not available")
    if VehicleStatus(vehicle.status) != VehicleStatus.AVAILABLE:
        raise Conflict("Vehicle is not available")

    day = scheduled_date.date()
    if _booked_on(db, TransportTask.driver_id, driver.id, day):
        raise Conflict("Driver already has a task scheduled that day")
    if _booked_on(db, TransportTask.vehicle_id, vehicle.id, day):
        raise Conflict("Vehicle already has a task scheduled that day")

    task = TransportTask(
        crop_batch_id=batch.id,
        driver_id=driver.id,
        vehicle_id=vehicle.id,
        coordinator_id=context.profile.id,
        status=TransportStatus.SCHEDULED,
        scheduled_date=scheduled_date,
        pickup_location=pickup_location,
        delivery_location=delivery_location,
        notes=(notes or "").strip() or None,
    )
    db.add(task)
    reserved = (
        db.query(Driver)
        .filter(Driver.id == driver.id, Driver.status == DriverStatus.AVAILABLE)
        .update({"status": DriverStatus.ON_DUTY}, synchronize_session=False)
    )
    reserved += (
        db.query(Vehicle)
        .filter(Vehicle.id == vehicle.id, Vehicle.status == VehicleStatus.AVAILABLE)
        .update({"status": VehicleStatus.IN_USE}, synchronize_session=False)
    )
    if reserved != 2:
        db.rollback()
        raise Conflict("Driver or vehicle was booked by another request")

    batch = transition_batch(
        db, batch, BatchStatus.SHIPPED,
        note=f"Transport scheduled for {day.isoformat()} with {driver.name} ({vehicle.plate_number})",
    )
    db.refresh(task)
    logger.info(f"🚚 Task {task.id} scheduled for batch {batch.batch_code}")

    metadata = _task_metadata(task, batch)
    metadata["scheduledDate"] = scheduled_date.isoformat()
    if driver.profile_id:
        notification_service.fan_out(
            db,
            notification_service.notify_users,
            [driver.profile.user_id if driver.profile else None],
            NotificationType.TASK_ASSIGNED,
            NotificationCategory.TRANSPORT,
            f"New transport task for {batch.batch_code}",
            f"Pick up batch {batch.batch_code} at {pickup_location} on {day.isoformat()} "
            f"and deliver to {delivery_location}.",
            metadata=metadata,
            created_by=context.user_id,
        )
    notification_service.fan_out(
        db,
        notification_service.notify_role,
        Role.WAREHOUSE_MANAGER,
        NotificationType.SHIPMENT_ARRIVING,
        NotificationCategory.WAREHOUSE,
        f"Shipment scheduled for {batch.batch_code}",
        f"Batch {batch.batch_code} is scheduled for delivery on {day.isoformat()}.",
        metadata=metadata,
        warehouse_id=batch.warehouse_id,
        created_by=context.user_id,
    )

    log_activity(
        db, context.user_id, "SCHEDULE_TRANSPORT", "TransportTask", task.id,
        {
            "batchCode": batch.batch_code,
            "statusFrom": current.value,
            "statusTo": BatchStatus.SHIPPED.value,
            "driverId": str(driver.id),
            "vehicleId": str(vehicle.id),
            "scheduledDate": scheduled_date.isoformat(),
        },
        request=request,
    )
    return task

def list_tasks(db: Session, status: Optional[str] = None):
    query = db.query(TransportTask)
    if status:
        query = query.filter(TransportTask.status == _enum(TransportStatus, status, "task status"))
    return query.order_by(TransportTask.scheduled_date.desc()).all()

def update_task_status(
    db: Session,
    context: AuthContext,
    task_id: uuid.UUID,
    status,
    notes: Optional[str] = None,
    request: Optional[Request] = None,
) -> TransportTask:
    """
    Coordinator edit of a task's status. Receipt at the warehouse stays with
    the warehouse manager; cancelling a task puts a SHIPPED batch back to
    PACKAGED so it can be scheduled again.
    """
    task = get_task(db, task_id)
    current = TransportStatus(task.status)
    target = _enum(TransportStatus, status, "task status")

    now = datetime.now(timezone.utc)
    changes = {}
    if target == TransportStatus.IN_TRANSIT and not task.actual_pickup_date:
        changes["actual_pickup_date"] = now
    if target == TransportStatus.DELIVERED:
        changes["actual_delivery_date"] = now
    if notes and notes.strip():
        changes["notes"] = f"{task.notes}\n{notes.strip()}" if task.notes else notes.strip()

    task = transition_task(db, task, target, changes=changes, commit=False)
    if target in (TransportStatus.DELIVERED, TransportStatus.CANCELLED):
        release_resources(db, task)

    batch = task.crop_batch
    if target == TransportStatus.CANCELLED and BatchStatus(batch.status) == BatchStatus.SHIPPED:
        # commits the task, the released fleet and the batch together
        transition_batch(
            db, batch, BatchStatus.PACKAGED,
            note="Transport cancelled, batch awaiting rescheduling",
        )
        logger.info(f"↩️ Batch {batch.batch_code} returned to PACKAGED after task {task.id} was cancelled")
    else:
        db.commit()
    db.refresh(task)

    if target == TransportStatus.DELIVERED:
        batch = task.crop_batch
        notification_service.fan_out(
            db,
            notification_service.notify_role,
            Role.WAREHOUSE_MANAGER,
            NotificationType.DELIVERY_CONFIRMED,
            NotificationCategory.WAREHOUSE,
            f"Batch {batch.batch_code} delivered",
            f"Batch {batch.batch_code} has been delivered and is waiting for receipt confirmation.",
            metadata=_task_metadata(task),
            warehouse_id=batch.warehouse_id,
            created_by=context.user_id,
        )

    log_activity(
        db, context.user_id, "UPDATE_TRANSPORT_STATUS", "TransportTask", task.id,
        {"statusFrom": current.value, "statusTo": target.value, "notes": notes},
        request=request,
    )
    return task

# ============================================================================
# ISSUES
# ============================================================================

def list_issues(db: Session, status: Optional[str] = None):
    query = db.query(TransportIssue)
    if status:
        query = query.filter(TransportIssue.status == _enum(IssueStatus, status, "issue status"))
    return query.order_by(TransportIssue.reported_at.desc()).all()

def create_issue(
    db: Session,
    context: AuthContext,
    task_id: uuid.UUID,
    issue_type,
    description: str,
    request: Optional[Request] = None,
) -> TransportIssue:
    task = get_task(db, task_id)
    issue_type = _enum(IssueType, issue_type, "issue type")
    description = (description or "").strip()
    if not description:
        raise ValidationError("Description is required")

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

    log_activity(
        db, context.user_id, "CREATE_TRANSPORT_ISSUE", "TransportIssue", issue.id,
        {"taskId": str(task.id), "issueType": issue_type.value},
        request=request,
    )
    return issue

def update_issue(
    db: Session,
    context: AuthContext,
    issue_id: uuid.UUID,
    status,
    resolution: Optional[str] = None,
    request: Optional[Request] = None,
) -> TransportIssue:
    issue = db.query(TransportIssue).filter(TransportIssue.id == issue_id).first()
    if not issue:
        raise ResourceNotFound("Issue not found")

    target = _enum(IssueStatus, status, "issue status")
    resolution = (resolution or "").strip() or None
    if target == IssueStatus.RESOLVED and not resolution:
        raise ValidationError("Resolution is required to resolve an issue")

    previous = IssueStatus(issue.status)
    issue.status = target
    if resolution:
        issue.resolution = resolution
    if target == IssueStatus.RESOLVED:
        issue.resolved_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(issue)

    log_activity(
        db, context.user_id, "UPDATE_TRANSPORT_ISSUE", "TransportIssue", issue.id,
        {"statusFrom": previous.value, "statusTo": target.value, "resolution": resolution},
        request=request,
    )
    return issue

# ============================================================================
# STATS
# ============================================================================

def coordinator_stats(db: Session) -> dict:
    counts = dict(
        db.query(TransportTask.status, func.count(TransportTask.id))
        .group_by(TransportTask.status)
        .all()
    )
    return {
        "tasks": {s.value: counts.get(s, 0) for s in TransportStatus},
        "availableVehicles": db.query(Vehicle).filter(Vehicle.status == VehicleStatus.AVAILABLE).count(),
        "availableDrivers": db.query(Driver).filter(Driver.status == DriverStatus.AVAILABLE).count(),
        "openIssues": db.query(TransportIssue).filter(
            TransportIssue.status.in_([IssueStatus.OPEN, IssueStatus.IN_PROGRESS, IssueStatus.ESCALATED])
        ).count(),
    }
