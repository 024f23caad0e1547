"""
Crop batch and transport task status lifecycles.

``BATCH_TRANSITIONS`` is the only place the batch adjacency table lives; every
role-specific action validates against it and persists the change through
``transition_batch``, which issues a conditional ``UPDATE ... WHERE status =
:expected`` so two requests racing on the same row cannot both succeed.
"""

from datetime import datetime, timezone
from typing import Dict, FrozenSet, Optional
import logging

from sqlalchemy.orm import Session

from models import BatchStatus, CropBatch, TransportStatus, TransportTask
from utils.errors import IllegalStatusTransition, ResourceNotFound

logger = logging.getLogger(__name__)

BATCH_TRANSITIONS: Dict[BatchStatus, FrozenSet[BatchStatus]] = {
    BatchStatus.PLANTED: frozenset({BatchStatus.GROWING}),
    BatchStatus.GROWING: frozenset({BatchStatus.READY_FOR_HARVEST}),
    BatchStatus.READY_FOR_HARVEST: frozenset({BatchStatus.HARVESTED}),
    BatchStatus.HARVESTED: frozenset({BatchStatus.PENDING_APPROVAL, BatchStatus.PROCESSED}),
    # approve / send back for rework
    BatchStatus.PENDING_APPROVAL: frozenset({BatchStatus.PROCESSED, BatchStatus.READY_FOR_HARVEST}),
    BatchStatus.PROCESSED: frozenset({BatchStatus.READY_FOR_PACKAGING}),
    BatchStatus.READY_FOR_PACKAGING: frozenset({BatchStatus.PACKAGING}),
    BatchStatus.PACKAGING: frozenset({BatchStatus.PACKAGED}),
    BatchStatus.PACKAGED: frozenset({BatchStatus.SHIPPED, BatchStatus.RECEIVED}),
    # back to PACKAGED only when the transport task is cancelled
    BatchStatus.SHIPPED: frozenset({BatchStatus.RECEIVED, BatchStatus.PACKAGED}),
    BatchStatus.RECEIVED: frozenset({BatchStatus.STORED}),
    BatchStatus.STORED: frozenset(),
}

TASK_TRANSITIONS: Dict[TransportStatus, FrozenSet[TransportStatus]] = {
    TransportStatus.SCHEDULED: frozenset({
        TransportStatus.IN_TRANSIT, TransportStatus.DELAYED, TransportStatus.CANCELLED,
    }),
    TransportStatus.IN_TRANSIT: frozenset({TransportStatus.DELIVERED, TransportStatus.DELAYED}),
    TransportStatus.DELAYED: frozenset({
        TransportStatus.SCHEDULED, TransportStatus.IN_TRANSIT,
        TransportStatus.DELIVERED, TransportStatus.CANCELLED,
    }),
    TransportStatus.DELIVERED: frozenset(),
    TransportStatus.CANCELLED: frozenset(),
}

ACTIVE_TASK_STATUSES = (TransportStatus.SCHEDULED, TransportStatus.IN_TRANSIT)

def parse_batch_status(value) -> BatchStatus:
    try:
        return BatchStatus(value)
    except ValueError:
        raise IllegalStatusTransition(None, value, message=f"Invalid status: {value}")

def next_allowed(current) -> FrozenSet[BatchStatus]:
    """Statuses a batch currently at ``current`` may move to."""
    return BATCH_TRANSITIONS.get(BatchStatus(current), frozenset())

def can_transition(current, target) -> bool:
    try:
        return BatchStatus(target) in next_allowed(current)
    except ValueError:
        return False

def ensure_transition(current, target) -> None:
    if not can_transition(current, target):
        raise IllegalStatusTransition(current, target)

def next_task_allowed(current) -> FrozenSet[TransportStatus]:
    return TASK_TRANSITIONS.get(TransportStatus(current), frozenset())

def can_transition_task(current, target) -> bool:
    try:
        return TransportStatus(target) in next_task_allowed(current)
    except ValueError:
        return False

def append_note(existing: Optional[str], line: Optional[str]) -> Optional[str]:
    """Append one annotation to the batch's notes log."""
    if not line or not line.strip():
        return existing
    if not existing:
        return line.strip()
    return f"{existing}\n{line.strip()}"

def get_batch(db: Session, batch_id) -> CropBatch:
    batch = db.query(CropBatch).filter(CropBatch.id == batch_id).first()
    if not batch:
        raise ResourceNotFound("Batch not found")
    return batch

def transition_batch(
    db: Session,
    batch: CropBatch,
    target: BatchStatus,
    changes: Optional[dict] = None,
    note: Optional[str] = None,
) -> CropBatch:
    """
    Move ``batch`` to ``target`` if the table allows it and nobody moved it first.

    ``changes`` holds the side fields the calling action documents (received
    quantity, storage location, approval data...). The row is committed and
    refreshed before returning.
    """
    current = BatchStatus(batch.status)
    target = BatchStatus(target)
    ensure_transition(current, target)

    values = dict(changes or {})
    values["status"] = target
    values["updated_at"] = datetime.now(timezone.utc)
    if note:
        values["notes"] = append_note(batch.notes, note)

    updated = (
        db.query(CropBatch)
        .filter(CropBatch.id == batch.id, CropBatch.status == current)
        .update(values, synchronize_session=False)
    )
    if updated == 0:
        db.rollback()
        db.expire(batch)
        actual = db.query(CropBatch.status).filter(CropBatch.id == batch.id).scalar()
        if actual is None:
            raise ResourceNotFound("Batch not found")
        logger.warning(
            f"Batch {batch.id} moved to {BatchStatus(actual).value} before {current.value} -> {target.value} was applied"
        )
        raise IllegalStatusTransition(actual, target, concurrent=True)

    db.commit()
    db.refresh(batch)
    return batch

def transition_task(
    db: Session,
    task: TransportTask,
    target: TransportStatus,
    changes: Optional[dict] = None,
    commit: bool = True,
) -> TransportTask:
    """Compare-and-swap a transport task status, mirroring ``transition_batch``."""
    current = TransportStatus(task.status)
    target = TransportStatus(target)
    if not can_transition_task(current, target):
        raise IllegalStatusTransition(current, target)

    values = dict(changes or {})
    values["status"] = target
    values["updated_at"] = datetime.now(timezone.utc)

    updated = (
        db.query(TransportTask)
        .filter(TransportTask.id == task.id, TransportTask.status == current)
        .update(values, synchronize_session=False)
    )
    if updated == 0:
        db.rollback()
        db.expire(task)
        actual = db.query(TransportTask.status).filter(TransportTask.id == task.id).scalar()
        if actual is None:
            raise ResourceNotFound("Transport task not found")
        raise IllegalStatusTransition(actual, target, concurrent=True)

    if commit:
        db.commit()
        db.refresh(task)
    return task
