import itertools

import pytest

from models import BatchStatus, CropBatch, TransportStatus
from services.batch_workflow import (
    BATCH_TRANSITIONS, TASK_TRANSITIONS, append_note, can_transition,
    can_transition_task, ensure_transition, next_allowed, transition_batch,
)
from utils.errors import IllegalStatusTransition

from .conftest import TestingSessionLocal
from .factories import make_batch, make_warehouse


LEGAL = {(current, target) for current, targets in BATCH_TRANSITIONS.items() for target in targets}
ILLEGAL = [pair for pair in itertools.product(BatchStatus, BatchStatus) if pair not in LEGAL]


def test_every_status_has_a_table_entry():
    assert set(BATCH_TRANSITIONS) == set(BatchStatus)
    assert set(TASK_TRANSITIONS) == set(TransportStatus)


def test_main_line_and_side_branches():
    assert next_allowed(BatchStatus.PLANTED) == {BatchStatus.GROWING}
    assert next_allowed(BatchStatus.PENDING_APPROVAL) == {BatchStatus.PROCESSED, BatchStatus.READY_FOR_HARVEST}
    assert next_allowed(BatchStatus.PACKAGED) == {BatchStatus.SHIPPED, BatchStatus.RECEIVED}
    assert next_allowed(BatchStatus.STORED) == frozenset()
    assert next_allowed(BatchStatus.SHIPPED) == {BatchStatus.RECEIVED, BatchStatus.PACKAGED}
    assert can_transition("SHIPPED", "RECEIVED")
    assert not can_transition("PACKAGING", "STORED")


def test_unknown_status_is_never_legal():
    assert not can_transition(BatchStatus.PLANTED, "COMPOSTED")


@pytest.mark.parametrize("current,target", ILLEGAL)
def test_illegal_pairs_raise(current, target):
    with pytest.raises(IllegalStatusTransition) as exc:
        ensure_transition(current, target)
    assert exc.value.message == f"Cannot transition from {current.value} to {target.value}"
    assert exc.value.status_code == 400


def test_task_transitions():
    assert can_transition_task(TransportStatus.SCHEDULED, TransportStatus.IN_TRANSIT)
    assert can_transition_task(TransportStatus.DELAYED, TransportStatus.SCHEDULED)
    assert not can_transition_task(TransportStatus.DELIVERED, TransportStatus.IN_TRANSIT)
    assert not can_transition_task(TransportStatus.CANCELLED, TransportStatus.SCHEDULED)


def test_append_note():
    assert append_note(None, "first") == "first"
    assert append_note("first", "  second ") == "first\nsecond"
    assert append_note("first", "   ") == "first"


def test_transition_changes_only_status_and_documented_fields(db):
    warehouse = make_warehouse(db)
    batch = make_batch(db, BatchStatus.RECEIVED, warehouse=warehouse, notes="Harvested on time")
    before = {
        "batch_code": batch.batch_code,
        "crop_type": batch.crop_type,
        "variety": batch.variety,
        "quantity": batch.quantity,
        "farm_id": batch.farm_id,
        "farmer_id": batch.farmer_id,
        "warehouse_id": batch.warehouse_id,
        "created_by": batch.created_by,
    }

    transition_batch(db, batch, BatchStatus.STORED, changes={"storage_location": "B2"}, note="Storage location: B2")

    db.expire_all()
    stored = db.query(CropBatch).filter(CropBatch.id == batch.id).one()
    assert stored.status == BatchStatus.STORED
    assert stored.storage_location == "B2"
    assert stored.notes == "Harvested on time\nStorage location: B2"
    for field, value in before.items():
        assert getattr(stored, field) == value


def test_illegal_transition_leaves_row_untouched(db):
    batch = make_batch(db, BatchStatus.PACKAGING)

    with pytest.raises(IllegalStatusTransition):
        transition_batch(db, batch, BatchStatus.STORED, note="should not be written")

    db.expire_all()
    stored = db.query(CropBatch).filter(CropBatch.id == batch.id).one()
    assert stored.status == BatchStatus.PACKAGING
    assert stored.notes is None


def test_stale_read_loses_the_race(db):
    batch = make_batch(db, BatchStatus.PACKAGING)

    # a second request moves the batch first
    other = TestingSessionLocal()
    try:
        rival = other.query(CropBatch).filter(CropBatch.id == batch.id).one()
        transition_batch(other, rival, BatchStatus.PACKAGED)
    finally:
        other.close()

    with pytest.raises(IllegalStatusTransition) as exc:
        transition_batch(db, batch, BatchStatus.PACKAGED, note="duplicate")
    assert exc.value.status_code == 409
    assert exc.value.current == BatchStatus.PACKAGED

    db.expire_all()
    stored = db.query(CropBatch).filter(CropBatch.id == batch.id).one()
    assert stored.status == BatchStatus.PACKAGED
    assert stored.notes is None
