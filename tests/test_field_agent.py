from models import ActivityLog, BatchStatus, CropBatch, Notification, NotificationType, Role

from .conftest import client
from .factories import auth_headers, make_batch, make_profile, make_warehouse


def test_register_farmer_farm_and_batch(client, db):
    agent = make_profile(db, Role.FIELD_AGENT)
    headers = auth_headers(agent)

    resp = client.post("/api/field-agent/farmers", json={"name": "John Kamau", "phone": "+254722000000"}, headers=headers)
    assert resp.status_code == 200, resp.text
    farmer = resp.json()["farmer"]
    assert farmer["farmer_code"].startswith("FAR-")

    resp = client.post(
        "/api/field-agent/farms",
        json={"name": "Hillside", "farmerId": farmer["id"], "location": "Nakuru", "area": 4.2},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    farm = resp.json()["farm"]
    assert farm["farm_code"].startswith("FM-")

    resp = client.post(
        "/api/field-agent/batches",
        json={"cropType": "Maize", "farmId": farm["id"], "quantity": 800, "plantingDate": "2026-03-01"},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    batch = resp.json()["batch"]
    assert batch["status"] == "PLANTED"
    assert batch["unit"] == "kg"
    assert batch["farmer_id"] == farmer["id"]
    assert batch["qr_code"].startswith(f"{batch['batch_code']}-{farm['id']}-")

    resp = client.get("/api/field-agent/batches", headers=headers)
    assert [b["id"] for b in resp.json()["batches"]] == [batch["id"]]

    actions = {log.action for log in db.query(ActivityLog).all()}
    assert {"CREATE_FARMER", "CREATE_FARM", "CREATE_CROP_BATCH"} <= actions


def test_deactivated_farmer_is_hidden(client, db):
    agent = make_profile(db, Role.FIELD_AGENT)
    headers = auth_headers(agent)
    farmer_id = client.post("/api/field-agent/farmers", json={"name": "Mary"}, headers=headers).json()["farmer"]["id"]

    resp = client.delete(f"/api/field-agent/farmers/{farmer_id}", headers=headers)
    assert resp.status_code == 200
    assert client.get("/api/field-agent/farmers", headers=headers).json()["count"] == 0

    resp = client.post("/api/field-agent/farms", json={"name": "Plot", "farmerId": farmer_id}, headers=headers)
    assert resp.status_code == 404


def test_advance_to_harvest_notifies_procurement(client, db):
    agent = make_profile(db, Role.FIELD_AGENT)
    officer = make_profile(db, Role.PROCUREMENT_OFFICER)
    batch = make_batch(db, BatchStatus.GROWING, created_by=agent.user_id)

    resp = client.post(
        "/api/field-agent/batches/update-status",
        json={"batchId": str(batch.id), "status": "READY_FOR_HARVEST", "notes": "Cobs dry"},
        headers=auth_headers(agent),
    )
    assert resp.status_code == 200, resp.text

    db.refresh(batch)
    assert batch.status == BatchStatus.READY_FOR_HARVEST
    assert batch.notes == "Cobs dry"
    note = db.query(Notification).filter(Notification.user_id == officer.user_id).one()
    assert note.notification_type == NotificationType.HARVEST_READY
    log = db.query(ActivityLog).filter(ActivityLog.action == "UPDATE_CROP_STATUS").one()
    assert log.details["statusFrom"] == "GROWING"
    assert log.details["statusTo"] == "READY_FOR_HARVEST"


def test_harvest_stamps_date(client, db):
    agent = make_profile(db, Role.FIELD_AGENT)
    batch = make_batch(db, BatchStatus.READY_FOR_HARVEST)

    resp = client.post(
        "/api/field-agent/batches/update-status",
        json={"batchId": str(batch.id), "status": "HARVESTED", "notes": "Harvested", "quantity": 620},
        headers=auth_headers(agent),
    )
    assert resp.status_code == 200, resp.text
    db.refresh(batch)
    assert batch.actual_harvest is not None
    assert float(batch.quantity) == 620


def test_notes_are_required(client, db):
    agent = make_profile(db, Role.FIELD_AGENT)
    batch = make_batch(db, BatchStatus.PLANTED)

    resp = client.post(
        "/api/field-agent/batches/update-status",
        json={"batchId": str(batch.id), "status": "GROWING"},
        headers=auth_headers(agent),
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "Please provide status notes"


def test_field_agent_limits(client, db):
    agent = make_profile(db, Role.FIELD_AGENT)
    headers = auth_headers(agent)

    shipped = make_batch(db, BatchStatus.PACKAGED, warehouse=make_warehouse(db))
    resp = client.post(
        "/api/field-agent/batches/update-status",
        json={"batchId": str(shipped.id), "status": "SHIPPED", "notes": "on truck"},
        headers=headers,
    )
    assert resp.status_code == 400
    assert "Transport coordinator will handle the next steps" in resp.json()["error"]

    pending = make_batch(db, BatchStatus.PENDING_APPROVAL)
    resp = client.post(
        "/api/field-agent/batches/update-status",
        json={"batchId": str(pending.id), "status": "PROCESSED", "notes": "self-approve"},
        headers=headers,
    )
    assert resp.status_code == 400

    harvested = make_batch(db, BatchStatus.HARVESTED)
    resp = client.post(
        "/api/field-agent/batches/update-status",
        json={"batchId": str(harvested.id), "status": "PROCESSED", "notes": "skip review"},
        headers=headers,
    )
    assert resp.status_code == 400

    planted = make_batch(db, BatchStatus.PLANTED)
    resp = client.post(
        "/api/field-agent/batches/update-status",
        json={"batchId": str(planted.id), "status": "HARVESTED", "notes": "too early"},
        headers=headers,
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "Cannot transition from PLANTED to HARVESTED"

    statuses = {b.status for b in db.query(CropBatch).all()}
    assert BatchStatus.PROCESSED not in statuses
    assert BatchStatus.SHIPPED not in statuses


def test_field_agent_cannot_release_processed_batch_for_packaging(client, db):
    agent = make_profile(db, Role.FIELD_AGENT)
    batch = make_batch(db, BatchStatus.PROCESSED)

    resp = client.post(
        "/api/field-agent/batches/update-status",
        json={"batchId": str(batch.id), "status": "READY_FOR_PACKAGING", "notes": "bagged"},
        headers=auth_headers(agent),
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "Field agents cannot set READY_FOR_PACKAGING."

    # procurement can still hand it to a warehouse
    db.refresh(batch)
    assert batch.status == BatchStatus.PROCESSED
    assert batch.warehouse_id is None
