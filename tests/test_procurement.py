from models import ActivityLog, BatchStatus, Notification, NotificationType, Role

from .conftest import client
from .factories import auth_headers, make_batch, make_profile, make_warehouse


QUALITY = {"grade": "A", "moisture": 12.5, "defects": "none"}


def test_approve_pending_batch(client, db):
    agent = make_profile(db, Role.FIELD_AGENT)
    officer = make_profile(db, Role.PROCUREMENT_OFFICER, name="Grace Wanjiru")
    batch = make_batch(db, BatchStatus.PENDING_APPROVAL, created_by=agent.user_id)

    resp = client.post(
        "/api/procurement/batches/approve",
        json={
            "batchId": str(batch.id),
            "quality": QUALITY,
            "photos": [{"url": "https://cdn.example.com/b1.jpg", "caption": "sample"}],
        },
        headers=auth_headers(officer),
    )
    assert resp.status_code == 200, resp.text

    db.refresh(batch)
    assert batch.status == BatchStatus.PROCESSED
    data = batch.approval_data
    assert data["farmer"]["name"] == "Amina Otieno"
    assert data["farm"]["name"] == "Riverside Plot"
    assert data["harvest"]["quantity"] == 500
    assert data["quality"] == QUALITY
    assert data["photos"][0]["caption"] == "sample"
    assert data["approvedBy"]["name"] == "Grace Wanjiru"
    assert data["approvedAt"]

    notes = db.query(Notification).filter(Notification.user_id == agent.user_id).all()
    assert [n.notification_type for n in notes] == [NotificationType.BATCH_APPROVED]

    log = db.query(ActivityLog).filter(ActivityLog.action == "APPROVE_BATCH").one()
    assert log.details["statusFrom"] == "PENDING_APPROVAL"
    assert log.details["statusTo"] == "PROCESSED"


def test_approve_harvested_batch(client, db):
    officer = make_profile(db, Role.MANAGER)
    batch = make_batch(db, BatchStatus.HARVESTED)

    resp = client.post(
        "/api/procurement/batches/approve",
        json={"batchId": str(batch.id), "quality": QUALITY},
        headers=auth_headers(officer),
    )
    assert resp.status_code == 200, resp.text
    db.refresh(batch)
    assert batch.status == BatchStatus.PROCESSED


def test_approve_requires_review_status(client, db):
    officer = make_profile(db, Role.PROCUREMENT_OFFICER)
    batch = make_batch(db, BatchStatus.GROWING)

    resp = client.post(
        "/api/procurement/batches/approve",
        json={"batchId": str(batch.id), "quality": QUALITY},
        headers=auth_headers(officer),
    )
    assert resp.status_code == 400
    db.refresh(batch)
    assert batch.status == BatchStatus.GROWING
    assert batch.approval_data is None


def test_reject_pending_batch(client, db):
    agent = make_profile(db, Role.FIELD_AGENT)
    officer = make_profile(db, Role.PROCUREMENT_OFFICER)
    batch = make_batch(db, BatchStatus.PENDING_APPROVAL, created_by=agent.user_id)

    resp = client.post(
        "/api/procurement/batches/reject",
        json={"batchId": str(batch.id), "reason": "Moisture too high"},
        headers=auth_headers(officer),
    )
    assert resp.status_code == 200, resp.text

    db.refresh(batch)
    assert batch.status == BatchStatus.READY_FOR_HARVEST
    assert "Rejected by procurement: Moisture too high" in batch.notes

    note = db.query(Notification).filter(Notification.user_id == agent.user_id).one()
    assert note.notification_type == NotificationType.BATCH_REJECTED
    assert note.meta["reason"] == "Moisture too high"


def test_reject_needs_reason_and_pending_status(client, db):
    officer = make_profile(db, Role.PROCUREMENT_OFFICER)
    headers = auth_headers(officer)

    pending = make_batch(db, BatchStatus.PENDING_APPROVAL)
    resp = client.post("/api/procurement/batches/reject", json={"batchId": str(pending.id), "reason": "  "}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Rejection reason is required"

    growing = make_batch(db, BatchStatus.GROWING)
    resp = client.post("/api/procurement/batches/reject", json={"batchId": str(growing.id), "reason": "bad"}, headers=headers)
    assert resp.status_code == 400
    db.refresh(growing)
    assert growing.status == BatchStatus.GROWING


def test_field_agent_cannot_approve(client, db):
    agent = make_profile(db, Role.FIELD_AGENT)
    batch = make_batch(db, BatchStatus.PENDING_APPROVAL)

    resp = client.post(
        "/api/procurement/batches/approve",
        json={"batchId": str(batch.id), "quality": QUALITY},
        headers=auth_headers(agent),
    )
    assert resp.status_code == 403


def test_pending_reviews(client, db):
    officer = make_profile(db, Role.PROCUREMENT_OFFICER)
    make_batch(db, BatchStatus.HARVESTED)
    make_batch(db, BatchStatus.PENDING_APPROVAL)
    make_batch(db, BatchStatus.GROWING)

    resp = client.get("/api/procurement/pending-reviews", headers=auth_headers(officer))
    assert resp.status_code == 200
    assert resp.json()["count"] == 2


def test_request_transport(client, db):
    officer = make_profile(db, Role.PROCUREMENT_OFFICER)
    coordinator = make_profile(db, Role.TRANSPORT_COORDINATOR)
    warehouse = make_warehouse(db)
    manager = make_profile(db, Role.WAREHOUSE_MANAGER, warehouse=warehouse)
    elsewhere = make_profile(db, Role.WAREHOUSE_MANAGER, warehouse=make_warehouse(db))
    batch = make_batch(db, BatchStatus.PROCESSED)

    resp = client.post(
        "/api/procurement/batches/request-transport",
        json={
            "batchId": str(batch.id),
            "warehouseId": str(warehouse.id),
            "coordinatorId": str(coordinator.id),
        },
        headers=auth_headers(officer),
    )
    assert resp.status_code == 200, resp.text

    db.refresh(batch)
    assert batch.status == BatchStatus.READY_FOR_PACKAGING
    assert batch.warehouse_id == warehouse.id

    assert db.query(Notification).filter(Notification.user_id == coordinator.user_id).count() == 1
    assert db.query(Notification).filter(Notification.user_id == manager.user_id).count() == 1
    assert db.query(Notification).filter(Notification.user_id == elsewhere.user_id).count() == 0


def test_request_transport_needs_processed_batch(client, db):
    officer = make_profile(db, Role.PROCUREMENT_OFFICER)
    coordinator = make_profile(db, Role.TRANSPORT_COORDINATOR)
    warehouse = make_warehouse(db)
    batch = make_batch(db, BatchStatus.HARVESTED)

    resp = client.post(
        "/api/procurement/batches/request-transport",
        json={"batchId": str(batch.id), "warehouseId": str(warehouse.id), "coordinatorId": str(coordinator.id)},
        headers=auth_headers(officer),
    )
    assert resp.status_code == 400
    db.refresh(batch)
    assert batch.warehouse_id is None


def test_request_transport_takes_coordinator_profile_id(client, db):
    officer = make_profile(db, Role.PROCUREMENT_OFFICER)
    coordinator = make_profile(db, Role.TRANSPORT_COORDINATOR)
    warehouse = make_warehouse(db)
    batch = make_batch(db, BatchStatus.PROCESSED)

    # the auth-provider user id is not accepted in place of the profile id
    resp = client.post(
        "/api/procurement/batches/request-transport",
        json={"batchId": str(batch.id), "warehouseId": str(warehouse.id), "coordinatorId": str(coordinator.user_id)},
        headers=auth_headers(officer),
    )
    assert resp.status_code == 404
    assert resp.json()["error"] == "Transport coordinator not found"
    db.refresh(batch)
    assert batch.status == BatchStatus.PROCESSED
    assert batch.warehouse_id is None


def test_stock_requirements_and_low_stock(client, db):
    officer = make_profile(db, Role.PROCUREMENT_OFFICER)
    agents = [make_profile(db, Role.FIELD_AGENT) for _ in range(2)]
    headers = auth_headers(officer)
    make_batch(db, BatchStatus.STORED, crop_type="Beans", quantity=300)
    make_batch(db, BatchStatus.PROCESSED, crop_type="Beans", quantity=100)
    make_batch(db, BatchStatus.GROWING, crop_type="Beans", quantity=900)

    resp = client.post("/api/procurement/stock-requirements", json={"cropType": "Beans", "minStock": 1000}, headers=headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["requirement"]["unit"] == "kg"

    resp = client.get("/api/procurement/inventory", headers=headers)
    beans = next(row for row in resp.json()["inventory"] if row["cropType"] == "Beans")
    assert beans["currentStock"] == 400
    assert beans["belowMinimum"] is True

    resp = client.post("/api/procurement/stock-requirements/notify-low-stock", json={"cropType": "Beans"}, headers=headers)
    assert resp.json()["notified"] == 2
    for agent in agents:
        note = db.query(Notification).filter(Notification.user_id == agent.user_id).one()
        assert note.notification_type == NotificationType.LOW_STOCK

    # raising stock above the minimum silences the alert
    client.post("/api/procurement/stock-requirements", json={"cropType": "Beans", "minStock": 100}, headers=headers)
    resp = client.post("/api/procurement/stock-requirements/notify-low-stock", json={"cropType": "Beans"}, headers=headers)
    assert resp.json()["notified"] == 0


def test_stock_requirement_validation(client, db):
    officer = make_profile(db, Role.PROCUREMENT_OFFICER)
    resp = client.post(
        "/api/procurement/stock-requirements",
        json={"cropType": "Beans", "minStock": -5},
        headers=auth_headers(officer),
    )
    assert resp.status_code == 400
