import uuid

import pytest

from main import app
from models import ActivityLog, BatchStatus, Profile, Role, Warehouse
from services.auth_provider import get_auth_admin

from .conftest import client
from .factories import auth_headers, make_batch, make_profile, make_warehouse


class FakeAuthAdmin:
    def __init__(self):
        self.created = []
        self.banned = {}

    def create_user(self, email, password, metadata=None):
        user_id = str(uuid.uuid4())
        self.created.append((email, metadata))
        return user_id

    def set_banned(self, user_id, banned):
        self.banned[str(user_id)] = banned


@pytest.fixture
def auth_admin():
    fake = FakeAuthAdmin()
    app.dependency_overrides[get_auth_admin] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_auth_admin, None)


def test_create_user_provisions_auth_account(client, db, auth_admin):
    admin = make_profile(db, Role.ADMIN)
    warehouse = make_warehouse(db)

    resp = client.post(
        "/api/admin/users",
        json={
            "email": "Dock.Lead@Example.com",
            "password": "s3cure-pass",
            "name": "Dock Lead",
            "role": "warehouse_manager",
            "warehouseId": str(warehouse.id),
        },
        headers=auth_headers(admin),
    )
    assert resp.status_code == 200, resp.text
    user = resp.json()["user"]
    assert user["email"] == "dock.lead@example.com"
    assert user["warehouse_id"] == str(warehouse.id)
    assert auth_admin.created == [("dock.lead@example.com", {"name": "Dock Lead", "role": "warehouse_manager"})]

    resp = client.post(
        "/api/admin/users",
        json={"email": "dock.lead@example.com", "password": "another-pass", "role": "field_agent"},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 409


def test_create_user_validation(client, db, auth_admin):
    admin = make_profile(db, Role.ADMIN)
    headers = auth_headers(admin)
    warehouse = make_warehouse(db)

    resp = client.post("/api/admin/users", json={"email": "a@example.com", "password": "short", "role": "field_agent"}, headers=headers)
    assert resp.status_code == 400

    resp = client.post("/api/admin/users", json={"email": "b@example.com", "password": "long-enough", "role": "astronaut"}, headers=headers)
    assert resp.status_code == 400

    resp = client.post(
        "/api/admin/users",
        json={"email": "c@example.com", "password": "long-enough", "role": "field_agent", "warehouseId": str(warehouse.id)},
        headers=headers,
    )
    assert resp.status_code == 400
    assert auth_admin.created == []


def test_role_change_clears_warehouse(client, db):
    admin = make_profile(db, Role.ADMIN)
    manager = make_profile(db, Role.WAREHOUSE_MANAGER, warehouse=make_warehouse(db))

    resp = client.put(f"/api/admin/users/{manager.id}/role", json={"role": "procurement_officer"}, headers=auth_headers(admin))
    assert resp.status_code == 200, resp.text
    db.refresh(manager)
    assert manager.role == Role.PROCUREMENT_OFFICER
    assert manager.warehouse_id is None


def test_assign_warehouse_only_to_managers(client, db):
    admin = make_profile(db, Role.ADMIN)
    headers = auth_headers(admin)
    warehouse = make_warehouse(db)
    closed = make_warehouse(db, is_active=False)
    manager = make_profile(db, Role.WAREHOUSE_MANAGER)
    agent = make_profile(db, Role.FIELD_AGENT)

    resp = client.put(f"/api/admin/users/{agent.id}/warehouse", json={"warehouseId": str(warehouse.id)}, headers=headers)
    assert resp.status_code == 400

    resp = client.put(f"/api/admin/users/{manager.id}/warehouse", json={"warehouseId": str(closed.id)}, headers=headers)
    assert resp.status_code == 400

    resp = client.put(f"/api/admin/users/{manager.id}/warehouse", json={"warehouseId": str(warehouse.id)}, headers=headers)
    assert resp.status_code == 200
    db.refresh(manager)
    assert manager.warehouse_id == warehouse.id


def test_deactivate_and_reactivate(client, db, auth_admin):
    admin = make_profile(db, Role.ADMIN)
    agent = make_profile(db, Role.FIELD_AGENT)
    headers = auth_headers(admin)

    resp = client.post(f"/api/admin/users/{agent.id}/deactivate", headers=headers)
    assert resp.status_code == 200
    assert auth_admin.banned == {str(agent.user_id): True}

    # a deactivated profile can no longer use the API
    assert client.get("/api/auth/me", headers=auth_headers(agent)).status_code == 403

    client.post(f"/api/admin/users/{agent.id}/activate", headers=headers)
    assert auth_admin.banned[str(agent.user_id)] is False
    assert client.get("/api/auth/me", headers=auth_headers(agent)).status_code == 200

    resp = client.post(f"/api/admin/users/{admin.id}/deactivate", headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error"] == "You cannot deactivate your own account"


def test_warehouse_lifecycle(client, db):
    admin = make_profile(db, Role.ADMIN)
    headers = auth_headers(admin)

    resp = client.post("/api/admin/warehouses", json={"name": "Eldoret Depot", "code": "eld-01", "capacity": 800}, headers=headers)
    assert resp.status_code == 200, resp.text
    warehouse = resp.json()["warehouse"]
    assert warehouse["code"] == "ELD-01"

    resp = client.post("/api/admin/warehouses", json={"name": "Copy", "code": "ELD-01"}, headers=headers)
    assert resp.status_code == 409

    resp = client.put(f"/api/admin/warehouses/{warehouse['id']}", json={"city": "Eldoret"}, headers=headers)
    assert resp.json()["warehouse"]["city"] == "Eldoret"
    assert resp.json()["warehouse"]["name"] == "Eldoret Depot"

    resp = client.post(f"/api/admin/warehouses/{warehouse['id']}/toggle", headers=headers)
    assert resp.json()["warehouse"]["is_active"] is False

    resp = client.get("/api/admin/warehouses", params={"active_only": "true"}, headers=headers)
    assert resp.json()["count"] == 0

    manager = make_profile(db, Role.WAREHOUSE_MANAGER)
    manager.warehouse_id = uuid.UUID(warehouse["id"])
    db.commit()

    resp = client.delete(f"/api/admin/warehouses/{warehouse['id']}", headers=headers)
    assert resp.status_code == 200
    db.refresh(manager)
    assert manager.warehouse_id is None
    assert db.query(Warehouse).count() == 0


def test_warehouse_with_batches_cannot_be_deleted(client, db):
    admin = make_profile(db, Role.ADMIN)
    warehouse = make_warehouse(db)
    make_batch(db, BatchStatus.STORED, warehouse=warehouse)

    resp = client.delete(f"/api/admin/warehouses/{warehouse.id}", headers=auth_headers(admin))
    assert resp.status_code == 409
    assert db.query(Warehouse).count() == 1


def test_units_of_measurement(client, db):
    admin = make_profile(db, Role.ADMIN)
    headers = auth_headers(admin)

    resp = client.post(
        "/api/admin/units",
        json={"name": "Tonne", "code": "T", "category": "weight", "baseUnit": "kg", "conversionFactor": 1000},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    unit = resp.json()["unit"]
    assert unit["code"] == "t"
    assert unit["conversion_factor"] == 1000

    assert client.post("/api/admin/units", json={"name": "Ton", "code": "t", "category": "weight"}, headers=headers).status_code == 409
    assert client.post("/api/admin/units", json={"name": "Bag"}, headers=headers).status_code == 400

    resp = client.post(f"/api/admin/units/{unit['id']}/toggle", headers=headers)
    assert resp.json()["unit"]["is_active"] is False

    assert client.delete(f"/api/admin/units/{unit['id']}", headers=headers).status_code == 200
    assert client.get("/api/admin/units", headers=headers).json()["count"] == 0

    actions = {log.action for log in db.query(ActivityLog).all()}
    assert {"CREATE_UNIT", "TOGGLE_UNIT", "DELETE_UNIT"} <= actions


def test_admin_routes_need_admin(client, db):
    officer = make_profile(db, Role.PROCUREMENT_OFFICER)
    assert client.get("/api/admin/users", headers=auth_headers(officer)).status_code == 403
    assert client.get("/api/admin/warehouses", headers=auth_headers(officer)).status_code == 403


def test_me(client, db):
    warehouse = make_warehouse(db, name="Mombasa Port")
    manager = make_profile(db, Role.WAREHOUSE_MANAGER, warehouse=warehouse)

    resp = client.get("/api/auth/me", headers=auth_headers(manager))
    assert resp.status_code == 200
    body = resp.json()
    assert body["user"]["role"] == "warehouse_manager"
    assert body["warehouse"]["name"] == "Mombasa Port"
    assert body["capabilities"] == ["manage_packaging", "manage_storage", "receive_batches"]
    assert body["role_display"] == "Warehouse Manager"


def test_unknown_profile_is_forbidden(client, db):
    stranger = Profile(user_id=uuid.uuid4(), email="ghost@example.com", role=Role.FIELD_AGENT)
    assert client.get("/api/auth/me", headers=auth_headers(stranger)).status_code == 403
