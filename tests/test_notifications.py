from models import Notification, NotificationCategory, NotificationType, Role
from services.notification_service import notification_service

from .conftest import client
from .factories import auth_headers, make_profile, make_warehouse


def send(db, profile, category=NotificationCategory.CROP_MANAGEMENT, title="Batch ready"):
    notification_service.create_notification(
        db, profile.user_id, NotificationType.GENERAL, category, title, "Details"
    )


def test_inbox_read_and_delete(client, db):
    me = make_profile(db, Role.FIELD_AGENT)
    other = make_profile(db, Role.FIELD_AGENT)
    headers = auth_headers(me)
    send(db, me)
    send(db, me, category=NotificationCategory.TRANSPORT, title="Truck late")
    send(db, other)

    resp = client.get("/api/notifications", headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert len(body["notifications"]) == 2
    assert body["unread"] == 2

    resp = client.get("/api/notifications", params={"category": "TRANSPORT"}, headers=headers)
    assert [n["title"] for n in resp.json()["notifications"]] == ["Truck late"]

    first = body["notifications"][0]["id"]
    assert client.post(f"/api/notifications/{first}/read", headers=headers).status_code == 200
    assert client.get("/api/notifications/unread-count", headers=headers).json()["count"] == 1

    resp = client.post("/api/notifications/read-all", headers=headers)
    assert resp.json()["updated"] == 1
    assert client.get("/api/notifications/unread-count", headers=headers).json()["count"] == 0

    assert client.delete(f"/api/notifications/{first}", headers=headers).status_code == 200
    assert db.query(Notification).filter(Notification.user_id == me.user_id).count() == 1


def test_cannot_touch_someone_elses_notification(client, db):
    me = make_profile(db, Role.FIELD_AGENT)
    other = make_profile(db, Role.FIELD_AGENT)
    send(db, other)
    theirs = db.query(Notification).one()

    resp = client.post(f"/api/notifications/{theirs.id}/read", headers=auth_headers(me))
    assert resp.status_code == 404
    assert resp.json()["error"] == "Notification not found"

    resp = client.delete(f"/api/notifications/{theirs.id}", headers=auth_headers(me))
    assert resp.status_code == 404
    db.refresh(theirs)
    assert theirs.is_read is False


def test_notifications_need_a_token(client):
    assert client.get("/api/notifications").status_code == 401


def test_notify_role_scopes_to_active_staff_of_a_warehouse(db):
    north = make_warehouse(db)
    south = make_warehouse(db)
    here = make_profile(db, Role.WAREHOUSE_MANAGER, warehouse=north)
    make_profile(db, Role.WAREHOUSE_MANAGER, warehouse=south)
    make_profile(db, Role.WAREHOUSE_MANAGER, warehouse=north, is_active=False)

    sent = notification_service.notify_role(
        db, Role.WAREHOUSE_MANAGER, NotificationType.SHIPMENT_ARRIVING,
        NotificationCategory.WAREHOUSE, "Incoming", "Truck on the way",
        warehouse_id=north.id,
    )
    assert sent == 1
    assert db.query(Notification).one().user_id == here.user_id


def test_notify_users_skips_missing_and_duplicate_recipients(db):
    me = make_profile(db, Role.FIELD_AGENT)
    sent = notification_service.notify_users(
        db, [me.user_id, None, me.user_id], NotificationType.GENERAL,
        NotificationCategory.SYSTEM, "Hello", "Hi",
    )
    assert sent == 1


def test_fan_out_swallows_failures(db):
    def broken(db, *args, **kwargs):
        raise RuntimeError("smtp down")

    assert notification_service.fan_out(db, broken, "anything") == 0
