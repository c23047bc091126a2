from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from app.extensions import db
from app.models.confirmation_log import DiningConfirmationLog
from app.models.dining_order import DiningOrder
from app.models.scan_registration import ScanRegistration
from app.utils.errors import DiningError, ErrorCode
from tests.helpers import TODAY, at, auth_headers, identity


@pytest.fixture
def lunch_order(client, world, publish):
    """Alice's lunch order for today, placed at 08:00."""
    publish()
    resp = client.post(
        "/api/dining/orders",
        json={"date": TODAY.isoformat(), "meal_type": "lunch"},
        headers=auth_headers(world.alice),
    )
    assert resp.status_code == 201
    return resp.get_json()["order_id"]


def _issue(client, world, ttl=None):
    url = f"/api/admin/qr-codes/{world.qr.id}/token"
    if ttl:
        url += f"?ttl={ttl}"
    resp = client.get(url, headers=auth_headers(world.sys_admin))
    assert resp.status_code == 200
    return resp.get_json()["token"]


def _scan(client, user, token, **extra):
    return client.post("/api/dining/scan", json={"token": token, **extra}, headers=auth_headers(user))


def test_manual_confirmation_window_boundary(client, world, clock, lunch_order):
    clock.set(at(TODAY, "10:59"))
    resp = client.post(f"/api/dining/orders/{lunch_order}/confirm", headers=auth_headers(world.alice))
    assert resp.status_code == 422
    assert resp.get_json()["error"]["code"] == "OUTSIDE_WINDOW"
    assert db.session.get(DiningOrder, lunch_order, populate_existing=True).state == "ordered"

    clock.set(at(TODAY, "11:00"))
    resp = client.post(f"/api/dining/orders/{lunch_order}/confirm", headers=auth_headers(world.alice))
    assert resp.status_code == 200
    assert resp.get_json()["state"] == "dined"


def test_manual_confirmation_only_by_owner_or_registrant(client, world, clock, lunch_order):
    clock.set(at(TODAY, "11:30"))
    resp = client.post(f"/api/dining/orders/{lunch_order}/confirm", headers=auth_headers(world.bob))
    assert resp.status_code == 403
    assert resp.get_json()["error"]["code"] == "PERMISSION_DENIED"


def test_admin_confirmation_with_audit_log(client, world, clock, lunch_order):
    clock.set(at(TODAY, "12:00"))
    resp = client.post(
        f"/api/admin/dining/orders/{lunch_order}/confirm",
        json={"remark": "forgot phone"},
        headers=auth_headers(world.it_admin),
    )
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["state"] == "dined"
    assert body["confirmation_type"] == "admin"
    assert body["confirmed_by"] == world.it_admin.id

    log = DiningConfirmationLog.query.filter_by(order_id=lunch_order).one()
    assert log.confirmed_by == world.it_admin.id
    assert log.user_id == world.alice.id
    assert log.remark == "forgot phone"


def test_admin_confirmation_limited_to_own_department(client, world, clock, publish):
    publish()
    resp = client.post("/api/dining/orders", json={"date": TODAY.isoformat(), "meal_type": "lunch"},
                       headers=auth_headers(world.frank))
    order_id = resp.get_json()["order_id"]

    clock.set(at(TODAY, "12:00"))
    resp = client.post(f"/api/admin/dining/orders/{order_id}/confirm", headers=auth_headers(world.it_admin))
    assert resp.status_code == 403

    resp = client.post(f"/api/admin/dining/orders/{order_id}/confirm", headers=auth_headers(world.sys_admin))
    assert resp.status_code == 200


def test_batch_admin_confirmation(client, world, clock, lunch_order):
    bob_order = client.post("/api/dining/orders", json={"date": TODAY.isoformat(), "meal_type": "lunch"},
                            headers=auth_headers(world.bob)).get_json()["order_id"]

    clock.set(at(TODAY, "12:30"))
    resp = client.post("/api/admin/dining/orders/confirm-batch", json={
        "order_ids": [lunch_order, bob_order, 4040],
    }, headers=auth_headers(world.it_admin))
    report = resp.get_json()
    assert report["success_count"] == 2
    assert report["errors"] == [{
        "index": 2,
        "item": {"order_id": 4040},
        "reason": "ORDER_NOT_FOUND",
        "kind": "not_found",
        "message": "Order not found",
        "details": {"order_id": 4040},
    }]


def test_expired_token_then_reissued_token_accepted(client, world, clock, lunch_order):
    clock.set(at(TODAY, "11:00"))
    stale = _issue(client, world, ttl=600)

    clock.set(at(TODAY, "11:12"))
    resp = _scan(client, world.alice, stale)
    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "TOKEN_EXPIRED"
    assert db.session.get(DiningOrder, lunch_order, populate_existing=True).state == "ordered"

    fresh = _issue(client, world)
    resp = _scan(client, world.alice, fresh, meal_type="breakfast", device_info="pixel")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["order_id"] == lunch_order
    assert body["meal_type"] == "lunch"
    assert body["state"] == "dined"
    assert body["confirmation_type"] == "scan"
    assert body["already_confirmed"] is False

    scans = ScanRegistration.query.order_by(ScanRegistration.id).all()
    assert [s.outcome for s in scans] == ["failed", "success"]
    assert scans[0].failure_reason == "TOKEN_EXPIRED"
    assert scans[1].meal_type == "lunch"
    assert scans[1].claimed_meal_type == "breakfast"
    assert scans[1].qr_code_id == world.qr.id


def test_repeat_scan_returns_prior_confirmation(client, world, clock, lunch_order):
    clock.set(at(TODAY, "11:30"))
    first = _scan(client, world.alice, _issue(client, world)).get_json()

    clock.set(at(TODAY, "11:50"))
    resp = _scan(client, world.alice, _issue(client, world))
    assert resp.status_code == 200
    again = resp.get_json()
    assert again["already_confirmed"] is True
    assert again["actual_dining_time"] == first["actual_dining_time"] == "2025-09-11T03:30:00Z"

    assert DiningConfirmationLog.query.filter_by(order_id=lunch_order).count() == 1
    outcomes = [s.outcome for s in ScanRegistration.query.order_by(ScanRegistration.id)]
    assert outcomes == ["success", "duplicate"]


def test_scan_failures(client, world, clock, lunch_order):
    clock.set(at(TODAY, "10:30"))
    resp = _scan(client, world.alice, _issue(client, world))
    assert resp.status_code == 422
    assert resp.get_json()["error"]["code"] == "OUTSIDE_WINDOW"

    clock.set(at(TODAY, "11:30"))
    resp = _scan(client, world.bob, _issue(client, world))
    assert resp.status_code == 422
    assert resp.get_json()["error"]["code"] == "NOT_REGISTERED"

    resp = _scan(client, world.alice, "garbage")
    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "TOKEN_TAMPERED"

    failed = ScanRegistration.query.filter_by(outcome="failed").count()
    assert failed == 3
    assert db.session.get(DiningOrder, lunch_order, populate_existing=True).state == "ordered"


def test_scan_via_get_and_without_identity(client, world, clock, lunch_order):
    clock.set(at(TODAY, "11:30"))
    token = _issue(client, world)

    resp = client.get(f"/api/dining/scan?token={token}")
    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "IDENTITY_UNRESOLVED"

    resp = client.get(f"/api/dining/scan?token={token}", headers=auth_headers(world.alice))
    assert resp.status_code == 200
    assert resp.get_json()["state"] == "dined"


def test_deactivated_code_rejects_scans(client, world, clock, lunch_order):
    clock.set(at(TODAY, "11:30"))
    token = _issue(client, world)

    resp = client.put(f"/api/admin/qr-codes/{world.qr.id}/status", json={"status": "inactive"},
                      headers=auth_headers(world.sys_admin))
    assert resp.status_code == 200

    resp = _scan(client, world.alice, token)
    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "TOKEN_REVOKED"


def test_terminal_states_never_change(client, world, clock, lunch_order):
    clock.set(at(TODAY, "11:30"))
    assert client.post(f"/api/dining/orders/{lunch_order}/confirm",
                       headers=auth_headers(world.alice)).status_code == 200

    resp = client.post(f"/api/dining/orders/{lunch_order}/cancel", headers=auth_headers(world.alice))
    assert resp.status_code == 409
    assert resp.get_json()["error"]["code"] == "ALREADY_CONFIRMED"

    resp = client.post(f"/api/admin/dining/orders/{lunch_order}/confirm", headers=auth_headers(world.sys_admin))
    assert resp.status_code == 409

    order = db.session.get(DiningOrder, lunch_order, populate_existing=True)
    assert order.state == "dined"
    assert order.confirmation_type == "manual"


def test_cancelled_order_cannot_be_confirmed(client, world, clock, lunch_order):
    assert client.post(f"/api/dining/orders/{lunch_order}/cancel",
                       headers=auth_headers(world.alice)).status_code == 200

    clock.set(at(TODAY, "11:30"))
    resp = client.post(f"/api/dining/orders/{lunch_order}/confirm", headers=auth_headers(world.alice))
    assert resp.status_code == 409
    assert resp.get_json()["error"]["code"] == "ORDER_CANCELLED"

    resp = _scan(client, world.alice, _issue(client, world))
    assert resp.get_json()["error"]["code"] == "NOT_REGISTERED"


def test_losing_compare_and_set_reports_already_confirmed(client, world, clock, services, lunch_order, monkeypatch):
    clock.set(at(TODAY, "11:30"))
    assert client.post(f"/api/dining/orders/{lunch_order}/confirm",
                       headers=auth_headers(world.alice)).status_code == 200

    # A request that read the row before the first confirmation committed
    stale = SimpleNamespace(
        id=lunch_order,
        state="ordered",
        user_id=world.alice.id,
        registrant_id=world.alice.id,
        department_id=world.it.id,
        dining_date=TODAY,
        meal_type="lunch",
    )
    monkeypatch.setattr(services.engine, "_load_order", lambda order_id: stale)

    with pytest.raises(DiningError) as excinfo:
        services.engine.confirm_manual(identity(world.alice), lunch_order, at(TODAY, "11:40"))
    assert excinfo.value.code == ErrorCode.ALREADY_CONFIRMED

    order = db.session.get(DiningOrder, lunch_order, populate_existing=True)
    assert order.actual_dining_time == at(TODAY, "11:30")
    assert DiningConfirmationLog.query.filter_by(order_id=lunch_order).count() == 1


def test_admin_cannot_confirm_other_days(client, world, clock, publish):
    tomorrow = TODAY.replace(day=12)
    publish(day=tomorrow)
    order_id = client.post("/api/dining/orders", json={"date": tomorrow.isoformat(), "meal_type": "lunch"},
                           headers=auth_headers(world.alice)).get_json()["order_id"]

    clock.set(at(TODAY, "11:30"))
    resp = client.post(f"/api/admin/dining/orders/{order_id}/confirm", headers=auth_headers(world.sys_admin))
    assert resp.status_code == 422
    assert resp.get_json()["error"]["code"] == "OUTSIDE_WINDOW"


def test_store_error_in_batch_confirmation_fails_only_that_order(client, world, clock, services, lunch_order, monkeypatch):
    bob_order = client.post("/api/dining/orders", json={"date": TODAY.isoformat(), "meal_type": "lunch"},
                            headers=auth_headers(world.bob)).get_json()["order_id"]
    carol_order = client.post("/api/dining/orders", json={"date": TODAY.isoformat(), "meal_type": "lunch"},
                              headers=auth_headers(world.carol)).get_json()["order_id"]

    load = services.engine._load_order

    def flaky_load(order_id):
        if order_id == bob_order:
            raise OperationalError("SELECT dining_orders", {}, Exception("connection reset"))
        return load(order_id)

    monkeypatch.setattr(services.engine, "_load_order", flaky_load)

    clock.set(at(TODAY, "12:00"))
    resp = client.post("/api/admin/dining/orders/confirm-batch", json={
        "order_ids": [lunch_order, bob_order, carol_order],
    }, headers=auth_headers(world.it_admin))
    assert resp.status_code == 200
    report = resp.get_json()
    assert report["success_count"] == 2
    assert report["failed_count"] == 1
    assert report["errors"][0]["index"] == 1
    assert report["errors"][0]["reason"] == "SERVICE_UNAVAILABLE"
    assert [o["order_id"] for o in report["orders"]] == [lunch_order, carol_order]
    assert db.session.get(DiningOrder, bob_order, populate_existing=True).state == "ordered"
