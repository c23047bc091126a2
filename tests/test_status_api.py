import base64

from tests.helpers import TODAY, at, auth_headers


def _order(client, user, meal="lunch"):
    resp = client.post("/api/dining/orders", json={"date": TODAY.isoformat(), "meal_type": meal},
                       headers=auth_headers(user))
    assert resp.status_code == 201
    return resp.get_json()["order_id"]


def test_personal_status_for_today(client, world, publish):
    publish(meal="lunch")
    publish(meal="dinner", dishes=[world.rice, world.pork])
    _order(client, world.alice, "lunch")

    resp = client.get("/api/dining/status", headers=auth_headers(world.alice))
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["date"] == TODAY.isoformat()
    assert body["current_meal"] == "breakfast"

    lunch = body["meals"]["lunch"]
    assert lunch["is_registered"] is True
    assert lunch["state"] == "ordered"
    assert lunch["total_amount"] == 12.0
    assert [d["name"] for d in lunch["dishes"]] == ["Lunch set"]
    assert body["meals"]["dinner"]["is_registered"] is False
    assert body["meals"]["breakfast"]["order_id"] is None

    assert body["summary"] == {"registered_count": 1, "dined_count": 0, "total_amount": 12.0}
    menus = {m["meal_type"]: m for m in body["available_menus"]}
    assert set(menus) == {"lunch", "dinner"}
    assert menus["lunch"]["can_order"] is False
    assert menus["dinner"]["can_order"] is True


def test_status_shows_cancelled_then_live_order(client, world, publish):
    publish()
    first = _order(client, world.alice)
    client.post(f"/api/dining/orders/{first}/cancel", headers=auth_headers(world.alice))

    lunch = client.get("/api/dining/status", headers=auth_headers(world.alice)).get_json()["meals"]["lunch"]
    assert lunch["state"] == "cancelled"
    assert lunch["is_registered"] is False

    second = _order(client, world.alice)
    lunch = client.get("/api/dining/status", headers=auth_headers(world.alice)).get_json()["meals"]["lunch"]
    assert lunch["order_id"] == second
    assert lunch["is_registered"] is True


def test_daily_stats_scoped_and_refreshed(client, world, clock, services, publish):
    publish()
    _order(client, world.alice)
    bob_order = _order(client, world.bob)
    _order(client, world.frank)
    client.post(f"/api/dining/orders/{bob_order}/cancel", headers=auth_headers(world.bob))

    resp = client.get("/api/admin/dining/stats", headers=auth_headers(world.it_admin))
    assert resp.status_code == 200
    stats = resp.get_json()
    assert stats["department_id"] == world.it.id
    lunch = stats["meals"]["lunch"]
    assert (lunch["ordered"], lunch["cancelled"], lunch["total"], lunch["amount"]) == (1, 1, 1, 12.0)
    assert len(services.stats_cache) == 1

    _order(client, world.carol)
    assert len(services.stats_cache) == 0
    stats = client.get("/api/admin/dining/stats", headers=auth_headers(world.it_admin)).get_json()
    assert stats["meals"]["lunch"]["total"] == 2

    clock.set(at(TODAY, "11:30"))
    client.post(f"/api/dining/orders/{_order_id_of(client, world.alice)}/confirm", headers=auth_headers(world.alice))
    stats = client.get("/api/admin/dining/stats", headers=auth_headers(world.it_admin)).get_json()
    assert stats["meals"]["lunch"]["dined"] == 1
    assert stats["total"]["total"] == 2

    everyone = client.get("/api/admin/dining/stats", headers=auth_headers(world.sys_admin)).get_json()
    assert everyone["department_id"] is None
    assert everyone["meals"]["lunch"]["total"] == 3
    assert everyone["total"]["amount"] == 36.0


def _order_id_of(client, user):
    page = client.get("/api/dining/orders?state=ordered", headers=auth_headers(user)).get_json()
    return page["items"][0]["order_id"]


def test_stats_access(client, world):
    resp = client.get(f"/api/admin/dining/stats?department_id={world.finance.id}", headers=auth_headers(world.it_admin))
    assert resp.status_code == 403

    resp = client.get("/api/admin/dining/stats", headers=auth_headers(world.alice))
    assert resp.status_code == 403

    resp = client.get(f"/api/admin/dining/stats?department_id={world.finance.id}", headers=auth_headers(world.sys_admin))
    assert resp.status_code == 200
    assert resp.get_json()["total"]["total"] == 0


def test_scan_history_lists_own_attempts(client, world, clock, publish):
    publish()
    _order(client, world.alice)
    clock.set(at(TODAY, "11:30"))

    token = client.get(f"/api/admin/qr-codes/{world.qr.id}/token", headers=auth_headers(world.sys_admin)).get_json()["token"]
    client.post("/api/dining/scan", json={"token": "bad"}, headers=auth_headers(world.alice))
    client.post("/api/dining/scan", json={"token": token}, headers=auth_headers(world.alice))

    page = client.get("/api/dining/scan-history", headers=auth_headers(world.alice)).get_json()
    assert page["total"] == 2
    latest, earliest = page["items"]
    assert latest["outcome"] == "success"
    assert latest["qr_code_name"] == "Main hall"
    assert latest["location"] == "Building A"
    assert earliest["outcome"] == "failed"
    assert earliest["failure_reason"] == "TOKEN_TAMPERED"
    assert earliest["qr_code_id"] is None

    assert client.get("/api/dining/scan-history", headers=auth_headers(world.bob)).get_json()["total"] == 0


def test_department_members(client, world):
    resp = client.get("/api/dining/dept-members", headers=auth_headers(world.it_admin))
    assert resp.status_code == 200
    names = [m["name"] for m in resp.get_json()["items"]]
    assert names == ["Alice", "Bob", "Carol", "Ivy", "Sam"]

    resp = client.get(f"/api/dining/dept-members?department_id={world.finance.id}", headers=auth_headers(world.it_admin))
    assert resp.status_code == 403

    resp = client.get(f"/api/dining/dept-members?department_id={world.finance.id}", headers=auth_headers(world.sys_admin))
    assert [m["name"] for m in resp.get_json()["items"]] == ["Frank"]

    resp = client.get("/api/dining/dept-members", headers=auth_headers(world.alice))
    assert resp.status_code == 403


def test_qr_code_registry(client, world):
    headers = auth_headers(world.sys_admin)
    resp = client.post("/api/admin/qr-codes", json={"name": "Side door", "location": "Building B"}, headers=headers)
    assert resp.status_code == 201
    created = resp.get_json()
    assert created["code"].startswith("DINING_QR_")
    assert created["status"] == "active"
    assert created["created_by"] == world.sys_admin.id

    listing = client.get("/api/admin/qr-codes", headers=headers).get_json()
    assert listing["total"] == 2

    resp = client.put(f"/api/admin/qr-codes/{created['id']}/status", json={"status": "inactive"}, headers=headers)
    assert resp.get_json()["status"] == "inactive"
    inactive = client.get("/api/admin/qr-codes?status=inactive", headers=headers).get_json()
    assert [c["id"] for c in inactive["items"]] == [created["id"]]

    resp = client.get(f"/api/admin/qr-codes/{created['id']}/token", headers=headers)
    assert resp.status_code == 422
    assert resp.get_json()["error"]["code"] == "QR_CODE_INACTIVE"

    resp = client.put("/api/admin/qr-codes/999/status", json={"status": "active"}, headers=headers)
    assert resp.status_code == 404

    resp = client.post("/api/admin/qr-codes", json={"name": "Nope"}, headers=auth_headers(world.alice))
    assert resp.status_code == 403


def test_token_issue_with_image(client, world):
    headers = auth_headers(world.sys_admin)
    resp = client.get(f"/api/admin/qr-codes/{world.qr.id}/token?ttl=120&image=true", headers=headers)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["qr_code_id"] == world.qr.id
    assert body["issued_at"] == "2025-09-11T00:00:00Z"
    assert body["expires_at"] == "2025-09-11T00:02:00Z"
    assert base64.b64decode(body["image_base64"]).startswith(b"\x89PNG")

    resp = client.get(f"/api/admin/qr-codes/{world.qr.id}/token?ttl=7200", headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()["error"]["code"] == "VALIDATION_ERROR"

    resp = client.get("/api/admin/qr-codes/4242/token", headers=headers)
    assert resp.status_code == 404


def test_health_reports_clock_and_windows(client, world):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["database"] == "healthy"
    assert body["server_time"] == "2025-09-11T00:00:00Z"
    assert body["current_meal"] == "breakfast"
    assert body["meal_windows"]["timezone"] == "Asia/Shanghai"
    assert [w["meal_type"] for w in body["meal_windows"]["windows"]] == ["breakfast", "lunch", "dinner"]

    assert client.get("/").status_code == 200


def test_scan_attempts_refresh_cached_stats(client, world, clock, services, publish):
    publish()
    _order(client, world.alice)
    clock.set(at(TODAY, "11:30"))

    stats = client.get("/api/admin/dining/stats", headers=auth_headers(world.it_admin)).get_json()
    assert stats["meals"]["lunch"]["failed_scans"] == 0

    client.post("/api/dining/scan", json={"token": "bad"}, headers=auth_headers(world.alice))
    assert len(services.stats_cache) == 0
    stats = client.get("/api/admin/dining/stats", headers=auth_headers(world.it_admin)).get_json()
    assert stats["meals"]["lunch"]["failed_scans"] == 1

    token = client.get(f"/api/admin/qr-codes/{world.qr.id}/token", headers=auth_headers(world.sys_admin)).get_json()["token"]
    client.post("/api/dining/scan", json={"token": token}, headers=auth_headers(world.alice))
    client.get("/api/admin/dining/stats", headers=auth_headers(world.it_admin))
    client.post("/api/dining/scan", json={"token": token}, headers=auth_headers(world.alice))
    stats = client.get("/api/admin/dining/stats", headers=auth_headers(world.it_admin)).get_json()
    assert stats["meals"]["lunch"]["scans"] == 2
    assert stats["meals"]["lunch"]["dined"] == 1


def test_department_members_rejects_malformed_department(client, world):
    for raw in ("abc", "0", "-3"):
        resp = client.get(f"/api/dining/dept-members?department_id={raw}", headers=auth_headers(world.sys_admin))
        assert resp.status_code == 400
        error = resp.get_json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert "department_id" in error["fields"]
