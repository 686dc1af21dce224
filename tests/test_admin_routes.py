"""HTTP-level tests for the admin endpoints."""

from fastapi.testclient import TestClient

ADMIN_KEY = "test-admin-key"

ADMIN_IP = {"X-Forwarded-For": "192.0.2.250"}
ADMIN = {**ADMIN_IP, "X-Admin-Key": ADMIN_KEY}


def _ban(client: TestClient, ip: str) -> None:
    for _ in range(4):
        client.get("/health", headers={"X-Forwarded-For": ip})


def test_unban_with_header_secret(client: TestClient) -> None:
    _ban(client, "203.0.113.1")

    resp = client.post("/admin/unban", json={"ip": "203.0.113.1"}, headers=ADMIN)

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "IP 203.0.113.1 unbanned."}
    assert client.get("/health", headers={"X-Forwarded-For": "203.0.113.1"}).status_code == 200


def test_unban_with_body_secret(client: TestClient) -> None:
    _ban(client, "203.0.113.2")

    resp = client.post(
        "/admin/unban",
        json={"ip": "203.0.113.2", "adminKey": ADMIN_KEY},
        headers=ADMIN_IP,
    )

    assert resp.status_code == 200


def test_unban_unknown_ip_is_404(client: TestClient) -> None:
    resp = client.post("/admin/unban", json={"ip": "203.0.113.3"}, headers=ADMIN)

    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "ip_not_banned"


def test_wrong_secret_is_401(client: TestClient) -> None:
    _ban(client, "203.0.113.4")

    resp = client.post(
        "/admin/unban",
        json={"ip": "203.0.113.4"},
        headers={**ADMIN_IP, "X-Admin-Key": "wrong"},
    )

    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "unauthorized"
    assert client.get("/health", headers={"X-Forwarded-For": "203.0.113.4"}).status_code == 403


def test_missing_secret_is_401(client: TestClient) -> None:
    resp = client.post("/admin/unban", json={"ip": "203.0.113.5"}, headers=ADMIN_IP)

    assert resp.status_code == 401


def test_unconfigured_secret_is_500_not_401(make_client) -> None:
    client = make_client(admin_key=None)

    resp = client.post("/admin/unban", json={"ip": "203.0.113.6"}, headers=ADMIN)

    assert resp.status_code == 500
    assert resp.json()["error"]["code"] == "admin_key_not_configured"


def test_missing_ip_is_400_after_auth(client: TestClient) -> None:
    unauthorized = client.post("/admin/unban", json={}, headers=ADMIN_IP)
    missing = client.post("/admin/unban", json={}, headers=ADMIN)
    no_body = client.post("/admin/unban", headers=ADMIN)

    assert unauthorized.status_code == 401
    assert missing.status_code == 400
    assert missing.json()["error"]["code"] == "missing_identifier"
    assert no_body.status_code == 400


def test_list_bans(client: TestClient) -> None:
    _ban(client, "203.0.113.7")

    resp = client.get("/admin/bans", headers=ADMIN)

    assert resp.status_code == 200
    assert resp.json() == {
        "bans": {
            "203.0.113.7": {
                "bannedAt": "1970-01-01T00:16:40.000Z",
                "reason": "exceeded_3_per_1000ms",
                "by": "admission_gate",
            }
        }
    }


def test_list_bans_requires_secret(client: TestClient) -> None:
    assert client.get("/admin/bans", headers=ADMIN_IP).status_code == 401


def test_stats(client: TestClient) -> None:
    _ban(client, "203.0.113.8")
    client.get("/health", headers={"X-Forwarded-For": "203.0.113.9"})

    resp = client.get("/admin/stats", headers=ADMIN)

    assert resp.status_code == 200
    body = resp.json()
    assert body["banned_count"] == 1
    # the two clients plus the admin caller itself
    assert body["active_identifiers"] == 3


def test_admin_routes_are_gated_too(client: TestClient) -> None:
    for _ in range(3):
        client.get("/admin/stats", headers=ADMIN)

    assert client.get("/admin/stats", headers=ADMIN).status_code == 429


def test_openapi_marks_admin_routes(client: TestClient) -> None:
    schema = client.get("/openapi.json").json()

    assert "AdminKeyAuth" in schema["components"]["securitySchemes"]
    assert schema["paths"]["/admin/unban"]["post"]["security"] == [{"AdminKeyAuth": []}]
    assert "security" not in schema["paths"]["/health"]["get"]
