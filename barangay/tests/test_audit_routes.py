"""
API tests for the admin audit log surface.
"""

import csv
import io

import pytest
from fastapi.testclient import TestClient

from barangay.app.main import app
from barangay.tests.test_helpers import append_scenario, auth_headers, generate_test_jwt


@pytest.fixture(scope="function")
def client(test_db):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin():
    return auth_headers("admin")


def test_health_check(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_root_endpoint(client):
    data = client.get("/").json()
    assert data["service"] == "Barangay Records Audit Chain"
    assert data["status"] == "operational"


def test_health_status_reports_database_checks(client):
    data = client.get("/api/health/status").json()
    assert data["status"] == "healthy"
    assert data["database"]["db_exists"] is True
    assert data["database"]["wal_enabled"] is True


@pytest.mark.parametrize(
    "path",
    [
        "/api/audit-logs",
        "/api/audit-logs/verify",
        "/api/audit-logs/export",
        "/api/audit-logs/stats",
    ],
)
def test_audit_endpoints_require_token(client, path):
    response = client.get(path)
    assert response.status_code in (401, 403)


@pytest.mark.parametrize("role", ["staff", "resident"])
def test_audit_endpoints_require_admin(client, role):
    response = client.get("/api/audit-logs", headers=auth_headers(role))
    assert response.status_code == 403
    assert response.json()["error"] == "insufficient_permissions"


def test_expired_token_is_rejected(client):
    token = generate_test_jwt(expires_in_seconds=-60)
    response = client.get(
        "/api/audit-logs", headers={"Authorization": f"Bearer {token}"}
    )
    assert response.status_code == 401
    assert response.json()["error"] == "invalid_token"


def test_unknown_role_is_rejected(client):
    response = client.get("/api/audit-logs", headers=auth_headers("superuser"))
    assert response.status_code == 401
    assert response.json()["error"] == "invalid_role"


def test_list_returns_wire_format_newest_first(client, service, admin):
    blocks = append_scenario(service)

    response = client.get("/api/audit-logs", headers=admin)

    assert response.status_code == 200
    entries = response.json()
    assert [e["id"] for e in entries] == [b.block_id for b in reversed(blocks)]
    assert set(entries[0]) == {
        "id",
        "sequence",
        "timestamp",
        "actor",
        "action",
        "module",
        "description",
        "digest",
        "previousDigest",
    }
    assert entries[-1]["previousDigest"] == "0" * 32


def test_list_pagination_sort_and_search(client, service, admin):
    append_scenario(service)

    page = client.get(
        "/api/audit-logs", params={"page": 2, "limit": 1, "sort": "asc"}, headers=admin
    ).json()
    assert [e["actor"] for e in page] == ["bob"]

    found = client.get("/api/audit-logs", params={"q": "blotter"}, headers=admin).json()
    assert [e["module"] for e in found] == ["Blotter"]


def test_list_rejects_invalid_query(client, admin):
    response = client.get("/api/audit-logs", params={"limit": 0}, headers=admin)
    assert response.status_code == 422
    assert response.json()["error"] == "validation_error"

    response = client.get("/api/audit-logs", params={"sort": "random"}, headers=admin)
    assert response.status_code == 422


def test_verify_secure_chain(client, service, admin):
    append_scenario(service)

    response = client.get("/api/audit-logs/verify", headers=admin)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "Secure"
    assert body["totalBlocks"] == 3


def test_verify_reports_tampering(client, service, admin, raw_db):
    blocks = append_scenario(service)
    raw_db.execute(
        "UPDATE audit_blocks SET description = ? WHERE block_id = ?",
        ("Added resident: Pedro", blocks[1].block_id),
    )
    raw_db.commit()

    response = client.get("/api/audit-logs/verify", headers=admin)

    assert response.status_code == 400
    body = response.json()
    assert body["status"] == "Compromised"
    assert body["failureKind"] == "DataTampering"
    assert body["failureIndex"] == 1
    assert body["blockId"] == blocks[1].block_id


def test_verify_has_no_side_effects(client, service, admin):
    append_scenario(service)

    first = client.get("/api/audit-logs/verify", headers=admin).json()
    second = client.get("/api/audit-logs/verify", headers=admin).json()

    assert first == second
    assert client.get("/api/audit-logs/stats", headers=admin).json()["total"] == 3


def test_export_csv(client, service, admin):
    blocks = append_scenario(service)

    response = client.get("/api/audit-logs/export", params={"sort": "asc"}, headers=admin)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment" in response.headers["content-disposition"]

    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows[0] == [
        "Timestamp",
        "User",
        "Action",
        "Module",
        "Description",
        "Hash",
        "Previous Hash",
    ]
    assert rows[1][1] == "alice"
    assert rows[3][5] == blocks[2].digest
    assert rows[3][6] == blocks[1].digest


def test_stats(client, service, admin):
    empty = client.get("/api/audit-logs/stats", headers=admin).json()
    assert empty == {"total": 0, "tip": None}

    blocks = append_scenario(service)
    stats = client.get("/api/audit-logs/stats", headers=admin).json()
    assert stats == {"total": 3, "tip": blocks[-1].digest}


def test_storage_outage_returns_503(client, admin):
    from barangay.app.db.chain_store import ChainStoreError
    from barangay.app.routes import audit_logs

    class DownStore:
        def list_all(self, **kwargs):
            raise ChainStoreError("disk I/O error")

    app.dependency_overrides[audit_logs.get_chain_store] = lambda: DownStore()
    try:
        response = client.get("/api/audit-logs", headers=admin)
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 503
    assert response.json()["error"] == "audit_storage_unavailable"


@pytest.mark.parametrize(
    "endpoint",
    ["list_audit_entries", "verify_audit_chain", "export_audit_entries", "audit_stats"],
)
def test_every_audit_endpoint_is_rate_limited(endpoint):
    from barangay.app.security.rate_limit import limiter

    assert f"barangay.app.routes.audit_logs.{endpoint}" in limiter._route_limits
