"""HTTP contract tests: status codes and response shapes."""

import inspect

import pytest
from fastapi.routing import APIRoute

from tests.conftest import ADMIN, DONE_URL, IMAGE_URL, OTHER_SUPERVISOR, SUPERVISOR

REPORT = {"issue_type": "Pothole", "block_id": "B1", "image_url": IMAGE_URL}


def create_report(client) -> str:
    r = client.post("/reports", json=REPORT)
    assert r.status_code == 201
    return r.json()["id"]


def test_health(client) -> None:
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"


def test_health_db_uses_store(client) -> None:
    r = client.get("/health/db")
    assert r.status_code == 200
    body = r.json()
    assert body["connected"] is True
    assert body["database"] == "memory"


def test_submit_and_merge(client) -> None:
    r1 = client.post("/reports", json=REPORT)
    r2 = client.post("/reports", json={**REPORT, "issue_type": "POTHOLE"})

    assert r1.status_code == 201
    assert r1.json()["merged"] is False
    assert r2.status_code == 201
    assert r2.json() == {"merged": True, "id": r1.json()["id"]}


def test_submit_unknown_type_is_400(client) -> None:
    r = client.post("/reports", json={**REPORT, "issue_type": "Volcano"})
    assert r.status_code == 400
    assert "Unknown issue type" in r.json()["detail"]


def test_submit_missing_field_is_422(client) -> None:
    r = client.post("/reports", json={"issue_type": "Pothole"})
    assert r.status_code == 422


def test_submit_requires_token() -> None:
    from fastapi.testclient import TestClient
    from app.main import app

    r = TestClient(app).post("/reports", json=REPORT)
    assert r.status_code == 401


def test_get_unknown_report_is_404(client) -> None:
    r = client.get("/reports/does-not-exist")
    assert r.status_code == 404


def test_report_detail(client) -> None:
    report_id = create_report(client)
    r = client.get(f"/reports/{report_id}")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "PENDING"
    assert body["priority"] == 0
    assert len(body["images"]) == 1
    assert body["assignments"] == []


def test_start_twice_is_409_with_current_status(client) -> None:
    report_id = create_report(client)
    r1 = client.patch(f"/admin/report/{report_id}/start", json={"estimated_time": "2 days"})
    assert r1.status_code == 200
    assert r1.json()["status"] == "ASSIGNED_TO_SUPERVISOR"
    assert r1.json()["supervisor_id"] == SUPERVISOR.id

    r2 = client.patch(f"/admin/report/{report_id}/start", json={"estimated_time": "2 days"})
    assert r2.status_code == 409
    assert r2.json()["current_status"] == "ASSIGNED_TO_SUPERVISOR"


def test_supervisor_cannot_start_is_401(client, api_user) -> None:
    report_id = create_report(client)
    api_user["user"] = SUPERVISOR
    r = client.patch(f"/admin/report/{report_id}/start", json={"estimated_time": "2 days"})
    assert r.status_code == 401


def test_admin_me(client, api_user) -> None:
    assert client.get("/admin/me").json()["role"] == "ADMIN"
    api_user["user"] = SUPERVISOR
    assert client.get("/admin/me").status_code == 401


def test_auth_me(client, api_user) -> None:
    api_user["user"] = SUPERVISOR
    body = client.get("/auth/me").json()
    assert body["id"] == SUPERVISOR.id
    assert body["block_id"] == "B1"


def test_supervisor_flow_to_manual_review(client, api_user, classifier) -> None:
    report_id = create_report(client)
    client.patch(f"/admin/report/{report_id}/start", json={"estimated_time": "2 days"})

    api_user["user"] = OTHER_SUPERVISOR
    r = client.patch(f"/supervisor/report/{report_id}/assign-worker", json={"worker_name": "Ravi"})
    assert r.status_code == 403

    api_user["user"] = SUPERVISOR
    listed = client.get("/supervisor/reports").json()
    assert [item["id"] for item in listed] == [report_id]

    r = client.patch(f"/supervisor/report/{report_id}/assign-worker", json={"worker_name": "Ravi"})
    assert r.status_code == 200
    assert r.json()["status"] == "ASSIGNED_TO_WORKER"

    classifier.predict("pothole", 0.65)
    r = client.patch(f"/supervisor/report/{report_id}/complete", json={"image_url": DONE_URL})
    assert r.status_code == 200
    assert r.json() == {"id": report_id, "status": "MANUAL_REVIEW", "requires_manual_review": True}

    classifier.predict("pothole", 0.91)
    r = client.patch(f"/supervisor/report/{report_id}/reverify")
    assert r.status_code == 200
    assert r.json()["status"] == "RESOLVED"
    assert r.json()["resolved_class"] == "pothole"


def test_admin_resolves_manual_review(client, api_user, classifier) -> None:
    report_id = create_report(client)
    client.patch(f"/admin/report/{report_id}/start", json={"estimated_time": "2 days"})
    api_user["user"] = SUPERVISOR
    client.patch(f"/supervisor/report/{report_id}/assign-worker", json={"worker_name": "Ravi"})
    classifier.prediction = None
    client.patch(f"/supervisor/report/{report_id}/complete", json={"image_url": DONE_URL})

    api_user["user"] = ADMIN
    r = client.patch(f"/admin/report/{report_id}/resolve", json={"resolved_class": "pothole"})
    assert r.status_code == 200
    assert r.json()["status"] == "RESOLVED"

    listed = client.get("/admin/reports").json()
    assert listed[0]["id"] == report_id


@pytest.mark.parametrize("method,path", [
    ("POST", "/reports"),
    ("GET", "/reports/{report_id}"),
    ("GET", "/admin/reports"),
    ("PATCH", "/admin/report/{report_id}/start"),
    ("PATCH", "/admin/report/{report_id}/resolve"),
    ("GET", "/supervisor/reports"),
    ("PATCH", "/supervisor/report/{report_id}/assign-worker"),
    ("PATCH", "/supervisor/report/{report_id}/complete"),
    ("PATCH", "/supervisor/report/{report_id}/reverify"),
    ("GET", "/health/db"),
])
def test_blocking_handlers_run_in_threadpool(method: str, path: str) -> None:
    from app.main import app

    routes = [
        route for route in app.routes
        if isinstance(route, APIRoute) and route.path == path and method in route.methods
    ]
    assert len(routes) == 1
    assert not inspect.iscoroutinefunction(routes[0].endpoint)
