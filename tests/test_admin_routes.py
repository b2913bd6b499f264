import pytest
from fastapi.testclient import TestClient

import app.api as api_module
from app.routes import admin

ADMIN = {"id": 1, "role": "admin"}


@pytest.fixture
def client():
    c = TestClient(api_module.app)
    c.cookies.set("csrf_token", "tok")
    return c


@pytest.fixture
def deletions(monkeypatch):
    calls = []
    monkeypatch.setattr(admin, "delete_sessions_for_user", lambda uid: calls.append(("sessions", uid)))
    monkeypatch.setattr(admin, "delete_user_data", lambda uid: calls.append(("data", uid)))
    return calls


def test_admin_cannot_delete_self(client, login_as, deletions):
    login_as(ADMIN)
    resp = client.post("/admin/users/1/delete", data={"csrf_token": "tok"})
    assert resp.status_code == 403
    assert deletions == []


def test_admin_cannot_delete_other_admin(client, login_as, deletions, monkeypatch):
    monkeypatch.setattr(admin, "get_user_by_id", lambda uid: {"id": uid, "role": "admin"})
    login_as(ADMIN)
    resp = client.post("/admin/users/2/delete", data={"csrf_token": "tok"})
    assert resp.status_code == 403
    assert deletions == []


def test_admin_delete_user_clears_sessions_then_data(client, login_as, deletions, monkeypatch):
    monkeypatch.setattr(admin, "get_user_by_id", lambda uid: {"id": uid, "role": "employer"})
    login_as(ADMIN)
    resp = client.post(
        "/admin/users/9/delete",
        data={"csrf_token": "tok", "next": "/admin/employers"},
        follow_redirects=False,
    )
    assert resp.status_code == 303
    assert resp.headers["location"] == "/admin/employers"
    assert deletions == [("sessions", 9), ("data", 9)]


def test_admin_delete_ignores_offsite_next(client, login_as, deletions, monkeypatch):
    monkeypatch.setattr(admin, "get_user_by_id", lambda uid: {"id": uid, "role": "job_seeker"})
    login_as(ADMIN)
    resp = client.post(
        "/admin/users/9/delete",
        data={"csrf_token": "tok", "next": "https://evil.example"},
        follow_redirects=False,
    )
    assert resp.headers["location"] == "/admin"


def test_admin_delete_missing_user(client, login_as, deletions, monkeypatch):
    monkeypatch.setattr(admin, "get_user_by_id", lambda uid: None)
    login_as(ADMIN)
    assert client.post("/admin/users/9/delete", data={"csrf_token": "tok"}).status_code == 404


@pytest.mark.parametrize("role", ["employer", "job_seeker"])
def test_non_admin_cannot_delete(client, login_as, deletions, role):
    login_as({"id": 5, "role": role})
    resp = client.post("/admin/users/9/delete", data={"csrf_token": "tok"})
    assert resp.status_code == 403
    assert deletions == []


def test_admin_delete_requires_csrf(client, login_as, deletions):
    login_as(ADMIN)
    resp = client.post("/admin/users/9/delete", data={"csrf_token": "wrong"})
    assert resp.status_code == 403
    assert deletions == []


def test_review_verification_decision(client, login_as, monkeypatch):
    reviewed = {}

    def fake_review(request_id, admin_id, approve, admin_notes=""):
        reviewed.update(request_id=request_id, admin_id=admin_id, approve=approve, notes=admin_notes)

    monkeypatch.setattr(admin, "review_request", fake_review)
    login_as(ADMIN)
    resp = client.post(
        "/admin/verifications/4/review",
        data={"csrf_token": "tok", "decision": "reject", "admin_notes": "Blurry photo"},
        follow_redirects=False,
    )
    assert resp.status_code == 303
    assert reviewed == {"request_id": 4, "admin_id": 1, "approve": False, "notes": "Blurry photo"}


def test_admin_dashboard_counts(client, login_as, monkeypatch):
    monkeypatch.setattr(
        admin,
        "get_stats",
        lambda: {
            "job_seekers": 8,
            "employers": 3,
            "active_jobs": 5,
            "total_jobs": 12,
            "applications": 9,
            "pending_verifications": 1,
            "pending_reports": 2,
        },
    )
    login_as(ADMIN)
    resp = client.get("/admin")
    assert resp.status_code == 200
    assert "12" in resp.text
