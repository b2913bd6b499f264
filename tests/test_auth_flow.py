from fastapi.testclient import TestClient

import app.api as api_module
import app.auth_utils as auth_utils
from app.routes import auth, public


def _must_not_be_called(*args, **kwargs):
    raise AssertionError("should not be called")


def test_login_logout_flow_redirects_when_user_missing(monkeypatch):
    client = TestClient(api_module.app)

    # Stub auth helpers
    monkeypatch.setattr(auth, "allow_request_with_remaining", lambda *a, **k: (True, 9))
    monkeypatch.setattr(auth, "validate_csrf", lambda req, tok: True)
    monkeypatch.setattr(
        auth,
        "get_user_by_email",
        lambda email: {"id": 1, "password_hash": "x", "role": "job_seeker", "active": 1, "email_verified_at": "2025-01-01T00:00:00"},
    )
    monkeypatch.setattr(auth, "verify_password", lambda pw, hash_: True)
    monkeypatch.setattr(auth, "create_session", lambda uid: "session-token")
    # Avoid DB side effects
    monkeypatch.setattr(auth, "set_session_cookie", lambda resp, token: resp.set_cookie("session_id", token))

    resp = client.post(
        "/login",
        data={"email": "user@example.com", "password": "Passw0rd1", "csrf_token": "ok"},
        follow_redirects=False,
    )
    assert resp.status_code in (302, 303)
    assert resp.headers.get("location") == "/dashboard"
    assert "session_id" in resp.cookies

    # Simulate missing/invalid session for protected route
    monkeypatch.setattr(auth_utils, "get_current_user", lambda req: (None, None))
    resp2 = client.get("/dashboard", follow_redirects=False)
    assert resp2.status_code in (302, 303)
    assert "/login" in resp2.headers.get("location", "")


def test_login_sends_deactivated_user_to_account(monkeypatch):
    client = TestClient(api_module.app)
    monkeypatch.setattr(auth, "validate_csrf", lambda req, tok: True)
    monkeypatch.setattr(
        auth,
        "get_user_by_email",
        lambda email: {"id": 2, "password_hash": "x", "role": "employer", "active": 0, "email_verified_at": "2025-01-01T00:00:00"},
    )
    monkeypatch.setattr(auth, "verify_password", lambda pw, hash_: True)
    monkeypatch.setattr(auth, "create_session", lambda uid: "session-token")

    resp = client.post(
        "/login",
        data={"email": "boss@example.com", "password": "Passw0rd1", "csrf_token": "ok"},
        follow_redirects=False,
    )
    assert resp.status_code == 303
    assert resp.headers.get("location") == "/account"


def test_login_unverified_user_gets_no_session(monkeypatch):
    client = TestClient(api_module.app)
    sent = []
    monkeypatch.setattr(auth, "validate_csrf", lambda req, tok: True)
    monkeypatch.setattr(
        auth,
        "get_user_by_email",
        lambda email: {"id": 3, "email": "new@example.com", "password_hash": "x", "role": "job_seeker", "email_verified_at": None},
    )
    monkeypatch.setattr(auth, "verify_password", lambda pw, hash_: True)
    monkeypatch.setattr(auth, "send_verification_email", lambda req, uid, email: sent.append(uid) or True)
    monkeypatch.setattr(auth, "create_session", _must_not_be_called)

    resp = client.post(
        "/login",
        data={"email": "new@example.com", "password": "Passw0rd1", "csrf_token": "ok"},
        follow_redirects=False,
    )
    assert resp.status_code == 403
    assert "session_id" not in resp.cookies
    assert sent == [3]


def test_signup_rate_limit_integration(monkeypatch):
    client = TestClient(api_module.app)

    # Force rate limit fail and bypass CSRF/validation
    monkeypatch.setattr(public, "allow_request", lambda *a, **k: False)
    monkeypatch.setattr(public, "validate_csrf", lambda req, tok: True)
    monkeypatch.setattr(public, "create_user", lambda *a, **k: 1)

    resp = client.post(
        "/signup",
        data={
            "email": "user@example.com",
            "password": "Passw0rd1",
            "password2": "Passw0rd1",
            "full_name": "Juan Dela Cruz",
            "role": "job_seeker",
            "csrf_token": "ok",
        },
    )
    assert resp.status_code == 429


def test_signup_creates_unverified_user_and_sends_link(monkeypatch):
    client = TestClient(api_module.app)
    created = {}

    def fake_create_user(email, password, role="job_seeker", verified=True, full_name=""):
        created.update(email=email, role=role, verified=verified, full_name=full_name)
        return 7

    monkeypatch.setattr(public, "validate_csrf", lambda req, tok: True)
    monkeypatch.setattr(public, "create_user", fake_create_user)
    monkeypatch.setattr(public, "send_verification_email", lambda req, uid, email: True)

    resp = client.post(
        "/signup",
        data={
            "email": "Boss@Example.com",
            "password": "Passw0rd1",
            "password2": "Passw0rd1",
            "full_name": "Maria Santos",
            "role": "employer",
            "csrf_token": "ok",
        },
    )
    assert resp.status_code == 200
    assert "Check your email" in resp.text
    assert created == {"email": "Boss@Example.com", "role": "employer", "verified": False, "full_name": "Maria Santos"}


def test_signup_rejects_admin_role(monkeypatch):
    client = TestClient(api_module.app)
    monkeypatch.setattr(public, "validate_csrf", lambda req, tok: True)
    monkeypatch.setattr(public, "create_user", _must_not_be_called)

    resp = client.post(
        "/signup",
        data={
            "email": "sneaky@example.com",
            "password": "Passw0rd1",
            "password2": "Passw0rd1",
            "full_name": "Sneaky Person",
            "role": "admin",
            "csrf_token": "ok",
        },
    )
    assert resp.status_code == 400
    assert "job seeker or employer" in resp.text
