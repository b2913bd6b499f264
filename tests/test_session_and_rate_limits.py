import types
from datetime import datetime, timedelta

from app import security
from app.routes import auth, public
from core.db.users.sessions import ADMIN_SESSION_MAX_HOURS, session_expired


def test_login_rate_limit(monkeypatch, dummy_req):
    # Force rate limit to deny after 1 attempt
    calls = {"count": 0}

    def fake_allow_request_with_remaining(key, limit=5, window_seconds=60):
        calls["count"] += 1
        allowed = calls["count"] < 2
        return allowed, (1 if allowed else 0)

    monkeypatch.setattr(auth, "allow_request_with_remaining", fake_allow_request_with_remaining)

    # first call passes limit check but fails CSRF -> 403
    resp1 = auth.login(dummy_req, email="user@example.com", password="bad", csrf_token="wrong")
    # second call exceeds limit -> 429
    resp2 = auth.login(dummy_req, email="user@example.com", password="bad", csrf_token="wrong")
    assert resp1.status_code == 403
    assert resp2.status_code == 429


def test_signup_rate_limit(monkeypatch, dummy_req):
    calls = {"count": 0}

    def fake_allow_request(key, limit=5, window_seconds=60):
        calls["count"] += 1
        return calls["count"] < 2

    monkeypatch.setattr(public, "allow_request", fake_allow_request)

    kwargs = dict(
        email="user@example.com",
        password="Passw0rd1",
        password2="Passw0rd1",
        full_name="Juan Dela Cruz",
        role="job_seeker",
        csrf_token="wrong",  # will fail CSRF, but we just want rate-limit path exercised
    )
    resp1 = public.signup(dummy_req, **kwargs)
    resp2 = public.signup(dummy_req, **kwargs)
    assert resp1.status_code == 403
    assert resp2.status_code == 429


def test_real_login_limit_is_per_ip(dummy_req):
    limit, _ = security.LOGIN_LIMIT
    for _ in range(limit):
        resp = auth.login(dummy_req, email="user@example.com", password="bad", csrf_token="wrong")
        assert resp.status_code == 403
    assert auth.login(dummy_req, email="user@example.com", password="bad", csrf_token="wrong").status_code == 429

    other_ip = types.SimpleNamespace(client=types.SimpleNamespace(host="10.0.0.2"), cookies=dummy_req.cookies)
    assert auth.login(other_ip, email="user@example.com", password="bad", csrf_token="wrong").status_code == 403


def test_session_cleared_for_missing_user(monkeypatch):
    # Simulate get_current_user returning (None, None)
    monkeypatch.setattr(auth, "get_current_user", lambda req: (None, None))

    class DummyReq:
        cookies = {}
        client = types.SimpleNamespace(host="127.0.0.1")

    resp = auth.logout(DummyReq())
    # Should redirect to home when session is gone
    assert resp.status_code in (302, 303)
    assert resp.headers.get("location") == "/"


def test_logout_deletes_session(monkeypatch):
    deleted = []
    monkeypatch.setattr(auth, "get_current_user", lambda req: ({"id": 1}, "tok"))
    monkeypatch.setattr(auth, "delete_session", lambda token: deleted.append(token))

    resp = auth.logout(types.SimpleNamespace(cookies={"session_id": "tok"}))
    assert resp.status_code == 303
    assert deleted == ["tok"]
    assert "session_id" in resp.headers.get("set-cookie", "")


def _session(created_minutes_ago: int, expires_in_minutes: int, now: datetime) -> dict:
    return {
        "created_at": (now - timedelta(minutes=created_minutes_ago)).isoformat(timespec="seconds"),
        "expires_at": (now + timedelta(minutes=expires_in_minutes)).isoformat(timespec="seconds"),
    }


def test_session_expires_after_inactivity():
    now = datetime(2025, 1, 1, 12, 0, 0)
    assert session_expired(_session(10, 20, now), role="job_seeker", now=now) is False
    assert session_expired(_session(40, -1, now), role="job_seeker", now=now) is True


def test_admin_session_has_absolute_lifetime():
    now = datetime(2025, 1, 1, 12, 0, 0)
    old = _session(ADMIN_SESSION_MAX_HOURS * 60 + 1, 20, now)
    assert session_expired(old, role="employer", now=now) is False
    assert session_expired(old, role="admin", now=now) is True


def test_malformed_session_is_expired():
    assert session_expired({"created_at": "nope", "expires_at": None}) is True
