import asyncio

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request
from starlette.responses import Response

import app.api as api_module
from core.storage import save_upload


def _run_middleware(response: Response) -> Response:
    async def call_next(_request: Request) -> Response:
        return response

    request = Request({"type": "http", "method": "GET", "path": "/jobs", "headers": [], "query_string": b""})
    return asyncio.run(api_module.add_security_headers(request, call_next))


def test_middleware_sets_headers():
    resp = _run_middleware(Response())
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "SAMEORIGIN"
    csp = resp.headers["Content-Security-Policy"]
    assert "default-src 'self'" in csp
    assert "img-src 'self' data:" in csp


def test_middleware_keeps_route_specific_policy():
    inner = Response()
    inner.headers["Content-Security-Policy"] = "default-src 'none'"
    resp = _run_middleware(inner)
    assert resp.headers["Content-Security-Policy"] == "default-src 'none'"
    assert resp.headers["X-Frame-Options"] == "SAMEORIGIN"


@pytest.fixture
def client(login_as):
    login_as(None)
    return TestClient(api_module.app)


@pytest.mark.parametrize("path", ["/privacy", "/login", "/signup", "/password-reset"])
def test_public_pages_carry_headers(client, path):
    resp = client.get(path)
    assert resp.status_code == 200
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert "default-src 'self'" in resp.headers["Content-Security-Policy"]


def test_forms_set_readable_csrf_cookie(client):
    resp = client.get("/signup")
    cookie = resp.headers["set-cookie"]
    assert cookie.startswith("csrf_token=")
    assert "HttpOnly" not in cookie
    assert "samesite=lax" in cookie.lower()


def test_uploaded_files_are_served_with_nosniff(login_as):
    relative = save_upload("avatars", "7", "me.png", b"\x89PNG\r\n\x1a\nfake")
    login_as({"id": 8, "role": "job_seeker"})
    resp = TestClient(api_module.app).get(f"/files/{relative}")
    assert resp.status_code == 200
    assert resp.headers["X-Content-Type-Options"] == "nosniff"


def test_change_feed_requires_login(client):
    resp = client.get("/notifications/stream", follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/login"
    assert resp.headers["X-Frame-Options"] == "SAMEORIGIN"
