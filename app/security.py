"""
CSRF double-submit tokens and in-memory rate limits.
"""
from __future__ import annotations

import hmac
import os
import secrets
import time
from typing import Dict, Tuple

from fastapi.responses import HTMLResponse

CSRF_COOKIE_NAME = "csrf_token"
SECURE_COOKIES = (
    os.getenv("COOKIE_SECURE", "").lower() in ("1", "true", "yes")
    or os.getenv("PUBLIC_BASE_URL", "").lower().startswith("https://")
)

# (limit, window_seconds) per action
LOGIN_LIMIT = (10, 300)
PASSWORD_RESET_LIMIT = (5, 6 * 3600)
PASSWORD_RESET_CONFIRM_LIMIT = (5, 300)
SIGNUP_LIMIT = (5, 3600)
VERIFY_RESEND_LIMIT = (3, 3600)
ID_CHECK_LIMIT = (10, 3600)
REPORT_LIMIT = (10, 3600)


def client_ip(request) -> str:
    return request.client.host if request is not None and getattr(request, "client", None) else "unknown"


def issue_csrf_token(existing: str | None = None) -> str:
    """Reuse the cookie's token when there is one, else mint a new one."""
    return existing or secrets.token_urlsafe(16)


def request_csrf_token(request) -> str:
    return issue_csrf_token(request.cookies.get(CSRF_COOKIE_NAME))


def attach_csrf_cookie(response, token: str) -> None:
    """The CSRF cookie is readable by the page (double-submit), unlike the session cookie."""
    response.set_cookie(
        key=CSRF_COOKIE_NAME,
        value=token,
        httponly=False,
        samesite="lax",
        secure=SECURE_COOKIES,
    )


def validate_csrf(request, form_token: str | None) -> bool:
    """Constant-time compare of the form token against the cookie."""
    cookie_token = request.cookies.get(CSRF_COOKIE_NAME) or ""
    form_token = form_token or ""
    if not cookie_token or not form_token:
        return False
    return hmac.compare_digest(cookie_token, form_token)


def csrf_failed() -> HTMLResponse:
    return HTMLResponse("Invalid or missing CSRF token.", status_code=403)


# -------- Rate limiting (in-memory, per process) --------
_rate_state: Dict[str, list[float]] = {}


def allow_request(key: str, limit: int = 5, window_seconds: int = 60) -> bool:
    allowed, _ = allow_request_with_remaining(key, limit=limit, window_seconds=window_seconds)
    return allowed


def allow_request_with_remaining(key: str, limit: int = 5, window_seconds: int = 60) -> Tuple[bool, int]:
    """
    Sliding-window limit. Returns (allowed, remaining attempts after this one).
    """
    now = time.time()
    window_start = now - window_seconds
    history = [t for t in _rate_state.get(key, []) if t > window_start]
    if len(history) >= limit:
        _rate_state[key] = history
        return False, 0
    history.append(now)
    _rate_state[key] = history
    return True, max(0, limit - len(history))


def reset_rate_limits() -> None:
    _rate_state.clear()


__all__ = [
    "CSRF_COOKIE_NAME",
    "LOGIN_LIMIT",
    "PASSWORD_RESET_LIMIT",
    "PASSWORD_RESET_CONFIRM_LIMIT",
    "SIGNUP_LIMIT",
    "VERIFY_RESEND_LIMIT",
    "ID_CHECK_LIMIT",
    "REPORT_LIMIT",
    "client_ip",
    "issue_csrf_token",
    "request_csrf_token",
    "attach_csrf_cookie",
    "validate_csrf",
    "csrf_failed",
    "allow_request",
    "allow_request_with_remaining",
    "reset_rate_limits",
]
