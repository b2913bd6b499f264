"""
Helpers for session cookies, current-user lookup and role gates.
"""
from __future__ import annotations

import os

from fastapi import Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from core.database import delete_session, get_session, get_user_by_id, touch_session, unread_count

SESSION_COOKIE_NAME = "session_id"
SESSION_COOKIE_MAX_AGE = 1800  # 30 minutes, refreshed on every request
SECURE_COOKIES = (
    os.getenv("COOKIE_SECURE", "").lower() in ("1", "true", "yes")
    or os.getenv("PUBLIC_BASE_URL", "").lower().startswith("https://")
)


def get_current_user(request: Request):
    """
    Read session cookie and return (user_dict, session_token) or (None, None).
    Refreshes the inactivity timeout when the session is valid.
    """
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        return None, None

    session = get_session(token)
    if not session:
        return None, token

    user = get_user_by_id(session["user_id"])
    if not user:
        delete_session(token)
        return None, token

    # Unverified accounts never hold a session
    if user.get("email_verified_at") in (None, ""):
        delete_session(token)
        return None, token

    touch_session(token)
    user["unread_count"] = unread_count(user["id"])
    return user, token


def require_user(request: Request, *roles: str, allow_inactive: bool = False):
    """
    Gate a route. Returns (user, None) when the request may proceed, otherwise
    (user_or_None, response) where the response is a login redirect, a 403, or
    (for deactivated accounts) a redirect to the account page.
    """
    user, _ = get_current_user(request)
    if not user:
        return None, RedirectResponse(url="/login", status_code=303)
    if roles and user.get("role") not in roles:
        return user, HTMLResponse("Forbidden", status_code=403)
    if not allow_inactive and not user.get("active", 1):
        return user, RedirectResponse(url="/account", status_code=303)
    return user, None


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        max_age=SESSION_COOKIE_MAX_AGE,
        samesite="lax",
        secure=SECURE_COOKIES,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE_NAME)
