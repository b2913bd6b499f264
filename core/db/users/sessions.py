"""
Session storage helpers.
"""
from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from typing import Dict, Optional

from core.db.base import get_conn, utcnow

SESSION_TIMEOUT_MINUTES = 30  # inactivity timeout
ADMIN_SESSION_MAX_HOURS = 24  # absolute lifetime for admin sessions


def create_session(user_id: int) -> str:
    """Create a new login session for the given user_id and return the session token."""
    token = secrets.token_urlsafe(32)
    now = utcnow()
    expires = now + timedelta(minutes=SESSION_TIMEOUT_MINUTES)

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO sessions (id, user_id, created_at, last_seen_at, expires_at)
        VALUES (?, ?, ?, ?, ?)
        """,
        (
            token,
            user_id,
            now.isoformat(timespec="seconds"),
            now.isoformat(timespec="seconds"),
            expires.isoformat(timespec="seconds"),
        ),
    )
    conn.commit()
    conn.close()

    return token


def delete_session(session_id: str) -> None:
    """Remove a session from the DB (logout)."""
    if not session_id:
        return

    conn = get_conn()
    cur = conn.cursor()
    cur.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
    conn.commit()
    conn.close()


def delete_sessions_for_user(user_id: int) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("DELETE FROM sessions WHERE user_id = ?", (user_id,))
    conn.commit()
    conn.close()


def session_expired(session: Dict, role: str | None = None, now: datetime | None = None) -> bool:
    """
    True when the session is past its sliding expiry, or (admins only) older than
    ADMIN_SESSION_MAX_HOURS since creation.
    """
    now = now or utcnow()
    try:
        expires_at = datetime.fromisoformat(session["expires_at"])
        created_at = datetime.fromisoformat(session["created_at"])
    except (KeyError, TypeError, ValueError):
        return True

    if expires_at < now:
        return True
    if role == "admin" and created_at + timedelta(hours=ADMIN_SESSION_MAX_HOURS) < now:
        return True
    return False


def get_session(session_id: str) -> Optional[Dict]:
    """
    Look up a session by id.
    - Returns None if it does not exist or has expired.
    - If expired, it is removed from the DB.
    """
    if not session_id:
        return None

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT s.id, s.user_id, s.created_at, s.last_seen_at, s.expires_at, u.role
        FROM sessions s
        JOIN users u ON u.id = s.user_id
        WHERE s.id = ?
        """,
        (session_id,),
    )
    row = cur.fetchone()
    conn.close()

    if not row:
        return None

    session = dict(row)
    if session_expired(session, role=session.get("role")):
        delete_session(session_id)
        return None

    return session


def touch_session(session_id: str) -> None:
    """Extend a session's expiry based on current time (sliding window)."""
    if not session_id:
        return

    now = utcnow()
    new_expires = now + timedelta(minutes=SESSION_TIMEOUT_MINUTES)

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE sessions
        SET last_seen_at = ?, expires_at = ?
        WHERE id = ?
        """,
        (
            now.isoformat(timespec="seconds"),
            new_expires.isoformat(timespec="seconds"),
            session_id,
        ),
    )
    conn.commit()
    conn.close()


__all__ = [
    "SESSION_TIMEOUT_MINUTES",
    "ADMIN_SESSION_MAX_HOURS",
    "create_session",
    "delete_session",
    "delete_sessions_for_user",
    "session_expired",
    "get_session",
    "touch_session",
]
