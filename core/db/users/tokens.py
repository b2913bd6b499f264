"""
Single-use account tokens: email verification and password reset.

Both kinds share one table layout (user_id, token, created_at, expires_at, used_at);
only the table and lifetime differ.
"""
from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from typing import Dict, Optional

from core.db.base import get_conn, utcnow, utcnow_iso

VERIFY_TOKEN_HOURS = 24
RESET_TOKEN_MINUTES = 60

_VERIFY_TABLE = "email_verification_tokens"
_RESET_TABLE = "password_reset_tokens"


def _create_token(table: str, user_id: int, ttl: timedelta, replace_existing: bool) -> str:
    token = secrets.token_urlsafe(32)
    now = utcnow()

    conn = get_conn()
    cur = conn.cursor()
    if replace_existing:
        cur.execute(f"DELETE FROM {table} WHERE user_id = ?", (user_id,))
    cur.execute(
        f"""
        INSERT INTO {table} (user_id, token, created_at, expires_at, used_at)
        VALUES (?, ?, ?, ?, NULL)
        """,
        (
            user_id,
            token,
            now.isoformat(timespec="seconds"),
            (now + ttl).isoformat(timespec="seconds"),
        ),
    )
    conn.commit()
    conn.close()
    return token


def _get_live_token(table: str, token: str) -> Optional[Dict]:
    """Return the token row if unused and unexpired; stale rows are deleted on sight."""
    if not token:
        return None

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT id, user_id, token, created_at, expires_at, used_at
        FROM {table}
        WHERE token = ?
        """,
        (token,),
    )
    row = cur.fetchone()
    if not row:
        conn.close()
        return None

    data = dict(row)
    try:
        expired = datetime.fromisoformat(data["expires_at"]) <= utcnow()
    except (TypeError, ValueError):
        expired = True

    if expired or data.get("used_at"):
        cur.execute(f"DELETE FROM {table} WHERE token = ?", (token,))
        conn.commit()
        conn.close()
        return None

    conn.close()
    return data


def _mark_used(table: str, token: str) -> None:
    if not token:
        return
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"UPDATE {table} SET used_at = ? WHERE token = ? AND used_at IS NULL RETURNING user_id",
        (utcnow_iso(), token),
    )
    row = cur.fetchone()
    if row:
        # Any sibling tokens for the same user die with this one.
        cur.execute(f"DELETE FROM {table} WHERE user_id = ? AND token != ?", (row["user_id"], token))
    conn.commit()
    conn.close()


def create_email_verification_token(user_id: int) -> str:
    return _create_token(_VERIFY_TABLE, user_id, timedelta(hours=VERIFY_TOKEN_HOURS), replace_existing=False)


def get_email_verification_token(token: str) -> Optional[Dict]:
    return _get_live_token(_VERIFY_TABLE, token)


def mark_email_verification_token_used(token: str) -> None:
    _mark_used(_VERIFY_TABLE, token)


def mark_user_email_verified(user_id: int) -> None:
    """Set email_verified_at if not already set."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE users SET email_verified_at = ? WHERE id = ? AND (email_verified_at IS NULL OR email_verified_at = '')",
        (utcnow_iso(), user_id),
    )
    conn.commit()
    conn.close()


def create_password_reset_token(user_id: int) -> str:
    """Issue a reset token; earlier reset tokens for the user are invalidated."""
    return _create_token(_RESET_TABLE, user_id, timedelta(minutes=RESET_TOKEN_MINUTES), replace_existing=True)


def get_password_reset_token(token: str) -> Optional[Dict]:
    return _get_live_token(_RESET_TABLE, token)


def mark_reset_token_used(token: str) -> None:
    _mark_used(_RESET_TABLE, token)


__all__ = [
    "VERIFY_TOKEN_HOURS",
    "RESET_TOKEN_MINUTES",
    "create_email_verification_token",
    "get_email_verification_token",
    "mark_email_verification_token_used",
    "mark_user_email_verified",
    "create_password_reset_token",
    "get_password_reset_token",
    "mark_reset_token_used",
]
