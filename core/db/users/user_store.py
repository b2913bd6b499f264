"""
User CRUD and activation/deactivation helpers.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

import psycopg

from core.db.base import get_conn, utcnow_iso
from core.db.users.auth import hash_password
from core.errors import DuplicateEmailError

log = logging.getLogger("db.users")

ROLES = ("job_seeker", "employer", "admin")

_USER_COLUMNS = """
    u.id, u.email, u.password_hash, u.role, u.active, u.is_super_admin,
    u.created_at, u.email_verified_at,
    p.full_name, p.is_verified
"""


def create_user(
    email: str,
    raw_password: str,
    role: str = "job_seeker",
    verified: bool = True,
    full_name: str = "",
) -> int:
    """
    Create a user plus an empty profile and default settings rows in one transaction.
    Raises DuplicateEmailError if the email is taken.
    """
    if role not in ROLES:
        raise ValueError(f"unknown role {role!r}")

    conn = get_conn()
    cur = conn.cursor()
    now = utcnow_iso()
    email_verified_at = now if verified else None

    try:
        cur.execute(
            """
            INSERT INTO users (email, password_hash, role, created_at, email_verified_at)
            VALUES (?, ?, ?, ?, ?)
            RETURNING id
            """,
            (email.strip().lower(), hash_password(raw_password), role, now, email_verified_at),
        )
    except psycopg.errors.UniqueViolation as exc:
        conn.rollback()
        conn.close()
        raise DuplicateEmailError() from exc

    user_id = int(cur.fetchone()["id"])
    cur.execute(
        "INSERT INTO profiles (user_id, full_name, created_at, updated_at) VALUES (?, ?, ?, ?)",
        (user_id, (full_name or "").strip(), now, now),
    )
    cur.execute("INSERT INTO user_settings (user_id, updated_at) VALUES (?, ?)", (user_id, now))
    if role == "employer":
        cur.execute(
            "INSERT INTO employer_notification_settings (employer_id, updated_at) VALUES (?, ?)",
            (user_id, now),
        )

    conn.commit()
    conn.close()
    log.info("Created user", extra={"user_id": user_id, "role": role})
    return user_id


def get_user_by_email(email: str) -> Dict | None:
    conn = get_conn()
    cur = conn.cursor()

    cur.execute(
        f"""
        SELECT {_USER_COLUMNS}
        FROM users u
        LEFT JOIN profiles p ON p.user_id = u.id
        WHERE u.email = ?
        """,
        ((email or "").strip().lower(),),
    )
    row = cur.fetchone()
    conn.close()

    return dict(row) if row else None


def get_user_by_id(user_id: int) -> Optional[Dict]:
    """Look up a user by numeric id. Returns dict or None."""
    conn = get_conn()
    cur = conn.cursor()

    cur.execute(
        f"""
        SELECT {_USER_COLUMNS}
        FROM users u
        LEFT JOIN profiles p ON p.user_id = u.id
        WHERE u.id = ?
        """,
        (user_id,),
    )
    row = cur.fetchone()
    conn.close()

    return dict(row) if row else None


def list_users_by_role(role: str, limit: int = 200) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT {_USER_COLUMNS}, p.bio, p.skills, p.work_email, p.years_of_experience
        FROM users u
        LEFT JOIN profiles p ON p.user_id = u.id
        WHERE u.role = ?
        ORDER BY u.created_at DESC, u.id DESC
        LIMIT ?
        """,
        (role, int(limit)),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def count_users_by_role() -> Dict[str, int]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT role, COUNT(*) AS count FROM users GROUP BY role")
    counts = {row["role"]: int(row["count"]) for row in cur.fetchall()}
    conn.close()
    return {role: counts.get(role, 0) for role in ROLES}


def update_user_password(user_id: int, raw_password: str) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE users SET password_hash=? WHERE id=?",
        (hash_password(raw_password), user_id),
    )
    conn.commit()
    conn.close()


def deactivate_user(user_id: int) -> None:
    """Deactivate a user and close their active job posts (employers)."""
    now = utcnow_iso()
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("UPDATE users SET active=0 WHERE id=?", (user_id,))
    cur.execute(
        "UPDATE job_posts SET status='closed', updated_at=? WHERE employer_id=? AND status='active'",
        (now, user_id),
    )
    conn.commit()
    conn.close()


def reactivate_user(user_id: int) -> None:
    """Reactivate a user. Closed job posts stay closed; the employer reopens them by hand."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("UPDATE users SET active=1 WHERE id=?", (user_id,))
    conn.commit()
    conn.close()


def delete_user_data(user_id: int) -> None:
    """
    Archive the user into deleted_users, then remove the user row.
    Sessions, tokens, profile, settings, posts, applications, messages and
    notifications all go with it via ON DELETE CASCADE.
    """
    conn = get_conn()
    cur = conn.cursor()

    cur.execute("SELECT id, email, role, created_at FROM users WHERE id=?", (user_id,))
    row = cur.fetchone()
    if not row:
        conn.close()
        return

    cur.execute(
        """
        INSERT INTO deleted_users (user_id, email, role, created_at, deleted_at)
        VALUES (?, ?, ?, ?, ?)
        """,
        (row["id"], row["email"], row["role"], row["created_at"], utcnow_iso()),
    )
    # Reports about this user are stale once the target is gone.
    cur.execute("DELETE FROM reports WHERE target_type='user' AND target_id=?", (user_id,))
    cur.execute("DELETE FROM users WHERE id=?", (user_id,))

    conn.commit()
    conn.close()
    log.info("Deleted user", extra={"user_id": user_id})


def get_deleted_users(limit: int = 100) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT id, user_id, email, role, created_at, deleted_at
        FROM deleted_users
        ORDER BY deleted_at DESC, id DESC
        LIMIT ?
        """,
        (int(limit),),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


__all__ = [
    "ROLES",
    "create_user",
    "get_user_by_email",
    "get_user_by_id",
    "list_users_by_role",
    "count_users_by_role",
    "update_user_password",
    "deactivate_user",
    "reactivate_user",
    "delete_user_data",
    "get_deleted_users",
]
