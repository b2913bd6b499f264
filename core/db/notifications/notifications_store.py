"""
In-app notifications plus the bookkeeping used by the email digest worker.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from psycopg.types.json import Jsonb

from core.db.base import get_conn, utcnow_iso
from core.realtime import feed

log = logging.getLogger("db.notifications")

NOTIFICATION_TYPES = (
    "new_application",
    "application_status",
    "message",
    "verification",
    "report",
    "system",
)


def create_notification(
    user_id: int,
    type: str,
    title: str,
    message: str,
    data: Optional[Dict] = None,
    conn=None,
) -> Dict:
    """
    Insert a notification and publish it on the change feed.

    When `conn` is given the insert joins the caller's transaction; the caller
    commits and then hands the returned row to publish_notification.
    """
    if type not in NOTIFICATION_TYPES:
        raise ValueError(f"unknown notification type {type!r}")

    own_conn = conn is None
    if own_conn:
        conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO notifications (user_id, type, title, message, data, created_at)
        VALUES (?, ?, ?, ?, ?, ?)
        RETURNING id, user_id, type, title, message, data, read, created_at
        """,
        (user_id, type, title, message, Jsonb(data or {}), utcnow_iso()),
    )
    row = dict(cur.fetchone())
    if own_conn:
        conn.commit()
        conn.close()
        publish_notification(row)
    return row


def publish_notification(row: Dict) -> int:
    """Push a committed notification row to its owner's open streams."""
    return feed.publish(row["user_id"], "notification", row)


def list_notifications(user_id: int, limit: int = 50, unread_only: bool = False) -> List[Dict]:
    sql = "SELECT * FROM notifications WHERE user_id = ?"
    params: list = [user_id]
    if unread_only:
        sql += " AND read = 0"
    sql += " ORDER BY created_at DESC, id DESC LIMIT ?"
    params.append(int(limit))

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(sql, params)
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def unread_count(user_id: int) -> int:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT COUNT(*) AS count FROM notifications WHERE user_id = ? AND read = 0", (user_id,))
    row = cur.fetchone()
    conn.close()
    return int(row["count"]) if row else 0


def mark_read(notification_id: int, user_id: int) -> bool:
    """Mark one notification read. Only the owner can; returns False otherwise."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE notifications SET read = 1 WHERE id = ? AND user_id = ?",
        (notification_id, user_id),
    )
    updated = bool(cur.rowcount)
    conn.commit()
    conn.close()
    return updated


def mark_all_read(user_id: int) -> int:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("UPDATE notifications SET read = 1 WHERE user_id = ? AND read = 0", (user_id,))
    count = cur.rowcount
    conn.commit()
    conn.close()
    return count


def get_pending_email_notifications(limit: int = 500) -> List[Dict]:
    """
    Notifications that have not been emailed yet, oldest first, joined with the
    recipient's email, role and settings (missing settings rows read as defaults).
    """
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT n.id, n.user_id, n.type, n.title, n.message, n.created_at,
               u.email, u.role, u.active,
               COALESCE(s.email_notifications, 1) AS email_notifications,
               COALESCE(s.application_updates, 1) AS application_updates,
               COALESCE(s.message_notifications, 1) AS message_notifications,
               COALESCE(e.new_applications, 1) AS new_applications,
               COALESCE(e.candidate_messages, 1) AS candidate_messages
        FROM notifications n
        JOIN users u ON u.id = n.user_id
        LEFT JOIN user_settings s ON s.user_id = n.user_id
        LEFT JOIN employer_notification_settings e ON e.employer_id = n.user_id
        WHERE n.emailed_at IS NULL
        ORDER BY n.created_at ASC, n.id ASC
        LIMIT ?
        """,
        (int(limit),),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def mark_notifications_emailed(ids: Sequence[int], status: str, error: str | None = None) -> None:
    """Record the digest outcome ('sent', 'failed' or 'skipped') for the given notifications."""
    if not ids:
        return
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE notifications SET emailed_at = ?, email_status = ?, email_error = ? WHERE id = ANY(?)",
        (utcnow_iso(), status, error, list(ids)),
    )
    conn.commit()
    conn.close()


__all__ = [
    "NOTIFICATION_TYPES",
    "create_notification",
    "publish_notification",
    "list_notifications",
    "unread_count",
    "mark_read",
    "mark_all_read",
    "get_pending_email_notifications",
    "mark_notifications_emailed",
]
