"""
User reports against users, job posts and messages, plus admin moderation.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

from core.db.base import get_conn, utcnow_iso
from core.errors import ConflictError, NotFoundError, ValidationError

log = logging.getLogger("db.reports")

REPORT_REASONS = {
    "user": [
        "Fake profile",
        "Inappropriate behavior",
        "Harassment",
        "Spam",
        "Misleading information",
        "Other",
    ],
    "job": [
        "Fraudulent job posting",
        "Discriminatory requirements",
        "Misleading job description",
        "Spam",
        "Inappropriate content",
        "Other",
    ],
    "message": [
        "Harassment",
        "Inappropriate content",
        "Spam",
        "Threatening language",
        "Scam attempt",
        "Other",
    ],
}
REPORT_STATUSES = ("pending", "resolved", "dismissed")

_TARGET_OWNER_SQL = {
    "user": "SELECT id AS owner_id FROM users WHERE id = ?",
    "job": "SELECT employer_id AS owner_id FROM job_posts WHERE id = ?",
    "message": "SELECT sender_id AS owner_id FROM messages WHERE id = ?",
}


def submit_report(
    reporter_id: int,
    target_type: str,
    target_id: int,
    reason: str,
    details: str = "",
) -> Dict:
    if target_type not in REPORT_REASONS:
        raise ValidationError("Unknown report target.")
    if reason not in REPORT_REASONS[target_type]:
        raise ValidationError("Please select a reason for your report.")

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(_TARGET_OWNER_SQL[target_type], (target_id,))
    target = cur.fetchone()
    if not target:
        conn.close()
        raise NotFoundError("The reported item no longer exists.")
    if target_type == "user" and int(target_id) == int(reporter_id):
        conn.close()
        raise ValidationError("You cannot report yourself.")

    cur.execute(
        """
        SELECT id FROM reports
        WHERE reporter_id = ? AND target_type = ? AND target_id = ? AND status = 'pending'
        """,
        (reporter_id, target_type, target_id),
    )
    if cur.fetchone():
        conn.close()
        raise ConflictError("You have already reported this. Our team is reviewing it.")

    cur.execute(
        """
        INSERT INTO reports (reporter_id, target_type, target_id, reason, details, created_at)
        VALUES (?, ?, ?, ?, ?, ?)
        RETURNING *
        """,
        (reporter_id, target_type, target_id, reason, (details or "").strip(), utcnow_iso()),
    )
    row = dict(cur.fetchone())
    conn.commit()
    conn.close()
    log.info("Report submitted", extra={"report_id": row["id"], "target_type": target_type})
    return row


def list_reports(status: str = "pending", limit: int = 200) -> List[Dict]:
    """Reports newest first with reporter and target display names."""
    sql = """
        SELECT r.*,
               rp.full_name AS reporter_name,
               ru.email AS reporter_email,
               CASE r.target_type
                   WHEN 'user' THEN (SELECT full_name FROM profiles WHERE user_id = r.target_id)
                   WHEN 'job' THEN (SELECT title FROM job_posts WHERE id = r.target_id)
                   WHEN 'message' THEN (SELECT left(content, 80) FROM messages WHERE id = r.target_id)
               END AS target_name
        FROM reports r
        LEFT JOIN users ru ON ru.id = r.reporter_id
        LEFT JOIN profiles rp ON rp.user_id = r.reporter_id
    """
    params: list = []
    if status != "all":
        sql += " WHERE r.status = ?"
        params.append(status)
    sql += " ORDER BY r.created_at DESC, r.id DESC LIMIT ?"
    params.append(int(limit))

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(sql, params)
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def get_report(report_id: int) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT * FROM reports WHERE id = ?", (report_id,))
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def close_report(report_id: int, admin_id: int, status: str, admin_notes: str = "") -> Dict:
    """Resolve or dismiss a pending report."""
    if status not in ("resolved", "dismissed"):
        raise ValidationError("A report can only be resolved or dismissed.")

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE reports
        SET status = ?, admin_notes = ?, resolved_at = ?, resolved_by = ?
        WHERE id = ? AND status = 'pending'
        RETURNING *
        """,
        (status, (admin_notes or "").strip(), utcnow_iso(), admin_id, report_id),
    )
    row = cur.fetchone()
    conn.commit()
    conn.close()
    if not row:
        raise NotFoundError("Report not found or already handled.")
    return dict(row)


def count_reports_by_status() -> Dict[str, int]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT status, COUNT(*) AS count FROM reports GROUP BY status")
    found = {row["status"]: int(row["count"]) for row in cur.fetchall()}
    conn.close()
    counts = {status: found.get(status, 0) for status in REPORT_STATUSES}
    counts["all"] = sum(counts.values())
    return counts


__all__ = [
    "REPORT_REASONS",
    "REPORT_STATUSES",
    "submit_report",
    "list_reports",
    "get_report",
    "close_report",
    "count_reports_by_status",
]
