"""
Employer ID verification requests (manual review queue).
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

from psycopg.types.json import Jsonb

from core.db.base import get_conn, utcnow_iso
from core.db.notifications import create_notification, publish_notification
from core.errors import NotFoundError, ValidationError

log = logging.getLogger("db.verification")


def create_verification_request(
    employer_id: int,
    document_path: str,
    id_type: str | None,
    extracted_text: str | None = None,
    parsed_data: Dict | None = None,
) -> Dict:
    """Queue an uploaded ID for admin review."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO employer_verification_requests
            (employer_id, document_path, id_type, status, extracted_text, parsed_data, admin_notes, submitted_at)
        VALUES (?, ?, ?, 'pending', ?, ?, ?, ?)
        RETURNING *
        """,
        (
            employer_id,
            document_path,
            id_type or None,
            extracted_text,
            Jsonb(parsed_data) if parsed_data is not None else None,
            f"ID Type: {id_type or 'Not specified'}",
            utcnow_iso(),
        ),
    )
    row = dict(cur.fetchone())
    conn.commit()
    conn.close()
    log.info("Verification request queued", extra={"request_id": row["id"], "employer_id": employer_id})
    return row


def get_latest_request(employer_id: int) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT * FROM employer_verification_requests
        WHERE employer_id = ?
        ORDER BY submitted_at DESC, id DESC
        LIMIT 1
        """,
        (employer_id,),
    )
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def get_request(request_id: int) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT * FROM employer_verification_requests WHERE id = ?", (request_id,))
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def list_requests(status: str = "pending", limit: int = 200) -> List[Dict]:
    sql = """
        SELECT r.*, p.full_name AS employer_name, u.email AS employer_email, e.company_name
        FROM employer_verification_requests r
        JOIN users u ON u.id = r.employer_id
        LEFT JOIN profiles p ON p.user_id = r.employer_id
        LEFT JOIN employer_profiles e ON e.user_id = r.employer_id
    """
    params: list = []
    if status != "all":
        sql += " WHERE r.status = ?"
        params.append(status)
    sql += " ORDER BY r.submitted_at DESC, r.id DESC LIMIT ?"
    params.append(int(limit))

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(sql, params)
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def review_request(request_id: int, admin_id: int, approve: bool, admin_notes: str = "") -> Dict:
    """
    Approve or reject a pending request. Approval marks the employer's profile
    verified. Rejection needs notes. Either way the employer is notified.
    """
    notes = (admin_notes or "").strip()
    if not approve and not notes:
        raise ValidationError("Please explain why the verification was rejected.")

    request = get_request(request_id)
    if not request or request["status"] != "pending":
        raise NotFoundError("Verification request not found or already reviewed.")

    now = utcnow_iso()
    status = "approved" if approve else "rejected"
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE employer_verification_requests
        SET status = ?, admin_notes = ?, reviewed_at = ?, reviewed_by = ?
        WHERE id = ? AND status = 'pending'
        """,
        (status, notes or request.get("admin_notes"), now, admin_id, request_id),
    )
    if cur.rowcount == 0:
        conn.rollback()
        conn.close()
        raise NotFoundError("Verification request not found or already reviewed.")
    if approve:
        cur.execute(
            "UPDATE profiles SET is_verified = 1, verification_date = ?, updated_at = ? WHERE user_id = ?",
            (now, now, request["employer_id"]),
        )
        title, message = "Verification Approved", "Your employer account has been verified."
    else:
        title, message = "Verification Rejected", f"Your ID verification was rejected: {notes}"
    note = create_notification(
        request["employer_id"],
        "verification",
        title,
        message,
        data={"request_id": request_id, "status": status},
        conn=conn,
    )
    conn.commit()
    conn.close()
    publish_notification(note)

    request.update(status=status, reviewed_at=now, reviewed_by=admin_id)
    if notes:
        request["admin_notes"] = notes
    log.info("Verification reviewed", extra={"request_id": request_id, "status": status})
    return request


__all__ = [
    "create_verification_request",
    "get_latest_request",
    "get_request",
    "list_requests",
    "review_request",
]
