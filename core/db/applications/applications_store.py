"""
Job applications: apply, status lifecycle, withdraw, and the employer/seeker views.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

import psycopg

from core.db.base import get_conn, utcnow_iso
from core.db.notifications import create_notification, publish_notification
from core.errors import (
    AlreadyAppliedError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)

log = logging.getLogger("db.applications")

APPLICATION_STATUSES = ("pending", "reviewing", "accepted", "rejected", "withdrawn")

# Allowed employer-driven moves; accepted/rejected/withdrawn are terminal.
TRANSITIONS = {
    "pending": ("reviewing", "rejected"),
    "reviewing": ("accepted", "rejected"),
}
WITHDRAWABLE = ("pending", "reviewing")


def can_transition(current: str, new: str) -> bool:
    return new in TRANSITIONS.get(current, ())


def apply_to_job(
    job_post_id: int,
    job_seeker_id: int,
    cover_letter: str = "",
    email: str = "",
    contact_number: str = "",
    resume_url: Optional[str] = None,
) -> Dict:
    """
    Create a pending application and notify the employer in the same transaction.
    Raises NotFoundError when the job is missing or not active, AlreadyAppliedError
    on a second application to the same job.
    """
    conn = get_conn()
    cur = conn.cursor()

    cur.execute("SELECT id, employer_id, title, status FROM job_posts WHERE id = ?", (job_post_id,))
    job = cur.fetchone()
    if not job or job["status"] != "active":
        conn.close()
        raise NotFoundError("This job is no longer accepting applications.")
    if job["employer_id"] == job_seeker_id:
        conn.close()
        raise PermissionDenied("You cannot apply to your own job post.")

    cur.execute(
        """
        SELECT u.email, p.full_name, p.resume_url
        FROM users u LEFT JOIN profiles p ON p.user_id = u.id
        WHERE u.id = ?
        """,
        (job_seeker_id,),
    )
    seeker = cur.fetchone() or {}
    resume_url = resume_url or seeker.get("resume_url")
    email = (email or "").strip() or seeker.get("email") or ""
    now = utcnow_iso()

    try:
        cur.execute(
            """
            INSERT INTO job_applications
                (job_post_id, job_seeker_id, cover_letter, resume_url, contact_number, email,
                 status, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, 'pending', ?, ?)
            RETURNING *
            """,
            (
                job_post_id,
                job_seeker_id,
                (cover_letter or "").strip(),
                resume_url,
                (contact_number or "").strip(),
                email,
                now,
                now,
            ),
        )
    except psycopg.errors.UniqueViolation as exc:
        conn.rollback()
        conn.close()
        raise AlreadyAppliedError() from exc

    application = dict(cur.fetchone())
    applicant_name = seeker.get("full_name") or email
    note = create_notification(
        job["employer_id"],
        "new_application",
        "New Application Received",
        f'{applicant_name} applied for "{job["title"]}"',
        data={
            "job_post_id": job_post_id,
            "application_id": application["id"],
            "applicant_id": job_seeker_id,
            "applicant_name": applicant_name,
            "applicant_email": email,
            "contact_number": application["contact_number"],
            "resume_url": resume_url,
        },
        conn=conn,
    )
    conn.commit()
    conn.close()
    publish_notification(note)
    log.info("Application submitted", extra={"application_id": application["id"], "job_id": job_post_id})
    return application


def get_application(application_id: int) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT a.*, j.title AS job_title, j.employer_id, p.full_name AS applicant_name
        FROM job_applications a
        JOIN job_posts j ON j.id = a.job_post_id
        LEFT JOIN profiles p ON p.user_id = a.job_seeker_id
        WHERE a.id = ?
        """,
        (application_id,),
    )
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def has_applied(job_post_id: int, job_seeker_id: int) -> bool:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "SELECT 1 FROM job_applications WHERE job_post_id = ? AND job_seeker_id = ?",
        (job_post_id, job_seeker_id),
    )
    row = cur.fetchone()
    conn.close()
    return row is not None


def employer_can_view_resume(employer_id: int, resume_path: str) -> bool:
    """True when an application to one of the employer's jobs carries this resume."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT 1
        FROM job_applications a
        JOIN job_posts j ON j.id = a.job_post_id
        WHERE j.employer_id = ? AND a.resume_url = ?
        LIMIT 1
        """,
        (employer_id, resume_path),
    )
    row = cur.fetchone()
    conn.close()
    return row is not None


def _set_status(application: Dict, status: str) -> None:
    """Move `application` from the status it was read with; a concurrent change wins."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE job_applications SET status = ?, updated_at = ? WHERE id = ? AND status = ?",
        (status, utcnow_iso(), application["id"], application["status"]),
    )
    if cur.rowcount == 0:
        conn.rollback()
        conn.close()
        raise InvalidTransitionError("This application was updated by someone else. Reload and try again.")
    note = create_notification(
        application["job_seeker_id"],
        "application_status",
        "Application Update",
        f'Your application for "{application["job_title"]}" has been {status}',
        data={
            "job_post_id": application["job_post_id"],
            "application_id": application["id"],
            "status": status,
        },
        conn=conn,
    )
    conn.commit()
    conn.close()
    publish_notification(note)


def update_application_status(application_id: int, actor: Dict, status: str) -> Dict:
    """Employer (or admin) moves an application along its lifecycle."""
    if status not in APPLICATION_STATUSES:
        raise ValidationError("Unknown application status.")
    application = get_application(application_id)
    if not application:
        raise NotFoundError("Application not found.")
    if actor.get("role") != "admin" and application["employer_id"] != actor.get("id"):
        raise PermissionDenied("You can only manage applications to your own jobs.")
    if not can_transition(application["status"], status):
        raise InvalidTransitionError(f"Cannot move an application from {application['status']} to {status}.")

    _set_status(application, status)
    application["status"] = status
    return application


def withdraw_application(application_id: int, job_seeker_id: int) -> Dict:
    application = get_application(application_id)
    if not application or application["job_seeker_id"] != job_seeker_id:
        raise NotFoundError("Application not found.")
    if application["status"] not in WITHDRAWABLE:
        raise InvalidTransitionError("Only pending or reviewing applications can be withdrawn.")

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE job_applications SET status = 'withdrawn', updated_at = ?
        WHERE id = ? AND status IN ('pending', 'reviewing')
        """,
        (utcnow_iso(), application_id),
    )
    changed = cur.rowcount
    conn.commit()
    conn.close()
    if not changed:
        raise InvalidTransitionError("Only pending or reviewing applications can be withdrawn.")
    application["status"] = "withdrawn"
    return application


def list_employer_applications(employer_id: int, status: str = "all", job_post_id: int | None = None) -> List[Dict]:
    sql = """
        SELECT a.*, j.title AS job_title, p.full_name AS applicant_name, p.is_verified AS applicant_verified
        FROM job_applications a
        JOIN job_posts j ON j.id = a.job_post_id
        LEFT JOIN profiles p ON p.user_id = a.job_seeker_id
        WHERE j.employer_id = ?
    """
    params: list = [employer_id]
    if status != "all":
        sql += " AND a.status = ?"
        params.append(status)
    if job_post_id:
        sql += " AND a.job_post_id = ?"
        params.append(job_post_id)
    sql += " ORDER BY a.created_at DESC, a.id DESC"

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(sql, params)
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def count_employer_applications(employer_id: int) -> Dict[str, int]:
    """Per-status counts plus 'all' for the employer's applications page tabs."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT a.status, COUNT(*) AS count
        FROM job_applications a
        JOIN job_posts j ON j.id = a.job_post_id
        WHERE j.employer_id = ?
        GROUP BY a.status
        """,
        (employer_id,),
    )
    found = {row["status"]: int(row["count"]) for row in cur.fetchall()}
    conn.close()
    counts = {status: found.get(status, 0) for status in APPLICATION_STATUSES}
    counts["all"] = sum(counts.values())
    return counts


def list_seeker_applications(job_seeker_id: int) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT a.*, j.title AS job_title, j.location, j.job_type, j.status AS job_status
        FROM job_applications a
        JOIN job_posts j ON j.id = a.job_post_id
        WHERE a.job_seeker_id = ?
        ORDER BY a.created_at DESC, a.id DESC
        """,
        (job_seeker_id,),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def list_all_applications(limit: int = 200) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT a.*, j.title AS job_title, p.full_name AS applicant_name, e.full_name AS employer_name
        FROM job_applications a
        JOIN job_posts j ON j.id = a.job_post_id
        LEFT JOIN profiles p ON p.user_id = a.job_seeker_id
        LEFT JOIN profiles e ON e.user_id = j.employer_id
        ORDER BY a.created_at DESC, a.id DESC
        LIMIT ?
        """,
        (int(limit),),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


__all__ = [
    "APPLICATION_STATUSES",
    "TRANSITIONS",
    "WITHDRAWABLE",
    "can_transition",
    "apply_to_job",
    "get_application",
    "has_applied",
    "employer_can_view_resume",
    "update_application_status",
    "withdraw_application",
    "list_employer_applications",
    "count_employer_applications",
    "list_seeker_applications",
    "list_all_applications",
]
