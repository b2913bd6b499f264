"""
Job post and saved-job storage helpers.
"""
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Dict, List, Optional

from core.db.base import contains_pattern, get_conn, utcnow, utcnow_iso
from core.db.profiles import normalize_skills
from core.errors import NotFoundError, PermissionDenied, ValidationError

log = logging.getLogger("db.jobs")

JOB_STATUSES = ("active", "closed", "draft")
JOB_TYPES = ("full-time", "part-time", "contract", "freelance", "internship")
EXPERIENCE_LEVELS = ("entry", "intermediate", "expert")
POSTED_WITHIN = {"24h": timedelta(hours=24), "7d": timedelta(days=7), "30d": timedelta(days=30)}

JOB_FIELDS = (
    "title",
    "category",
    "description",
    "budget",
    "location",
    "required_skills",
    "experience_level",
    "work_schedule",
    "additional_requirements",
    "application_instructions",
    "job_type",
    "start_date",
    "end_date",
    "payment_method",
)
OPTIONAL_JOB_FIELDS = ("additional_requirements",)

DEFAULT_FILTERS: Dict = {
    "query": "",
    "job_types": [],
    "experience_level": "",
    "location": "",
    "skills": [],
    "category": "",
    "posted_within": "",
}


def _parse_date(value) -> Optional[date]:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value or "").strip())
    except ValueError:
        return None


def clean_job_data(data: Dict) -> Dict:
    """Keep only JOB_FIELDS, trim strings and normalize the skills list."""
    cleaned: Dict = {}
    for field in JOB_FIELDS:
        value = data.get(field)
        if field == "required_skills":
            cleaned[field] = normalize_skills(value)
        elif isinstance(value, str):
            cleaned[field] = value.strip()
        else:
            cleaned[field] = value
    return cleaned


def validate_job(data: Dict) -> List[str]:
    errors: List[str] = []
    for field in JOB_FIELDS:
        if field in OPTIONAL_JOB_FIELDS or field == "required_skills":
            continue
        if not data.get(field):
            errors.append(f"{field.replace('_', ' ').capitalize()} is required.")
    if not normalize_skills(data.get("required_skills")):
        errors.append("List at least one required skill.")

    if data.get("job_type") and data["job_type"] not in JOB_TYPES:
        errors.append("Job type must be one of: " + ", ".join(JOB_TYPES) + ".")
    if data.get("experience_level") and data["experience_level"] not in EXPERIENCE_LEVELS:
        errors.append("Experience level must be one of: " + ", ".join(EXPERIENCE_LEVELS) + ".")

    start = _parse_date(data.get("start_date")) if data.get("start_date") else None
    end = _parse_date(data.get("end_date")) if data.get("end_date") else None
    if data.get("start_date") and start is None:
        errors.append("Start date must be a valid date (YYYY-MM-DD).")
    if data.get("end_date") and end is None:
        errors.append("End date must be a valid date (YYYY-MM-DD).")
    if start and end and end < start:
        errors.append("End date cannot be before the start date.")
    return errors


def count_active_filters(filters: Dict) -> int:
    """Number of filters that differ from DEFAULT_FILTERS (drives the search badge)."""
    count = 0
    for key, default in DEFAULT_FILTERS.items():
        value = filters.get(key, default)
        if isinstance(value, str):
            value = value.strip()
        if value and value != default:
            count += 1
    return count


def create_job_post(employer_id: int, data: Dict, status: str = "active") -> Dict:
    job = clean_job_data(data)
    errors = validate_job(job)
    if status not in JOB_STATUSES:
        errors.append("Unknown status.")
    if errors:
        raise ValidationError(errors)

    now = utcnow_iso()
    cols = ", ".join(JOB_FIELDS)
    placeholders = ", ".join("?" for _ in JOB_FIELDS)

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"""
        INSERT INTO job_posts (employer_id, {cols}, status, created_at, updated_at)
        VALUES (?, {placeholders}, ?, ?, ?)
        RETURNING *
        """,
        [employer_id] + [job[f] for f in JOB_FIELDS] + [status, now, now],
    )
    row = dict(cur.fetchone())
    conn.commit()
    conn.close()
    log.info("Job post created", extra={"job_id": row["id"], "employer_id": employer_id})
    return row


def get_job_post(job_id: int) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT j.*, p.full_name AS employer_name, e.company_name, p.is_verified AS employer_verified
        FROM job_posts j
        LEFT JOIN profiles p ON p.user_id = j.employer_id
        LEFT JOIN employer_profiles e ON e.user_id = j.employer_id
        WHERE j.id = ?
        """,
        (job_id,),
    )
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def _require_owned(job_id: int, actor: Dict) -> Dict:
    job = get_job_post(job_id)
    if not job:
        raise NotFoundError("Job post not found.")
    if actor.get("role") != "admin" and job["employer_id"] != actor.get("id"):
        raise PermissionDenied("You can only manage your own job posts.")
    return job


def update_job_post(job_id: int, actor: Dict, data: Dict) -> Dict:
    _require_owned(job_id, actor)
    job = clean_job_data(data)
    errors = validate_job(job)
    if errors:
        raise ValidationError(errors)

    assignments = ", ".join(f"{f} = ?" for f in JOB_FIELDS)
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"UPDATE job_posts SET {assignments}, updated_at = ? WHERE id = ? RETURNING *",
        [job[f] for f in JOB_FIELDS] + [utcnow_iso(), job_id],
    )
    row = dict(cur.fetchone())
    conn.commit()
    conn.close()
    return row


def set_job_status(job_id: int, actor: Dict, status: str) -> None:
    if status not in JOB_STATUSES:
        raise ValidationError("Unknown status.")
    _require_owned(job_id, actor)
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("UPDATE job_posts SET status = ?, updated_at = ? WHERE id = ?", (status, utcnow_iso(), job_id))
    conn.commit()
    conn.close()


def delete_job_post(job_id: int, actor: Dict) -> None:
    _require_owned(job_id, actor)
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("DELETE FROM reports WHERE target_type='job' AND target_id=?", (job_id,))
    cur.execute("DELETE FROM job_posts WHERE id = ?", (job_id,))
    conn.commit()
    conn.close()
    log.info("Job post deleted", extra={"job_id": job_id, "by": actor.get("id")})


def list_employer_jobs(employer_id: int) -> List[Dict]:
    """An employer's posts, newest first, with application counts."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT j.*,
               (SELECT COUNT(*) FROM job_applications a WHERE a.job_post_id = j.id) AS application_count
        FROM job_posts j
        WHERE j.employer_id = ?
        ORDER BY j.created_at DESC, j.id DESC
        """,
        (employer_id,),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def list_all_jobs(status: str = "all", limit: int = 200) -> List[Dict]:
    sql = """
        SELECT j.*, p.full_name AS employer_name
        FROM job_posts j
        LEFT JOIN profiles p ON p.user_id = j.employer_id
    """
    params: list = []
    if status != "all":
        sql += " WHERE j.status = ?"
        params.append(status)
    sql += " ORDER BY j.created_at DESC, j.id DESC LIMIT ?"
    params.append(int(limit))

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(sql, params)
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def build_search_query(filters: Dict, limit: int = 50) -> tuple[str, list]:
    """SQL + params for active job posts matching `filters` (see DEFAULT_FILTERS)."""
    sql = """
        SELECT j.*, p.full_name AS employer_name, p.is_verified AS employer_verified
        FROM job_posts j
        LEFT JOIN profiles p ON p.user_id = j.employer_id
        WHERE j.status = 'active'
    """
    params: list = []

    query = (filters.get("query") or "").strip()
    if query:
        sql += (
            " AND (j.title ILIKE ? ESCAPE '\\' OR j.description ILIKE ? ESCAPE '\\'"
            " OR j.category ILIKE ? ESCAPE '\\')"
        )
        like = contains_pattern(query)
        params.extend([like, like, like])

    job_types = [t for t in (filters.get("job_types") or []) if t in JOB_TYPES]
    if job_types:
        sql += " AND j.job_type = ANY(?)"
        params.append(job_types)

    level = (filters.get("experience_level") or "").strip()
    if level:
        sql += " AND j.experience_level = ?"
        params.append(level)

    location = (filters.get("location") or "").strip()
    if location:
        sql += " AND j.location ILIKE ? ESCAPE '\\'"
        params.append(contains_pattern(location))

    category = (filters.get("category") or "").strip()
    if category:
        sql += " AND lower(j.category) = lower(?)"
        params.append(category)

    skills = [s.lower() for s in normalize_skills(filters.get("skills"))]
    if skills:
        sql += " AND EXISTS (SELECT 1 FROM unnest(j.required_skills) sk WHERE lower(sk) = ANY(?))"
        params.append(skills)

    window = POSTED_WITHIN.get((filters.get("posted_within") or "").strip())
    if window:
        sql += " AND j.created_at >= ?"
        params.append((utcnow() - window).isoformat(timespec="seconds"))

    sql += " ORDER BY j.created_at DESC, j.id DESC LIMIT ?"
    params.append(int(limit))
    return sql, params


def search_jobs(filters: Dict | None = None, limit: int = 50) -> List[Dict]:
    sql, params = build_search_query(filters or {}, limit=limit)
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(sql, params)
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def save_job(job_seeker_id: int, job_id: int) -> bool:
    """
    Bookmark an active job. Returns False when it was already saved; raises
    NotFoundError when the job is missing or no longer active.
    """
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT 1 FROM job_posts WHERE id = ? AND status = 'active'", (job_id,))
    if cur.fetchone() is None:
        conn.close()
        raise NotFoundError("This job is no longer available.")
    cur.execute(
        """
        INSERT INTO saved_jobs (job_seeker_id, job_id, created_at)
        SELECT ?, id, ? FROM job_posts WHERE id = ? AND status = 'active'
        ON CONFLICT (job_seeker_id, job_id) DO NOTHING
        """,
        (job_seeker_id, utcnow_iso(), job_id),
    )
    inserted = bool(cur.rowcount)
    conn.commit()
    conn.close()
    return inserted


def unsave_job(job_seeker_id: int, job_id: int) -> None:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("DELETE FROM saved_jobs WHERE job_seeker_id = ? AND job_id = ?", (job_seeker_id, job_id))
    conn.commit()
    conn.close()


def get_saved_jobs(job_seeker_id: int) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT j.*, s.created_at AS saved_at
        FROM saved_jobs s
        JOIN job_posts j ON j.id = s.job_id
        WHERE s.job_seeker_id = ?
        ORDER BY s.created_at DESC, s.id DESC
        """,
        (job_seeker_id,),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def get_saved_job_ids(job_seeker_id: int) -> set[int]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT job_id FROM saved_jobs WHERE job_seeker_id = ?", (job_seeker_id,))
    ids = {int(r["job_id"]) for r in cur.fetchall()}
    conn.close()
    return ids


def get_stats() -> Dict:
    """Counts for the admin dashboard."""
    conn = get_conn()
    cur = conn.cursor()

    def _count(sql: str) -> int:
        cur.execute(sql)
        row = cur.fetchone()
        return int(row["count"]) if row else 0

    stats = {
        "job_seekers": _count("SELECT COUNT(*) AS count FROM users WHERE role = 'job_seeker'"),
        "employers": _count("SELECT COUNT(*) AS count FROM users WHERE role = 'employer'"),
        "active_jobs": _count("SELECT COUNT(*) AS count FROM job_posts WHERE status = 'active'"),
        "total_jobs": _count("SELECT COUNT(*) AS count FROM job_posts"),
        "applications": _count("SELECT COUNT(*) AS count FROM job_applications"),
        "pending_verifications": _count(
            "SELECT COUNT(*) AS count FROM employer_verification_requests WHERE status = 'pending'"
        ),
        "pending_reports": _count("SELECT COUNT(*) AS count FROM reports WHERE status = 'pending'"),
    }
    conn.close()
    return stats


__all__ = [
    "JOB_STATUSES",
    "JOB_TYPES",
    "EXPERIENCE_LEVELS",
    "JOB_FIELDS",
    "DEFAULT_FILTERS",
    "clean_job_data",
    "validate_job",
    "count_active_filters",
    "create_job_post",
    "get_job_post",
    "update_job_post",
    "set_job_status",
    "delete_job_post",
    "list_employer_jobs",
    "list_all_jobs",
    "build_search_query",
    "search_jobs",
    "save_job",
    "unsave_job",
    "get_saved_jobs",
    "get_saved_job_ids",
    "get_stats",
]
