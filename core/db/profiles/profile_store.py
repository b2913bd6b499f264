"""
Profile storage: the shared person profile and the employer company profile.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from email_validator import EmailNotValidError, validate_email

from core.db.base import contains_pattern, get_conn, utcnow_iso
from core.errors import ValidationError

COMPLETION_FIELDS = (
    "full_name",
    "work_email",
    "bio",
    "years_of_experience",
    "skills",
    "avatar_url",
    "resume_url",
)

PROFILE_FIELDS = (
    "full_name",
    "bio",
    "avatar_url",
    "work_email",
    "phone",
    "years_of_experience",
    "skills",
    "resume_url",
)

COMPANY_FIELDS = (
    "company_name",
    "company_website",
    "industry",
    "company_size",
    "company_description",
    "headquarters_location",
    "founded_year",
    "contact_email",
    "contact_phone",
    "linkedin_url",
)


def is_email_address(value: str) -> bool:
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True



def normalize_skills(raw: Iterable[str] | str | None) -> List[str]:
    """Split on commas (if a string), trim, and drop blanks and case-insensitive repeats."""
    if raw is None:
        return []
    parts = raw.split(",") if isinstance(raw, str) else list(raw)
    seen = set()
    skills: List[str] = []
    for part in parts:
        skill = (part or "").strip()
        if skill and skill.lower() not in seen:
            seen.add(skill.lower())
            skills.append(skill)
    return skills


def validate_profile(data: Dict) -> List[str]:
    """Return a list of problems; empty means the profile can be saved."""
    errors: List[str] = []

    full_name = (data.get("full_name") or "").strip()
    if not 2 <= len(full_name) <= 100:
        errors.append("Full name must be between 2 and 100 characters.")

    bio = (data.get("bio") or "").strip()
    if not 10 <= len(bio) <= 500:
        errors.append("Bio must be between 10 and 500 characters.")

    work_email = (data.get("work_email") or "").strip()
    if not is_email_address(work_email):
        errors.append("Work email is not a valid email address.")

    years = data.get("years_of_experience")
    if years is None or years == "":
        errors.append("Years of experience is required.")
    else:
        try:
            years_int = int(years)
        except (TypeError, ValueError):
            errors.append("Years of experience must be a whole number.")
        else:
            if not 0 <= years_int <= 50:
                errors.append("Years of experience must be between 0 and 50.")

    skills = data.get("skills") or []
    if not 1 <= len(skills) <= 20:
        errors.append("List between 1 and 20 skills.")

    return errors


def calculate_profile_completion(profile: Dict) -> int:
    """Percentage of COMPLETION_FIELDS that hold a value (0 counts, '' and [] do not)."""
    filled = 0
    for field in COMPLETION_FIELDS:
        value = profile.get(field)
        if value is None or value == "":
            continue
        if isinstance(value, (list, tuple)) and not value:
            continue
        filled += 1
    return round(filled * 100 / len(COMPLETION_FIELDS))


def get_profile(user_id: int) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT p.*, u.email, u.role, u.active, u.created_at AS member_since,
               COALESCE(s.profile_privacy, 'public') AS profile_privacy
        FROM profiles p
        JOIN users u ON u.id = p.user_id
        LEFT JOIN user_settings s ON s.user_id = p.user_id
        WHERE p.user_id = ?
        """,
        (user_id,),
    )
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def update_profile(user_id: int, data: Dict, *, validate: bool = True) -> Dict:
    """
    Update the given PROFILE_FIELDS for user_id. Skills are normalized first.
    Raises ValidationError when `validate` is set and the merged profile is invalid.
    """
    changes = {k: v for k, v in data.items() if k in PROFILE_FIELDS}
    if "skills" in changes:
        changes["skills"] = normalize_skills(changes["skills"])
    if changes.get("years_of_experience") == "":
        changes["years_of_experience"] = None

    if validate:
        current = get_profile(user_id) or {}
        errors = validate_profile({**current, **changes})
        if errors:
            raise ValidationError(errors)
    if changes.get("years_of_experience") is not None:
        changes["years_of_experience"] = int(changes["years_of_experience"])

    if not changes:
        return get_profile(user_id) or {}

    assignments = ", ".join(f"{col} = ?" for col in changes)
    params = list(changes.values()) + [utcnow_iso(), user_id]

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(f"UPDATE profiles SET {assignments}, updated_at = ? WHERE user_id = ?", params)
    conn.commit()
    conn.close()
    return get_profile(user_id) or {}


def set_verified(user_id: int, verified: bool) -> None:
    now = utcnow_iso()
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "UPDATE profiles SET is_verified = ?, verification_date = ?, updated_at = ? WHERE user_id = ?",
        (1 if verified else 0, now if verified else None, now, user_id),
    )
    conn.commit()
    conn.close()


def search_candidates(query: str = "", skill: str = "", limit: int = 100) -> List[Dict]:
    """Job seekers whose privacy is not 'private', verified first, then newest."""
    sql = """
        SELECT p.user_id, p.full_name, p.bio, p.skills, p.years_of_experience,
               p.is_verified, p.avatar_url,
               COALESCE(s.profile_privacy, 'public') AS profile_privacy
        FROM profiles p
        JOIN users u ON u.id = p.user_id
        LEFT JOIN user_settings s ON s.user_id = p.user_id
        WHERE u.role = 'job_seeker'
          AND u.active = 1
          AND COALESCE(s.profile_privacy, 'public') != 'private'
    """
    params: list = []
    if query.strip():
        sql += " AND (p.full_name ILIKE ? ESCAPE '\\' OR p.bio ILIKE ? ESCAPE '\\')"
        like = contains_pattern(query.strip())
        params.extend([like, like])
    if skill.strip():
        sql += " AND EXISTS (SELECT 1 FROM unnest(p.skills) sk WHERE lower(sk) = lower(?))"
        params.append(skill.strip())
    sql += " ORDER BY p.is_verified DESC, u.created_at DESC LIMIT ?"
    params.append(int(limit))

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(sql, params)
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def validate_company(data: Dict) -> List[str]:
    errors: List[str] = []
    if not (data.get("company_name") or "").strip():
        errors.append("Company name is required.")
    contact_email = (data.get("contact_email") or "").strip()
    if contact_email and not is_email_address(contact_email):
        errors.append("Contact email is not a valid email address.")
    founded = data.get("founded_year")
    if founded not in (None, ""):
        try:
            year = int(founded)
        except (TypeError, ValueError):
            errors.append("Founded year must be a number.")
        else:
            if not 1800 <= year <= 2100:
                errors.append("Founded year looks wrong.")
    return errors


def get_company_profile(user_id: int) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT * FROM employer_profiles WHERE user_id = ?", (user_id,))
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def upsert_company_profile(user_id: int, data: Dict) -> Dict:
    values = {k: ((data.get(k) or "").strip() if isinstance(data.get(k), str) else data.get(k)) or None for k in COMPANY_FIELDS}
    errors = validate_company(values)
    if errors:
        raise ValidationError(errors)
    if values["founded_year"] is not None:
        values["founded_year"] = int(values["founded_year"])

    now = utcnow_iso()
    cols = ", ".join(COMPANY_FIELDS)
    placeholders = ", ".join("?" for _ in COMPANY_FIELDS)
    updates = ", ".join(f"{c} = EXCLUDED.{c}" for c in COMPANY_FIELDS)

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"""
        INSERT INTO employer_profiles (user_id, {cols}, created_at, updated_at)
        VALUES (?, {placeholders}, ?, ?)
        ON CONFLICT (user_id) DO UPDATE SET {updates}, updated_at = EXCLUDED.updated_at
        """,
        [user_id] + [values[c] for c in COMPANY_FIELDS] + [now, now],
    )
    conn.commit()
    conn.close()
    return get_company_profile(user_id) or {}


__all__ = [
    "COMPLETION_FIELDS",
    "normalize_skills",
    "validate_profile",
    "calculate_profile_completion",
    "get_profile",
    "update_profile",
    "set_verified",
    "search_candidates",
    "validate_company",
    "get_company_profile",
    "upsert_company_profile",
]
