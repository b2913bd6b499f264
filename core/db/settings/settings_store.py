"""
Per-user notification and privacy settings.
"""
from __future__ import annotations

from typing import Dict

from core.db.base import get_conn, utcnow_iso
from core.errors import ValidationError

PRIVACY_LEVELS = ("public", "limited", "private")

DEFAULT_USER_SETTINGS: Dict = {
    "email_notifications": 1,
    "application_updates": 1,
    "message_notifications": 1,
    "profile_privacy": "public",
}

DEFAULT_EMPLOYER_SETTINGS: Dict = {
    "new_applications": 1,
    "candidate_messages": 1,
    "job_alerts": 1,
    "marketing_emails": 0,
}


def _as_flag(value) -> int:
    if isinstance(value, str):
        return 1 if value.strip().lower() in ("1", "true", "on", "yes") else 0
    return 1 if value else 0


def get_user_settings(user_id: int) -> Dict:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT email_notifications, application_updates, message_notifications, profile_privacy
        FROM user_settings WHERE user_id = ?
        """,
        (user_id,),
    )
    row = cur.fetchone()
    conn.close()
    settings = dict(DEFAULT_USER_SETTINGS)
    if row:
        settings.update(dict(row))
    return settings


def update_user_settings(user_id: int, data: Dict) -> Dict:
    settings = get_user_settings(user_id)
    for key in ("email_notifications", "application_updates", "message_notifications"):
        if key in data:
            settings[key] = _as_flag(data[key])
    if "profile_privacy" in data:
        privacy = (data.get("profile_privacy") or "").strip()
        if privacy not in PRIVACY_LEVELS:
            raise ValidationError("Profile privacy must be public, limited or private.")
        settings["profile_privacy"] = privacy

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO user_settings
            (user_id, email_notifications, application_updates, message_notifications, profile_privacy, updated_at)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT (user_id) DO UPDATE SET
            email_notifications = EXCLUDED.email_notifications,
            application_updates = EXCLUDED.application_updates,
            message_notifications = EXCLUDED.message_notifications,
            profile_privacy = EXCLUDED.profile_privacy,
            updated_at = EXCLUDED.updated_at
        """,
        (
            user_id,
            settings["email_notifications"],
            settings["application_updates"],
            settings["message_notifications"],
            settings["profile_privacy"],
            utcnow_iso(),
        ),
    )
    conn.commit()
    conn.close()
    return settings


def get_employer_settings(employer_id: int) -> Dict:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT new_applications, candidate_messages, job_alerts, marketing_emails
        FROM employer_notification_settings WHERE employer_id = ?
        """,
        (employer_id,),
    )
    row = cur.fetchone()
    conn.close()
    settings = dict(DEFAULT_EMPLOYER_SETTINGS)
    if row:
        settings.update(dict(row))
    return settings


def update_employer_settings(employer_id: int, data: Dict) -> Dict:
    settings = get_employer_settings(employer_id)
    for key in DEFAULT_EMPLOYER_SETTINGS:
        if key in data:
            settings[key] = _as_flag(data[key])

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO employer_notification_settings
            (employer_id, new_applications, candidate_messages, job_alerts, marketing_emails, updated_at)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT (employer_id) DO UPDATE SET
            new_applications = EXCLUDED.new_applications,
            candidate_messages = EXCLUDED.candidate_messages,
            job_alerts = EXCLUDED.job_alerts,
            marketing_emails = EXCLUDED.marketing_emails,
            updated_at = EXCLUDED.updated_at
        """,
        (
            employer_id,
            settings["new_applications"],
            settings["candidate_messages"],
            settings["job_alerts"],
            settings["marketing_emails"],
            utcnow_iso(),
        ),
    )
    conn.commit()
    conn.close()
    return settings


__all__ = [
    "PRIVACY_LEVELS",
    "DEFAULT_USER_SETTINGS",
    "DEFAULT_EMPLOYER_SETTINGS",
    "get_user_settings",
    "update_user_settings",
    "get_employer_settings",
    "update_employer_settings",
]
