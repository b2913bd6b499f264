"""
Schema and migration helpers for Postgres.
"""
from __future__ import annotations

import logging
import os

from core.db.base import get_conn, utcnow_iso
from core.db.users import create_user, get_user_by_email, hash_password

log = logging.getLogger("db")

ALL_TABLES = [
    "reports",
    "employer_verification_requests",
    "notifications",
    "messages",
    "conversations",
    "saved_jobs",
    "job_applications",
    "job_posts",
    "employer_notification_settings",
    "user_settings",
    "employer_profiles",
    "profiles",
    "email_verification_tokens",
    "password_reset_tokens",
    "sessions",
    "deleted_users",
    "users",
]


def init_db() -> None:
    """Create all marketplace tables if they don't exist."""
    conn = get_conn()
    cur = conn.cursor()

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS users(
            id SERIAL PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            role TEXT NOT NULL DEFAULT 'job_seeker'
                CHECK (role IN ('job_seeker', 'employer', 'admin')),
            active INTEGER NOT NULL DEFAULT 1,
            is_super_admin INTEGER NOT NULL DEFAULT 0,
            created_at TEXT,
            email_verified_at TEXT
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS sessions(
            id TEXT PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            created_at TEXT NOT NULL,
            last_seen_at TEXT NOT NULL,
            expires_at TEXT NOT NULL
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS password_reset_tokens(
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            token TEXT NOT NULL UNIQUE,
            created_at TEXT NOT NULL,
            expires_at TEXT NOT NULL,
            used_at TEXT
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS email_verification_tokens(
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            token TEXT NOT NULL UNIQUE,
            created_at TEXT NOT NULL,
            expires_at TEXT NOT NULL,
            used_at TEXT
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS deleted_users(
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL,
            email TEXT NOT NULL,
            role TEXT NOT NULL,
            created_at TEXT,
            deleted_at TEXT NOT NULL
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS profiles(
            user_id INTEGER PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            full_name TEXT NOT NULL DEFAULT '',
            bio TEXT,
            avatar_url TEXT,
            work_email TEXT,
            phone TEXT,
            years_of_experience INTEGER,
            skills TEXT[] NOT NULL DEFAULT '{}',
            resume_url TEXT,
            is_verified INTEGER NOT NULL DEFAULT 0,
            verification_date TEXT,
            created_at TEXT,
            updated_at TEXT
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS employer_profiles(
            user_id INTEGER PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            company_name TEXT NOT NULL,
            company_website TEXT,
            industry TEXT,
            company_size TEXT,
            company_description TEXT,
            headquarters_location TEXT,
            founded_year INTEGER,
            contact_email TEXT,
            contact_phone TEXT,
            linkedin_url TEXT,
            created_at TEXT,
            updated_at TEXT
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS user_settings(
            user_id INTEGER PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            email_notifications INTEGER NOT NULL DEFAULT 1,
            application_updates INTEGER NOT NULL DEFAULT 1,
            message_notifications INTEGER NOT NULL DEFAULT 1,
            profile_privacy TEXT NOT NULL DEFAULT 'public'
                CHECK (profile_privacy IN ('public', 'limited', 'private')),
            updated_at TEXT
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS employer_notification_settings(
            employer_id INTEGER PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            new_applications INTEGER NOT NULL DEFAULT 1,
            candidate_messages INTEGER NOT NULL DEFAULT 1,
            job_alerts INTEGER NOT NULL DEFAULT 1,
            marketing_emails INTEGER NOT NULL DEFAULT 0,
            updated_at TEXT
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS job_posts(
            id SERIAL PRIMARY KEY,
            employer_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            title TEXT NOT NULL,
            category TEXT NOT NULL,
            description TEXT NOT NULL,
            budget TEXT NOT NULL,
            location TEXT NOT NULL,
            required_skills TEXT[] NOT NULL DEFAULT '{}',
            experience_level TEXT NOT NULL,
            work_schedule TEXT NOT NULL,
            additional_requirements TEXT,
            application_instructions TEXT NOT NULL,
            job_type TEXT NOT NULL,
            start_date TEXT NOT NULL,
            end_date TEXT NOT NULL,
            payment_method TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'active'
                CHECK (status IN ('active', 'closed', 'draft')),
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
    )
    cur.execute("CREATE INDEX IF NOT EXISTS idx_job_posts_employer_id ON job_posts(employer_id)")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_job_posts_status ON job_posts(status)")
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS saved_jobs(
            id SERIAL PRIMARY KEY,
            job_seeker_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            job_id INTEGER NOT NULL REFERENCES job_posts(id) ON DELETE CASCADE,
            created_at TEXT NOT NULL,
            UNIQUE(job_seeker_id, job_id)
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS job_applications(
            id SERIAL PRIMARY KEY,
            job_post_id INTEGER NOT NULL REFERENCES job_posts(id) ON DELETE CASCADE,
            job_seeker_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            cover_letter TEXT,
            resume_url TEXT,
            contact_number TEXT,
            email TEXT,
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'reviewing', 'accepted', 'rejected', 'withdrawn')),
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE(job_post_id, job_seeker_id)
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS conversations(
            id SERIAL PRIMARY KEY,
            user1_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            user2_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            last_message TEXT,
            last_message_at TEXT,
            created_at TEXT NOT NULL,
            CHECK (user1_id < user2_id),
            UNIQUE(user1_id, user2_id)
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS messages(
            id SERIAL PRIMARY KEY,
            conversation_id INTEGER NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
            sender_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            recipient_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            content TEXT NOT NULL,
            read INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        )
        """
    )
    cur.execute("CREATE INDEX IF NOT EXISTS idx_messages_conversation_id ON messages(conversation_id)")
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS notifications(
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type TEXT NOT NULL,
            title TEXT NOT NULL,
            message TEXT NOT NULL,
            data JSONB,
            read INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            emailed_at TEXT,
            email_status TEXT,
            email_error TEXT
        )
        """
    )
    cur.execute("CREATE INDEX IF NOT EXISTS idx_notifications_user_id ON notifications(user_id)")
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS employer_verification_requests(
            id SERIAL PRIMARY KEY,
            employer_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            document_path TEXT NOT NULL,
            id_type TEXT,
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'approved', 'rejected')),
            extracted_text TEXT,
            parsed_data JSONB,
            admin_notes TEXT,
            submitted_at TEXT NOT NULL,
            reviewed_at TEXT,
            reviewed_by INTEGER REFERENCES users(id) ON DELETE SET NULL
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS reports(
            id SERIAL PRIMARY KEY,
            reporter_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            target_type TEXT NOT NULL CHECK (target_type IN ('user', 'job', 'message')),
            target_id INTEGER NOT NULL,
            reason TEXT NOT NULL,
            details TEXT,
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'resolved', 'dismissed')),
            admin_notes TEXT,
            created_at TEXT NOT NULL,
            resolved_at TEXT,
            resolved_by INTEGER REFERENCES users(id) ON DELETE SET NULL
        )
        """
    )

    conn.commit()
    conn.close()

    ensure_admin_from_env()


def ensure_admin_from_env() -> None:
    """
    Optionally seed/update an admin account from environment variables.
    Set ADMIN_EMAIL and ADMIN_PASSWORD before startup to use.
    """
    admin_email = os.getenv("ADMIN_EMAIL")
    admin_password = os.getenv("ADMIN_PASSWORD")

    if not admin_email or not admin_password:
        return

    existing = get_user_by_email(admin_email)
    now = utcnow_iso()
    email = admin_email.strip().lower()

    if existing:
        conn = get_conn()
        cur = conn.cursor()
        cur.execute(
            "UPDATE users SET role='admin', is_super_admin=1, password_hash=? WHERE email=?",
            (hash_password(admin_password), email),
        )
        cur.execute(
            "UPDATE users SET email_verified_at = ? WHERE email = ? AND (email_verified_at IS NULL OR email_verified_at = '')",
            (now, email),
        )
        conn.commit()
        conn.close()
        log.info("Refreshed admin account", extra={"email": email})
        return

    user_id = create_user(admin_email, admin_password, role="admin", verified=True, full_name="Administrator")
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("UPDATE users SET is_super_admin=1 WHERE id=?", (user_id,))
    conn.commit()
    conn.close()
    log.info("Seeded admin account", extra={"email": email})


__all__ = [
    "ALL_TABLES",
    "init_db",
    "ensure_admin_from_env",
]
