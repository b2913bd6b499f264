import os
import types

import pytest

from app import security


def _truncate_all():
    from core.db.base import get_conn
    from core.db.schema import ALL_TABLES

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "TRUNCATE " + ", ".join(ALL_TABLES) + " RESTART IDENTITY CASCADE"
    )
    conn.commit()
    conn.close()


@pytest.fixture
def db():
    """Clean Postgres schema for store-level tests; skipped without DATABASE_URL."""
    if not os.getenv("DATABASE_URL"):
        pytest.skip("DATABASE_URL must be set for Postgres-only tests.")
    from core.db.schema import init_db

    init_db()
    _truncate_all()
    yield
    _truncate_all()


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    security.reset_rate_limits()
    yield
    security.reset_rate_limits()


@pytest.fixture(autouse=True)
def _upload_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))


@pytest.fixture
def dummy_req():
    return types.SimpleNamespace(
        client=types.SimpleNamespace(host="127.0.0.1"),
        cookies={security.CSRF_COOKIE_NAME: "cookie-token"},
    )


@pytest.fixture
def login_as(monkeypatch):
    """Make every route see `user` as the signed-in account."""
    import app.auth_utils as auth_utils
    from app.routes import account, auth, jobs, profile, public

    def _login(user):
        if user is not None:
            user = {"active": 1, "unread_count": 0, "email": f"user{user.get('id', 0)}@example.com", **user}
        fake = lambda req: (user, "session-token" if user else None)  # noqa: E731
        for module in (auth_utils, account, auth, jobs, profile, public):
            monkeypatch.setattr(module, "get_current_user", fake)
        return user

    return _login


@pytest.fixture
def job_data():
    return {
        "title": "Warehouse Operative",
        "category": "Logistics",
        "description": "Pick and pack orders.",
        "budget": "PHP 18,000 / month",
        "location": "Quezon City",
        "required_skills": "forklift, inventory",
        "experience_level": "entry",
        "work_schedule": "Mon-Fri day shift",
        "application_instructions": "Apply with your resume.",
        "job_type": "full-time",
        "start_date": "2025-02-01",
        "end_date": "2025-12-31",
        "payment_method": "Bank transfer",
    }
