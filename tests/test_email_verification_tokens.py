from core.db.base import get_conn
from core.db.users import tokens, user_store


def _seed_user(email: str = "u@example.com") -> int:
    return user_store.create_user(email, "Passw0rd1", verified=False, full_name="Juan Dela Cruz")


def test_create_and_fetch_verification_token(db):
    user_id = _seed_user()
    token = tokens.create_email_verification_token(user_id=user_id)
    row = tokens.get_email_verification_token(token)
    assert row is not None
    assert row["user_id"] == user_id


def test_token_single_use(db):
    user_id = _seed_user()
    token = tokens.create_email_verification_token(user_id=user_id)
    tokens.mark_email_verification_token_used(token)
    assert tokens.get_email_verification_token(token) is None


def test_mark_user_verified(db):
    user_id = _seed_user()
    assert user_store.get_user_by_id(user_id)["email_verified_at"] is None
    tokens.mark_user_email_verified(user_id)
    verified_at = user_store.get_user_by_id(user_id)["email_verified_at"]
    assert verified_at is not None and verified_at != ""


def test_new_reset_token_invalidates_older_one(db):
    user_id = _seed_user("reset@example.com")
    first = tokens.create_password_reset_token(user_id=user_id)
    second = tokens.create_password_reset_token(user_id=user_id)
    assert tokens.get_password_reset_token(first) is None
    data = tokens.get_password_reset_token(second)
    assert data is not None and data["user_id"] == user_id


def test_expired_reset_token_is_rejected(db):
    user_id = _seed_user("old@example.com")
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO password_reset_tokens (user_id, token, created_at, expires_at, used_at)
        VALUES (?, ?, ?, ?, NULL)
        """,
        (user_id, "old", "2020-01-01T00:00:00", "2020-01-01T00:00:00"),
    )
    conn.commit()
    conn.close()

    assert tokens.get_password_reset_token("old") is None
    assert tokens.get_password_reset_token("") is None
