from core.db.base import get_conn
from core.db.jobs import create_job_post
from core.db.users import user_store


def _count(table: str) -> int:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(f"SELECT COUNT(*) AS count FROM {table}")
    count = int(cur.fetchone()["count"])
    conn.close()
    return count


def test_delete_user_data_archives_and_cascades(db, job_data):
    employer_id = user_store.create_user("Boss@Example.com", "Passw0rd1", role="employer", full_name="Maria Santos")
    create_job_post(employer_id, job_data)

    assert _count("profiles") == 1
    assert _count("job_posts") == 1
    assert _count("employer_notification_settings") == 1

    user_store.delete_user_data(employer_id)

    assert _count("users") == 0
    assert _count("profiles") == 0
    assert _count("user_settings") == 0
    assert _count("job_posts") == 0

    archived = user_store.get_deleted_users()
    assert len(archived) == 1
    assert archived[0]["email"] == "boss@example.com"
    assert archived[0]["role"] == "employer"


def test_delete_user_data_missing_user_is_noop(db):
    user_store.delete_user_data(12345)
    assert _count("deleted_users") == 0


def test_deactivate_and_reactivate(db):
    user_id = user_store.create_user("u@example.com", "Passw0rd1", full_name="Juan Dela Cruz")
    user_store.deactivate_user(user_id)
    assert user_store.get_user_by_id(user_id)["active"] == 0
    user_store.reactivate_user(user_id)
    assert user_store.get_user_by_id(user_id)["active"] == 1
