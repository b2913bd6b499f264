import asyncio

import pytest

from core import database as store
from core.errors import (
    AlreadyAppliedError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from core.db.applications import applications_store
from core.realtime import feed


@pytest.fixture
def people(db):
    employer = store.create_user("boss@example.com", "Passw0rd1", role="employer", full_name="Maria Santos")
    seeker = store.create_user("seeker@example.com", "Passw0rd1", role="job_seeker", full_name="Juan Dela Cruz")
    admin = store.create_user("admin@example.com", "Passw0rd1", role="admin", full_name="Site Admin")
    return {
        "employer": store.get_user_by_id(employer),
        "seeker": store.get_user_by_id(seeker),
        "admin": store.get_user_by_id(admin),
    }


def test_job_search_filters(people, job_data):
    employer_id = people["employer"]["id"]
    store.create_job_post(employer_id, job_data)
    store.create_job_post(employer_id, {**job_data, "title": "Frontend Developer", "category": "IT",
                                        "required_skills": ["React", "TypeScript"], "job_type": "contract",
                                        "experience_level": "expert", "location": "Remote"})
    store.create_job_post(employer_id, {**job_data, "title": "Hidden draft"}, status="draft")

    assert {j["title"] for j in store.search_jobs({})} == {"Warehouse Operative", "Frontend Developer"}
    assert [j["title"] for j in store.search_jobs({"query": "frontend"})] == ["Frontend Developer"]
    assert [j["title"] for j in store.search_jobs({"skills": ["react"]})] == ["Frontend Developer"]
    assert [j["title"] for j in store.search_jobs({"job_types": ["full-time"]})] == ["Warehouse Operative"]
    assert [j["title"] for j in store.search_jobs({"location": "quezon"})] == ["Warehouse Operative"]
    assert [j["title"] for j in store.search_jobs({"category": "it", "posted_within": "24h"})] == ["Frontend Developer"]


def test_only_owner_or_admin_manages_job(people, job_data):
    job = store.create_job_post(people["employer"]["id"], job_data)
    with pytest.raises(PermissionDenied):
        store.set_job_status(job["id"], people["seeker"], "closed")

    store.set_job_status(job["id"], people["admin"], "closed")
    assert store.get_job_post(job["id"])["status"] == "closed"

    updated = store.update_job_post(job["id"], people["employer"], {**job_data, "title": "Senior Operative"})
    assert updated["title"] == "Senior Operative"

    store.delete_job_post(job["id"], people["employer"])
    assert store.get_job_post(job["id"]) is None
    with pytest.raises(NotFoundError):
        store.delete_job_post(job["id"], people["employer"])


def test_saved_jobs(people, job_data):
    seeker_id = people["seeker"]["id"]
    job = store.create_job_post(people["employer"]["id"], job_data)
    assert store.save_job(seeker_id, job["id"]) is True
    assert store.save_job(seeker_id, job["id"]) is False
    assert store.get_saved_job_ids(seeker_id) == {job["id"]}
    store.unsave_job(seeker_id, job["id"])
    assert store.get_saved_jobs(seeker_id) == []
    with pytest.raises(NotFoundError):
        store.save_job(seeker_id, 9999)


def test_only_active_jobs_can_be_saved(people, job_data):
    seeker_id = people["seeker"]["id"]
    for status in ("closed", "draft"):
        job = store.create_job_post(people["employer"]["id"], job_data, status=status)
        with pytest.raises(NotFoundError):
            store.save_job(seeker_id, job["id"])
    assert store.get_saved_jobs(seeker_id) == []


def test_application_lifecycle_notifies_both_sides(people, job_data):
    employer, seeker = people["employer"], people["seeker"]
    job = store.create_job_post(employer["id"], job_data)

    async def apply_while_listening():
        sub = feed.subscribe(employer["id"])
        try:
            application = store.apply_to_job(job["id"], seeker["id"], cover_letter="Hire me", contact_number="0917")
            return application, await sub.get(timeout=1)
        finally:
            feed.unsubscribe(sub)

    application, event = asyncio.run(apply_while_listening())
    assert event is not None and event.payload["type"] == "new_application"
    assert application["status"] == "pending"
    assert application["email"] == "seeker@example.com"
    assert store.has_applied(job["id"], seeker["id"])

    with pytest.raises(AlreadyAppliedError):
        store.apply_to_job(job["id"], seeker["id"])

    employer_notes = store.list_notifications(employer["id"])
    assert [n["type"] for n in employer_notes] == ["new_application"]
    assert store.unread_count(employer["id"]) == 1

    with pytest.raises(InvalidTransitionError):
        store.update_application_status(application["id"], employer, "accepted")
    with pytest.raises(PermissionDenied):
        store.update_application_status(application["id"], seeker, "reviewing")

    store.update_application_status(application["id"], employer, "reviewing")
    store.update_application_status(application["id"], employer, "accepted")
    assert store.get_application(application["id"])["status"] == "accepted"

    titles = [n["message"] for n in store.list_notifications(seeker["id"])]
    assert any("has been accepted" in t for t in titles)
    assert any("has been reviewing" in t for t in titles)

    with pytest.raises(InvalidTransitionError):
        store.withdraw_application(application["id"], seeker["id"])
    assert store.count_employer_applications(employer["id"])["accepted"] == 1


def test_cannot_apply_to_closed_job(people, job_data):
    job = store.create_job_post(people["employer"]["id"], job_data, status="closed")
    with pytest.raises(NotFoundError):
        store.apply_to_job(job["id"], people["seeker"]["id"])


def test_withdraw_application(people, job_data):
    job = store.create_job_post(people["employer"]["id"], job_data)
    application = store.apply_to_job(job["id"], people["seeker"]["id"])
    with pytest.raises(NotFoundError):
        store.withdraw_application(application["id"], people["employer"]["id"])
    store.withdraw_application(application["id"], people["seeker"]["id"])
    assert store.get_application(application["id"])["status"] == "withdrawn"


def test_messaging_and_read_state(people):
    employer, seeker = people["employer"], people["seeker"]
    convo = store.get_or_create_conversation(employer["id"], seeker["id"])
    again = store.get_or_create_conversation(seeker["id"], employer["id"])
    assert convo["id"] == again["id"]

    store.send_message(convo["id"], employer["id"], "Are you available for an interview?")
    assert store.unread_message_count(seeker["id"]) == 1
    inbox = store.list_conversations(seeker["id"])
    assert inbox[0]["other_user_name"] == "Maria Santos"
    assert inbox[0]["unread_count"] == 1

    notes = store.list_notifications(seeker["id"])
    assert notes[0]["type"] == "message"
    assert notes[0]["title"] == "New message from Maria Santos"

    messages = store.list_messages(convo["id"], seeker["id"])
    assert [m["content"] for m in messages] == ["Are you available for an interview?"]
    assert store.unread_message_count(seeker["id"]) == 0

    with pytest.raises(PermissionDenied):
        store.send_message(convo["id"], people["admin"]["id"], "hi")
    with pytest.raises(ValidationError):
        store.send_message(convo["id"], seeker["id"], "   ")


def test_message_notification_respects_setting(people):
    employer, seeker = people["employer"], people["seeker"]
    store.update_user_settings(seeker["id"], {"message_notifications": "0"})
    convo = store.get_or_create_conversation(employer["id"], seeker["id"])
    store.send_message(convo["id"], employer["id"], "Hello")
    assert store.list_notifications(seeker["id"]) == []


def test_notifications_read_and_digest_bookkeeping(people):
    seeker_id = people["seeker"]["id"]
    first = store.create_notification(seeker_id, "system", "Welcome", "Hello")
    store.create_notification(seeker_id, "system", "Tip", "Complete your profile")
    assert store.unread_count(seeker_id) == 2

    assert store.mark_notification_read(first["id"], people["employer"]["id"]) is False
    assert store.mark_notification_read(first["id"], seeker_id) is True
    assert store.unread_count(seeker_id) == 1
    assert store.mark_all_read(seeker_id) == 1

    pending = store.get_pending_email_notifications()
    assert len(pending) == 2
    assert pending[0]["email"] == "seeker@example.com"
    store.mark_notifications_emailed([n["id"] for n in pending], "sent")
    assert store.get_pending_email_notifications() == []


def test_reports(people, job_data):
    seeker, employer, admin = people["seeker"], people["employer"], people["admin"]
    job = store.create_job_post(employer["id"], job_data)

    with pytest.raises(ValidationError):
        store.submit_report(seeker["id"], "job", job["id"], "Not a reason")
    with pytest.raises(ValidationError):
        store.submit_report(seeker["id"], "user", seeker["id"], "Spam")
    with pytest.raises(NotFoundError):
        store.submit_report(seeker["id"], "job", 9999, "Spam")

    report = store.submit_report(seeker["id"], "job", job["id"], "Spam", "Same post every day")
    with pytest.raises(ConflictError):
        store.submit_report(seeker["id"], "job", job["id"], "Spam")

    assert [r["id"] for r in store.list_reports()] == [report["id"]]
    closed = store.close_report(report["id"], admin["id"], "dismissed", "Looks fine")
    assert closed["status"] == "dismissed"
    with pytest.raises(NotFoundError):
        store.close_report(report["id"], admin["id"], "resolved")
    assert store.count_reports_by_status()["dismissed"] == 1


def test_verification_review(people):
    employer, admin = people["employer"], people["admin"]
    request = store.create_verification_request(
        employer["id"], "verification-documents/employer-ids/1/1.png", "Passport",
        extracted_text="REPUBLIC OF THE PHILIPPINES PASSPORT", parsed_data={"id_type": "Passport"},
    )
    assert store.get_latest_request(employer["id"])["status"] == "pending"

    with pytest.raises(ValidationError):
        store.review_request(request["id"], admin["id"], approve=False)

    store.review_request(request["id"], admin["id"], approve=True)
    assert store.get_profile(employer["id"])["is_verified"] == 1
    assert store.list_notifications(employer["id"])[0]["title"] == "Verification Approved"
    with pytest.raises(NotFoundError):
        store.review_request(request["id"], admin["id"], approve=True)


def test_profile_update_and_privacy_in_candidate_search(people):
    seeker_id = people["seeker"]["id"]
    with pytest.raises(ValidationError):
        store.update_profile(seeker_id, {"bio": "short"})

    profile = store.update_profile(
        seeker_id,
        {
            "bio": "Warehouse lead with ten years of experience.",
            "work_email": "juan@work.example.com",
            "years_of_experience": "10",
            "skills": "Forklift, inventory, forklift",
        },
    )
    assert profile["skills"] == ["Forklift", "inventory"]
    assert profile["years_of_experience"] == 10
    assert [c["user_id"] for c in store.search_candidates(skill="forklift")] == [seeker_id]

    store.update_user_settings(seeker_id, {"profile_privacy": "private"})
    assert store.search_candidates() == []
    with pytest.raises(ValidationError):
        store.update_user_settings(seeker_id, {"profile_privacy": "everyone"})


def test_company_profile_upsert(people):
    employer_id = people["employer"]["id"]
    with pytest.raises(ValidationError):
        store.upsert_company_profile(employer_id, {"company_name": ""})
    store.upsert_company_profile(employer_id, {"company_name": "Santos Logistics", "founded_year": "1999"})
    store.upsert_company_profile(employer_id, {"company_name": "Santos Logistics Inc."})
    assert store.get_company_profile(employer_id)["company_name"] == "Santos Logistics Inc."


def test_search_treats_wildcards_literally(people, job_data):
    employer_id = people["employer"]["id"]
    store.create_job_post(employer_id, {**job_data, "title": "Sales Agent 100% commission"})
    store.create_job_post(employer_id, {**job_data, "title": "Sales Agent 1000 base"})
    assert [j["title"] for j in store.search_jobs({"query": "100%"})] == ["Sales Agent 100% commission"]
    assert store.search_jobs({"query": "_"}) == []


def test_status_change_loses_to_concurrent_withdrawal(people, job_data, monkeypatch):
    employer, seeker = people["employer"], people["seeker"]
    job = store.create_job_post(employer["id"], job_data)
    application = store.apply_to_job(job["id"], seeker["id"])
    stale = store.get_application(application["id"])
    store.withdraw_application(application["id"], seeker["id"])

    monkeypatch.setattr(applications_store, "get_application", lambda _id: dict(stale))
    with pytest.raises(InvalidTransitionError):
        store.update_application_status(application["id"], employer, "reviewing")
    with pytest.raises(InvalidTransitionError):
        store.withdraw_application(application["id"], seeker["id"])
    monkeypatch.undo()

    assert store.get_application(application["id"])["status"] == "withdrawn"
    assert [n["type"] for n in store.list_notifications(seeker["id"])] == []


def test_employer_can_view_resume_only_for_their_applicants(people, job_data):
    employer, seeker = people["employer"], people["seeker"]
    other = store.get_user_by_id(
        store.create_user("other@example.com", "Passw0rd1", role="employer", full_name="Other Boss")
    )
    resume = f"resumes/{seeker['id']}/cv.pdf"
    job = store.create_job_post(employer["id"], job_data)
    assert store.employer_can_view_resume(employer["id"], resume) is False

    store.apply_to_job(job["id"], seeker["id"], resume_url=resume)
    assert store.employer_can_view_resume(employer["id"], resume) is True
    assert store.employer_can_view_resume(other["id"], resume) is False
    assert store.employer_can_view_resume(employer["id"], f"resumes/{seeker['id']}/old.pdf") is False


def test_notifications_reach_the_feed_after_commit(people, job_data, monkeypatch):
    employer, seeker, admin = people["employer"], people["seeker"], people["admin"]
    committed = []

    def record(user_id, event, payload):
        if event == "notification":
            # list_notifications opens its own connection, so it only sees committed rows
            committed.append(any(n["id"] == payload["id"] for n in store.list_notifications(user_id)))
        return 0

    monkeypatch.setattr(feed, "publish", record)
    job = store.create_job_post(employer["id"], job_data)
    application = store.apply_to_job(job["id"], seeker["id"])
    store.update_application_status(application["id"], employer, "reviewing")
    convo = store.get_or_create_conversation(employer["id"], seeker["id"])
    store.send_message(convo["id"], employer["id"], "Can you start Monday?")
    request = store.create_verification_request(employer["id"], "verification-documents/employer-ids/1/1.png", "Passport")
    store.review_request(request["id"], admin["id"], approve=True)

    assert committed == [True, True, True, True]
