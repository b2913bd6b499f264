import asyncio

import worker.main as worker


def _note(id_, user_id=1, type_="system", **overrides):
    note = {
        "id": id_,
        "user_id": user_id,
        "type": type_,
        "title": f"Title {id_}",
        "message": f"Message {id_}",
        "email": f"user{user_id}@example.com",
        "role": "job_seeker",
        "active": 1,
        "email_notifications": 1,
        "application_updates": 1,
        "message_notifications": 1,
        "new_applications": 1,
        "candidate_messages": 1,
    }
    note.update(overrides)
    return note


def test_wants_email_respects_settings():
    assert worker.wants_email(_note(1)) is True
    assert worker.wants_email(_note(1, active=0)) is False
    assert worker.wants_email(_note(1, email_notifications=0)) is False
    assert worker.wants_email(_note(1, type_="application_status", application_updates=0)) is False
    assert worker.wants_email(_note(1, type_="message", message_notifications=0)) is False
    assert worker.wants_email(_note(1, type_="message", role="employer", candidate_messages=0)) is False
    assert worker.wants_email(_note(1, type_="message", candidate_messages=0)) is True
    assert worker.wants_email(_note(1, type_="new_application", role="employer", new_applications=0)) is False


def test_group_by_user():
    grouped = worker.group_by_user([_note(1), _note(2, user_id=2, active=0), _note(3)])
    assert [n["id"] for n in grouped[1]["send"]] == [1, 3]
    assert [n["id"] for n in grouped[2]["skip"]] == [2]


def test_build_digest_lists_every_item(monkeypatch):
    monkeypatch.setenv("PUBLIC_BASE_URL", "https://hireboard.example.com/")
    body = worker.build_digest([_note(1), _note(2)])
    assert "You have 2 new notification(s)" in body
    assert "1. Title 1" in body and "2. Title 2" in body
    assert "https://hireboard.example.com/notifications" in body


def test_run_once_sends_one_email_per_user(monkeypatch):
    pending = [
        _note(1, user_id=1),
        _note(2, user_id=1, type_="message"),
        _note(3, user_id=2, email_notifications=0),
        _note(4, user_id=3, email="broken@example.com"),
    ]
    sent = []
    marks = []

    def fake_send(to, subject, body):
        if to == "broken@example.com":
            raise RuntimeError("smtp down")
        sent.append((to, subject))

    monkeypatch.setattr(worker, "get_pending_email_notifications", lambda limit=500: pending)
    monkeypatch.setattr(worker, "send_text_email", fake_send)
    monkeypatch.setattr(worker, "mark_notifications_emailed", lambda ids, status, error=None: marks.append((list(ids), status, error)))

    sent_count = asyncio.run(worker.run_once())

    assert sent_count == 1
    assert sent == [("user1@example.com", "2 new notifications - HireBoard")]
    assert ([1, 2], "sent", None) in marks
    assert ([3], "skipped", None) in marks
    assert ([4], "failed", "smtp down") in marks


def test_run_once_with_nothing_pending(monkeypatch):
    monkeypatch.setattr(worker, "get_pending_email_notifications", lambda limit=500: [])
    assert asyncio.run(worker.run_once()) == 0
