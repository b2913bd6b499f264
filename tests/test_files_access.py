import pytest
from fastapi.testclient import TestClient

import app.api as api_module
from app.routes import files
from app.routes.files import can_read
from core.storage import save_upload

SEEKER = {"id": 7, "role": "job_seeker"}
OTHER_SEEKER = {"id": 8, "role": "job_seeker"}
EMPLOYER = {"id": 3, "role": "employer"}
ADMIN = {"id": 1, "role": "admin"}


@pytest.mark.parametrize(
    "user,path,expected",
    [
        (SEEKER, "resumes/7/1.pdf", True),
        (OTHER_SEEKER, "resumes/7/1.pdf", False),
        (ADMIN, "resumes/7/1.pdf", True),
        (EMPLOYER, "verification-documents/employer-ids/3/1.png", True),
        ({"id": 4, "role": "employer"}, "verification-documents/employer-ids/3/1.png", False),
        (ADMIN, "verification-documents/employer-ids/3/1.png", True),
        (OTHER_SEEKER, "avatars/7/1.png", True),
        (ADMIN, "secrets/1/key.pem", False),
        (SEEKER, "resumes/7", False),
        (SEEKER, "resumes/7/../8/1.pdf", False),
    ],
)
def test_can_read(user, path, expected, monkeypatch):
    monkeypatch.setattr(files, "employer_can_view_resume", lambda employer_id, path: False)
    assert can_read(user, path) is expected


def test_serve_file_enforces_rules(login_as):
    relative = save_upload("resumes", "7", "cv.pdf", b"%PDF-1.4 resume")
    client = TestClient(api_module.app)

    login_as(SEEKER)
    resp = client.get(f"/files/{relative}")
    assert resp.status_code == 200
    assert resp.content == b"%PDF-1.4 resume"
    assert resp.headers["content-type"].startswith("application/pdf")

    login_as(OTHER_SEEKER)
    assert client.get(f"/files/{relative}").status_code == 404

    login_as(SEEKER)
    assert client.get("/files/resumes/7/missing.pdf").status_code == 404


def test_serve_file_requires_login(login_as):
    login_as(None)
    resp = TestClient(api_module.app).get("/files/avatars/1/a.png", follow_redirects=False)
    assert resp.status_code == 303


@pytest.fixture
def applications_to(monkeypatch):
    """(employer_id, resume path) pairs backed by an application."""
    pairs = set()
    monkeypatch.setattr(files, "employer_can_view_resume", lambda employer_id, path: (employer_id, path) in pairs)
    return pairs


def test_employer_reads_only_resumes_sent_to_them(applications_to):
    applications_to.add((3, "resumes/7/applications/1.pdf"))
    assert can_read(EMPLOYER, "resumes/7/applications/1.pdf") is True
    assert can_read({"id": 99, "role": "employer"}, "resumes/7/applications/1.pdf") is False
    assert can_read(EMPLOYER, "resumes/7/2.pdf") is False


def test_unrelated_employer_cannot_download_resume(login_as, applications_to):
    relative = save_upload("resumes", "7", "cv.pdf", b"%PDF-1.4 private resume")
    applications_to.add((3, relative))
    client = TestClient(api_module.app)

    login_as({"id": 99, "role": "employer"})
    resp = client.get(f"/files/{relative}")
    assert resp.status_code == 404
    assert b"private resume" not in resp.content

    login_as(EMPLOYER)
    resp = client.get(f"/files/{relative}")
    assert resp.status_code == 200
    assert resp.content == b"%PDF-1.4 private resume"
