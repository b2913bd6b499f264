import pytest
from fastapi.testclient import TestClient

import app.api as api_module
from app.routes import profile as profile_routes
from core.db.profiles import calculate_profile_completion, normalize_skills, validate_company, validate_profile

GOOD_PROFILE = {
    "full_name": "Juan Dela Cruz",
    "bio": "Forklift operator with five years in warehouses.",
    "work_email": "juan@example.com",
    "years_of_experience": "5",
    "skills": ["forklift"],
}


@pytest.mark.parametrize(
    "raw,expected",
    [
        (None, []),
        ("", []),
        ("python, SQL ,, Python", ["python", "SQL"]),
        (["  excel", "", "Excel", "word"], ["excel", "word"]),
    ],
)
def test_normalize_skills(raw, expected):
    assert normalize_skills(raw) == expected


def test_validate_profile_accepts_good_profile():
    assert validate_profile(GOOD_PROFILE) == []


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"full_name": "J"}, "Full name must be between 2 and 100 characters."),
        ({"bio": "short"}, "Bio must be between 10 and 500 characters."),
        ({"work_email": "not-an-email"}, "Work email is not a valid email address."),
        ({"work_email": "juan..cruz@example.com"}, "Work email is not a valid email address."),
        ({"work_email": "juan@work@example.com"}, "Work email is not a valid email address."),
        ({"years_of_experience": ""}, "Years of experience is required."),
        ({"years_of_experience": "five"}, "Years of experience must be a whole number."),
        ({"years_of_experience": 51}, "Years of experience must be between 0 and 50."),
        ({"skills": []}, "List between 1 and 20 skills."),
        ({"skills": [f"s{i}" for i in range(21)]}, "List between 1 and 20 skills."),
    ],
)
def test_validate_profile_errors(overrides, message):
    assert message in validate_profile({**GOOD_PROFILE, **overrides})


def test_zero_years_is_valid_and_counts_as_filled():
    assert validate_profile({**GOOD_PROFILE, "years_of_experience": 0}) == []
    assert calculate_profile_completion({"years_of_experience": 0}) == 14


def test_profile_completion():
    assert calculate_profile_completion({}) == 0
    partial = {"full_name": "Juan", "work_email": "juan@example.com", "bio": "", "skills": []}
    assert calculate_profile_completion(partial) == 29
    full = {
        **GOOD_PROFILE,
        "avatar_url": "avatars/1/a.png",
        "resume_url": "resumes/1/cv.pdf",
    }
    assert calculate_profile_completion(full) == 100


@pytest.mark.parametrize(
    "data,expected",
    [
        ({"company_name": "Acme"}, []),
        ({"company_name": "  "}, ["Company name is required."]),
        ({"company_name": "Acme", "contact_email": "hr@"}, ["Contact email is not a valid email address."]),
        ({"company_name": "Acme", "founded_year": "nineteen"}, ["Founded year must be a number."]),
        ({"company_name": "Acme", "founded_year": "1492"}, ["Founded year looks wrong."]),
        ({"company_name": "Acme", "founded_year": ""}, []),
    ],
)
def test_validate_company(data, expected):
    assert validate_company(data) == expected


def _stub_profile(monkeypatch, **fields):
    row = {
        "user_id": 7,
        "role": "job_seeker",
        "active": 1,
        "full_name": "Juan Dela Cruz",
        "bio": "Forklift operator with five years in warehouses.",
        "work_email": "juan@example.com",
        "skills": ["forklift"],
        "profile_privacy": "public",
        "is_verified": 0,
        **fields,
    }
    monkeypatch.setattr(profile_routes, "get_profile", lambda uid: row)


@pytest.mark.parametrize(
    "privacy,viewer,status,shows_bio",
    [
        ("public", None, 200, True),
        ("limited", {"id": 3, "role": "employer"}, 200, False),
        ("limited", {"id": 1, "role": "admin"}, 200, True),
        ("private", {"id": 3, "role": "employer"}, 404, False),
        ("private", {"id": 7, "role": "job_seeker"}, 200, True),
    ],
)
def test_public_profile_privacy(login_as, monkeypatch, privacy, viewer, status, shows_bio):
    _stub_profile(monkeypatch, profile_privacy=privacy)
    login_as(viewer)
    resp = TestClient(api_module.app).get("/users/7")
    assert resp.status_code == status
    assert ("Forklift operator" in resp.text) is shows_bio
    if status == 200:
        assert "forklift" in resp.text
