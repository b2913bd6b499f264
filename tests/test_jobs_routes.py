from datetime import date

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

import app.api as api_module
from app.routes import jobs, public
from core.db.jobs import build_search_query, clean_job_data, count_active_filters, validate_job
from core.database import DEFAULT_FILTERS


def _request(query: bytes) -> Request:
    return Request({"type": "http", "method": "GET", "path": "/jobs", "query_string": query, "headers": []})


def _job(**overrides):
    job = {
        "id": 5,
        "employer_id": 3,
        "status": "active",
        "title": "Warehouse Operative",
        "category": "Logistics",
        "description": "Pick and pack orders.",
        "budget": "PHP 18,000 / month",
        "location": "Quezon City",
        "required_skills": ["forklift"],
        "experience_level": "entry",
        "work_schedule": "Mon-Fri",
        "additional_requirements": None,
        "application_instructions": "Apply with your resume.",
        "job_type": "full-time",
        "start_date": "2025-02-01",
        "end_date": "2025-12-31",
        "payment_method": "Bank transfer",
        "created_at": "2025-01-10T08:00:00",
        "employer_name": "Maria Santos",
        "employer_verified": 1,
    }
    job.update(overrides)
    return job


def test_filters_from_request_reads_repeated_and_comma_values():
    filters = jobs.filters_from_request(
        _request(b"q=+driver+&job_type=full-time&job_type=contract&job_type=bogus&skills=forklift,+ ,driving&posted_within=7d")
    )
    assert filters["query"] == "driver"
    assert filters["job_types"] == ["full-time", "contract"]
    assert filters["skills"] == ["forklift", "driving"]
    assert filters["posted_within"] == "7d"
    assert filters["experience_level"] == ""


def test_filters_from_request_drops_unknown_choices():
    filters = jobs.filters_from_request(_request(b"experience_level=guru&posted_within=1y"))
    assert filters["experience_level"] == ""
    assert filters["posted_within"] == ""
    assert count_active_filters(filters) == 0


def test_count_active_filters():
    assert count_active_filters(dict(DEFAULT_FILTERS)) == 0
    filters = dict(DEFAULT_FILTERS, query="  ", location="Cebu", job_types=["contract"], skills=["sql"])
    assert count_active_filters(filters) == 3


def test_clean_job_data_trims_and_splits_skills(job_data):
    cleaned = clean_job_data({**job_data, "title": "  Picker  ", "required_skills": "forklift, , Forklift, sql", "extra": "x"})
    assert cleaned["title"] == "Picker"
    assert cleaned["required_skills"] == ["forklift", "sql"]
    assert "extra" not in cleaned


def test_validate_job_accepts_complete_post(job_data):
    assert validate_job(clean_job_data(job_data)) == []


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"title": ""}, "Title is required."),
        ({"job_type": "gig"}, "Job type must be one of"),
        ({"experience_level": "guru"}, "Experience level must be one of"),
        ({"start_date": "next week"}, "Start date must be a valid date"),
        ({"end_date": "2025-01-01"}, "End date cannot be before the start date."),
        ({"required_skills": " , "}, "List at least one required skill."),
    ],
)
def test_validate_job_errors(job_data, overrides, message):
    errors = validate_job(clean_job_data({**job_data, **overrides}))
    assert any(e.startswith(message) for e in errors)


def test_validate_job_allows_same_day_and_missing_optional(job_data):
    data = clean_job_data({**job_data, "end_date": job_data["start_date"], "additional_requirements": ""})
    assert validate_job(data) == []
    data["start_date"] = date(2025, 3, 1)
    data["end_date"] = date(2025, 3, 2)
    assert validate_job(data) == []


def test_build_search_query_params():
    sql, params = build_search_query(
        {
            "query": "driver",
            "job_types": ["contract", "nope"],
            "experience_level": "entry",
            "location": "Cebu",
            "category": "Logistics",
            "skills": "Forklift, SQL",
        },
        limit=10,
    )
    assert "j.status = 'active'" in sql
    assert params[:3] == ["%driver%"] * 3
    assert "j.title ILIKE ? ESCAPE" in sql
    assert ["contract"] in params
    assert "entry" in params
    assert "%Cebu%" in params
    assert "Logistics" in params
    assert ["forklift", "sql"] in params
    assert params[-1] == 10


def test_build_search_query_escapes_wildcards():
    sql, params = build_search_query({"query": "100%_off", "location": "C:\\temp"})
    assert params[:3] == ["%100\\%\\_off%"] * 3
    assert "%C:\\\\temp%" in params
    assert "j.location ILIKE ? ESCAPE '\\'" in sql


def test_build_search_query_without_filters_only_limits():
    sql, params = build_search_query({})
    assert params == [50]
    assert "ORDER BY j.created_at DESC" in sql


def test_build_search_query_posted_window():
    sql, params = build_search_query({"posted_within": "24h"})
    assert "j.created_at >= ?" in sql
    assert len(params) == 2


@pytest.mark.parametrize(
    "value,expected",
    [
        ("/jobs?q=x", "/jobs?q=x"),
        ("//evil.example", "/fallback"),
        ("https://evil.example", "/fallback"),
        (None, "/fallback"),
    ],
)
def test_safe_next(value, expected):
    assert jobs._safe_next(value, "/fallback") == expected


def test_jobs_page_passes_filters_to_search(login_as, monkeypatch):
    seen = {}

    def fake_search(filters):
        seen.update(filters)
        return [_job()]

    monkeypatch.setattr(jobs, "search_jobs", fake_search)
    login_as(None)
    resp = TestClient(api_module.app).get("/jobs", params={"q": "warehouse", "job_type": ["full-time", "contract"]})
    assert resp.status_code == 200
    assert "Warehouse Operative" in resp.text
    assert seen["query"] == "warehouse"
    assert seen["job_types"] == ["full-time", "contract"]


def test_jobs_page_marks_saved_for_seekers(login_as, monkeypatch):
    monkeypatch.setattr(jobs, "search_jobs", lambda filters: [_job()])
    monkeypatch.setattr(jobs, "get_saved_job_ids", lambda uid: {5})
    login_as({"id": 7, "role": "job_seeker"})
    resp = TestClient(api_module.app).get("/jobs")
    assert resp.status_code == 200
    assert 'action="/jobs/5/unsave"' in resp.text


def test_home_page_for_visitors(login_as, monkeypatch):
    monkeypatch.setattr(public, "search_jobs", lambda filters, limit=50: [_job(title="Barista")])
    login_as(None)
    resp = TestClient(api_module.app).get("/")
    assert resp.status_code == 200
    assert "Barista" in resp.text


def test_closed_job_hidden_from_others(login_as, monkeypatch):
    monkeypatch.setattr(jobs, "get_job_post", lambda job_id: _job(status="closed"))
    monkeypatch.setattr(jobs, "has_applied", lambda job_id, uid: False)
    monkeypatch.setattr(jobs, "get_saved_job_ids", lambda uid: set())
    client = TestClient(api_module.app)

    login_as({"id": 7, "role": "job_seeker"})
    assert client.get("/jobs/5").status_code == 404

    login_as({"id": 3, "role": "employer"})
    resp = client.get("/jobs/5")
    assert resp.status_code == 200
    assert 'action="/jobs/5/delete"' in resp.text


def test_delete_job_redirects_by_role(login_as, monkeypatch):
    deleted = []
    monkeypatch.setattr(jobs, "delete_job_post", lambda job_id, actor: deleted.append((job_id, actor["role"])))
    client = TestClient(api_module.app)
    client.cookies.set("csrf_token", "tok")

    login_as({"id": 3, "role": "employer"})
    resp = client.post("/jobs/5/delete", data={"csrf_token": "tok"}, follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/my-jobs"

    login_as({"id": 1, "role": "admin"})
    resp = client.post("/jobs/5/delete", data={"csrf_token": "tok"}, follow_redirects=False)
    assert resp.headers["location"] == "/admin/jobs"
    assert deleted == [(5, "employer"), (5, "admin")]


def test_seeker_cannot_post_jobs(login_as):
    login_as({"id": 7, "role": "job_seeker"})
    resp = TestClient(api_module.app).get("/jobs/new", follow_redirects=False)
    assert resp.status_code == 403


def test_save_job_rejects_bad_csrf(login_as, monkeypatch):
    monkeypatch.setattr(jobs, "save_job", lambda *a: pytest.fail("save_job should not run"))
    login_as({"id": 7, "role": "job_seeker"})
    client = TestClient(api_module.app)
    client.cookies.set("csrf_token", "tok")
    resp = client.post("/jobs/5/save", data={"csrf_token": "other"}, follow_redirects=False)
    assert resp.status_code == 403
