import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import get_current_user, require_user
from app.layout import csrf_input, error_page, esc, format_dt, message_block, render_page
from app.security import attach_csrf_cookie, csrf_failed, issue_csrf_token, validate_csrf
from core.database import (
    DEFAULT_FILTERS,
    EXPERIENCE_LEVELS,
    JOB_FIELDS,
    JOB_STATUSES,
    JOB_TYPES,
    POSTED_WITHIN,
    count_active_filters,
    create_job_post,
    delete_job_post,
    get_job_post,
    get_saved_job_ids,
    get_saved_jobs,
    has_applied,
    list_employer_jobs,
    save_job,
    search_jobs,
    set_job_status,
    unsave_job,
    update_job_post,
)
from core.errors import MarketplaceError, NotFoundError, ValidationError

log = logging.getLogger("routes.jobs")

router = APIRouter()

POSTED_LABELS = {"24h": "Last 24 hours", "7d": "Last 7 days", "30d": "Last 30 days"}

FIELD_LABELS = {
    "title": "Job title",
    "category": "Category",
    "description": "Description",
    "budget": "Budget",
    "location": "Location",
    "required_skills": "Required skills (comma separated)",
    "experience_level": "Experience level",
    "work_schedule": "Work schedule",
    "additional_requirements": "Additional requirements (optional)",
    "application_instructions": "Application instructions",
    "job_type": "Job type",
    "start_date": "Start date",
    "end_date": "End date",
    "payment_method": "Payment method",
}
TEXTAREA_FIELDS = ("description", "additional_requirements", "application_instructions")


def filters_from_request(request: Request) -> dict:
    """Read search filters from the query string; multi-value keys may repeat."""
    qp = request.query_params
    filters = dict(DEFAULT_FILTERS)
    filters["query"] = (qp.get("q") or "").strip()
    filters["job_types"] = [t for t in qp.getlist("job_type") if t in JOB_TYPES]
    level = (qp.get("experience_level") or "").strip()
    filters["experience_level"] = level if level in EXPERIENCE_LEVELS else ""
    filters["location"] = (qp.get("location") or "").strip()
    filters["skills"] = [s.strip() for s in (qp.get("skills") or "").split(",") if s.strip()]
    filters["category"] = (qp.get("category") or "").strip()
    posted = (qp.get("posted_within") or "").strip()
    filters["posted_within"] = posted if posted in POSTED_WITHIN else ""
    return filters


def _options(values, selected: str, blank: str | None = None) -> str:
    out = f'<option value="">{blank}</option>' if blank is not None else ""
    for v in values:
        out += f'<option value="{esc(v)}"{" selected" if v == selected else ""}>{esc(v)}</option>'
    return out


def _skills_html(skills) -> str:
    return "".join(f'<span class="pill">{esc(s)}</span>' for s in skills or [])


def _search_form(filters: dict) -> str:
    active = count_active_filters(filters)
    badge = f'<span class="pill">{active} active</span>' if active else ""
    type_boxes = "".join(
        f'<label class="inline"><input type="checkbox" name="job_type" value="{t}"'
        f'{" checked" if t in filters["job_types"] else ""} /> {t}</label>'
        for t in JOB_TYPES
    )
    posted_opts = '<option value="">Any time</option>' + "".join(
        f'<option value="{k}"{" selected" if k == filters["posted_within"] else ""}>{label}</option>'
        for k, label in POSTED_LABELS.items()
    )
    return f"""
    <div class="card">
      <form method="get" action="/jobs">
        <label>Keywords {badge}</label>
        <input type="text" name="q" value="{esc(filters['query'])}" />
        <label>Job type</label>
        <div>{type_boxes}</div>
        <label>Experience level</label>
        <select name="experience_level">{_options(EXPERIENCE_LEVELS, filters['experience_level'], "Any level")}</select>
        <label>Location</label>
        <input type="text" name="location" value="{esc(filters['location'])}" />
        <label>Skills (comma separated)</label>
        <input type="text" name="skills" value="{esc(', '.join(filters['skills']))}" />
        <label>Category</label>
        <input type="text" name="category" value="{esc(filters['category'])}" />
        <label>Posted</label>
        <select name="posted_within">{posted_opts}</select>
        <button type="submit">Search</button>
        <a href="/jobs">Clear filters</a>
      </form>
    </div>
    """


def _save_button(job_id: int, saved: bool, csrf_token: str, next_url: str) -> str:
    action = "unsave" if saved else "save"
    label = "Unsave" if saved else "Save"
    return f"""
    <form method="post" action="/jobs/{job_id}/{action}" class="inline">
      <input type="hidden" name="next" value="{esc(next_url)}" />
      {csrf_input(csrf_token)}
      <button type="submit" class="secondary">{label}</button>
    </form>
    """


def _job_card(job: dict, saved_ids: set, csrf_token: str | None, next_url: str) -> str:
    verified = '<span class="pill verified">Verified</span>' if job.get("employer_verified") else ""
    save = ""
    if csrf_token is not None:
        save = _save_button(job["id"], job["id"] in saved_ids, csrf_token, next_url)
    return f"""
    <div class="card">
      <h3><a href="/jobs/{job['id']}">{esc(job['title'])}</a></h3>
      <p class="muted">{esc(job.get('employer_name') or '')} {verified}</p>
      <p>{esc(job['location'])} | {esc(job['job_type'])} | {esc(job['experience_level'])} | {esc(job['budget'])}</p>
      <p>{_skills_html(job.get('required_skills'))}</p>
      <p class="muted">Posted {format_dt(job['created_at'])}</p>
      {save}
    </div>
    """


@router.get("/jobs", response_class=HTMLResponse)
def jobs_search(request: Request):
    user, _ = get_current_user(request)
    filters = filters_from_request(request)
    jobs = search_jobs(filters)

    csrf_token = None
    saved_ids: set = set()
    if user and user.get("role") == "job_seeker":
        csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
        saved_ids = get_saved_job_ids(user["id"])

    next_url = str(request.url.path) + ("?" + request.url.query if request.url.query else "")
    cards = "".join(_job_card(j, saved_ids, csrf_token, next_url) for j in jobs)
    if not cards:
        cards = '<p class="muted">No jobs match your filters.</p>'

    resp = render_page("Find jobs", _search_form(filters) + cards, user=user)
    if csrf_token:
        attach_csrf_cookie(resp, csrf_token)
    return resp


@router.get("/jobs/new", response_class=HTMLResponse)
def new_job_form(request: Request):
    user, denied = require_user(request, "employer")
    if denied:
        return denied
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    resp = render_page("Post a job", _job_form("/jobs/new", {}, csrf_token), user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


def _job_form(action: str, job: dict, csrf_token: str, errors=None) -> str:
    fields = []
    for name in JOB_FIELDS:
        label = FIELD_LABELS[name]
        value = job.get(name)
        if name == "required_skills" and isinstance(value, list):
            value = ", ".join(value)
        if name == "job_type":
            control = f'<select name="{name}">{_options(JOB_TYPES, value or "", "Choose...")}</select>'
        elif name == "experience_level":
            control = f'<select name="{name}">{_options(EXPERIENCE_LEVELS, value or "", "Choose...")}</select>'
        elif name in ("start_date", "end_date"):
            control = f'<input type="date" name="{name}" value="{esc(value)}" />'
        elif name in TEXTAREA_FIELDS:
            control = f'<textarea name="{name}" maxlength="5000">{esc(value)}</textarea>'
        else:
            control = f'<input type="text" name="{name}" maxlength="200" value="{esc(value)}" />'
        fields.append(f"<label>{label}</label>{control}")

    status = job.get("status") or "active"
    status_opts = _options(JOB_STATUSES, status)
    return f"""
    <div class="card form-card">
      {message_block(errors)}
      <form method="post" action="{action}">
        {"".join(fields)}
        <label>Status</label>
        <select name="status">{status_opts}</select>
        {csrf_input(csrf_token)}
        <button type="submit">Save job post</button>
      </form>
    </div>
    """


async def _read_job_form(request: Request) -> tuple[dict, str, str]:
    form = await request.form()
    data = {name: str(form.get(name) or "") for name in JOB_FIELDS}
    return data, str(form.get("status") or "active"), str(form.get("csrf_token") or "")


@router.post("/jobs/new", response_class=HTMLResponse)
async def new_job(request: Request):
    user, denied = require_user(request, "employer")
    if denied:
        return denied
    data, status, csrf_token = await _read_job_form(request)
    if not validate_csrf(request, csrf_token):
        return csrf_failed()

    try:
        job = create_job_post(user["id"], data, status=status)
    except ValidationError as exc:
        resp = render_page(
            "Post a job",
            _job_form("/jobs/new", {**data, "status": status}, csrf_token, errors=exc.errors),
            user=user,
            status_code=400,
        )
        attach_csrf_cookie(resp, csrf_token)
        return resp
    return RedirectResponse(url=f"/jobs/{job['id']}", status_code=303)


def _can_manage(user: dict | None, job: dict) -> bool:
    return bool(user) and (user.get("role") == "admin" or user["id"] == job["employer_id"])


@router.get("/jobs/{job_id}", response_class=HTMLResponse)
def job_detail(request: Request, job_id: int):
    user, _ = get_current_user(request)
    job = get_job_post(job_id)
    manage = bool(job) and _can_manage(user, job)
    if not job or (job["status"] != "active" and not manage):
        return error_page("Not found", "This job post does not exist or is no longer open.", user=user, status_code=404)

    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    actions = []
    if manage:
        status_opts = _options(JOB_STATUSES, job["status"])
        actions.append(
            f"""
            <a href="/jobs/{job_id}/edit">Edit</a>
            <a href="/employer/applications?job_id={job_id}">Applications</a>
            <form method="post" action="/jobs/{job_id}/status" class="inline">
              <select name="status">{status_opts}</select>
              {csrf_input(csrf_token)}
              <button type="submit" class="secondary">Update status</button>
            </form>
            <form method="post" action="/jobs/{job_id}/delete" class="inline"
                  onsubmit="return confirm('Delete this job post?');">
              {csrf_input(csrf_token)}
              <button type="submit" class="danger">Delete</button>
            </form>
            """
        )
    elif user and user.get("role") == "job_seeker":
        if has_applied(job_id, user["id"]):
            actions.append('<span class="pill">You have applied</span>')
        else:
            actions.append(f'<a class="button" href="/jobs/{job_id}/apply">Apply now</a>')
        saved = job_id in get_saved_job_ids(user["id"])
        actions.append(_save_button(job_id, saved, csrf_token, f"/jobs/{job_id}"))
    elif not user:
        actions.append('<a href="/login">Log in to apply</a>')

    if user and not manage:
        actions.append(f'<a href="/report?target_type=job&target_id={job_id}">Report this job</a>')
        actions.append(f'<a href="/users/{job["employer_id"]}">Employer profile</a>')

    verified = '<span class="pill verified">Verified employer</span>' if job.get("employer_verified") else ""
    extra = ""
    if job.get("additional_requirements"):
        extra = f"<h3>Additional requirements</h3><p>{esc(job['additional_requirements'])}</p>"

    body = f"""
    <div class="card">
      <h2>{esc(job['title'])}</h2>
      <p class="muted">{esc(job.get('company_name') or job.get('employer_name') or '')} {verified}</p>
      <p><span class="pill">{esc(job['status'])}</span> {esc(job['category'])}</p>
      <table>
        <tr><th>Location</th><td>{esc(job['location'])}</td></tr>
        <tr><th>Job type</th><td>{esc(job['job_type'])}</td></tr>
        <tr><th>Experience</th><td>{esc(job['experience_level'])}</td></tr>
        <tr><th>Budget</th><td>{esc(job['budget'])}</td></tr>
        <tr><th>Payment</th><td>{esc(job['payment_method'])}</td></tr>
        <tr><th>Schedule</th><td>{esc(job['work_schedule'])}</td></tr>
        <tr><th>Dates</th><td>{esc(job['start_date'])} to {esc(job['end_date'])}</td></tr>
      </table>
      <h3>Description</h3>
      <p>{esc(job['description'])}</p>
      <h3>Skills</h3>
      <p>{_skills_html(job.get('required_skills'))}</p>
      {extra}
      <h3>How to apply</h3>
      <p>{esc(job['application_instructions'])}</p>
      <p class="muted">Posted {format_dt(job['created_at'])}</p>
      <div>{"".join(actions)}</div>
    </div>
    """
    resp = render_page(job["title"], body, user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.get("/jobs/{job_id}/edit", response_class=HTMLResponse)
def edit_job_form(request: Request, job_id: int):
    user, denied = require_user(request, "employer", "admin")
    if denied:
        return denied
    job = get_job_post(job_id)
    if not job or not _can_manage(user, job):
        return error_page("Not found", "Job post not found.", user=user, status_code=404)
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    resp = render_page("Edit job post", _job_form(f"/jobs/{job_id}/edit", job, csrf_token), user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/jobs/{job_id}/edit", response_class=HTMLResponse)
async def edit_job(request: Request, job_id: int):
    user, denied = require_user(request, "employer", "admin")
    if denied:
        return denied
    data, status, csrf_token = await _read_job_form(request)
    if not validate_csrf(request, csrf_token):
        return csrf_failed()

    try:
        job = update_job_post(job_id, user, data)
        if status != job["status"]:
            set_job_status(job_id, user, status)
    except ValidationError as exc:
        resp = render_page(
            "Edit job post",
            _job_form(f"/jobs/{job_id}/edit", {**data, "status": status}, csrf_token, errors=exc.errors),
            user=user,
            status_code=400,
        )
        attach_csrf_cookie(resp, csrf_token)
        return resp
    except MarketplaceError as exc:
        return error_page("Cannot edit job", exc.message, user=user, status_code=exc.status_code)
    return RedirectResponse(url=f"/jobs/{job_id}", status_code=303)


@router.post("/jobs/{job_id}/status")
async def change_job_status(request: Request, job_id: int):
    user, denied = require_user(request, "employer", "admin")
    if denied:
        return denied
    form = await request.form()
    if not validate_csrf(request, str(form.get("csrf_token") or "")):
        return csrf_failed()
    try:
        set_job_status(job_id, user, str(form.get("status") or ""))
    except MarketplaceError as exc:
        return error_page("Cannot update status", exc.message, user=user, status_code=exc.status_code)
    return RedirectResponse(url=_safe_next(form.get("next"), f"/jobs/{job_id}"), status_code=303)


@router.post("/jobs/{job_id}/delete")
async def remove_job(request: Request, job_id: int):
    user, denied = require_user(request, "employer", "admin")
    if denied:
        return denied
    form = await request.form()
    if not validate_csrf(request, str(form.get("csrf_token") or "")):
        return csrf_failed()
    try:
        delete_job_post(job_id, user)
    except MarketplaceError as exc:
        return error_page("Cannot delete job", exc.message, user=user, status_code=exc.status_code)
    target = "/admin/jobs" if user.get("role") == "admin" else "/my-jobs"
    return RedirectResponse(url=target, status_code=303)


def _safe_next(value, default: str) -> str:
    value = str(value or "")
    # Only same-site relative paths
    if value.startswith("/") and not value.startswith("//"):
        return value
    return default


@router.post("/jobs/{job_id}/save")
async def save_job_route(request: Request, job_id: int):
    user, denied = require_user(request, "job_seeker")
    if denied:
        return denied
    form = await request.form()
    if not validate_csrf(request, str(form.get("csrf_token") or "")):
        return csrf_failed()
    try:
        save_job(user["id"], job_id)
    except NotFoundError as exc:
        return error_page("Not found", exc.message, user=user, status_code=404)
    return RedirectResponse(url=_safe_next(form.get("next"), "/saved-jobs"), status_code=303)


@router.post("/jobs/{job_id}/unsave")
async def unsave_job_route(request: Request, job_id: int):
    user, denied = require_user(request, "job_seeker")
    if denied:
        return denied
    form = await request.form()
    if not validate_csrf(request, str(form.get("csrf_token") or "")):
        return csrf_failed()
    unsave_job(user["id"], job_id)
    return RedirectResponse(url=_safe_next(form.get("next"), "/saved-jobs"), status_code=303)


@router.get("/saved-jobs", response_class=HTMLResponse)
def saved_jobs(request: Request):
    user, denied = require_user(request, "job_seeker")
    if denied:
        return denied
    jobs = get_saved_jobs(user["id"])
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    saved_ids = {j["id"] for j in jobs}
    cards = "".join(_job_card(j, saved_ids, csrf_token, "/saved-jobs") for j in jobs)
    if not cards:
        cards = '<p class="muted">You have no saved jobs. <a href="/jobs">Browse jobs</a></p>'
    resp = render_page("Saved jobs", cards, user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.get("/my-jobs", response_class=HTMLResponse)
def my_jobs(request: Request):
    user, denied = require_user(request, "employer")
    if denied:
        return denied
    jobs = list_employer_jobs(user["id"])
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))

    rows = []
    for j in jobs:
        rows.append(
            f"""
            <tr>
              <td><a href="/jobs/{j['id']}">{esc(j['title'])}</a></td>
              <td>
                <form method="post" action="/jobs/{j['id']}/status" class="inline">
                  <select name="status">{_options(JOB_STATUSES, j['status'])}</select>
                  <input type="hidden" name="next" value="/my-jobs" />
                  {csrf_input(csrf_token)}
                  <button type="submit" class="secondary">Set</button>
                </form>
              </td>
              <td><a href="/employer/applications?{urlencode({'job_id': j['id']})}">{j['application_count']}</a></td>
              <td>{format_dt(j['created_at'])}</td>
              <td><a href="/jobs/{j['id']}/edit">Edit</a></td>
            </tr>
            """
        )
    table_rows = "".join(rows) or '<tr><td colspan="5">No job posts yet.</td></tr>'
    body = f"""
    <div class="card">
      <p><a class="button" href="/jobs/new">Post a new job</a></p>
      <table>
        <thead><tr><th>Title</th><th>Status</th><th>Applications</th><th>Posted</th><th></th></tr></thead>
        <tbody>{table_rows}</tbody>
      </table>
    </div>
    """
    resp = render_page("My job posts", body, user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp
