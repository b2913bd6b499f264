import logging

from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import require_user
from app.layout import csrf_input, error_page, esc, format_dt, message_block, render_page
from app.security import attach_csrf_cookie, csrf_failed, issue_csrf_token, validate_csrf
from core.database import (
    APPLICATION_STATUSES,
    TRANSITIONS,
    WITHDRAWABLE,
    apply_to_job,
    count_employer_applications,
    get_job_post,
    get_profile,
    has_applied,
    list_employer_applications,
    list_employer_jobs,
    list_seeker_applications,
    update_application_status,
    withdraw_application,
)
from core.errors import MarketplaceError, ValidationError
from core.storage import save_upload

log = logging.getLogger("routes.applications")

router = APIRouter()

MAX_COVER_LETTER = 5000


def _apply_form(job: dict, profile: dict, user: dict, csrf_token: str, errors=None, values=None) -> str:
    values = values or {}
    resume_note = ""
    if profile.get("resume_url"):
        resume_note = '<p class="muted">Leave the file empty to use the resume on your profile.</p>'
    return f"""
    <div class="card form-card">
      <h2>Apply: {esc(job['title'])}</h2>
      <p class="muted">{esc(job['application_instructions'])}</p>
      {message_block(errors)}
      <form method="post" action="/jobs/{job['id']}/apply" enctype="multipart/form-data">
        <label>Email</label>
        <input type="email" name="email" maxlength="100" value="{esc(values.get('email') or profile.get('work_email') or user.get('email'))}" />
        <label>Contact number</label>
        <input type="text" name="contact_number" maxlength="30" value="{esc(values.get('contact_number') or profile.get('phone'))}" />
        <label>Cover letter</label>
        <textarea name="cover_letter" maxlength="{MAX_COVER_LETTER}">{esc(values.get('cover_letter'))}</textarea>
        <label>Resume</label>
        <input type="file" name="resume" accept=".pdf,.doc,.docx" />
        {resume_note}
        {csrf_input(csrf_token)}
        <button type="submit">Submit application</button>
      </form>
    </div>
    """


@router.get("/jobs/{job_id}/apply", response_class=HTMLResponse)
def apply_form(request: Request, job_id: int):
    user, denied = require_user(request, "job_seeker")
    if denied:
        return denied
    job = get_job_post(job_id)
    if not job or job["status"] != "active":
        return error_page("Not found", "This job is no longer accepting applications.", user=user, status_code=404)
    if has_applied(job_id, user["id"]):
        return RedirectResponse(url="/applications", status_code=303)

    profile = get_profile(user["id"]) or {}
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    resp = render_page("Apply", _apply_form(job, profile, user, csrf_token), user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/jobs/{job_id}/apply", response_class=HTMLResponse)
def apply(
    request: Request,
    job_id: int,
    email: str = Form("", max_length=100),
    contact_number: str = Form("", max_length=30),
    cover_letter: str = Form("", max_length=MAX_COVER_LETTER),
    resume: UploadFile | None = File(None),
    csrf_token: str = Form(""),
):
    user, denied = require_user(request, "job_seeker")
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return csrf_failed()

    job = get_job_post(job_id)
    if not job:
        return error_page("Not found", "Job post not found.", user=user, status_code=404)
    profile = get_profile(user["id"]) or {}
    values = {"email": email, "contact_number": contact_number, "cover_letter": cover_letter}

    try:
        resume_url = None
        if resume is not None and resume.filename:
            resume_url = save_upload("resumes", f"{user['id']}/applications", resume.filename, resume.file.read())
        apply_to_job(
            job_id,
            user["id"],
            cover_letter=cover_letter,
            email=email,
            contact_number=contact_number,
            resume_url=resume_url,
        )
    except ValidationError as exc:
        resp = render_page("Apply", _apply_form(job, profile, user, csrf_token, exc.errors, values), user=user, status_code=400)
        attach_csrf_cookie(resp, csrf_token)
        return resp
    except MarketplaceError as exc:
        return error_page("Cannot apply", exc.message, user=user, status_code=exc.status_code)

    return RedirectResponse(url="/applications?submitted=1", status_code=303)


@router.get("/applications", response_class=HTMLResponse)
def my_applications(request: Request, submitted: str = ""):
    user, denied = require_user(request, "job_seeker")
    if denied:
        return denied

    applications = list_seeker_applications(user["id"])
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    rows = []
    for a in applications:
        withdraw = ""
        if a["status"] in WITHDRAWABLE:
            withdraw = f"""
            <form method="post" action="/applications/{a['id']}/withdraw" class="inline"
                  onsubmit="return confirm('Withdraw this application?');">
              {csrf_input(csrf_token)}
              <button type="submit" class="secondary">Withdraw</button>
            </form>
            """
        rows.append(
            f"""
            <tr>
              <td><a href="/jobs/{a['job_post_id']}">{esc(a['job_title'])}</a></td>
              <td>{esc(a['location'])}</td>
              <td><span class="pill">{esc(a['status'])}</span></td>
              <td>{format_dt(a['created_at'])}</td>
              <td>{withdraw}</td>
            </tr>
            """
        )
    table_rows = "".join(rows) or '<tr><td colspan="5">No applications yet. <a href="/jobs">Find jobs</a></td></tr>'
    body = f"""
    <div class="card">
      {message_block(success="Application submitted." if submitted else None)}
      <table>
        <thead><tr><th>Job</th><th>Location</th><th>Status</th><th>Applied</th><th></th></tr></thead>
        <tbody>{table_rows}</tbody>
      </table>
    </div>
    """
    resp = render_page("My applications", body, user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/applications/{application_id}/withdraw")
def withdraw(request: Request, application_id: int, csrf_token: str = Form("")):
    user, denied = require_user(request, "job_seeker")
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return csrf_failed()
    try:
        withdraw_application(application_id, user["id"])
    except MarketplaceError as exc:
        return error_page("Cannot withdraw", exc.message, user=user, status_code=exc.status_code)
    return RedirectResponse(url="/applications", status_code=303)


def _status_actions(application: dict, csrf_token: str, next_url: str) -> str:
    choices = TRANSITIONS.get(application["status"], ())
    if not choices:
        return ""
    buttons = "".join(
        f'<button type="submit" name="status" value="{s}" class="secondary">{s.capitalize()}</button>' for s in choices
    )
    return f"""
    <form method="post" action="/applications/{application['id']}/status" class="inline">
      <input type="hidden" name="next" value="{esc(next_url)}" />
      {csrf_input(csrf_token)}
      {buttons}
    </form>
    """


@router.get("/employer/applications", response_class=HTMLResponse)
def employer_applications(request: Request, status: str = "all", job_id: int | None = None):
    user, denied = require_user(request, "employer")
    if denied:
        return denied
    if status != "all" and status not in APPLICATION_STATUSES:
        status = "all"

    applications = list_employer_applications(user["id"], status=status, job_post_id=job_id)
    counts = count_employer_applications(user["id"])
    jobs = list_employer_jobs(user["id"])
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))

    job_param = f"&job_id={job_id}" if job_id else ""
    tabs = " ".join(
        f'<a href="/employer/applications?status={s}{job_param}"{" class=active" if s == status else ""}>'
        f"{s.capitalize()} ({counts.get(s, 0)})</a>"
        for s in ("all",) + APPLICATION_STATUSES
    )
    job_opts = '<option value="">All jobs</option>' + "".join(
        f'<option value="{j["id"]}"{" selected" if j["id"] == job_id else ""}>{esc(j["title"])}</option>' for j in jobs
    )

    next_url = f"/employer/applications?status={status}{job_param}"
    rows = []
    for a in applications:
        verified = ' <span class="pill verified">Verified</span>' if a.get("applicant_verified") else ""
        resume = f'<a href="/files/{esc(a["resume_url"])}">Resume</a>' if a.get("resume_url") else ""
        rows.append(
            f"""
            <tr>
              <td><a href="/users/{a['job_seeker_id']}">{esc(a.get('applicant_name') or a['email'])}</a>{verified}</td>
              <td><a href="/jobs/{a['job_post_id']}">{esc(a['job_title'])}</a></td>
              <td>{esc(a['email'])}<br/>{esc(a['contact_number'])}</td>
              <td>{resume}</td>
              <td><span class="pill">{esc(a['status'])}</span></td>
              <td>{format_dt(a['created_at'])}</td>
              <td>{_status_actions(a, csrf_token, next_url)}</td>
            </tr>
            <tr><td colspan="7" class="muted">{esc(a.get('cover_letter') or '')}</td></tr>
            """
        )
    table_rows = "".join(rows) or '<tr><td colspan="7">No applications match.</td></tr>'

    body = f"""
    <div class="card">
      <form method="get" action="/employer/applications">
        <input type="hidden" name="status" value="{esc(status)}" />
        <select name="job_id">{job_opts}</select>
        <button type="submit" class="secondary">Filter</button>
      </form>
      <p>{tabs}</p>
      <table>
        <thead><tr><th>Applicant</th><th>Job</th><th>Contact</th><th></th><th>Status</th><th>Applied</th><th></th></tr></thead>
        <tbody>{table_rows}</tbody>
      </table>
    </div>
    """
    resp = render_page("Applications", body, user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/applications/{application_id}/status")
def change_status(
    request: Request,
    application_id: int,
    status: str = Form(...),
    next: str = Form(""),
    csrf_token: str = Form(""),
):
    user, denied = require_user(request, "employer", "admin")
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return csrf_failed()
    try:
        update_application_status(application_id, user, status)
    except MarketplaceError as exc:
        return error_page("Cannot update application", exc.message, user=user, status_code=exc.status_code)

    default = "/admin/applications" if user.get("role") == "admin" else "/employer/applications"
    target = next if next.startswith("/") and not next.startswith("//") else default
    return RedirectResponse(url=target, status_code=303)
