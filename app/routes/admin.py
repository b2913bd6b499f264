import logging

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import require_user
from app.layout import csrf_input, error_page, esc, format_dt, message_block, render_page
from app.security import attach_csrf_cookie, csrf_failed, issue_csrf_token, validate_csrf
from core.database import (
    JOB_STATUSES,
    REPORT_STATUSES,
    close_report,
    count_reports_by_status,
    delete_sessions_for_user,
    delete_user_data,
    get_deleted_users,
    get_profile,
    get_stats,
    get_user_by_id,
    list_all_applications,
    list_all_jobs,
    list_reports,
    list_requests,
    list_users_by_role,
    review_request,
    set_verified,
    update_profile,
)
from core.errors import MarketplaceError, ValidationError

log = logging.getLogger("routes.admin")

router = APIRouter()


def _admin_page(request: Request, title: str, build_body):
    """Render an admin page; `build_body(user, csrf_token)` returns the HTML."""
    user, denied = require_user(request, "admin")
    if denied:
        return denied
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    resp = render_page(title, build_body(user, csrf_token), user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


def _post_guard(request: Request, csrf_token: str):
    user, denied = require_user(request, "admin")
    if denied:
        return user, denied
    if not validate_csrf(request, csrf_token):
        return user, csrf_failed()
    return user, None


def _verified_pill(row: dict) -> str:
    return '<span class="pill verified">Verified</span>' if row.get("is_verified") else '<span class="pill">Unverified</span>'


def _status_links(base: str, statuses, current: str) -> str:
    return " ".join(
        f'<a href="{base}?status={s}"{" class=active" if s == current else ""}>{s.capitalize()}</a>'
        for s in ("all",) + tuple(statuses)
    )


@router.get("/admin", response_class=HTMLResponse)
def admin_dashboard(request: Request):
    def body(user, csrf_token):
        stats = get_stats()
        tiles = [
            ("Job seekers", stats["job_seekers"], "/admin/job-seekers"),
            ("Employers", stats["employers"], "/admin/employers"),
            ("Active jobs", stats["active_jobs"], "/admin/jobs?status=active"),
            ("Total jobs", stats["total_jobs"], "/admin/jobs"),
            ("Applications", stats["applications"], "/admin/applications"),
            ("Pending verifications", stats["pending_verifications"], "/admin/verifications"),
            ("Pending reports", stats["pending_reports"], "/admin/reports"),
        ]
        cards = "".join(
            f'<a class="stat" href="{href}"><div class="label">{label}</div><div class="value">{value}</div></a>'
            for label, value, href in tiles
        )
        return f"""
        <div class="stats">{cards}</div>
        <div class="card">
          <a href="/admin/deleted-users">Deleted users</a>
        </div>
        """

    return _admin_page(request, "Admin dashboard", body)


def _delete_user_form(user_id: int, csrf_token: str, back: str) -> str:
    return f"""
    <form method="post" action="/admin/users/{user_id}/delete" class="inline"
          onsubmit="return confirm('Delete this user and all their data?');">
      <input type="hidden" name="next" value="{back}" />
      {csrf_input(csrf_token)}
      <button type="submit" class="danger">Delete</button>
    </form>
    """


def _verify_toggle_form(row: dict, csrf_token: str, back: str) -> str:
    target = "0" if row.get("is_verified") else "1"
    label = "Unverify" if row.get("is_verified") else "Verify"
    return f"""
    <form method="post" action="/admin/users/{row['id']}/verified" class="inline">
      <input type="hidden" name="verified" value="{target}" />
      <input type="hidden" name="next" value="{back}" />
      {csrf_input(csrf_token)}
      <button type="submit" class="secondary">{label}</button>
    </form>
    """


@router.get("/admin/job-seekers", response_class=HTMLResponse)
def admin_job_seekers(request: Request):
    def body(user, csrf_token):
        seekers = list_users_by_role("job_seeker")
        rows = "".join(
            f"""
            <tr>
              <td><a href="/users/{s['id']}">{esc(s.get('full_name') or '')}</a></td>
              <td>{esc(s['email'])}</td>
              <td>{esc(', '.join(s.get('skills') or []))}</td>
              <td>{_verified_pill(s)}</td>
              <td>{'Active' if s['active'] else 'Deactivated'}</td>
              <td>{format_dt(s['created_at'])}</td>
              <td>
                <a href="/admin/job-seekers/{s['id']}/edit">Edit</a>
                {_verify_toggle_form(s, csrf_token, '/admin/job-seekers')}
                {_delete_user_form(s['id'], csrf_token, '/admin/job-seekers')}
              </td>
            </tr>
            """
            for s in seekers
        ) or '<tr><td colspan="7">No job seekers.</td></tr>'
        return f"""
        <div class="card">
          <table>
            <thead><tr><th>Name</th><th>Email</th><th>Skills</th><th>Verified</th><th>Status</th><th>Joined</th><th></th></tr></thead>
            <tbody>{rows}</tbody>
          </table>
        </div>
        """

    return _admin_page(request, "Job seekers", body)


def _seeker_edit_form(user_id: int, profile: dict, csrf_token: str, errors=None) -> str:
    skills = profile.get("skills") or []
    if isinstance(skills, list):
        skills = ", ".join(skills)
    return f"""
    <div class="card form-card">
      {message_block(errors)}
      <form method="post" action="/admin/job-seekers/{user_id}/edit">
        <label>Full name</label>
        <input type="text" name="full_name" maxlength="100" value="{esc(profile.get('full_name'))}" />
        <label>Bio</label>
        <textarea name="bio" maxlength="500">{esc(profile.get('bio'))}</textarea>
        <label>Skills (comma separated)</label>
        <input type="text" name="skills" value="{esc(skills)}" />
        {csrf_input(csrf_token)}
        <button type="submit">Save</button>
      </form>
    </div>
    """


@router.get("/admin/job-seekers/{user_id}/edit", response_class=HTMLResponse)
def admin_edit_seeker_form(request: Request, user_id: int):
    user, denied = require_user(request, "admin")
    if denied:
        return denied
    profile = get_profile(user_id)
    if not profile or profile.get("role") != "job_seeker":
        return error_page("Not found", "Job seeker not found.", user=user, status_code=404)
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    resp = render_page("Edit job seeker", _seeker_edit_form(user_id, profile, csrf_token), user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/admin/job-seekers/{user_id}/edit", response_class=HTMLResponse)
def admin_edit_seeker(
    request: Request,
    user_id: int,
    full_name: str = Form("", max_length=100),
    bio: str = Form("", max_length=500),
    skills: str = Form("", max_length=1000),
    csrf_token: str = Form(""),
):
    user, denied = _post_guard(request, csrf_token)
    if denied:
        return denied
    profile = get_profile(user_id)
    if not profile or profile.get("role") != "job_seeker":
        return error_page("Not found", "Job seeker not found.", user=user, status_code=404)

    name = full_name.strip()
    if len(name) < 2:
        body = _seeker_edit_form(user_id, {"full_name": full_name, "bio": bio, "skills": skills}, csrf_token, ["Full name is required."])
        resp = render_page("Edit job seeker", body, user=user, status_code=400)
        attach_csrf_cookie(resp, csrf_token)
        return resp

    update_profile(user_id, {"full_name": name, "bio": bio.strip(), "skills": skills}, validate=False)
    log.info("Admin edited profile", extra={"admin_id": user["id"], "user_id": user_id})
    return RedirectResponse(url="/admin/job-seekers", status_code=303)


@router.get("/admin/employers", response_class=HTMLResponse)
def admin_employers(request: Request):
    def body(user, csrf_token):
        employers = list_users_by_role("employer")
        rows = "".join(
            f"""
            <tr>
              <td><a href="/users/{e['id']}">{esc(e.get('full_name') or '')}</a></td>
              <td>{esc(e['email'])}</td>
              <td>{_verified_pill(e)}</td>
              <td>{'Active' if e['active'] else 'Deactivated'}</td>
              <td>{format_dt(e['created_at'])}</td>
              <td>
                {_verify_toggle_form(e, csrf_token, '/admin/employers')}
                {_delete_user_form(e['id'], csrf_token, '/admin/employers')}
              </td>
            </tr>
            """
            for e in employers
        ) or '<tr><td colspan="6">No employers.</td></tr>'
        return f"""
        <div class="card">
          <table>
            <thead><tr><th>Name</th><th>Email</th><th>Verification</th><th>Status</th><th>Joined</th><th></th></tr></thead>
            <tbody>{rows}</tbody>
          </table>
        </div>
        """

    return _admin_page(request, "Employers", body)


def _safe_back(value: str, default: str) -> str:
    return value if value.startswith("/admin") else default


@router.post("/admin/users/{user_id}/delete")
def admin_delete_user(request: Request, user_id: int, next: str = Form(""), csrf_token: str = Form("")):
    user, denied = _post_guard(request, csrf_token)
    if denied:
        return denied
    if user_id == user["id"]:
        return error_page("Not allowed", "You cannot delete your own account.", user=user, status_code=403)
    target = get_user_by_id(user_id)
    if not target:
        return error_page("Not found", "User not found.", user=user, status_code=404)
    if target.get("role") == "admin":
        return error_page("Not allowed", "Admin accounts cannot be deleted here.", user=user, status_code=403)

    delete_sessions_for_user(user_id)
    delete_user_data(user_id)
    log.info("Admin deleted user", extra={"admin_id": user["id"], "user_id": user_id})
    return RedirectResponse(url=_safe_back(next, "/admin"), status_code=303)


@router.post("/admin/users/{user_id}/verified")
def admin_toggle_verified(
    request: Request,
    user_id: int,
    verified: str = Form("1"),
    next: str = Form(""),
    csrf_token: str = Form(""),
):
    user, denied = _post_guard(request, csrf_token)
    if denied:
        return denied
    if not get_user_by_id(user_id):
        return error_page("Not found", "User not found.", user=user, status_code=404)
    set_verified(user_id, verified == "1")
    return RedirectResponse(url=_safe_back(next, "/admin"), status_code=303)


@router.get("/admin/verifications", response_class=HTMLResponse)
def admin_verifications(request: Request, status: str = "pending"):
    if status not in ("all", "pending", "approved", "rejected"):
        status = "pending"

    def body(user, csrf_token):
        requests_ = list_requests(status=status)
        cards = []
        for r in requests_:
            parsed = r.get("parsed_data") or {}
            review = ""
            if r["status"] == "pending":
                review = f"""
                <form method="post" action="/admin/verifications/{r['id']}/review">
                  <label>Notes (required to reject)</label>
                  <textarea name="admin_notes" maxlength="1000"></textarea>
                  {csrf_input(csrf_token)}
                  <button type="submit" name="decision" value="approve">Approve</button>
                  <button type="submit" name="decision" value="reject" class="danger">Reject</button>
                </form>
                """
            cards.append(
                f"""
                <div class="card">
                  <h3>{esc(r.get('employer_name') or '')} <span class="muted">{esc(r.get('employer_email'))}</span></h3>
                  <p>{esc(r.get('company_name') or '')}</p>
                  <p><span class="pill">{esc(r['status'])}</span> submitted {format_dt(r['submitted_at'])}</p>
                  <p>{esc(r.get('admin_notes') or '')}</p>
                  <p><a href="/files/{esc(r['document_path'])}" target="_blank">View document</a></p>
                  <table>
                    <tr><th>Detected type</th><td>{esc(parsed.get('id_type'))}</td></tr>
                    <tr><th>ID number</th><td>{esc(parsed.get('id_number'))}</td></tr>
                    <tr><th>Issued</th><td>{esc(parsed.get('date_issued'))}</td></tr>
                    <tr><th>Expires</th><td>{esc(parsed.get('date_expiry'))}</td></tr>
                    <tr><th>Name match</th><td>{'Yes' if parsed.get('name_match') else 'No'}</td></tr>
                  </table>
                  <details><summary>Extracted text</summary><pre>{esc(r.get('extracted_text') or '')}</pre></details>
                  {review}
                </div>
                """
            )
        listing = "".join(cards) or '<p class="muted">No verification requests.</p>'
        return f'<p>{_status_links("/admin/verifications", ("pending", "approved", "rejected"), status)}</p>{listing}'

    return _admin_page(request, "Verification requests", body)


@router.post("/admin/verifications/{request_id}/review", response_class=HTMLResponse)
def admin_review_verification(
    request: Request,
    request_id: int,
    decision: str = Form(...),
    admin_notes: str = Form("", max_length=1000),
    csrf_token: str = Form(""),
):
    user, denied = _post_guard(request, csrf_token)
    if denied:
        return denied
    try:
        review_request(request_id, user["id"], approve=decision == "approve", admin_notes=admin_notes)
    except ValidationError as exc:
        return error_page("Review not saved", exc.message, user=user, status_code=400)
    except MarketplaceError as exc:
        return error_page("Review not saved", exc.message, user=user, status_code=exc.status_code)
    return RedirectResponse(url="/admin/verifications", status_code=303)


@router.get("/admin/jobs", response_class=HTMLResponse)
def admin_jobs(request: Request, status: str = "all"):
    if status != "all" and status not in JOB_STATUSES:
        status = "all"

    def body(user, csrf_token):
        jobs = list_all_jobs(status=status)
        rows = []
        for j in jobs:
            options = "".join(
                f'<option value="{s}"{" selected" if s == j["status"] else ""}>{s}</option>' for s in JOB_STATUSES
            )
            rows.append(
                f"""
                <tr>
                  <td><a href="/jobs/{j['id']}">{esc(j['title'])}</a></td>
                  <td>{esc(j.get('employer_name') or '')}</td>
                  <td>
                    <form method="post" action="/jobs/{j['id']}/status" class="inline">
                      <select name="status">{options}</select>
                      <input type="hidden" name="next" value="/admin/jobs?status={status}" />
                      {csrf_input(csrf_token)}
                      <button type="submit" class="secondary">Set</button>
                    </form>
                  </td>
                  <td>{format_dt(j['created_at'])}</td>
                  <td>
                    <form method="post" action="/jobs/{j['id']}/delete" class="inline"
                          onsubmit="return confirm('Delete this job post?');">
                      {csrf_input(csrf_token)}
                      <button type="submit" class="danger">Delete</button>
                    </form>
                  </td>
                </tr>
                """
            )
        table_rows = "".join(rows) or '<tr><td colspan="5">No job posts.</td></tr>'
        return f"""
        <p>{_status_links("/admin/jobs", JOB_STATUSES, status)}</p>
        <div class="card">
          <table>
            <thead><tr><th>Title</th><th>Employer</th><th>Status</th><th>Posted</th><th></th></tr></thead>
            <tbody>{table_rows}</tbody>
          </table>
        </div>
        """

    return _admin_page(request, "Job posts", body)


@router.get("/admin/applications", response_class=HTMLResponse)
def admin_applications(request: Request):
    def body(user, csrf_token):
        applications = list_all_applications()
        rows = "".join(
            f"""
            <tr>
              <td><a href="/users/{a['job_seeker_id']}">{esc(a.get('applicant_name') or a['email'])}</a></td>
              <td><a href="/jobs/{a['job_post_id']}">{esc(a['job_title'])}</a></td>
              <td>{esc(a.get('employer_name') or '')}</td>
              <td><span class="pill">{esc(a['status'])}</span></td>
              <td>{format_dt(a['created_at'])}</td>
            </tr>
            """
            for a in applications
        ) or '<tr><td colspan="5">No applications.</td></tr>'
        return f"""
        <div class="card">
          <table>
            <thead><tr><th>Applicant</th><th>Job</th><th>Employer</th><th>Status</th><th>Applied</th></tr></thead>
            <tbody>{rows}</tbody>
          </table>
        </div>
        """

    return _admin_page(request, "Applications", body)


@router.get("/admin/reports", response_class=HTMLResponse)
def admin_reports(request: Request, status: str = "pending"):
    if status != "all" and status not in REPORT_STATUSES:
        status = "pending"

    def body(user, csrf_token):
        reports = list_reports(status=status)
        counts = count_reports_by_status()
        tabs = " ".join(
            f'<a href="/admin/reports?status={s}"{" class=active" if s == status else ""}>{s.capitalize()} ({counts.get(s, 0)})</a>'
            for s in ("all",) + REPORT_STATUSES
        )
        cards = []
        for r in reports:
            target_link = {
                "user": f"/users/{r['target_id']}",
                "job": f"/jobs/{r['target_id']}",
            }.get(r["target_type"])
            target = esc(r.get("target_name") or f"#{r['target_id']}")
            if target_link:
                target = f'<a href="{target_link}">{target}</a>'
            actions = ""
            if r["status"] == "pending":
                actions = f"""
                <form method="post" action="/admin/reports/{r['id']}/close">
                  <label>Admin notes</label>
                  <textarea name="admin_notes" maxlength="1000"></textarea>
                  {csrf_input(csrf_token)}
                  <button type="submit" name="status" value="resolved">Resolve</button>
                  <button type="submit" name="status" value="dismissed" class="secondary">Dismiss</button>
                </form>
                """
            else:
                actions = f'<p class="muted">Notes: {esc(r.get("admin_notes") or "")} ({format_dt(r.get("resolved_at"))})</p>'
            cards.append(
                f"""
                <div class="card">
                  <p><span class="pill">{esc(r['status'])}</span> {esc(r['target_type'])}: {target}</p>
                  <p><strong>{esc(r['reason'])}</strong></p>
                  <p>{esc(r.get('details') or '')}</p>
                  <p class="muted">Reported by {esc(r.get('reporter_name') or '')} ({esc(r.get('reporter_email'))})
                     on {format_dt(r['created_at'])}</p>
                  {actions}
                </div>
                """
            )
        listing = "".join(cards) or '<p class="muted">No reports.</p>'
        return f"<p>{tabs}</p>{listing}"

    return _admin_page(request, "Reports", body)


@router.post("/admin/reports/{report_id}/close", response_class=HTMLResponse)
def admin_close_report(
    request: Request,
    report_id: int,
    status: str = Form(...),
    admin_notes: str = Form("", max_length=1000),
    csrf_token: str = Form(""),
):
    user, denied = _post_guard(request, csrf_token)
    if denied:
        return denied
    try:
        close_report(report_id, user["id"], status, admin_notes)
    except MarketplaceError as exc:
        return error_page("Report not updated", exc.message, user=user, status_code=exc.status_code)
    return RedirectResponse(url="/admin/reports", status_code=303)


@router.get("/admin/deleted-users", response_class=HTMLResponse)
def admin_deleted_users(request: Request):
    def body(user, csrf_token):
        deleted = get_deleted_users(limit=100)
        rows = "".join(
            f"""
            <tr>
              <td>{u.get('user_id')}</td>
              <td>{esc(u.get('email'))}</td>
              <td>{esc(u.get('role'))}</td>
              <td>{format_dt(u.get('created_at'))}</td>
              <td>{format_dt(u.get('deleted_at'))}</td>
            </tr>
            """
            for u in deleted
        ) or '<tr><td colspan="5">No deleted users.</td></tr>'
        return f"""
        <div class="card">
          <table>
            <thead><tr><th>User ID</th><th>Email</th><th>Role</th><th>Created</th><th>Deleted</th></tr></thead>
            <tbody>{rows}</tbody>
          </table>
        </div>
        """

    return _admin_page(request, "Deleted users", body)
