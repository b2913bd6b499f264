from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import require_user
from app.layout import esc, format_dt, render_page
from core.database import (
    calculate_profile_completion,
    count_employer_applications,
    get_latest_request,
    get_profile,
    list_employer_jobs,
    list_seeker_applications,
    search_jobs,
)

router = APIRouter()


def _job_seeker_dashboard(user: dict) -> str:
    profile = get_profile(user["id"]) or {}
    completion = calculate_profile_completion(profile)
    applications = list_seeker_applications(user["id"])[:5]
    latest = search_jobs({}, limit=5)

    app_rows = "".join(
        f"""
        <tr>
          <td><a href="/jobs/{a['job_post_id']}">{esc(a['job_title'])}</a></td>
          <td><span class="pill">{esc(a['status'])}</span></td>
          <td>{format_dt(a['created_at'])}</td>
        </tr>
        """
        for a in applications
    ) or '<tr><td colspan="3">You have not applied to any jobs yet.</td></tr>'

    job_items = "".join(
        f'<li><a href="/jobs/{j["id"]}">{esc(j["title"])}</a> '
        f'<span class="muted">{esc(j["location"])} | {esc(j["job_type"])}</span></li>'
        for j in latest
    ) or '<li class="muted">No open jobs yet.</li>'

    hint = ""
    if completion < 100:
        hint = '<p class="muted">Complete your profile so employers can find you. <a href="/profile">Edit profile</a></p>'

    return f"""
    <div class="card">
      <h2>Welcome{", " + esc(profile.get("full_name")) if profile.get("full_name") else ""}</h2>
      <p>Profile completion: <strong>{completion}%</strong></p>
      <div class="progress"><span style="width:{completion}%"></span></div>
      {hint}
    </div>
    <div class="card">
      <h3>Recent applications</h3>
      <table>
        <thead><tr><th>Job</th><th>Status</th><th>Applied</th></tr></thead>
        <tbody>{app_rows}</tbody>
      </table>
      <p><a href="/applications">All applications</a></p>
    </div>
    <div class="card">
      <h3>Latest jobs</h3>
      <ul>{job_items}</ul>
      <p><a href="/jobs">Search all jobs</a></p>
    </div>
    """


def _employer_dashboard(user: dict) -> str:
    profile = get_profile(user["id"]) or {}
    jobs = list_employer_jobs(user["id"])
    counts = count_employer_applications(user["id"])
    latest_request = get_latest_request(user["id"])

    if profile.get("is_verified"):
        verification = '<span class="pill verified">Verified employer</span>'
    elif latest_request and latest_request["status"] == "pending":
        verification = '<span class="pill">Verification pending review</span>'
    else:
        verification = '<a href="/verification">Verify your identity</a> to earn a verified badge.'

    active_jobs = sum(1 for j in jobs if j["status"] == "active")
    job_rows = "".join(
        f"""
        <tr>
          <td><a href="/jobs/{j['id']}">{esc(j['title'])}</a></td>
          <td>{esc(j['status'])}</td>
          <td><a href="/employer/applications?job_id={j['id']}">{j['application_count']}</a></td>
          <td>{format_dt(j['created_at'])}</td>
        </tr>
        """
        for j in jobs[:10]
    ) or '<tr><td colspan="4">No job posts yet. <a href="/jobs/new">Post your first job</a>.</td></tr>'

    return f"""
    <div class="card">
      <h2>Employer dashboard</h2>
      <p>{verification}</p>
    </div>
    <div class="stats">
      <div class="stat"><div class="label">Active jobs</div><div class="value">{active_jobs}</div></div>
      <div class="stat"><div class="label">Applications</div><div class="value">{counts['all']}</div></div>
      <div class="stat"><div class="label">Pending</div><div class="value">{counts['pending']}</div></div>
      <div class="stat"><div class="label">Reviewing</div><div class="value">{counts['reviewing']}</div></div>
    </div>
    <div class="card">
      <h3>Your job posts</h3>
      <table>
        <thead><tr><th>Title</th><th>Status</th><th>Applications</th><th>Posted</th></tr></thead>
        <tbody>{job_rows}</tbody>
      </table>
      <p><a href="/my-jobs">Manage job posts</a></p>
    </div>
    """


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(request: Request):
    user, denied = require_user(request)
    if denied:
        return denied

    if user.get("role") == "admin":
        return RedirectResponse(url="/admin", status_code=303)
    if user.get("role") == "employer":
        body = _employer_dashboard(user)
    else:
        body = _job_seeker_dashboard(user)
    return render_page("Dashboard", body, user=user)
