import logging

from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import get_current_user, require_user
from app.layout import csrf_input, error_page, esc, message_block, render_page
from app.security import attach_csrf_cookie, csrf_failed, issue_csrf_token, validate_csrf
from core.database import (
    calculate_profile_completion,
    get_company_profile,
    get_profile,
    search_candidates,
    update_profile,
    upsert_company_profile,
)
from core.errors import ValidationError
from core.storage import save_upload

log = logging.getLogger("routes.profile")

router = APIRouter()

COMPANY_LABELS = {
    "company_name": "Company name",
    "company_website": "Website",
    "industry": "Industry",
    "company_size": "Company size",
    "company_description": "Description",
    "headquarters_location": "Headquarters",
    "founded_year": "Founded",
    "contact_email": "Contact email",
    "contact_phone": "Contact phone",
    "linkedin_url": "LinkedIn",
}


def _skills_html(skills) -> str:
    return "".join(f'<span class="pill">{esc(s)}</span>' for s in skills or [])


def _verified_badge(profile: dict) -> str:
    return '<span class="pill verified">Verified</span>' if profile.get("is_verified") else ""


def _profile_form(profile: dict, csrf_token: str, errors=None, success: str | None = None) -> str:
    completion = calculate_profile_completion(profile)
    skills_value = ", ".join(profile.get("skills") or [])
    years = profile.get("years_of_experience")
    resume = profile.get("resume_url")
    resume_html = f'<a href="/files/{esc(resume)}">Current resume</a>' if resume else '<span class="muted">No resume uploaded.</span>'
    avatar = profile.get("avatar_url")
    avatar_html = f'<img src="/files/{esc(avatar)}" alt="avatar" width="72" height="72" />' if avatar else ""

    return f"""
    <div class="card form-card">
      {message_block(errors, success)}
      <p>Profile completion: <strong>{completion}%</strong></p>
      <div class="progress"><span style="width:{completion}%"></span></div>
      <form method="post" action="/profile">
        <label>Full name</label>
        <input type="text" name="full_name" maxlength="100" value="{esc(profile.get('full_name'))}" />
        <label>Bio</label>
        <textarea name="bio" maxlength="500">{esc(profile.get('bio'))}</textarea>
        <label>Work email</label>
        <input type="email" name="work_email" maxlength="100" value="{esc(profile.get('work_email'))}" />
        <label>Phone</label>
        <input type="text" name="phone" maxlength="30" value="{esc(profile.get('phone'))}" />
        <label>Years of experience</label>
        <input type="number" name="years_of_experience" min="0" max="50" value="{esc(years)}" />
        <label>Skills (comma separated)</label>
        <input type="text" name="skills" value="{esc(skills_value)}" />
        {csrf_input(csrf_token)}
        <button type="submit">Save profile</button>
      </form>
    </div>
    <div class="card form-card">
      <h3>Resume</h3>
      <p>{resume_html}</p>
      <form method="post" action="/profile/resume" enctype="multipart/form-data">
        <input type="file" name="file" accept=".pdf,.doc,.docx" required />
        {csrf_input(csrf_token)}
        <button type="submit" class="secondary">Upload resume</button>
      </form>
    </div>
    <div class="card form-card">
      <h3>Photo</h3>
      {avatar_html}
      <form method="post" action="/profile/avatar" enctype="multipart/form-data">
        <input type="file" name="file" accept=".jpg,.jpeg,.png" required />
        {csrf_input(csrf_token)}
        <button type="submit" class="secondary">Upload photo</button>
      </form>
    </div>
    """


@router.get("/profile", response_class=HTMLResponse)
def profile_page(request: Request, saved: str = ""):
    user, denied = require_user(request)
    if denied:
        return denied
    profile = get_profile(user["id"]) or {}
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    body = _profile_form(profile, csrf_token, success="Profile saved." if saved else None)
    body += f'<p><a href="/users/{user["id"]}">View your public profile</a></p>'
    resp = render_page("Your profile", body, user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/profile", response_class=HTMLResponse)
def profile_save(
    request: Request,
    full_name: str = Form("", max_length=100),
    bio: str = Form("", max_length=500),
    work_email: str = Form("", max_length=100),
    phone: str = Form("", max_length=30),
    years_of_experience: str = Form("", max_length=3),
    skills: str = Form("", max_length=1000),
    csrf_token: str = Form(""),
):
    user, denied = require_user(request)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return csrf_failed()

    data = {
        "full_name": full_name.strip(),
        "bio": bio.strip(),
        "work_email": work_email.strip(),
        "phone": phone.strip() or None,
        "years_of_experience": years_of_experience.strip(),
        "skills": skills,
    }
    try:
        update_profile(user["id"], data)
    except ValidationError as exc:
        submitted = {**(get_profile(user["id"]) or {}), **data, "skills": [s.strip() for s in skills.split(",") if s.strip()]}
        resp = render_page("Your profile", _profile_form(submitted, csrf_token, errors=exc.errors), user=user, status_code=400)
        attach_csrf_cookie(resp, csrf_token)
        return resp
    return RedirectResponse(url="/profile?saved=1", status_code=303)


def _store_profile_file(request: Request, bucket: str, field: str, file: UploadFile, csrf_token: str):
    user, denied = require_user(request)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return csrf_failed()
    try:
        path = save_upload(bucket, str(user["id"]), file.filename or "", file.file.read())
    except ValidationError as exc:
        return error_page("Upload failed", exc.message, user=user)
    update_profile(user["id"], {field: path}, validate=False)
    return RedirectResponse(url="/profile?saved=1", status_code=303)


@router.post("/profile/resume")
def upload_resume(request: Request, file: UploadFile = File(...), csrf_token: str = Form("")):
    return _store_profile_file(request, "resumes", "resume_url", file, csrf_token)


@router.post("/profile/avatar")
def upload_avatar(request: Request, file: UploadFile = File(...), csrf_token: str = Form("")):
    return _store_profile_file(request, "avatars", "avatar_url", file, csrf_token)


def _company_form(company: dict, csrf_token: str, errors=None, success: str | None = None) -> str:
    fields = []
    for name, label in COMPANY_LABELS.items():
        value = esc(company.get(name))
        if name == "company_description":
            fields.append(f'<label>{label}</label><textarea name="{name}" maxlength="2000">{value}</textarea>')
        else:
            fields.append(f'<label>{label}</label><input type="text" name="{name}" maxlength="200" value="{value}" />')
    return f"""
    <div class="card form-card">
      {message_block(errors, success)}
      <form method="post" action="/company">
        {"".join(fields)}
        {csrf_input(csrf_token)}
        <button type="submit">Save company profile</button>
      </form>
    </div>
    """


@router.get("/company", response_class=HTMLResponse)
def company_page(request: Request, saved: str = ""):
    user, denied = require_user(request, "employer")
    if denied:
        return denied
    company = get_company_profile(user["id"]) or {}
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    resp = render_page("Company profile", _company_form(company, csrf_token, success="Saved." if saved else None), user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/company", response_class=HTMLResponse)
async def company_save(request: Request):
    user, denied = require_user(request, "employer")
    if denied:
        return denied
    form = await request.form()
    csrf_token = str(form.get("csrf_token") or "")
    if not validate_csrf(request, csrf_token):
        return csrf_failed()

    data = {name: str(form.get(name) or "") for name in COMPANY_LABELS}
    try:
        upsert_company_profile(user["id"], data)
    except ValidationError as exc:
        resp = render_page("Company profile", _company_form(data, csrf_token, errors=exc.errors), user=user, status_code=400)
        attach_csrf_cookie(resp, csrf_token)
        return resp
    return RedirectResponse(url="/company?saved=1", status_code=303)


@router.get("/users/{user_id}", response_class=HTMLResponse)
def public_profile(request: Request, user_id: int):
    viewer, _ = get_current_user(request)
    profile = get_profile(user_id)
    is_owner = bool(viewer and viewer["id"] == user_id)
    is_admin = bool(viewer and viewer.get("role") == "admin")

    if not profile or (not profile.get("active") and not (is_owner or is_admin)):
        return error_page("Not found", "This profile does not exist.", user=viewer, status_code=404)

    privacy = profile.get("profile_privacy") or "public"
    if privacy == "private" and not (is_owner or is_admin):
        return error_page("Not found", "This profile does not exist.", user=viewer, status_code=404)

    full_view = privacy == "public" or is_owner or is_admin
    sections = [
        f"<h2>{esc(profile.get('full_name') or 'Unnamed user')} {_verified_badge(profile)}</h2>",
        f"<p>{_skills_html(profile.get('skills'))}</p>",
    ]
    if full_view:
        if profile.get("bio"):
            sections.append(f"<p>{esc(profile['bio'])}</p>")
        if profile.get("years_of_experience") is not None:
            sections.append(f"<p class='muted'>{esc(profile['years_of_experience'])} years of experience</p>")
        if profile.get("work_email"):
            sections.append(f"<p>Email: {esc(profile['work_email'])}</p>")
        if profile.get("phone"):
            sections.append(f"<p>Phone: {esc(profile['phone'])}</p>")
        if profile.get("resume_url") and (is_owner or is_admin):
            sections.append(f'<p><a href="/files/{esc(profile["resume_url"])}">Resume</a></p>')
        if profile.get("role") == "employer":
            company = get_company_profile(user_id) or {}
            for name, label in COMPANY_LABELS.items():
                if company.get(name):
                    sections.append(f"<p><strong>{label}:</strong> {esc(company[name])}</p>")
    else:
        sections.append('<p class="muted">This user shares a limited profile.</p>')

    actions = ""
    if viewer and not is_owner:
        csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
        actions = f"""
        <form method="post" action="/messages/start" class="inline">
          <input type="hidden" name="user_id" value="{user_id}" />
          {csrf_input(csrf_token)}
          <button type="submit">Message</button>
        </form>
        <a href="/report?target_type=user&target_id={user_id}">Report user</a>
        """
        resp = render_page("Profile", f'<div class="card">{"".join(sections)}{actions}</div>', user=viewer)
        attach_csrf_cookie(resp, csrf_token)
        return resp

    return render_page("Profile", f'<div class="card">{"".join(sections)}</div>', user=viewer)


@router.get("/candidates", response_class=HTMLResponse)
def candidates(request: Request, q: str = "", skill: str = ""):
    user, denied = require_user(request, "employer", "admin")
    if denied:
        return denied

    rows = search_candidates(query=q, skill=skill)
    cards = "".join(
        f"""
        <div class="card">
          <strong><a href="/users/{c['user_id']}">{esc(c['full_name'] or 'Unnamed')}</a></strong> {_verified_badge(c)}
          <p class="muted">{esc(c['bio'] or '') if c['profile_privacy'] == 'public' else ''}</p>
          <p>{_skills_html(c['skills'])}</p>
        </div>
        """
        for c in rows
    ) or '<p class="muted">No candidates match your search.</p>'

    body = f"""
    <div class="card">
      <form method="get" action="/candidates">
        <label>Search name or bio</label>
        <input type="text" name="q" value="{esc(q)}" />
        <label>Skill</label>
        <input type="text" name="skill" value="{esc(skill)}" />
        <button type="submit">Search</button>
      </form>
    </div>
    {cards}
    """
    return render_page("Candidates", body, user=user)
