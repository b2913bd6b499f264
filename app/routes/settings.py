from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import require_user
from app.layout import csrf_input, message_block, render_page
from app.security import attach_csrf_cookie, csrf_failed, issue_csrf_token, validate_csrf
from core.database import (
    DEFAULT_EMPLOYER_SETTINGS,
    PRIVACY_LEVELS,
    get_employer_settings,
    get_user_settings,
    update_employer_settings,
    update_user_settings,
)
from core.errors import ValidationError

router = APIRouter()

USER_FLAGS = {
    "email_notifications": "Email me about activity",
    "application_updates": "Application status updates",
    "message_notifications": "New message notifications",
}
EMPLOYER_FLAGS = {
    "new_applications": "New applications to my jobs",
    "candidate_messages": "Messages from candidates",
    "job_alerts": "Job post reminders",
    "marketing_emails": "Product news and offers",
}


def _checkbox(name: str, label: str, on) -> str:
    return f'<label class="inline"><input type="checkbox" name="{name}"{" checked" if on else ""} /> {label}</label><br/>'


def _settings_form(user: dict, settings: dict, employer: dict | None, csrf_token: str, errors=None, success=None) -> str:
    privacy_opts = "".join(
        f'<option value="{p}"{" selected" if p == settings["profile_privacy"] else ""}>{p.capitalize()}</option>'
        for p in PRIVACY_LEVELS
    )
    employer_html = ""
    if employer is not None:
        employer_html = "<h3>Employer notifications</h3>" + "".join(
            _checkbox(k, label, employer[k]) for k, label in EMPLOYER_FLAGS.items()
        )
    return f"""
    <div class="card form-card">
      {message_block(errors, success)}
      <form method="post" action="/settings">
        <h3>Notifications</h3>
        {"".join(_checkbox(k, label, settings[k]) for k, label in USER_FLAGS.items())}
        {employer_html}
        <h3>Privacy</h3>
        <label>Who can see my profile</label>
        <select name="profile_privacy">{privacy_opts}</select>
        <p class="muted">Limited shows only your name, skills and verification badge. Private hides your profile.</p>
        {csrf_input(csrf_token)}
        <button type="submit">Save settings</button>
      </form>
    </div>
    """


@router.get("/settings", response_class=HTMLResponse)
def settings_page(request: Request, saved: str = ""):
    user, denied = require_user(request, "job_seeker", "employer")
    if denied:
        return denied
    settings = get_user_settings(user["id"])
    employer = get_employer_settings(user["id"]) if user["role"] == "employer" else None
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    body = _settings_form(user, settings, employer, csrf_token, success="Settings saved." if saved else None)
    resp = render_page("Settings", body, user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/settings", response_class=HTMLResponse)
async def settings_save(request: Request):
    user, denied = require_user(request, "job_seeker", "employer")
    if denied:
        return denied
    form = await request.form()
    csrf_token = str(form.get("csrf_token") or "")
    if not validate_csrf(request, csrf_token):
        return csrf_failed()

    # Unchecked boxes are absent from the form
    data = {k: form.get(k) for k in USER_FLAGS}
    data["profile_privacy"] = str(form.get("profile_privacy") or "")
    try:
        update_user_settings(user["id"], data)
    except ValidationError as exc:
        employer = get_employer_settings(user["id"]) if user["role"] == "employer" else None
        body = _settings_form(user, get_user_settings(user["id"]), employer, csrf_token, errors=exc.errors)
        resp = render_page("Settings", body, user=user, status_code=400)
        attach_csrf_cookie(resp, csrf_token)
        return resp

    if user["role"] == "employer":
        update_employer_settings(user["id"], {k: form.get(k) for k in DEFAULT_EMPLOYER_SETTINGS})
    return RedirectResponse(url="/settings?saved=1", status_code=303)
