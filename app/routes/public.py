import logging
import os
import re

from email_validator import EmailNotValidError, validate_email
from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from app.auth_utils import get_current_user
from app.email_utils import try_send_text_email
from app.layout import csrf_input, esc, message_block, render_page
from app.security import (
    SIGNUP_LIMIT,
    allow_request,
    attach_csrf_cookie,
    client_ip,
    csrf_failed,
    issue_csrf_token,
    validate_csrf,
)
from core.database import (
    create_email_verification_token,
    create_user,
    get_stats,
    search_jobs,
)
from core.errors import DuplicateEmailError

log = logging.getLogger("routes.public")

router = APIRouter()

SIGNUP_ROLES = {"job_seeker": "Job seeker", "employer": "Employer"}


def build_public_url(request: Request, path: str) -> str:
    base = (os.getenv("PUBLIC_BASE_URL") or str(request.base_url)).rstrip("/")
    return f"{base}{path}"


def send_verification_email(request: Request, user_id: int, email: str) -> bool:
    token = create_email_verification_token(user_id)
    link = build_public_url(request, f"/verify-email?token={token}")
    return try_send_text_email(
        to_email=email,
        subject="Verify your email - HireBoard",
        body=f"Please verify your email by clicking this link:\n\n{link}\n\nThis link expires in 24 hours.",
    )


def _is_valid_email(email: str) -> bool:
    email = (email or "").strip()
    if not email or len(email) > 50:
        return False
    try:
        # Syntax only; no DNS lookups at signup
        info = validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    # Punycode/IDNA domains (including non-ASCII ones) are not accepted
    if any(label.lower().startswith("xn--") for label in info.ascii_domain.split(".")):
        return False
    return True


def _is_valid_password(pw: str) -> bool:
    """8-25 characters, at least one letter and one digit, no whitespace anywhere."""
    pw = pw or ""
    if re.search(r"\s", pw):
        return False
    if not 8 <= len(pw) <= 25:
        return False
    return bool(re.search(r"[A-Za-z]", pw) and re.search(r"\d", pw))


@router.get("/", response_class=HTMLResponse)
def index(request: Request):
    user, _ = get_current_user(request)
    if user:
        return RedirectResponse(url="/dashboard", status_code=303)

    latest = search_jobs({}, limit=5)
    items = "".join(
        f'<li><strong>{esc(j["title"])}</strong> <span class="muted">{esc(j["location"])} | {esc(j["job_type"])}</span></li>'
        for j in latest
    ) or '<li class="muted">No open jobs yet.</li>'

    body = f"""
    <div class="card">
      <h2>Find work. Find people.</h2>
      <p>Employers post jobs, job seekers apply, and both sides talk directly.</p>
      <p><a href="/signup">Create an account</a> or <a href="/login">log in</a>.</p>
    </div>
    <div class="card">
      <h3>Latest openings</h3>
      <ul>{items}</ul>
    </div>
    """
    return render_page("HireBoard", body, user=None)


def _signup_form(csrf_token: str, email: str = "", full_name: str = "", role: str = "job_seeker", errors=None) -> str:
    role_options = "".join(
        f'<option value="{value}"{" selected" if value == role else ""}>{label}</option>'
        for value, label in SIGNUP_ROLES.items()
    )
    return f"""
    <div class="card form-card">
      {message_block(errors)}
      <form method="post" action="/signup">
        <label>Full name</label>
        <input type="text" name="full_name" required maxlength="100" value="{esc(full_name)}" />
        <label>Email</label>
        <input type="email" name="email" required maxlength="50" value="{esc(email)}" />
        <label>Password</label>
        <input type="password" name="password" required maxlength="25" />
        <p class="muted">8-25 characters with at least one letter and one number.</p>
        <label>Confirm password</label>
        <input type="password" name="password2" required maxlength="25" />
        <label>I am a</label>
        <select name="role">{role_options}</select>
        {csrf_input(csrf_token)}
        <button type="submit">Sign up</button>
      </form>
      <p class="muted">Already registered? <a href="/login">Log in</a></p>
    </div>
    """


@router.get("/signup", response_class=HTMLResponse)
def signup_form(request: Request):
    user, _ = get_current_user(request)
    if user:
        return RedirectResponse(url="/dashboard", status_code=303)
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    resp = render_page("Sign up", _signup_form(csrf_token), user=None)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/signup", response_class=HTMLResponse)
def signup(
    request: Request,
    email: str = Form(..., max_length=50),
    password: str = Form(..., max_length=25),
    password2: str = Form(..., max_length=25),
    full_name: str = Form("", max_length=100),
    role: str = Form("job_seeker"),
    csrf_token: str = Form("", max_length=128),
):
    limit, window = SIGNUP_LIMIT
    if not allow_request(f"signup:{client_ip(request)}", limit=limit, window_seconds=window):
        return HTMLResponse("Too many attempts. Please try again later.", status_code=429)
    if not validate_csrf(request, csrf_token):
        return csrf_failed()

    errors = []
    if not _is_valid_email(email):
        errors.append("Please enter a valid email address.")
    if not _is_valid_password(password):
        errors.append("Password must be 8-25 characters and include at least one letter and one number.")
    if password != password2:
        errors.append("Passwords do not match.")
    if role not in SIGNUP_ROLES:
        errors.append("Please choose job seeker or employer.")
    if len((full_name or "").strip()) < 2:
        errors.append("Please enter your full name.")

    if not errors:
        try:
            user_id = create_user(email, password, role=role, verified=False, full_name=full_name)
        except DuplicateEmailError as exc:
            errors.append(exc.message)

    if errors:
        resp = render_page(
            "Sign up",
            _signup_form(csrf_token, email=email, full_name=full_name, role=role, errors=errors),
            user=None,
            status_code=400,
        )
        attach_csrf_cookie(resp, csrf_token)
        return resp

    sent = send_verification_email(request, user_id, email.strip().lower())
    log.info("Signup", extra={"user_id": user_id, "role": role, "verification_sent": sent})
    note = "" if sent else '<p class="error">We could not send the email right now. Use "resend" below.</p>'
    body = f"""
    <div class="card form-card">
      <h2>Check your email</h2>
      <p class="muted">
        We sent a verification link to <strong>{esc(email)}</strong>.
        Click it to activate your account.
      </p>
      {note}
      <p class="muted"><a href="/verify-email/resend">Resend verification email</a></p>
    </div>
    """
    return render_page("Check your email", body, user=None)


@router.get("/privacy", response_class=HTMLResponse)
def privacy(request: Request):
    user, _ = get_current_user(request)
    body = """
    <div class="card form-card">
      <h2>Privacy Policy</h2>
      <p class="muted">
        Your profile is shown to other users according to your privacy setting (public, limited or private).
        Uploaded resumes are visible to employers you apply to. ID documents are visible only to administrators.
      </p>
      <p class="muted">
        You can deactivate or delete your account at any time from the account page.
      </p>
    </div>
    """
    return render_page("Privacy", body, user=user)


@router.get("/health")
def health():
    """
    Basic health check for the app.
    """
    try:
        return {"status": "ok", "stats": get_stats()}
    except Exception as e:
        log.exception("Health check failed")
        return {"status": "error", "detail": str(e)}


@router.get("/favicon.ico")
def favicon():
    return Response(status_code=204)
