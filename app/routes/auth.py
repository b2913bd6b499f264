import logging

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import clear_session_cookie, get_current_user, set_session_cookie
from app.email_utils import try_send_text_email
from app.layout import csrf_input, esc, render_page
from app.routes.public import _is_valid_password, build_public_url, send_verification_email
from app.security import (
    LOGIN_LIMIT,
    PASSWORD_RESET_CONFIRM_LIMIT,
    PASSWORD_RESET_LIMIT,
    VERIFY_RESEND_LIMIT,
    allow_request,
    allow_request_with_remaining,
    attach_csrf_cookie,
    client_ip,
    csrf_failed,
    issue_csrf_token,
    validate_csrf,
)
from core.database import (
    create_password_reset_token,
    create_session,
    delete_session,
    delete_sessions_for_user,
    get_email_verification_token,
    get_password_reset_token,
    get_user_by_email,
    get_user_by_id,
    mark_email_verification_token_used,
    mark_reset_token_used,
    mark_user_email_verified,
    update_user_password,
    verify_password,
)

log = logging.getLogger("routes.auth")

router = APIRouter()


def _login_form(csrf_token: str, email: str = "", error: str = "", extra: str = "") -> str:
    error_html = f'<p class="error">{esc(error)}</p>' if error else ""
    return f"""
    <div class="card form-card">
      {error_html}
      {extra}
      <form method="post" action="/login">
        <label>Email</label>
        <input type="email" name="email" required maxlength="50" value="{esc(email)}" />
        <label>Password</label>
        <input type="password" name="password" required maxlength="25" />
        {csrf_input(csrf_token)}
        <button type="submit">Login</button>
      </form>
      <p style="margin-top:0.5rem;"><a href="/password-reset">Forgot password?</a></p>
      <p class="muted">No account yet? <a href="/signup">Sign up</a></p>
    </div>
    """


def _invalid_link_page(title: str, retry_href: str, retry_label: str):
    body = f"""
    <div class="card">
      <p>This link is invalid or expired.</p>
      <p><a href="{retry_href}">{retry_label}</a></p>
    </div>
    """
    return render_page(title, body, user=None, status_code=400)


@router.get("/login", response_class=HTMLResponse)
def login_form(request: Request):
    user, _ = get_current_user(request)
    if user:
        return RedirectResponse(url="/dashboard", status_code=303)
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    resp = render_page("Login - HireBoard", _login_form(csrf_token), user=None)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/login", response_class=HTMLResponse)
def login(
    request: Request,
    email: str = Form(..., max_length=50),
    password: str = Form(..., max_length=25),
    csrf_token: str = Form(""),
):
    limit, window = LOGIN_LIMIT
    allowed, remaining = allow_request_with_remaining(f"login:{client_ip(request)}", limit=limit, window_seconds=window)
    if not allowed:
        return HTMLResponse("Too many login attempts. Please try again later.", status_code=429)

    if not validate_csrf(request, csrf_token):
        return csrf_failed()

    user = get_user_by_email(email)
    csrf_cookie = request.cookies.get("csrf_token", "")
    attempts_left_html = f"<p class='muted'>Attempts left: {remaining}</p>"

    if not user:
        body = _login_form(csrf_cookie, email, "Account does not exist for that email.", attempts_left_html)
        return render_page("Login - HireBoard", body, user=None, status_code=401)

    if not verify_password(password, user["password_hash"]):
        body = _login_form(csrf_cookie, email, "Incorrect password. Please try again.", attempts_left_html)
        return render_page("Login - HireBoard", body, user=None, status_code=401)

    if user.get("email_verified_at") in (None, ""):
        send_verification_email(request, user["id"], user["email"])
        body = """
        <div class="card form-card">
          <h2>Verify your email</h2>
          <p class="muted">
            Your account is not verified yet. We have sent a new verification link to your inbox.
          </p>
          <p class="muted"><a href="/verify-email/resend">Resend verification email</a></p>
        </div>
        """
        resp = render_page("Verify your email", body, user=None, status_code=403)
        attach_csrf_cookie(resp, issue_csrf_token(request.cookies.get("csrf_token")))
        return resp

    token = create_session(user["id"])
    # Deactivated accounts may only reactivate or delete.
    target = "/dashboard" if user.get("active", 1) else "/account"
    response = RedirectResponse(url=target, status_code=303)
    set_session_cookie(response, token)
    log.info("Login", extra={"user_id": user["id"], "role": user.get("role")})
    return response


@router.get("/logout")
def logout(request: Request):
    _, token = get_current_user(request)
    if token:
        delete_session(token)
    response = RedirectResponse(url="/", status_code=303)
    clear_session_cookie(response)
    return response


def send_reset_email(to_email: str, reset_link: str) -> bool:
    return try_send_text_email(
        to_email=to_email,
        subject="Reset your password - HireBoard",
        body=(
            f"Use this link to reset your password:\n\n{reset_link}\n\n"
            "The link expires in 60 minutes. If you did not request this, ignore the email."
        ),
    )


@router.get("/password-reset", response_class=HTMLResponse)
def password_reset_request_form(request: Request):
    user, _ = get_current_user(request)
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    body = f"""
    <div class="card form-card">
      <p class="muted">Enter your email to get a password reset link.</p>
      <form method="post" action="/password-reset">
        <label>Email</label>
        <input type="email" name="email" required maxlength="50" />
        {csrf_input(csrf_token)}
        <button type="submit">Send reset link</button>
      </form>
    </div>
    """
    resp = render_page("Reset password", body, user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/password-reset", response_class=HTMLResponse)
def password_reset_request(request: Request, email: str = Form(..., max_length=50), csrf_token: str = Form("")):
    limit, window = PASSWORD_RESET_LIMIT
    allowed, remaining = allow_request_with_remaining(
        f"pwdreset:{client_ip(request)}", limit=limit, window_seconds=window
    )
    if not allowed:
        body = """
        <div class="card">
          <p>You have reached the password reset limit (5 per 6 hours).</p>
          <p>Please wait a few hours and try again, or contact the admin for assistance.</p>
          <p><a href="/login">Back to login</a></p>
        </div>
        """
        return HTMLResponse(body, status_code=429)

    if not validate_csrf(request, csrf_token):
        return csrf_failed()
    user = get_user_by_email(email)

    message = "If that email exists, a reset link has been sent."
    # Admin passwords are managed out-of-band
    if user and user.get("role") == "admin":
        message = "Password reset is not available for this account."
        log.warning("Blocked password reset for admin", extra={"user_id": user["id"]})
    elif user:
        token = create_password_reset_token(user["id"])
        reset_link = build_public_url(request, f"/password-reset/confirm?token={token}")
        if not send_reset_email(user["email"], reset_link):
            message = "Unable to send the reset email right now. Please try again later."
        log.info("Password reset requested", extra={"user_id": user["id"]})

    body = f"""
    <div class="card">
      <p>{esc(message)}</p>
      <p class='muted'>You have {remaining} reset attempt(s) left in this 6-hour window.</p>
      <p><a href="/login">Back to login</a></p>
    </div>
    """
    return render_page("Reset password", body, user=None)


def _reset_form(token: str, csrf_token: str, error: str = "") -> str:
    error_html = f'<p class="error">{esc(error)}</p>' if error else ""
    return f"""
    <div class="card form-card">
      {error_html}
      <p class="muted">Enter a new password.</p>
      <form method="post" action="/password-reset/confirm?token={esc(token)}">
        <label>New password</label>
        <input type="password" name="password" required maxlength="25" />
        <label>Confirm password</label>
        <input type="password" name="password2" required maxlength="25" />
        {csrf_input(csrf_token)}
        <button type="submit">Set new password</button>
      </form>
    </div>
    """


@router.get("/password-reset/confirm", response_class=HTMLResponse, name="password_reset_confirm")
def password_reset_confirm_form(request: Request, token: str = ""):
    if not get_password_reset_token(token):
        return _invalid_link_page("Reset password", "/password-reset", "Request a new reset link")

    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    resp = render_page("Reset password", _reset_form(token, csrf_token), user=None)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/password-reset/confirm", response_class=HTMLResponse)
def password_reset_confirm(
    request: Request,
    token: str = "",
    password: str = Form(..., max_length=25),
    password2: str = Form(..., max_length=25),
    csrf_token: str = Form(""),
):
    limit, window = PASSWORD_RESET_CONFIRM_LIMIT
    if not allow_request(f"pwdreset_conf:{client_ip(request)}", limit=limit, window_seconds=window):
        return HTMLResponse("Too many attempts. Please try again later.", status_code=429)

    if not validate_csrf(request, csrf_token):
        return csrf_failed()
    token_data = get_password_reset_token(token)
    if not token_data:
        return _invalid_link_page("Reset password", "/password-reset", "Request a new reset link")

    error = ""
    if password != password2:
        error = "Passwords do not match."
    elif not _is_valid_password(password):
        error = "Password must be 8-25 characters and include at least one letter and one number."
    if error:
        resp = render_page("Reset password", _reset_form(token, csrf_token, error), user=None, status_code=400)
        attach_csrf_cookie(resp, csrf_token)
        return resp

    target_user = get_user_by_id(token_data["user_id"])
    if not target_user:
        return _invalid_link_page("Reset password", "/password-reset", "Request a new reset link")

    if target_user.get("role") == "admin":
        body = """
        <div class="card">
          <p>Password reset is not available for this account.</p>
          <p><a href="/login">Back to login</a></p>
        </div>
        """
        return render_page("Reset password", body, user=None, status_code=403)

    update_user_password(target_user["id"], password)
    mark_reset_token_used(token)
    # Old sessions die with the old password.
    delete_sessions_for_user(target_user["id"])

    body = """
    <div class="card">
      <p>Password updated. You can now log in.</p>
      <p><a href="/login">Back to login</a></p>
    </div>
    """
    return render_page("Reset password", body, user=None)


@router.get("/verify-email", response_class=HTMLResponse)
def verify_email(request: Request, token: str = ""):
    token_data = get_email_verification_token(token)
    if not token_data:
        return _invalid_link_page("Verify email", "/verify-email/resend", "Send a new verification link")

    user = get_user_by_id(token_data["user_id"])
    if not user:
        return _invalid_link_page("Verify email", "/signup", "Back to signup")

    mark_user_email_verified(user["id"])
    mark_email_verification_token_used(token)

    # Log the user in
    session_token = create_session(user["id"])
    resp = RedirectResponse(url="/dashboard", status_code=303)
    set_session_cookie(resp, session_token)
    return resp


@router.get("/verify-email/resend", response_class=HTMLResponse)
def verify_email_resend_form(request: Request):
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    body = f"""
    <div class="card form-card">
      <h2>Resend verification email</h2>
      <form method="post" action="/verify-email/resend">
        <label>Email</label>
        <input type="email" name="email" required maxlength="50" />
        {csrf_input(csrf_token)}
        <button type="submit">Resend</button>
      </form>
    </div>
    """
    resp = render_page("Resend verification", body, user=None)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/verify-email/resend", response_class=HTMLResponse)
def verify_email_resend(request: Request, email: str = Form(..., max_length=50), csrf_token: str = Form("")):
    limit, window = VERIFY_RESEND_LIMIT
    if not allow_request(f"verify_resend:{client_ip(request)}", limit=limit, window_seconds=window):
        return HTMLResponse("Too many attempts. Please try again later.", status_code=429)

    if not validate_csrf(request, csrf_token):
        return csrf_failed()

    user = get_user_by_email(email)
    if user and user.get("email_verified_at") in (None, ""):
        send_verification_email(request, user["id"], user["email"])

    body = """
    <div class="card form-card">
      <p>If that email exists, a verification link has been sent.</p>
      <p class="muted"><a href="/login">Back to login</a></p>
    </div>
    """
    resp = render_page("Resend verification", body, user=None)
    attach_csrf_cookie(resp, issue_csrf_token(request.cookies.get("csrf_token")))
    return resp
