from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import clear_session_cookie, get_current_user, require_user
from app.layout import csrf_input, esc, format_dt, render_page
from app.security import attach_csrf_cookie, csrf_failed, issue_csrf_token, validate_csrf
from core.database import (
    deactivate_user,
    delete_session,
    delete_sessions_for_user,
    delete_user_data,
    reactivate_user,
)

router = APIRouter()


@router.get("/account", response_class=HTMLResponse)
def account_page(request: Request):
    user, denied = require_user(request, allow_inactive=True)
    if denied:
        return denied

    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    if user.get("role") == "admin":
        actions = '<p class="muted">Admin accounts are managed from the environment and cannot be changed here.</p>'
    elif user.get("active", 1):
        actions = f"""
        <form method="post" action="/account/deactivate" class="inline">
          {csrf_input(csrf_token)}
          <button type="submit" class="secondary">Deactivate account</button>
        </form>
        <p class="muted">Deactivating closes your open job posts and hides you until you reactivate.</p>
        """
    else:
        actions = f"""
        <p class="error">Your account is deactivated.</p>
        <form method="post" action="/account/reactivate" class="inline">
          {csrf_input(csrf_token)}
          <button type="submit">Reactivate account</button>
        </form>
        """

    delete_form = ""
    if user.get("role") != "admin":
        delete_form = f"""
        <div class="card">
          <h3>Delete account</h3>
          <p class="muted">This permanently removes your profile, posts, applications and messages.</p>
          <form method="post" action="/account/delete" onsubmit="return confirm('Delete your account permanently?');">
            {csrf_input(csrf_token)}
            <button type="submit" class="danger">Delete my account</button>
          </form>
        </div>
        """

    body = f"""
    <div class="card">
      <h2>Account</h2>
      <p>Email: <strong>{esc(user.get("email"))}</strong></p>
      <p>Role: {esc(user.get("role", "").replace("_", " "))}</p>
      <p class="muted">Member since {format_dt(user.get("created_at"))}</p>
      {actions}
    </div>
    {delete_form}
    """
    resp = render_page("Account", body, user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/account/deactivate")
def deactivate_account(request: Request, csrf_token: str = Form("")):
    user, token = get_current_user(request)
    if not user:
        return RedirectResponse(url="/login", status_code=303)
    if not validate_csrf(request, csrf_token):
        return csrf_failed()

    # Do not allow admin to deactivate via UI
    if user.get("role") == "admin":
        return RedirectResponse(url="/dashboard", status_code=303)

    deactivate_user(user["id"])

    if token:
        delete_session(token)
    response = RedirectResponse(url="/", status_code=303)
    clear_session_cookie(response)
    return response


@router.post("/account/delete")
def delete_account(request: Request, csrf_token: str = Form("")):
    user, token = get_current_user(request)
    if not user:
        return RedirectResponse(url="/login", status_code=303)
    if not validate_csrf(request, csrf_token):
        return csrf_failed()

    # Do not allow admin to delete via UI
    if user.get("role") == "admin":
        return RedirectResponse(url="/dashboard", status_code=303)

    delete_sessions_for_user(user["id"])
    delete_user_data(user["id"])
    response = RedirectResponse(url="/", status_code=303)
    clear_session_cookie(response)
    return response


@router.post("/account/reactivate")
def reactivate_account(request: Request, csrf_token: str = Form("")):
    user, token = get_current_user(request)
    if not user:
        return RedirectResponse(url="/login", status_code=303)
    if not validate_csrf(request, csrf_token):
        return csrf_failed()

    if user.get("role") == "admin":
        return RedirectResponse(url="/dashboard", status_code=303)

    reactivate_user(user["id"])
    return RedirectResponse(url="/dashboard", status_code=303)
