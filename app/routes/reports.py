import logging

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse

from app.auth_utils import require_user
from app.layout import csrf_input, error_page, esc, message_block, render_page
from app.security import (
    REPORT_LIMIT,
    allow_request,
    attach_csrf_cookie,
    csrf_failed,
    issue_csrf_token,
    validate_csrf,
)
from core.database import REPORT_REASONS, submit_report
from core.errors import MarketplaceError, ValidationError

log = logging.getLogger("routes.reports")

router = APIRouter()

TARGET_LABELS = {"user": "user", "job": "job post", "message": "message"}


def _report_form(target_type: str, target_id: int, csrf_token: str, errors=None, reason: str = "", details: str = "") -> str:
    options = "".join(
        f'<option value="{esc(r)}"{" selected" if r == reason else ""}>{esc(r)}</option>'
        for r in REPORT_REASONS[target_type]
    )
    return f"""
    <div class="card form-card">
      <h2>Report this {TARGET_LABELS[target_type]}</h2>
      {message_block(errors)}
      <form method="post" action="/report">
        <input type="hidden" name="target_type" value="{esc(target_type)}" />
        <input type="hidden" name="target_id" value="{int(target_id)}" />
        <label>Reason</label>
        <select name="reason"><option value="">Select a reason...</option>{options}</select>
        <label>Details (optional)</label>
        <textarea name="details" maxlength="1000">{esc(details)}</textarea>
        {csrf_input(csrf_token)}
        <button type="submit" class="danger">Submit report</button>
      </form>
    </div>
    """


@router.get("/report", response_class=HTMLResponse)
def report_form(request: Request, target_type: str = "", target_id: int = 0):
    user, denied = require_user(request)
    if denied:
        return denied
    if target_type not in REPORT_REASONS or target_id <= 0:
        return error_page("Not found", "Nothing to report.", user=user, status_code=404)
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    resp = render_page("Report", _report_form(target_type, target_id, csrf_token), user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/report", response_class=HTMLResponse)
def report_submit(
    request: Request,
    target_type: str = Form(...),
    target_id: int = Form(...),
    reason: str = Form(""),
    details: str = Form("", max_length=1000),
    csrf_token: str = Form(""),
):
    user, denied = require_user(request)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return csrf_failed()
    limit, window = REPORT_LIMIT
    if not allow_request(f"report:{user['id']}", limit=limit, window_seconds=window):
        return HTMLResponse("Too many reports. Please try again later.", status_code=429)
    if target_type not in REPORT_REASONS:
        return error_page("Not found", "Nothing to report.", user=user, status_code=404)

    try:
        submit_report(user["id"], target_type, target_id, reason, details)
    except ValidationError as exc:
        body = _report_form(target_type, target_id, csrf_token, exc.errors, reason, details)
        resp = render_page("Report", body, user=user, status_code=400)
        attach_csrf_cookie(resp, csrf_token)
        return resp
    except MarketplaceError as exc:
        return error_page("Report not submitted", exc.message, user=user, status_code=exc.status_code)

    body = """
    <div class="card">
      <h2>Thank you</h2>
      <p class="muted">Your report was sent to our moderators.</p>
      <p><a href="/dashboard">Back to dashboard</a></p>
    </div>
    """
    return render_page("Report submitted", body, user=user)
