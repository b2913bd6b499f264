import logging

from fastapi import APIRouter, Form, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, RedirectResponse, StreamingResponse

from app.auth_utils import require_user
from app.layout import csrf_input, esc, format_dt, render_page
from app.security import attach_csrf_cookie, csrf_failed, issue_csrf_token, validate_csrf
from core.database import list_notifications, mark_all_read, mark_notification_read
from core.realtime import feed

log = logging.getLogger("routes.notifications")

router = APIRouter()


def notification_link(n: dict) -> str:
    """Where clicking a notification should take the user."""
    data = n.get("data") or {}
    kind = n.get("type")
    if kind == "new_application" and data.get("job_post_id"):
        return f"/employer/applications?job_id={int(data['job_post_id'])}"
    if kind == "application_status":
        return "/applications"
    if kind == "message" and data.get("conversation_id"):
        return f"/messages/{int(data['conversation_id'])}"
    if kind == "verification":
        return "/verification"
    return "/notifications"


@router.get("/notifications", response_class=HTMLResponse)
def notifications_page(request: Request, unread: str = ""):
    user, denied = require_user(request)
    if denied:
        return denied

    items = list_notifications(user["id"], unread_only=bool(unread))
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    rows = []
    for n in items:
        mark = ""
        if not n["read"]:
            mark = f"""
            <form method="post" action="/notifications/{n['id']}/read" class="inline">
              {csrf_input(csrf_token)}
              <button type="submit" class="secondary">Mark read</button>
            </form>
            """
        rows.append(
            f"""
            <div class="card{'' if n['read'] else ' unread'}">
              <strong><a href="{notification_link(n)}">{esc(n['title'])}</a></strong>
              <span class="muted">{format_dt(n['created_at'])}</span>
              <p>{esc(n['message'])}</p>
              {mark}
            </div>
            """
        )
    listing = "".join(rows) or '<p class="muted">No notifications.</p>'
    toggle = '<a href="/notifications">Show all</a>' if unread else '<a href="/notifications?unread=1">Unread only</a>'

    body = f"""
    <div class="card">
      {toggle}
      <form method="post" action="/notifications/read-all" class="inline">
        {csrf_input(csrf_token)}
        <button type="submit" class="secondary">Mark all as read</button>
      </form>
    </div>
    {listing}
    """
    resp = render_page("Notifications", body, user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/notifications/read-all")
def read_all(request: Request, csrf_token: str = Form("")):
    user, denied = require_user(request)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return csrf_failed()
    mark_all_read(user["id"])
    return RedirectResponse(url="/notifications", status_code=303)


@router.post("/notifications/{notification_id}/read")
def read_one(request: Request, notification_id: int, csrf_token: str = Form("")):
    user, denied = require_user(request)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return csrf_failed()
    if not mark_notification_read(notification_id, user["id"]):
        return HTMLResponse("Not found", status_code=404)
    return RedirectResponse(url="/notifications", status_code=303)


@router.get("/notifications/stream")
async def stream(request: Request):
    user, denied = await run_in_threadpool(require_user, request, allow_inactive=True)
    if denied:
        return denied
    sub = feed.subscribe(user["id"])
    log.info("Change feed subscribed", extra={"user_id": user["id"]})
    return StreamingResponse(
        feed.stream(sub, request),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
