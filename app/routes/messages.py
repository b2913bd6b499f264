from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import require_user
from app.layout import csrf_input, error_page, esc, format_dt, message_block, render_page
from app.security import attach_csrf_cookie, csrf_failed, issue_csrf_token, validate_csrf
from core.database import (
    MAX_MESSAGE_LENGTH,
    get_conversation,
    get_or_create_conversation,
    get_profile,
    list_conversations,
    list_messages,
    send_message,
)
from core.errors import MarketplaceError, ValidationError

router = APIRouter()


@router.get("/messages", response_class=HTMLResponse)
def inbox(request: Request):
    user, denied = require_user(request)
    if denied:
        return denied

    conversations = list_conversations(user["id"])
    rows = "".join(
        f"""
        <tr>
          <td><a href="/messages/{c['id']}">{esc(c.get('other_user_name') or 'Unknown user')}</a></td>
          <td class="muted">{esc(c.get('last_message') or '')}</td>
          <td>{f'<span class="pill">{c["unread_count"]}</span>' if c['unread_count'] else ''}</td>
          <td>{format_dt(c.get('last_message_at') or c['created_at'])}</td>
        </tr>
        """
        for c in conversations
    ) or '<tr><td colspan="4">No conversations yet.</td></tr>'

    body = f"""
    <div class="card">
      <table>
        <thead><tr><th>With</th><th>Last message</th><th>Unread</th><th>When</th></tr></thead>
        <tbody>{rows}</tbody>
      </table>
    </div>
    """
    return render_page("Messages", body, user=user)


@router.post("/messages/start")
def start_conversation(request: Request, user_id: int = Form(...), csrf_token: str = Form("")):
    user, denied = require_user(request)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return csrf_failed()
    try:
        convo = get_or_create_conversation(user["id"], user_id)
    except MarketplaceError as exc:
        return error_page("Cannot start conversation", exc.message, user=user, status_code=exc.status_code)
    return RedirectResponse(url=f"/messages/{convo['id']}", status_code=303)


def _thread_page(user: dict, convo: dict, csrf_token: str, errors=None, draft: str = "", status_code: int = 200):
    messages = list_messages(convo["id"], user["id"])
    other = get_profile(convo["other_user_id"]) or {}

    items = []
    for m in messages:
        mine = m["sender_id"] == user["id"]
        report = ""
        if not mine:
            report = f' <a class="muted" href="/report?target_type=message&target_id={m["id"]}">Report</a>'
        items.append(
            f"""
            <div class="message{' mine' if mine else ''}">
              <strong>{'You' if mine else esc(m.get('sender_name') or 'Them')}</strong>
              <span class="muted">{format_dt(m['created_at'])}</span>{report}
              <p>{esc(m['content'])}</p>
            </div>
            """
        )
    thread = "".join(items) or '<p class="muted">No messages yet. Say hello.</p>'

    body = f"""
    <div class="card">
      <h2>Conversation with <a href="/users/{convo['other_user_id']}">{esc(other.get('full_name') or 'Unknown user')}</a></h2>
      {thread}
    </div>
    <div class="card form-card">
      {message_block(errors)}
      <form method="post" action="/messages/{convo['id']}">
        <textarea name="content" maxlength="{MAX_MESSAGE_LENGTH}" required>{esc(draft)}</textarea>
        {csrf_input(csrf_token)}
        <button type="submit">Send</button>
      </form>
    </div>
    """
    resp = render_page("Messages", body, user=user, status_code=status_code)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.get("/messages/{conversation_id}", response_class=HTMLResponse)
def thread(request: Request, conversation_id: int):
    user, denied = require_user(request)
    if denied:
        return denied
    convo = get_conversation(conversation_id, user["id"])
    if not convo:
        return error_page("Not found", "Conversation not found.", user=user, status_code=404)
    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    return _thread_page(user, convo, csrf_token)


@router.post("/messages/{conversation_id}", response_class=HTMLResponse)
def reply(request: Request, conversation_id: int, content: str = Form(""), csrf_token: str = Form("")):
    user, denied = require_user(request)
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return csrf_failed()
    convo = get_conversation(conversation_id, user["id"])
    if not convo:
        return error_page("Not found", "Conversation not found.", user=user, status_code=404)

    try:
        send_message(conversation_id, user["id"], content)
    except ValidationError as exc:
        return _thread_page(user, convo, csrf_token, errors=exc.errors, draft=content, status_code=400)
    return RedirectResponse(url=f"/messages/{conversation_id}", status_code=303)
