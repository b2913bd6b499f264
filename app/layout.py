"""
Shared HTML layout and small rendering helpers.
"""
import html
from datetime import datetime, timezone

from fastapi.responses import HTMLResponse

NAV_LINKS = {
    "job_seeker": [
        ("/jobs", "Find jobs"),
        ("/saved-jobs", "Saved"),
        ("/applications", "My applications"),
        ("/messages", "Messages"),
        ("/profile", "Profile"),
        ("/settings", "Settings"),
    ],
    "employer": [
        ("/my-jobs", "My jobs"),
        ("/jobs/new", "Post a job"),
        ("/employer/applications", "Applications"),
        ("/candidates", "Candidates"),
        ("/messages", "Messages"),
        ("/verification", "Verification"),
        ("/company", "Company"),
        ("/settings", "Settings"),
    ],
    "admin": [
        ("/admin", "Admin"),
        ("/admin/verifications", "Verifications"),
        ("/admin/reports", "Reports"),
        ("/admin/jobs", "Job posts"),
        ("/admin/applications", "Applications"),
    ],
}

# Keeps the unread badge live while a page is open.
_STREAM_SCRIPT = """
<script>
  (function () {
    if (!window.EventSource) return;
    var badge = document.getElementById("unread-badge");
    var source = new EventSource("/notifications/stream");
    source.addEventListener("notification", function () {
      if (!badge) return;
      var n = parseInt(badge.getAttribute("data-count") || "0", 10) + 1;
      badge.setAttribute("data-count", String(n));
      badge.textContent = String(n);
      badge.style.display = "inline-block";
    });
  })();
</script>
"""


def esc(value) -> str:
    """HTML-escape anything for interpolation into markup (None becomes '')."""
    if value is None:
        return ""
    return html.escape(str(value), quote=True)


def format_dt(dt_str: str | None) -> str:
    """Render a stored naive-UTC ISO timestamp in local time."""
    if not dt_str:
        return ""
    try:
        dt = datetime.fromisoformat(str(dt_str))
    except ValueError:
        return str(dt_str)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone().strftime("%Y-%m-%d %H:%M")


def csrf_input(token: str) -> str:
    return f'<input type="hidden" name="csrf_token" value="{esc(token)}" />'


def message_block(errors=None, success: str | None = None) -> str:
    parts = []
    if isinstance(errors, str):
        errors = [errors]
    for err in errors or []:
        parts.append(f'<p class="error">{esc(err)}</p>')
    if success:
        parts.append(f'<p class="success">{esc(success)}</p>')
    return "\n".join(parts)


def render_page(title: str, body: str, user: dict | None = None, status_code: int = 200) -> HTMLResponse:
    """
    Shared layout: nav bar for the user's role, unread badge, and a 'signed in as' line.
    """
    nav_items = ['<a href="/">Home</a>']
    if user:
        for href, label in NAV_LINKS.get(user.get("role"), []):
            nav_items.append(f'<a href="{href}">{label}</a>')
        unread = int(user.get("unread_count") or 0)
        badge_style = "" if unread else ' style="display:none"'
        nav_items.append(
            f'<a href="/notifications">Notifications '
            f'<span id="unread-badge" class="badge" data-count="{unread}"{badge_style}>{unread}</span></a>'
        )
        nav_items.append('<a href="/account">Account</a>')
        nav_items.append('<a href="/logout">Logout</a>')
        signed_in_text = f"Signed in as <strong>{esc(user.get('email'))}</strong>"
        if not user.get("active", 1):
            signed_in_text += ' <span class="error">(deactivated)</span>'
        stream_script = _STREAM_SCRIPT
    else:
        nav_items.append('<a href="/login">Login</a>')
        nav_items.append('<a href="/signup">Sign up</a>')
        signed_in_text = "Not signed in"
        stream_script = ""

    nav_html = "\n".join(nav_items)
    safe_title = esc(title)
    page = f"""
    <!DOCTYPE html>
    <html>
      <head>
        <meta charset="utf-8" />
        <title>{safe_title}</title>
        <style>
          * {{ box-sizing: border-box; }}
          body {{
            font-family: system-ui, -apple-system, "Segoe UI", sans-serif;
            margin: 0;
            background: #f8fafc;
            color: #0f172a;
          }}
          .page {{ max-width: 1040px; margin: 0 auto; padding: 1.5rem 1rem 3rem; }}
          header {{
            display: flex;
            justify-content: space-between;
            align-items: center;
            flex-wrap: wrap;
            gap: 0.75rem;
            padding: 0.75rem 1rem;
            background: #ffffff;
            border: 1px solid #e2e8f0;
            border-radius: 0.75rem;
          }}
          header h1 {{ font-size: 1.3rem; margin: 0; }}
          nav {{ display: flex; flex-wrap: wrap; gap: 0.4rem; }}
          nav a {{
            text-decoration: none;
            color: #0f172a;
            font-size: 0.9rem;
            padding: 5px 9px;
            border-radius: 8px;
            background: #f1f5f9;
          }}
          nav a:hover {{ color: #2563eb; }}
          .signed-in {{ font-size: 0.8rem; color: #64748b; margin-top: 0.25rem; }}
          main {{ margin-top: 1.25rem; }}
          a {{ color: #2563eb; }}
          .card {{
            background: #ffffff;
            border-radius: 0.75rem;
            border: 1px solid #e2e8f0;
            padding: 1rem 1.25rem;
            margin-bottom: 1rem;
          }}
          .form-card {{ max-width: 760px; }}
          label {{ display: block; margin-top: 0.9rem; font-size: 0.95rem; }}
          input:not([type="checkbox"]):not([type="radio"]), select, textarea {{
            width: 100%;
            padding: 0.5rem;
            margin-top: 0.25rem;
            border-radius: 0.375rem;
            border: 1px solid #cbd5e1;
            font: inherit;
          }}
          textarea {{ min-height: 6rem; }}
          button {{
            margin-top: 1rem;
            padding: 0.6rem 1.2rem;
            border-radius: 0.5rem;
            border: none;
            background: #2563eb;
            color: #ffffff;
            font-weight: 600;
            cursor: pointer;
          }}
          button.secondary {{ background: #e2e8f0; color: #0f172a; }}
          button.danger {{ background: #dc2626; }}
          form.inline {{ display: inline; }}
          form.inline button {{ margin-top: 0.25rem; padding: 0.35rem 0.8rem; }}
          table {{ width: 100%; border-collapse: collapse; margin-top: 1rem; font-size: 0.9rem; }}
          th, td {{ border: 1px solid #e2e8f0; padding: 0.4rem 0.6rem; vertical-align: top; }}
          th {{ background: #f1f5f9; text-align: left; }}
          .muted {{ color: #64748b; font-size: 0.85rem; }}
          .error {{ color: #dc2626; }}
          .success {{ color: #16a34a; }}
          .badge {{
            display: inline-block;
            min-width: 1.3rem;
            padding: 0 0.35rem;
            border-radius: 999px;
            background: #dc2626;
            color: #ffffff;
            font-size: 0.75rem;
            text-align: center;
          }}
          .pill {{
            display: inline-block;
            padding: 0.05rem 0.5rem;
            border-radius: 999px;
            background: #e0e7ff;
            font-size: 0.8rem;
            margin-right: 0.25rem;
          }}
          .verified {{ background: #dcfce7; color: #166534; }}
          .stats {{ display: flex; gap: 0.75rem; flex-wrap: wrap; margin-bottom: 1rem; }}
          .stat {{
            flex: 0 0 150px;
            padding: 0.6rem 0.8rem;
            border-radius: 0.75rem;
            border: 1px solid #e2e8f0;
            background: #ffffff;
          }}
          .stat .label {{ font-size: 0.75rem; color: #64748b; }}
          .stat .value {{ font-size: 1.3rem; font-weight: 600; }}
          .progress {{ height: 0.6rem; background: #e2e8f0; border-radius: 999px; overflow: hidden; }}
          .progress span {{ display: block; height: 100%; background: #16a34a; }}
          footer {{
            margin-top: 2.5rem;
            padding: 1.25rem 0;
            border-top: 1px solid #e2e8f0;
            font-size: 0.9rem;
            color: #64748b;
            text-align: center;
          }}
        </style>
      </head>
      <body>
        <div class="page">
          <header>
            <div>
              <h1>{safe_title}</h1>
              <div class="signed-in">{signed_in_text}</div>
            </div>
            <nav>
              {nav_html}
            </nav>
          </header>
          <main>
            {body}
          </main>
          <footer>
            <div><strong>(c) 2025 HireBoard.</strong> All rights reserved.</div>
            <div><a href="/privacy">Privacy</a></div>
          </footer>
        </div>
        {stream_script}
      </body>
    </html>
    """
    return HTMLResponse(content=page, status_code=status_code)


def error_page(title: str, message: str, user: dict | None = None, status_code: int = 400) -> HTMLResponse:
    body = f"""
    <div class="card">
      <p class="error">{esc(message)}</p>
      <p><a href="javascript:history.back()">Go back</a></p>
    </div>
    """
    return render_page(title, body, user=user, status_code=status_code)
