"""
Small SMTP helpers shared by routes and the digest worker.
"""
from __future__ import annotations

import logging
import os
import smtplib
from email.mime.text import MIMEText

log = logging.getLogger("email")


def _effective_from(email_from: str | None, email_user: str | None, smtp_server: str) -> str:
    # Gmail rewrites or drops mail whose From differs from the authenticated user.
    if "gmail" in (smtp_server or "").lower() and email_user:
        return email_user
    return email_from or email_user or "noreply@hireboard.local"


def email_configured() -> bool:
    return bool(os.getenv("EMAIL_USER") and os.getenv("EMAIL_PASSWORD"))


def send_text_email(to_email: str, subject: str, body: str) -> None:
    email_user = os.getenv("EMAIL_USER")
    email_password = os.getenv("EMAIL_PASSWORD")
    email_from = os.getenv("EMAIL_FROM")
    smtp_server = os.getenv("SMTP_SERVER", "smtp.gmail.com")
    smtp_port = int(os.getenv("SMTP_PORT", "587"))

    if not (email_user and email_password):
        raise RuntimeError("Email credentials not configured. Set EMAIL_USER and EMAIL_PASSWORD.")

    msg = MIMEText(body)
    msg["Subject"] = subject
    msg["From"] = _effective_from(email_from, email_user, smtp_server)
    msg["To"] = to_email

    with smtplib.SMTP(smtp_server, smtp_port) as server:
        server.starttls()
        server.login(email_user, email_password)
        server.sendmail(msg["From"], [to_email], msg.as_string())
    log.info("Sent email", extra={"to": to_email, "subject": subject})


def try_send_text_email(to_email: str, subject: str, body: str) -> bool:
    """send_text_email for request handlers: failures are logged, never raised."""
    try:
        send_text_email(to_email, subject, body)
        return True
    except (RuntimeError, OSError, smtplib.SMTPException) as exc:
        log.warning("Email send failed", extra={"to": to_email, "error": repr(exc)})
        return False
