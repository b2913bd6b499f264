import asyncio
import logging
import os
from typing import Dict, List

from dotenv import load_dotenv

from app.email_utils import send_text_email
from core.database import get_pending_email_notifications, init_db, mark_notifications_emailed

# Load `.env` for local/dev runs (override=True so updates take effect after restart).
load_dotenv(override=True)

# -------- CONFIG --------
DIGEST_INTERVAL = int(os.getenv("DIGEST_INTERVAL", "300"))  # seconds between digests
DIGEST_ONCE = os.getenv("DIGEST_ONCE", "false").lower() == "true"
BATCH_SIZE = 500
# ------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
log = logging.getLogger("worker")


def wants_email(n: Dict) -> bool:
    """Apply the recipient's settings to one pending notification."""
    if not n.get("active", 1) or not n.get("email_notifications", 1):
        return False
    kind = n.get("type")
    if kind == "application_status":
        return bool(n.get("application_updates", 1))
    if kind == "message":
        if not n.get("message_notifications", 1):
            return False
        if n.get("role") == "employer":
            return bool(n.get("candidate_messages", 1))
        return True
    if kind == "new_application":
        return bool(n.get("new_applications", 1))
    return True


def group_by_user(pending: List[Dict]) -> Dict[int, Dict[str, List[Dict]]]:
    """user_id -> {"send": [...], "skip": [...]}"""
    grouped: Dict[int, Dict[str, List[Dict]]] = {}
    for n in pending:
        bucket = grouped.setdefault(int(n["user_id"]), {"send": [], "skip": []})
        bucket["send" if wants_email(n) else "skip"].append(n)
    return grouped


def build_digest(items: List[Dict]) -> str:
    lines: List[str] = [f"You have {len(items)} new notification(s) on HireBoard.\n"]
    for idx, n in enumerate(items, start=1):
        lines.append(f"{idx}. {n.get('title')}")
        if n.get("message"):
            lines.append(f"   {n['message']}")
        lines.append("")

    base = (os.getenv("PUBLIC_BASE_URL") or "").rstrip("/")
    if base:
        lines.append(f"See them all: {base}/notifications")
    lines.append("You can change which emails you receive on the settings page.")
    return "\n".join(lines)


async def run_once() -> int:
    """
    One digest pass:
    - load notifications that were never emailed
    - group them per recipient and apply their settings
    - send one email per recipient
    - mark each notification sent, failed or skipped
    Returns number of emails sent.
    """
    pending = get_pending_email_notifications(limit=BATCH_SIZE)
    if not pending:
        log.info("No pending notifications.")
        return 0

    sent_count = 0
    for user_id, parts in group_by_user(pending).items():
        skipped = [n["id"] for n in parts["skip"]]
        if skipped:
            mark_notifications_emailed(skipped, "skipped")

        items = parts["send"]
        if not items:
            continue
        email = (items[0].get("email") or "").strip()
        ids = [n["id"] for n in items]
        if not email or "@" not in email:
            mark_notifications_emailed(ids, "skipped")
            continue

        subject = items[0]["title"] if len(items) == 1 else f"{len(items)} new notifications - HireBoard"
        try:
            await asyncio.to_thread(send_text_email, email, subject, build_digest(items))
        except Exception as e:
            log.error("Failed to send digest", extra={"user_id": user_id, "error": str(e)})
            mark_notifications_emailed(ids, "failed", str(e))
            continue
        mark_notifications_emailed(ids, "sent")
        sent_count += 1

    log.info("Digest complete", extra={"sent_emails": sent_count, "notifications": len(pending)})
    return sent_count


async def main():
    init_db()

    while True:
        try:
            await run_once()
        except Exception as e:
            log.exception("Error during run", extra={"error": str(e)})

        if DIGEST_ONCE:
            break

        log.info("Sleeping", extra={"seconds": DIGEST_INTERVAL})
        await asyncio.sleep(DIGEST_INTERVAL)


if __name__ == "__main__":
    asyncio.run(main())
