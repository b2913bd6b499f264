"""
Two-party conversations and messages.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from core.db.base import get_conn, utcnow_iso
from core.db.notifications import create_notification, publish_notification
from core.realtime import feed
from core.errors import NotFoundError, PermissionDenied, ValidationError

log = logging.getLogger("db.messaging")

MAX_MESSAGE_LENGTH = 2000


def ordered_pair(a: int, b: int) -> Tuple[int, int]:
    """Conversations are stored with user1_id < user2_id."""
    a, b = int(a), int(b)
    if a == b:
        raise ValidationError("You cannot message yourself.")
    return (a, b) if a < b else (b, a)


def validate_message(content: str | None) -> str:
    text = (content or "").strip()
    if not text:
        raise ValidationError("Message cannot be empty.")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Message cannot be longer than {MAX_MESSAGE_LENGTH} characters.")
    return text


def get_or_create_conversation(user_a: int, user_b: int) -> Dict:
    """Idempotent; `user_b` must exist."""
    user1, user2 = ordered_pair(user_a, user_b)
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT id FROM users WHERE id = ?", (user_b,))
    if not cur.fetchone():
        conn.close()
        raise NotFoundError("User not found.")
    cur.execute(
        """
        INSERT INTO conversations (user1_id, user2_id, created_at)
        VALUES (?, ?, ?)
        ON CONFLICT (user1_id, user2_id) DO NOTHING
        """,
        (user1, user2, utcnow_iso()),
    )
    cur.execute("SELECT * FROM conversations WHERE user1_id = ? AND user2_id = ?", (user1, user2))
    row = dict(cur.fetchone())
    conn.commit()
    conn.close()
    return row


def get_conversation(conversation_id: int, user_id: int) -> Optional[Dict]:
    """The conversation if `user_id` takes part in it, else None."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "SELECT * FROM conversations WHERE id = ? AND (user1_id = ? OR user2_id = ?)",
        (conversation_id, user_id, user_id),
    )
    row = cur.fetchone()
    conn.close()
    if not row:
        return None
    convo = dict(row)
    convo["other_user_id"] = convo["user2_id"] if convo["user1_id"] == user_id else convo["user1_id"]
    return convo


def send_message(conversation_id: int, sender_id: int, content: str) -> Dict:
    text = validate_message(content)
    convo = get_conversation(conversation_id, sender_id)
    if not convo:
        raise PermissionDenied("You are not part of this conversation.")
    recipient_id = convo["other_user_id"]
    now = utcnow_iso()

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO messages (conversation_id, sender_id, recipient_id, content, created_at)
        VALUES (?, ?, ?, ?, ?)
        RETURNING *
        """,
        (conversation_id, sender_id, recipient_id, text, now),
    )
    message = dict(cur.fetchone())
    cur.execute(
        "UPDATE conversations SET last_message = ?, last_message_at = ? WHERE id = ?",
        (text, now, conversation_id),
    )

    cur.execute(
        """
        SELECT COALESCE(s.message_notifications, 1) AS message_notifications, p.full_name
        FROM users u
        LEFT JOIN user_settings s ON s.user_id = u.id
        LEFT JOIN profiles p ON p.user_id = ?
        WHERE u.id = ?
        """,
        (sender_id, recipient_id),
    )
    prefs = cur.fetchone() or {}
    note = None
    if prefs.get("message_notifications", 1):
        sender_name = prefs.get("full_name") or "Someone"
        preview = text if len(text) <= 80 else text[:77] + "..."
        note = create_notification(
            recipient_id,
            "message",
            f"New message from {sender_name}",
            preview,
            data={"conversation_id": conversation_id, "message_id": message["id"], "sender_id": sender_id},
            conn=conn,
        )

    conn.commit()
    conn.close()
    feed.publish(recipient_id, "message", message)
    if note:
        publish_notification(note)
    return message


def list_conversations(user_id: int) -> List[Dict]:
    """Conversations for `user_id`, most recent first, with the other party's name and unread count."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT c.*,
               CASE WHEN c.user1_id = ? THEN c.user2_id ELSE c.user1_id END AS other_user_id,
               p.full_name AS other_user_name,
               (SELECT COUNT(*) FROM messages m
                 WHERE m.conversation_id = c.id AND m.recipient_id = ? AND m.read = 0) AS unread_count
        FROM conversations c
        LEFT JOIN profiles p
               ON p.user_id = CASE WHEN c.user1_id = ? THEN c.user2_id ELSE c.user1_id END
        WHERE c.user1_id = ? OR c.user2_id = ?
        ORDER BY COALESCE(c.last_message_at, c.created_at) DESC, c.id DESC
        """,
        (user_id, user_id, user_id, user_id, user_id),
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def list_messages(conversation_id: int, user_id: int, mark_read: bool = True) -> List[Dict]:
    """Messages oldest first. Opening a thread marks the incoming ones read."""
    if not get_conversation(conversation_id, user_id):
        raise PermissionDenied("You are not part of this conversation.")

    conn = get_conn()
    cur = conn.cursor()
    if mark_read:
        cur.execute(
            "UPDATE messages SET read = 1 WHERE conversation_id = ? AND recipient_id = ? AND read = 0",
            (conversation_id, user_id),
        )
    cur.execute(
        """
        SELECT m.*, p.full_name AS sender_name
        FROM messages m
        LEFT JOIN profiles p ON p.user_id = m.sender_id
        WHERE m.conversation_id = ?
        ORDER BY m.created_at ASC, m.id ASC
        """,
        (conversation_id,),
    )
    rows = cur.fetchall()
    conn.commit()
    conn.close()
    return [dict(r) for r in rows]


def get_message(message_id: int) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT * FROM messages WHERE id = ?", (message_id,))
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def unread_message_count(user_id: int) -> int:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT COUNT(*) AS count FROM messages WHERE recipient_id = ? AND read = 0", (user_id,))
    row = cur.fetchone()
    conn.close()
    return int(row["count"]) if row else 0


__all__ = [
    "MAX_MESSAGE_LENGTH",
    "ordered_pair",
    "validate_message",
    "get_or_create_conversation",
    "get_conversation",
    "send_message",
    "list_conversations",
    "list_messages",
    "get_message",
    "unread_message_count",
]
