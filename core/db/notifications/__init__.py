"""
Notification storage re-exports.
"""
from core.db.notifications.notifications_store import (
    NOTIFICATION_TYPES,
    create_notification,
    get_pending_email_notifications,
    list_notifications,
    mark_all_read,
    mark_notifications_emailed,
    mark_read,
    publish_notification,
    unread_count,
)

__all__ = [
    "NOTIFICATION_TYPES",
    "create_notification",
    "get_pending_email_notifications",
    "list_notifications",
    "mark_all_read",
    "mark_notifications_emailed",
    "mark_read",
    "publish_notification",
    "unread_count",
]
