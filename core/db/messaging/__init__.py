"""
Messaging storage re-exports.
"""
from core.db.messaging.messages_store import (
    MAX_MESSAGE_LENGTH,
    get_conversation,
    get_message,
    get_or_create_conversation,
    list_conversations,
    list_messages,
    ordered_pair,
    send_message,
    unread_message_count,
    validate_message,
)

__all__ = [
    "MAX_MESSAGE_LENGTH",
    "get_conversation",
    "get_message",
    "get_or_create_conversation",
    "list_conversations",
    "list_messages",
    "ordered_pair",
    "send_message",
    "unread_message_count",
    "validate_message",
]
