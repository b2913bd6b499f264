"""
User-related storage helpers, split by responsibility.
"""
from core.db.users.auth import hash_password, verify_password
from core.db.users.user_store import (
    ROLES,
    create_user,
    get_user_by_email,
    get_user_by_id,
    list_users_by_role,
    count_users_by_role,
    update_user_password,
    deactivate_user,
    reactivate_user,
    delete_user_data,
    get_deleted_users,
)
from core.db.users.sessions import (
    ADMIN_SESSION_MAX_HOURS,
    SESSION_TIMEOUT_MINUTES,
    create_session,
    delete_session,
    delete_sessions_for_user,
    get_session,
    session_expired,
    touch_session,
)
from core.db.users.tokens import (
    RESET_TOKEN_MINUTES,
    VERIFY_TOKEN_HOURS,
    create_email_verification_token,
    create_password_reset_token,
    get_email_verification_token,
    get_password_reset_token,
    mark_email_verification_token_used,
    mark_reset_token_used,
    mark_user_email_verified,
)

__all__ = [
    "hash_password",
    "verify_password",
    "ROLES",
    "create_user",
    "get_user_by_email",
    "get_user_by_id",
    "list_users_by_role",
    "count_users_by_role",
    "update_user_password",
    "deactivate_user",
    "reactivate_user",
    "delete_user_data",
    "get_deleted_users",
    "ADMIN_SESSION_MAX_HOURS",
    "SESSION_TIMEOUT_MINUTES",
    "create_session",
    "delete_session",
    "delete_sessions_for_user",
    "get_session",
    "session_expired",
    "touch_session",
    "RESET_TOKEN_MINUTES",
    "VERIFY_TOKEN_HOURS",
    "create_email_verification_token",
    "create_password_reset_token",
    "get_email_verification_token",
    "get_password_reset_token",
    "mark_email_verification_token_used",
    "mark_reset_token_used",
    "mark_user_email_verified",
]
