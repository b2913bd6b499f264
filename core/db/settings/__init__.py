"""
Settings storage re-exports.
"""
from core.db.settings.settings_store import (
    DEFAULT_EMPLOYER_SETTINGS,
    DEFAULT_USER_SETTINGS,
    PRIVACY_LEVELS,
    get_employer_settings,
    get_user_settings,
    update_employer_settings,
    update_user_settings,
)

__all__ = [
    "DEFAULT_EMPLOYER_SETTINGS",
    "DEFAULT_USER_SETTINGS",
    "PRIVACY_LEVELS",
    "get_employer_settings",
    "get_user_settings",
    "update_employer_settings",
    "update_user_settings",
]
