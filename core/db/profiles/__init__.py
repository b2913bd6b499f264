"""
Profile storage re-exports.
"""
from core.db.profiles.profile_store import (
    COMPLETION_FIELDS,
    calculate_profile_completion,
    get_company_profile,
    get_profile,
    normalize_skills,
    search_candidates,
    set_verified,
    update_profile,
    upsert_company_profile,
    validate_company,
    validate_profile,
)

__all__ = [
    "COMPLETION_FIELDS",
    "calculate_profile_completion",
    "get_company_profile",
    "get_profile",
    "normalize_skills",
    "search_candidates",
    "set_verified",
    "update_profile",
    "upsert_company_profile",
    "validate_company",
    "validate_profile",
]
