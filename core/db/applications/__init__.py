"""
Job application storage re-exports.
"""
from core.db.applications.applications_store import (
    APPLICATION_STATUSES,
    TRANSITIONS,
    WITHDRAWABLE,
    apply_to_job,
    can_transition,
    count_employer_applications,
    employer_can_view_resume,
    get_application,
    has_applied,
    list_all_applications,
    list_employer_applications,
    list_seeker_applications,
    update_application_status,
    withdraw_application,
)

__all__ = [
    "APPLICATION_STATUSES",
    "TRANSITIONS",
    "WITHDRAWABLE",
    "apply_to_job",
    "can_transition",
    "count_employer_applications",
    "employer_can_view_resume",
    "get_application",
    "has_applied",
    "list_all_applications",
    "list_employer_applications",
    "list_seeker_applications",
    "update_application_status",
    "withdraw_application",
]
