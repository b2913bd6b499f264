"""
Job post and saved-job storage re-exports.
"""
from core.db.jobs.jobs_store import (
    DEFAULT_FILTERS,
    EXPERIENCE_LEVELS,
    JOB_FIELDS,
    JOB_STATUSES,
    JOB_TYPES,
    OPTIONAL_JOB_FIELDS,
    POSTED_WITHIN,
    build_search_query,
    clean_job_data,
    count_active_filters,
    create_job_post,
    delete_job_post,
    get_job_post,
    get_saved_job_ids,
    get_saved_jobs,
    get_stats,
    list_all_jobs,
    list_employer_jobs,
    save_job,
    search_jobs,
    set_job_status,
    unsave_job,
    update_job_post,
    validate_job,
)

__all__ = [
    "DEFAULT_FILTERS",
    "EXPERIENCE_LEVELS",
    "JOB_FIELDS",
    "JOB_STATUSES",
    "JOB_TYPES",
    "OPTIONAL_JOB_FIELDS",
    "POSTED_WITHIN",
    "build_search_query",
    "clean_job_data",
    "count_active_filters",
    "create_job_post",
    "delete_job_post",
    "get_job_post",
    "get_saved_job_ids",
    "get_saved_jobs",
    "get_stats",
    "list_all_jobs",
    "list_employer_jobs",
    "save_job",
    "search_jobs",
    "set_job_status",
    "unsave_job",
    "update_job_post",
    "validate_job",
]
