"""
Report storage re-exports.
"""
from core.db.reports.reports_store import (
    REPORT_REASONS,
    REPORT_STATUSES,
    close_report,
    count_reports_by_status,
    get_report,
    list_reports,
    submit_report,
)

__all__ = [
    "REPORT_REASONS",
    "REPORT_STATUSES",
    "close_report",
    "count_reports_by_status",
    "get_report",
    "list_reports",
    "submit_report",
]
