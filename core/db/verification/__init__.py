"""
Verification request storage re-exports.
"""
from core.db.verification.verification_store import (
    create_verification_request,
    get_latest_request,
    get_request,
    list_requests,
    review_request,
)

__all__ = [
    "create_verification_request",
    "get_latest_request",
    "get_request",
    "list_requests",
    "review_request",
]
