"""
Domain errors raised by the stores and turned into page messages by the routes.
"""
from __future__ import annotations

import logging

log = logging.getLogger("errors")


class MarketplaceError(Exception):
    """Base class; `message` is safe to show to the user."""

    status_code = 400

    def __init__(self, message: str | None = None):
        self.message = message or "An unexpected error occurred"
        super().__init__(self.message)


class ValidationError(MarketplaceError):
    status_code = 400

    def __init__(self, errors: list[str] | str):
        self.errors = [errors] if isinstance(errors, str) else list(errors)
        super().__init__("; ".join(self.errors))


class NotFoundError(MarketplaceError):
    status_code = 404


class PermissionDenied(MarketplaceError):
    status_code = 403


class ConflictError(MarketplaceError):
    status_code = 409


class DuplicateEmailError(ConflictError):
    def __init__(self):
        super().__init__("An account with this email already exists")


class AlreadyAppliedError(ConflictError):
    def __init__(self):
        super().__init__("You have already submitted an application for this job.")


class InvalidTransitionError(ConflictError):
    pass


_ERROR_MESSAGES = {
    "23505": "This record already exists",  # unique_violation
    "23503": "The referenced record no longer exists",  # foreign_key_violation
    "23514": "Some of the submitted values are not allowed",  # check_violation
}


def friendly_error(exc: BaseException | None) -> str:
    """Map a domain error or psycopg error to a user-facing message."""
    if exc is None:
        return "An unexpected error occurred"
    if isinstance(exc, MarketplaceError):
        return exc.message

    code = getattr(exc, "sqlstate", None)
    if code and str(code) in _ERROR_MESSAGES:
        return _ERROR_MESSAGES[str(code)]

    log.error("Unhandled error", extra={"error": repr(exc)})
    return "An unexpected error occurred"


__all__ = [
    "MarketplaceError",
    "ValidationError",
    "NotFoundError",
    "PermissionDenied",
    "ConflictError",
    "DuplicateEmailError",
    "AlreadyAppliedError",
    "InvalidTransitionError",
    "friendly_error",
]
