"""
Error taxonomy for the admin API.

Every error carries the HTTP status it maps to; the exception handler in
main.py turns them into ``{"error": ..., "details": ...}`` bodies.
"""

from typing import Any, Optional


class EduHubError(Exception):
    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(EduHubError):
    """Missing or invalid field, user-correctable."""
    status_code = 400


class MissingParameter(EduHubError):
    status_code = 400


class NotFound(EduHubError):
    status_code = 404


class UnsupportedType(EduHubError):
    """Upload whose name does not end in .pdf"""
    status_code = 400


class StoreUnavailable(EduHubError):
    status_code = 500
