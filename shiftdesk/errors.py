"""
API error taxonomy.

Every error leaves the service as ``{"error": {"message": ...}}`` with the
status code carried by the exception class.
"""
from typing import Optional


class ApiError(Exception):
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthRequired(ApiError):
    status_code = 401
    default_message = "Authorization token required"


class Forbidden(ApiError):
    status_code = 403
    default_message = "Insufficient permissions"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class Conflict(ApiError):
    """Invalid state transition, e.g. clocking in twice."""
    status_code = 400
    default_message = "Invalid state"


class ValidationFailed(ApiError):
    status_code = 400
    default_message = "Invalid request"


class DuplicateName(ApiError):
    status_code = 409
    default_message = "Name already exists"


class Internal(ApiError):
    status_code = 500


def error_body(message: str) -> dict:
    return {"error": {"message": message}}
