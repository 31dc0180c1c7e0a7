from typing import Dict, List, Optional


class ApiError(Exception):
    """Base error for anything the remote property API reports back."""

    status_code: Optional[int] = None

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class Unauthorized(ApiError):
    status_code = 401


class NotFound(ApiError):
    status_code = 404


class ValidationFailed(ApiError):
    """Field level rejection. ``errors`` maps a field name to its messages in order."""

    status_code = 422

    def __init__(self, message: str, errors: Optional[Dict[str, List[str]]] = None, status_code: Optional[int] = None):
        super().__init__(message, status_code)
        self.errors = errors or {}

    def first_error(self, field: str) -> Optional[str]:
        messages = self.errors.get(field) or []
        return messages[0] if messages else None


class TransientError(ApiError):
    """No response, a server error, or any status we have no better name for."""


class LoginRequired(Exception):
    """A protected view was opened without a session."""
