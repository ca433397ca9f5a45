"""
Application exceptions.

Services raise these; the FastAPI layer maps them to HTTP responses
through the handlers registered in ``memberhub.main``.
"""
from typing import Any, Dict, Optional


class ApplicationError(Exception):
    """Base for all business-logic errors."""

    status_code: int = 400

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}


class NotFound(ApplicationError):
    """No matching record for a lookup."""
    status_code = 404


class AlreadyProcessed(ApplicationError):
    """Application is no longer pending."""
    status_code = 409


class Forbidden(ApplicationError):
    """Authorization check failed. Raised before any write."""
    status_code = 403


class ValidationFailed(ApplicationError):
    """Missing required field, empty reason, empty option list and similar."""
    status_code = 400


class Conflict(ApplicationError):
    """Uniqueness violation; expected under races, callers may retry once."""
    status_code = 409


class TransientStorageError(ApplicationError):
    """The store was unreachable or timed out. Safe to retry."""
    status_code = 503
    retryable = True
