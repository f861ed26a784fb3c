"""
Lifecycle error taxonomy.

Every error raised by the lifecycle engine derives from LifecycleError and
carries the HTTP status code the API layer answers with.
"""

from typing import Optional


class LifecycleError(Exception):
    """Base class for report lifecycle failures."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(LifecycleError):
    status_code = 404


class InvalidTransitionError(LifecycleError):
    """Status precondition unmet. Always carries the status the report is in."""

    status_code = 409

    def __init__(self, current_status: str, message: Optional[str] = None):
        self.current_status = current_status
        super().__init__(message or f"Invalid transition from current status {current_status}")


class UnauthorizedError(LifecycleError):
    """Actor role is not allowed to perform the action."""

    status_code = 401


class ForbiddenError(LifecycleError):
    """Actor has the right role but does not own the report."""

    status_code = 403


class ValidationError(LifecycleError):
    status_code = 400


class PersistenceError(LifecycleError):
    status_code = 503


class VerificationUnavailableError(LifecycleError):
    """
    Classifier unreachable or timed out.

    The verification gate treats this as "no prediction" and routes the
    report to manual review, so it never reaches the API layer.
    """

    status_code = 503
