"""Exception hierarchy shared by repositories, services and the REST API."""

from typing import Optional


class WeeklyGrindError(Exception):
    """Base class for application errors.

    Attributes:
        message: Human readable error message returned to the caller.
        status_code: HTTP status code the API answers with.
    """

    status_code = 500

    def __init__(self, message: str = "An error occurred", status_code: Optional[int] = None) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class ValidationError(WeeklyGrindError):
    """Missing or out-of-range input."""

    status_code = 400


class AuthError(WeeklyGrindError):
    """Missing, invalid or expired credential."""

    status_code = 401


class AuthorizationError(WeeklyGrindError):
    """Valid user acting on something they do not own."""

    status_code = 403


class NotFoundError(WeeklyGrindError):
    """Entity or token absent."""

    status_code = 404


class StorageError(WeeklyGrindError):
    """Unexpected persistence failure."""

    status_code = 500


class BackendUnavailable(WeeklyGrindError):
    """A required backend is not configured."""

    status_code = 503
