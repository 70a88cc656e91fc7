"""Error taxonomy shared by services, repositories and the timer.

Each error carries the HTTP status the API layer maps it to. Services
raise these; `main` installs handlers that turn them into JSON responses.
"""


class StudyTrackerError(Exception):
    """Base class for domain errors."""
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(StudyTrackerError, ValueError):
    """Malformed or out-of-range input. Local state is left unchanged."""
    status_code = 400


class AuthError(StudyTrackerError):
    """No resolved owner identity for an owner-scoped operation."""
    status_code = 401


class NotFoundError(StudyTrackerError):
    """Update/delete on a row that does not exist or is not owned by the caller."""
    status_code = 404


class TransientStoreError(StudyTrackerError):
    """The store failed for infrastructure reasons; the caller may retry."""
    status_code = 503
