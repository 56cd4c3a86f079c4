"""
Error taxonomy for the league engine.

Every error carries a machine-readable ``code`` and the HTTP status the API
answers with, so routes can simply let them propagate to the error handler.
"""


class LeagueError(Exception):
    """Base class for all league engine errors"""

    code = "internal"
    status_code = 500

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__

    def to_dict(self):
        return {"error": self.code, "message": self.message}


class ValidationError(LeagueError):
    """Malformed roster, result or scoring profile"""

    code = "invalid-argument"
    status_code = 400


class AuthenticationRequiredError(LeagueError):
    """Login required"""

    code = "unauthenticated"
    status_code = 401


class PermissionDeniedError(LeagueError):
    """Only admins can perform this operation"""

    code = "permission-denied"
    status_code = 403


class NotFoundError(LeagueError):
    """Requested record does not exist"""

    code = "not-found"
    status_code = 404


class RateLimitError(LeagueError):
    """Too many attempts"""

    code = "resource-exhausted"
    status_code = 429

    def __init__(self, retry_after, operation=None, message=None):
        self.retry_after = int(retry_after)
        self.operation = operation
        super().__init__(
            message
            or f"Too many attempts. Please try again in {self.retry_after} seconds."
        )

    def to_dict(self):
        data = super().to_dict()
        data["retry_after"] = self.retry_after
        return data


class TransientStoreError(LeagueError):
    """Leaderboard commit failed; the previous leaderboard is still in place"""

    code = "unavailable"
    status_code = 503


class RecomputeFailedError(LeagueError):
    """Recalculation failed on server"""

    code = "internal"
    status_code = 500


class DataIntegrityWarning(UserWarning):
    """A result references a driver missing from the reference data"""
