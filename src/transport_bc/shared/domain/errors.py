"""Error taxonomy for the transport tracking core.

HTTP adapters map these onto status codes; services raise them and never
return status codes themselves.
"""
from datetime import datetime
from typing import Optional


class TransportError(Exception):
    """Base class for all tracking errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TransportError):
    """Bad coordinates, missing required fields or out-of-range parameters."""

    status_code = 400


class AuthContextError(TransportError):
    """Missing tenant (school) or user context on the request."""

    status_code = 401


class NotFoundError(TransportError):
    """Unknown vehicle, trip, route or stop, including cross-tenant access."""

    status_code = 404


class RateLimitedError(TransportError):
    """Location submissions exceeded the sliding-window limit."""

    status_code = 429

    def __init__(self, message: str, reset_at: datetime, retry_after: float, scope: Optional[str] = None):
        super().__init__(message)
        self.reset_at = reset_at
        self.retry_after = retry_after
        self.scope = scope


class DependencyUnavailableError(TransportError):
    """The ephemeral key-value store could not be reached.

    Read and rate-limit paths catch this and fail open; it is never
    rendered to API callers directly.
    """

    status_code = 503
