"""
Error taxonomy shared by services and routers.

Services raise these; ``airview.main`` maps them to HTTP responses.
"""
from typing import Optional


class AirViewError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AirViewError):
    """Malformed input. Not retryable."""
    status_code = 400


class AuthError(AirViewError):
    """Upstream OAuth rejected the credentials."""
    status_code = 401


class ApiError(AirViewError):
    """Upstream provider HTTP failure."""
    status_code = 502

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class ConflictError(AirViewError):
    status_code = 409


class NotFoundError(AirViewError):
    status_code = 404


class SecurityError(AirViewError):
    """Webhook signature mismatch."""
    status_code = 401


class PlanLimitError(AirViewError):
    status_code = 403
