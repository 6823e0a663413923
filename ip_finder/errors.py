from http import HTTPStatus
from typing import Any

from ip_finder.rate_limiter import RateLimitResult


class AppError(Exception):
    """Base application error for the IP finder service.

    Carries the HTTP status and the `error`/`message` pair rendered to clients.
    """

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR
    error: str = "Internal server error"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.error, "message": self.message}


class InvalidRequestError(AppError):
    """Raised when the requested address is not a valid IPv4 or IPv6 literal."""

    status_code = HTTPStatus.BAD_REQUEST
    error = "Invalid IP address"


class ThrottleError(AppError):
    """Raised when a caller exceeded its request quota for the current window."""

    status_code = HTTPStatus.TOO_MANY_REQUESTS
    error = "Too many requests, please try again later."

    def __init__(self, rate_limit: RateLimitResult) -> None:
        super().__init__(self.error)
        self.rate_limit = rate_limit

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.error}


class UpstreamError(AppError):
    """Raised when the upstream IP provider fails or returns an error."""

    error = "Failed to fetch IP details"


class InvalidIpError(UpstreamError):
    """Raised when the supplied IP address is syntactically invalid."""

    status_code = HTTPStatus.BAD_REQUEST


class ReservedIpError(UpstreamError):
    """Raised when the supplied IP address is reserved/private (e.g. 127.0.0.1, 192.168.x.x)."""

    status_code = HTTPStatus.BAD_REQUEST


class IpNotFoundError(UpstreamError):
    """Raised when no geolocation information is found for the IP."""

    status_code = HTTPStatus.NOT_FOUND
