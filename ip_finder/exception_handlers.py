from typing import Any

from fastapi import Request, status
from fastapi.responses import JSONResponse

from ip_finder.errors import AppError, ThrottleError, UpstreamError
from ip_finder.logger import logger
from ip_finder.rate_limiter import RateLimitResult


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Standard RateLimit-* headers describing the caller's current window."""
    headers = {
        "RateLimit-Limit": str(result.limit),
        "RateLimit-Remaining": str(result.remaining),
        "RateLimit-Reset": str(result.reset_after_seconds),
    }
    if not result.allowed:
        headers["Retry-After"] = str(result.reset_after_seconds)
    return headers


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render domain errors as structured JSON with their own status code."""
    context = f"path={request.url.path} method={request.method} status={exc.status_code}"
    headers: dict[str, str] | None = None

    if isinstance(exc, ThrottleError):
        logger.info(f"Request throttled {context}")
        headers = rate_limit_headers(exc.rate_limit)
    elif isinstance(exc, UpstreamError):
        logger.error(f"Error fetching IP details {context} error={exc.message}")
    else:
        logger.info(f"Rejected request {context} error={exc.message}")

    return JSONResponse(status_code=exc.status_code, content=exc.to_payload(), headers=headers)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected errors to return a structured 500 response."""
    logger.exception(
        f"Unhandled exception while processing request: {repr(exc)} path={request.url.path} method={request.method}"
    )
    content: dict[str, Any] = {
        "error": "Internal server error",
        "message": "An unexpected error occurred while processing the request.",
    }
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=content,
    )
