import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress
from typing import Annotated

from fastapi import APIRouter, Depends, FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware

from ip_finder.config import Settings, get_settings
from ip_finder.errors import AppError
from ip_finder.exception_handlers import app_error_handler, rate_limit_headers, unhandled_exception_handler
from ip_finder.logger import logger
from ip_finder.lookup_service import LookupService, build_lookup_service
from ip_finder.models.common import Provider
from ip_finder.models.response_models import ErrorResponse, HealthResponse, IPLookupResponse, MessageResponse

LOOKUP_ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    status.HTTP_429_TOO_MANY_REQUESTS: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
}

router = APIRouter()


def get_lookup_service(request: Request) -> LookupService:
    """Dependency returning the LookupService owned by the running app."""
    return request.app.state.lookup_service


async def _sweep_periodically(service: LookupService, interval_seconds: float) -> None:
    """Drop expired cache entries and idle rate limit windows every `interval_seconds`."""
    while True:
        await asyncio.sleep(interval_seconds)
        service.purge_expired()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    interval = app.state.settings.cache_check_period
    sweeper = None
    if interval > 0:
        sweeper = asyncio.create_task(_sweep_periodically(app.state.lookup_service, interval))
    app.state.sweeper = sweeper
    logger.info(f"Started IP Finder API port={app.state.settings.port}")
    yield
    if sweeper is not None:
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper


def _caller_identity(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def _perform_lookup(
    request: Request,
    response: Response,
    service: LookupService,
    ip: str | None,
    provider: Provider,
) -> IPLookupResponse:
    identity = _caller_identity(request)
    if ip:
        logger.info(
            "Performing explicit IP lookup "
            f"path={request.url.path} method={request.method} ip={ip} provider={provider.value}"
        )
    else:
        logger.info(
            "Performing own IP lookup "
            f"path={request.url.path} method={request.method} client_ip={identity} "
            f"x_forwarded_for={request.headers.get('x-forwarded-for')} provider={provider.value}"
        )

    result = await service.lookup(ip, provider, identity=identity)
    response.headers.update(rate_limit_headers(result.rate_limit))
    return IPLookupResponse(**result.record.model_dump())


@router.get("/", response_model=MessageResponse, tags=["meta"], summary="Service banner")
async def root() -> MessageResponse:
    return MessageResponse(message="IP Address Finder API")


@router.get(
    "/health",
    tags=["meta"],
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
)
async def health() -> HealthResponse:
    """Basic health check endpoint."""
    return HealthResponse(status="ok")


@router.get(
    "/api/lookup",
    response_model=IPLookupResponse,
    response_model_exclude_none=True,
    responses=LOOKUP_ERROR_RESPONSES,
    tags=["ip"],
    summary="Look up the caller's own address via ipapi.co.",
)
async def lookup_own_ip(
    request: Request,
    response: Response,
    service: Annotated[LookupService, Depends(get_lookup_service)],
) -> IPLookupResponse:
    return await _perform_lookup(request, response, service, None, Provider.ipapi_co)


@router.get(
    "/api/lookup/{ip}",
    response_model=IPLookupResponse,
    response_model_exclude_none=True,
    responses=LOOKUP_ERROR_RESPONSES,
    tags=["ip"],
    summary="Look up an IP address via ipapi.co.",
)
async def lookup_ip(
    ip: str,
    request: Request,
    response: Response,
    service: Annotated[LookupService, Depends(get_lookup_service)],
) -> IPLookupResponse:
    return await _perform_lookup(request, response, service, ip, Provider.ipapi_co)


@router.get(
    "/api/lookup-alt",
    response_model=IPLookupResponse,
    response_model_exclude_none=True,
    responses=LOOKUP_ERROR_RESPONSES,
    tags=["ip"],
    summary="Look up the caller's own address via ipinfo.io.",
)
async def lookup_own_ip_alt(
    request: Request,
    response: Response,
    service: Annotated[LookupService, Depends(get_lookup_service)],
) -> IPLookupResponse:
    return await _perform_lookup(request, response, service, None, Provider.ipinfo_io)


@router.get(
    "/api/lookup-alt/{ip}",
    response_model=IPLookupResponse,
    response_model_exclude_none=True,
    responses=LOOKUP_ERROR_RESPONSES,
    tags=["ip"],
    summary="Look up an IP address via ipinfo.io.",
)
async def lookup_ip_alt(
    ip: str,
    request: Request,
    response: Response,
    service: Annotated[LookupService, Depends(get_lookup_service)],
) -> IPLookupResponse:
    return await _perform_lookup(request, response, service, ip, Provider.ipinfo_io)


@router.post(
    "/api/clear-cache",
    response_model=MessageResponse,
    tags=["admin"],
    summary="Flush every cached lookup result.",
)
async def clear_cache(service: Annotated[LookupService, Depends(get_lookup_service)]) -> MessageResponse:
    """Not rate limited: intended for trusted administrative callers."""
    service.clear_cache()
    return MessageResponse(message="Cache cleared successfully")


def create_app(settings: Settings | None = None, lookup_service: LookupService | None = None) -> FastAPI:
    """Build the FastAPI application with its own cache and rate limiter."""
    settings = settings or get_settings()

    app = FastAPI(
        title="IP Finder API",
        version="0.1.0",
        description="Caching, rate-limited proxy in front of IP geolocation providers.",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.lookup_service = lookup_service or build_lookup_service(settings)
    app.state.sweeper = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=["RateLimit-Limit", "RateLimit-Remaining", "RateLimit-Reset", "Retry-After"],
    )
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
    app.include_router(router)
    return app


app = create_app()
