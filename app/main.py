"""FastAPI application routes, middleware, and metrics."""

import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from structlog.contextvars import bind_contextvars, clear_contextvars

from app.cities_service.cities import SUPPORTED_COUNTRIES, get_cities_for_countries
from app.config import Settings
from app.errors import PollutedCitiesError, ValidationError
from app.health.health_check import is_pollution_api_available, is_wikipedia_api_available
from app.logging_config import configure_logging, logger
from app.models.city import CitiesResponse, ErrorResponse
from app.models.health import (
    DetailedHealthResponse,
    ExternalApis,
    HealthResponse,
    PingResponse,
    ServiceStatus,
)
from app.services import Services

VERSION = "1.0.0"

REQUEST_COUNT = Counter(
    "http_requests_total", "Total HTTP requests", ["method", "path", "status_code"]
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds", "HTTP request duration in seconds", ["path"]
)

router = APIRouter()


def get_services(request: Request) -> Services:
    return request.app.state.services


def _uptime_s(request: Request) -> float:
    return round(time.monotonic() - request.app.state.started_at, 3)


def _error_response(status_code: int, message: str, code: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message, code=code).model_dump(),
    )


async def request_logging(request: Request, call_next):
    """Log request details, attach a request ID, and record metrics.

    Args:
        request: Incoming HTTP request.
        call_next: FastAPI handler for the next middleware/app.

    Returns:
        The response produced by the downstream handler.
    """
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    bind_contextvars(request_id=request_id)
    start = time.perf_counter()
    response = None
    try:
        response = await call_next(request)
        response.headers["x-request-id"] = request_id
        return response
    finally:
        duration_s = time.perf_counter() - start
        duration_ms = round(duration_s * 1000, 2)
        status_code = getattr(response, "status_code", 500)
        logger.info(
            "HTTP_REQUEST",
            method=request.method,
            path=request.url.path,
            status_code=status_code,
            duration_ms=duration_ms,
        )
        REQUEST_COUNT.labels(
            method=request.method, path=request.url.path, status_code=status_code
        ).inc()
        REQUEST_LATENCY.labels(path=request.url.path).observe(duration_s)
        clear_contextvars()


async def polluted_cities_error_handler(request: Request, exc: PollutedCitiesError):
    """Convert service errors into their status code and a stable error code.

    Args:
        request: Incoming HTTP request.
        exc: Raised service error.

    Returns:
        A JSON response with ``error`` and ``code``.
    """
    logger.warning(
        "REQUEST_FAILED", path=request.url.path, code=exc.code, error=exc.message
    )
    return _error_response(exc.status_code, exc.message, exc.code)


async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Convert invalid query parameters into 400 responses."""
    details = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'][1:])}: {error['msg']}"
        for error in exc.errors()
    )
    return _error_response(400, f"Invalid parameters: {details}", ValidationError.code)


async def unexpected_error_handler(request: Request, exc: Exception):
    """Hide unexpected failures behind a generic 500 response."""
    logger.error(
        "UNHANDLED_ERROR", path=request.url.path, error=str(exc), exc_info=exc
    )
    return _error_response(500, "Internal server error", "INTERNAL_ERROR")


@router.get("/cities", response_model=CitiesResponse)
async def get_cities(
    country: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    services: Services = Depends(get_services),
) -> CitiesResponse:
    """Return the polluted cities of one country, or of every supported country.

    Args:
        country: Country code (PL, DE, ES, FR); all of them when omitted.
        page: 1-based page number.
        limit: Page size, 1 to 100.
        services: Injected service graph.

    Returns:
        A CitiesResponse with the enriched cities.
    """
    if country and country not in SUPPORTED_COUNTRIES:
        raise ValidationError(f"Invalid country code: {country}")

    if country:
        cities = await services.pipeline.get_polluted_cities(country, page, limit)
    else:
        cities = await get_cities_for_countries(
            services.pipeline, SUPPORTED_COUNTRIES, page, limit
        )
    return CitiesResponse(page=page, limit=limit, total=len(cities), cities=cities)


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """Report that the process is up."""
    return HealthResponse(
        status="OK", timestamp=datetime.now(timezone.utc), uptime=_uptime_s(request)
    )


@router.get("/health/detailed", response_model=DetailedHealthResponse)
async def detailed_health(
    request: Request, services: Services = Depends(get_services)
) -> JSONResponse:
    """Report health including the reachability of both upstream APIs.

    Returns:
        200 with status OK when both upstreams respond, else 503 DEGRADED.
    """
    external_apis = ExternalApis(
        pollution_api=await is_pollution_api_available(services.pollution_http),
        wikipedia_api=await is_wikipedia_api_available(services.wikipedia_http),
    )
    healthy = (
        external_apis.pollution_api == ServiceStatus.available
        and external_apis.wikipedia_api == ServiceStatus.available
    )
    payload = DetailedHealthResponse(
        status="OK" if healthy else "DEGRADED",
        timestamp=datetime.now(timezone.utc),
        uptime=_uptime_s(request),
        external_apis=external_apis,
        version=VERSION,
        environment=services.settings.environment,
    )
    return JSONResponse(
        status_code=200 if healthy else 503, content=payload.model_dump(mode="json")
    )


@router.get("/health/ping", response_model=PingResponse)
async def ping() -> PingResponse:
    return PingResponse(message="pong", timestamp=datetime.now(timezone.utc))


@router.get("/metrics")
async def metrics():
    """Expose Prometheus metrics for scraping."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        services: Pre-built service graph; built from the environment when
            omitted.

    Returns:
        The configured application.
    """
    if services is None:
        services = Services.from_settings(Settings.from_env())
    configure_logging(services.settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.services.aclose()

    app = FastAPI(title="Polluted Cities API", version=VERSION, lifespan=lifespan)
    app.state.services = services
    app.state.started_at = time.monotonic()
    app.middleware("http")(request_logging)
    app.add_exception_handler(PollutedCitiesError, polluted_cities_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
    app.include_router(router)
    return app


app = create_app()
