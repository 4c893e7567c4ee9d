"""
True North Advocates Intake API - FastAPI Application Entry Point

Public intake for patient-assistance requests and provider applications,
plus the authenticated staff review surface.

Request pipeline (outermost first):
- RequestContextMiddleware: correlation id, timing, last-resort 500s
- SecurityHeadersMiddleware: CORS and security headers, OPTIONS preflight
- RateLimitMiddleware: sliding window per client address
"""

import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from .api import (
    analytics_router,
    auth_router,
    communications_router,
    export_router,
    health_router,
    intake_router,
    submissions_router,
)
from .core.auth import TokenBlacklist
from .core.config import ParameterProvider, settings
from .core.context import get_client_ip, get_request_id
from .core.database import SessionLocal, engine, init_db
from .core.errors import APIError, DependencyError, RateLimitError
from .core.logging_config import configure_logging
from .core.security import generate_request_id
from .models.audit_log import AuditAction
from .services.audit import record_standalone
from .services.cache import CacheService, get_cache
from .services.rate_limit import SlidingWindowRateLimiter


logger = logging.getLogger(__name__)

INSECURE_SECRET_KEY = "dev-secret-key-change-in-production"
INTERNAL_ERROR_MESSAGE = "An error occurred processing your request"
MAX_REQUEST_ID_LENGTH = 64

SECURITY_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
}


def apply_security_headers(response: Response) -> Response:
    for name, value in SECURITY_HEADERS.items():
        response.headers[name] = value
    return response


# =============================================================================
# Request Context Middleware
# =============================================================================

class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Assigns the correlation id and times every request.

    An incoming X-Request-ID is reused when it is short enough to be a real
    id. Exceptions nothing else handled are logged with the id, audited as
    ERROR and answered with a generic 500 that carries ``requestId``.
    """

    SLOW_REQUEST_THRESHOLD_MS = 500

    async def dispatch(self, request: Request, call_next):
        incoming = request.headers.get("X-Request-ID")
        if incoming and len(incoming) <= MAX_REQUEST_ID_LENGTH:
            request.state.request_id = incoming
        else:
            request.state.request_id = generate_request_id()
        request_id = request.state.request_id

        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.exception(
                f"Unhandled error on {request.method} {request.url.path} (request_id={request_id})"
            )
            await run_in_threadpool(
                record_standalone,
                request.app.state.session_factory,
                None,
                AuditAction.ERROR,
                request.url.path,
                {"method": request.method, "error": type(exc).__name__},
                get_client_ip(request),
                request_id,
            )
            response = apply_security_headers(JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": INTERNAL_ERROR_MESSAGE, "requestId": request_id},
            ))

        process_time_ms = (time.time() - start_time) * 1000
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{process_time_ms:.2f}ms"

        if process_time_ms > self.SLOW_REQUEST_THRESHOLD_MS:
            logger.warning(
                f"Slow request: {request.method} {request.url.path} "
                f"took {process_time_ms:.2f}ms (request_id={request_id})"
            )
        elif settings.debug:
            logger.debug(f"{request.method} {request.url.path} - {process_time_ms:.2f}ms")

        return response


# =============================================================================
# Security Headers Middleware
# =============================================================================

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Open CORS for the public forms plus standard hardening headers.

    Preflight requests are answered here with an empty 200.
    """

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS":
            return apply_security_headers(Response(status_code=status.HTTP_200_OK))

        response = await call_next(request)
        return apply_security_headers(response)


# =============================================================================
# Rate Limiting Middleware
# =============================================================================

class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Rate limiting middleware using the shared sliding window limiter.

    Returns HTTP 429 when the caller's address is over the cap and audits
    the rejection. Health checks and preflights are not counted.
    """

    EXEMPT_PATHS = ("/api/health",)

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS" or request.url.path in self.EXEMPT_PATHS:
            return await call_next(request)

        limiter: SlidingWindowRateLimiter = request.app.state.rate_limiter
        client_ip = get_client_ip(request) or "unknown"

        if not await run_in_threadpool(limiter.allow, client_ip):
            request_id = get_request_id(request)
            logger.warning(f"Rate limit exceeded for {client_ip} on {request.url.path}")
            await run_in_threadpool(
                record_standalone,
                request.app.state.session_factory,
                None,
                AuditAction.RATE_LIMIT_EXCEEDED,
                request.url.path,
                {"method": request.method, "limit": limiter.limit, "window": limiter.window_seconds},
                client_ip,
                request_id,
            )
            retry_after = await run_in_threadpool(limiter.retry_after, client_ip)
            error = RateLimitError(headers={"Retry-After": str(retry_after)})
            return JSONResponse(
                status_code=error.status_code,
                content=error.to_content(),
                headers=error.headers,
            )

        return await call_next(request)


# =============================================================================
# Exception Handlers
# =============================================================================

async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_content(),
        headers=exc.headers,
    )


async def dependency_error_handler(request: Request, exc: DependencyError) -> JSONResponse:
    """Backing-service failures: audited as ERROR, answered with the request id."""
    request_id = get_request_id(request)
    await run_in_threadpool(
        record_standalone,
        request.app.state.session_factory,
        None,
        AuditAction.ERROR,
        request.url.path,
        {"method": request.method, "error": exc.message},
        get_client_ip(request),
        request_id,
    )
    content = exc.to_content()
    content["requestId"] = request_id
    return JSONResponse(status_code=exc.status_code, content=content)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies and query parameters, in the same shape as field validation."""
    errors = []
    for error in exc.errors():
        location = error.get("loc") or ("body",)
        errors.append(f"{location[-1]}: {error.get('msg')}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"errors": errors},
    )


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Startup: logging, secret check, schema creation for development and
    SQLite. Shutdown: drop cached parameters and close the pool.
    """
    configure_logging(settings)
    logger.info(f"Starting {settings.app_name} v{settings.app_version} ({settings.environment})")

    # Refuse to start in production with the development signing key
    if settings.secret_key == INSECURE_SECRET_KEY:
        if settings.is_production:
            logger.critical("SECRET_KEY still uses the development default. Refusing to start.")
            sys.exit(1)
        logger.warning("SECRET_KEY uses the development default; set a strong value before deploying")

    cache: CacheService = app.state.cache
    if cache.is_connected:
        logger.info("Redis connected: rate limits and token revocation are shared")
    else:
        logger.info("Redis not available: rate limits and token revocation are per process")

    # Production schemas are managed outside the app
    if settings.is_development or settings.database_url.startswith("sqlite"):
        init_db()
        logger.info("Database tables ensured")

    yield

    logger.info("Shutting down...")
    app.state.parameters.clear()
    engine.dispose()


# =============================================================================
# Application Factory
# =============================================================================

def create_application(
    parameters: Optional[ParameterProvider] = None,
    session_factory: Optional[Callable[[], Session]] = None,
    rate_limiter: Optional[SlidingWindowRateLimiter] = None,
    cache: Optional[CacheService] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Every collaborator can be injected; the defaults are the process-wide
    instances built from the environment.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "Intake and review API for True North Advocates patient "
            "assistance requests and provider applications."
        ),
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
        lifespan=lifespan,
    )

    cache = cache if cache is not None else get_cache()
    app.state.parameters = parameters or ParameterProvider()
    app.state.session_factory = session_factory or SessionLocal
    app.state.cache = cache
    app.state.rate_limiter = rate_limiter or SlidingWindowRateLimiter(cache)
    app.state.blacklist = TokenBlacklist(cache)

    # Added innermost first
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(DependencyError, dependency_error_handler)
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # Register routers
    app.include_router(health_router)
    app.include_router(intake_router)
    app.include_router(submissions_router)
    app.include_router(communications_router)
    app.include_router(export_router)
    app.include_router(analytics_router)
    app.include_router(auth_router)

    return app


app = create_application()


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict:
    """
    Root endpoint returning API information.
    """
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "docs": "/docs" if settings.is_development else "disabled",
    }


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tna_intake.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level="debug" if settings.debug else "info",
    )
