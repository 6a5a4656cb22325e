"""FastAPI application entry point."""
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from sqlalchemy.exc import SQLAlchemyError

from lms.api.v1 import content, groups, health, plans, subscriptions, users
from lms.cache import plan_cache
from lms.config import settings
from lms.middleware.logging import LoggingMiddleware, setup_logging
from lms.middleware.metrics import MetricsMiddleware
from lms.schemas.error import REMEDIATION_HINTS, ErrorCode, ErrorDetail
from lms.services.content_service import ContentConflictError, ContentNotFoundError, EntitlementError

setup_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    logger.info("application_starting", env=settings.app_env)
    yield
    await plan_cache.close()
    logger.info("application_shutting_down")


app = FastAPI(
    title="LMS Subscription Service",
    description="Plan registry, subscription checks and usage limits for teachers",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(MetricsMiddleware)
app.add_middleware(LoggingMiddleware)

# Prometheus metrics endpoint
app.mount("/metrics", make_asgi_app())


def _request_id(request: Request) -> str:
    return request.headers.get("x-request-id", f"req_{uuid.uuid4().hex[:12]}")


def _error_response(
    request: Request,
    status_code: int,
    error: str,
    code: str,
    message: str,
    details: list[dict] | None = None,
    remediation: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "details": details or [{"code": code, "message": message}],
            "remediation": remediation or REMEDIATION_HINTS.get(code),
            "request_id": _request_id(request),
            "timestamp": datetime.utcnow().isoformat() + "Z",
        },
        headers=headers,
    )


@app.exception_handler(EntitlementError)
async def entitlement_exception_handler(request: Request, exc: EntitlementError) -> JSONResponse:
    """
    Handle refused creations and ownership checks.

    Returns 403, or 503 when the plan limits could not be read. A
    misconfigured subscription is logged as an error since it needs an
    administrator, not the user, to fix it.
    """
    if exc.code == ErrorCode.INTERNAL_ERROR:
        logger.error("entitlement_check_failed", path=request.url.path, message=exc.message)
        return _error_response(
            request,
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "ServiceUnavailable",
            exc.code,
            exc.message,
            headers={"Retry-After": "30"},
        )
    if exc.code == ErrorCode.SUBSCRIPTION_MISCONFIGURED:
        logger.error("entitlement_integrity_fault", path=request.url.path, message=exc.message)
    else:
        logger.info("entitlement_refused", path=request.url.path, code=exc.code, message=exc.message)

    return _error_response(request, status.HTTP_403_FORBIDDEN, "Forbidden", exc.code, exc.message)


@app.exception_handler(ContentNotFoundError)
async def not_found_exception_handler(request: Request, exc: ContentNotFoundError) -> JSONResponse:
    """Handle missing groups, memberships and users."""
    return _error_response(request, status.HTTP_404_NOT_FOUND, "NotFound", "not_found", str(exc))


@app.exception_handler(ContentConflictError)
async def conflict_exception_handler(request: Request, exc: ContentConflictError) -> JSONResponse:
    """Handle duplicate join requests and already-answered requests."""
    return _error_response(request, status.HTTP_409_CONFLICT, "Conflict", ErrorCode.DUPLICATE_RESOURCE, str(exc))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle Pydantic validation errors with structured response.

    Returns 422 with detailed field-level validation errors.
    """
    code_mapping = {
        "uuid_parsing": ErrorCode.INVALID_UUID,
        "uuid_type": ErrorCode.INVALID_UUID,
        "enum": ErrorCode.INVALID_ENUM_VALUE,
        "missing": ErrorCode.MISSING_REQUIRED_FIELD,
    }

    details = []
    for error in exc.errors():
        details.append(
            ErrorDetail(
                code=code_mapping.get(error["type"], "validation_error"),
                message=error["msg"],
                field=".".join(str(loc) for loc in error["loc"]),
                value=error.get("input"),
            ).model_dump(mode="json")
        )

    logger.warning(
        "validation_error",
        path=request.url.path,
        method=request.method,
        error_count=len(details),
    )

    return _error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "ValidationError",
        "validation_error",
        "Request validation failed",
        details=details,
        remediation="Check the API documentation for correct request format at /docs",
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """
    Handle database errors.

    Returns 503 Service Unavailable.
    """
    logger.error(
        "database_error",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        error_message=str(exc),
    )

    # Don't expose internal database details in production
    error_message = "Database temporarily unavailable" if settings.app_env == "production" else str(exc)

    return _error_response(
        request,
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "DatabaseError",
        ErrorCode.DATABASE_ERROR,
        "A database error occurred",
        details=[{"code": ErrorCode.DATABASE_ERROR, "message": error_message}],
        headers={"Retry-After": "30"},
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle all other uncaught exceptions.

    Logs the stack trace but returns a safe message to the client.
    """
    logger.exception(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        exception_type=type(exc).__name__,
        exc_info=exc,
    )

    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "InternalServerError",
        ErrorCode.INTERNAL_ERROR,
        "An unexpected error occurred",
        details=[
            {
                "code": ErrorCode.INTERNAL_ERROR,
                "message": str(exc) if settings.debug else "Internal server error",
            }
        ],
        remediation="Please contact support with the request ID",
    )


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint with API information."""
    return {
        "service": "LMS Subscription Service",
        "version": "0.1.0",
        "status": "operational",
        "docs": "/docs",
    }


app.include_router(health.router, tags=["Health"])
app.include_router(plans.router, prefix="/v1")
app.include_router(subscriptions.router, prefix="/v1")
app.include_router(users.router, prefix="/v1")
app.include_router(groups.router, prefix="/v1")
app.include_router(content.router, prefix="/v1")
