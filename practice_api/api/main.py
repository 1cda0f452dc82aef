from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from practice_api.core.deps import get_tenant_scope
from practice_api.core.logging import configure_logging, correlation_id_var, tenant_label, tenant_var
from practice_api.core.settings import get_app_settings
from practice_api.db.run_migrations import upgrade_to_head
from practice_api.isolation import TenantIsolationError, TenantScope
from practice_api.schemas.common import ErrorInfo, ErrorResponse, MessageResponse, ScopeEcho

# Routers
from practice_api.api.routes.cases import router as cases_router
from practice_api.api.routes.invoices import router as invoices_router

settings = get_app_settings()

# Configure structured logging once at import
configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "Health", "description": "Liveness check and scope echo."},
    {"name": "Cases", "description": "Legal matters owned by a firm or solo lawyer."},
    {"name": "Billing", "description": "Invoices and billing summaries."},
]

app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    openapi_tags=openapi_tags,
)

# CORS - avoid wildcard with credentials
cors_allow_credentials = settings.CORS_ALLOW_CREDENTIALS
if settings.CORS_ORIGINS == ["*"] and cors_allow_credentials:
    logger.warning("CORS_ALLOW_CREDENTIALS=True with '*' origins is not permitted; disabling credentials.")
    cors_allow_credentials = False

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=cors_allow_credentials,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """
    Enrich request context with correlation_id and tenant for logging and error responses.
    Adds 'X-Correlation-ID' to every response.
    """
    corr = request.headers.get("X-Correlation-ID") or request.headers.get("X-Request-ID") or str(uuid4())
    firm_id = request.headers.get("X-Firm-ID")
    lawyer_id = request.headers.get("X-Lawyer-ID")
    token_corr = correlation_id_var.set(corr)
    token_tenant = tenant_var.set((firm_id, lawyer_id))
    request.state.correlation_id = corr
    request.state.tenant = tenant_label(firm_id, lawyer_id)

    logger.info("Incoming request %s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
    finally:
        correlation_id_var.reset(token_corr)
        tenant_var.reset(token_tenant)

    response.headers["X-Correlation-ID"] = corr
    return response


def _build_error_response(
    request: Request,
    status_code: int,
    error_type: str,
    message: str,
    details: Any | None = None,
) -> JSONResponse:
    """Build a standardized ErrorResponse JSONResponse."""
    err = ErrorResponse(
        status=status_code,
        error=ErrorInfo(type=error_type, message=message, details=details),
        correlation_id=getattr(request.state, "correlation_id", None),
        tenant=getattr(request.state, "tenant", None),
        path=request.url.path,
        method=request.method,
        timestamp=datetime.now(tz=timezone.utc),
    )
    return JSONResponse(status_code=status_code, content=err.model_dump(mode="json"))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Global handler for HTTPException to produce a standardized error envelope.
    """
    detail = exc.detail if isinstance(exc.detail, str) else "HTTP Error"
    return _build_error_response(
        request=request,
        status_code=exc.status_code,
        error_type="http_error",
        message=str(detail),
        details=None if isinstance(exc.detail, str) else exc.detail,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Global handler for request validation errors with a standard structure.
    """
    return _build_error_response(
        request=request,
        status_code=422,
        error_type="validation_error",
        message="Request validation failed",
        details=exc.errors(),
    )


@app.exception_handler(TenantIsolationError)
async def tenant_isolation_exception_handler(request: Request, exc: TenantIsolationError):
    """
    A data call reached the isolation guard without tenant scope. This is a
    programming error in the route, so it is reported as a server error.
    """
    logger.error("Tenant isolation violation: %s", exc, exc_info=exc)
    return _build_error_response(
        request=request,
        status_code=500,
        error_type="tenant_isolation_violation",
        message="A data operation was blocked because it was not scoped to a tenant",
        details=None,
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Catch-all handler to avoid leaking stack traces and to return a structured error.
    """
    logger.exception("Unhandled error processing request")
    return _build_error_response(
        request=request,
        status_code=500,
        error_type="internal_error",
        message="An unexpected error occurred",
        details=None,
    )


@app.on_event("startup")
async def on_startup() -> None:
    """
    Run migrations on service startup so the schema is up to date.
    """
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        try:
            # env.py drives its own event loop, so it cannot run on this one
            await asyncio.to_thread(upgrade_to_head)
            logger.info("Migrations completed.")
        except Exception as exc:
            logger.exception("Migration step failed: %s", exc)
            # Do not crash the app in case of transient DB issues; rely on retries or later readiness checks.


# Build API v1 router and include sub-routers
api_v1 = APIRouter(prefix="/api/v1")


# PUBLIC_INTERFACE
@api_v1.get(
    "/health",
    response_model=MessageResponse,
    summary="Health Check",
    tags=["Health"],
)
def health_check() -> MessageResponse:
    """
    Basic liveness health check endpoint.

    Returns:
        MessageResponse: Simple confirmation that the service is running.
    """
    return MessageResponse(message="Healthy")


# PUBLIC_INTERFACE
@api_v1.get(
    "/health/scope",
    response_model=ScopeEcho,
    summary="Tenant Scope Echo",
    description="Echoes the tenant scope resolved from X-Firm-ID or X-Lawyer-ID.",
    tags=["Health"],
)
async def scope_health_echo(scope: TenantScope = Depends(get_tenant_scope)) -> ScopeEcho:
    """
    Echo the resolved tenant scope to verify header handling.

    Parameters:
        X-Firm-ID (header): firm id, for firm members.
        X-Lawyer-ID (header): user id, for solo lawyers.
    Returns:
        ScopeEcho: The tenant key and value the request is scoped to.
    """
    return ScopeEcho(key=scope.key, value=scope.value)


api_v1.include_router(cases_router)
api_v1.include_router(invoices_router)

# Attach api_v1 to app
app.include_router(api_v1)
