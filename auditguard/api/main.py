"""
AuditGuard API - Main Application
FastAPI application for the compliance-audit pipeline
"""

from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from .. import __version__
from ..utils.logger import configure_logging
from .container import Container, get_container, set_container
from .domain.exceptions import DomainError, RateLimitedError
from .routes import router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    container: Container = app.state.container
    logger.info(f"Starting AuditGuard API {__version__} ({container.config.mode.value})")

    yield

    logger.info("Shutting down AuditGuard API...")
    await container.aclose()


def error_response(exc: DomainError) -> JSONResponse:
    """Client errors carry a short detail, server errors only the code."""
    if exc.is_client_error:
        content = {"error": exc.code, "detail": exc.message}
    else:
        content = {"error": exc.code}

    headers = None
    if isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(exc.window_seconds)}

    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


def create_app(container: Optional[Container] = None) -> FastAPI:
    """Create and configure the FastAPI application"""
    if container is not None:
        set_container(container)
    container = get_container()
    configure_logging(container.config.log_level)

    app = FastAPI(
        title="AuditGuard API",
        description="""
## Compliance Audit Pipeline

- **Automated audits** - `POST /api/v1/jobs/{job_id}/compliance/automated`
- **Audit history** - `GET /api/v1/jobs/{job_id}/compliance/audits`
- **Manual audits** - `POST /api/v1/compliance/audits`
- **Requirement catalog** - `GET /api/v1/compliance/requirements`

### Authentication

All tenant endpoints require the `X-User-ID` header (provided by your auth gateway).

### Rate Limits

Automated audits are limited per user (default 5 per hour).
        """,
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json"
    )
    app.state.container = container

    if container.config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=container.config.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(router)

    # Exception handlers
    @app.exception_handler(DomainError)
    async def domain_exception_handler(request: Request, exc: DomainError):
        if exc.is_client_error:
            logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}")
        else:
            logger.error(
                f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}",
                exc_info=exc.__cause__ is not None,
            )
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        fields = sorted({".".join(str(p) for p in e.get("loc", ())[1:]) or "body" for e in exc.errors()})
        return JSONResponse(
            status_code=400,
            content={"error": "INVALID_BODY", "detail": f"Invalid request: {', '.join(fields)}"},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "INTERNAL_ERROR"}
        )

    @app.get("/")
    async def root():
        return {
            "service": "AuditGuard API",
            "version": __version__,
            "docs": "/docs",
            "health": "/api/v1/health"
        }

    return app
