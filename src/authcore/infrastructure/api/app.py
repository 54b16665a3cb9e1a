"""FastAPI application factory and configuration.

This module provides the application factory function for creating
and configuring the FastAPI application with middleware, routes,
exception handlers and lifecycle handlers.
"""

import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from authcore.core.config import Settings, get_settings
from authcore.core.logging import (
    bind_correlation_id,
    clear_context,
    configure_logging,
    get_logger,
)
from authcore.domain.exceptions import (
    AuthError,
    ConflictError,
    DuplicateEmailError,
    InactiveAccountError,
    InvalidCredentialsError,
    InvalidTokenError,
)
from authcore.infrastructure.persistence.database import (
    close_database,
    get_db_manager,
    init_database,
)

logger = get_logger(__name__)

# Status code and error label per business error.
ERROR_STATUS: dict[type[AuthError], tuple[int, str]] = {
    DuplicateEmailError: (status.HTTP_409_CONFLICT, "Conflict"),
    InvalidCredentialsError: (status.HTTP_401_UNAUTHORIZED, "Authentication failed"),
    InactiveAccountError: (status.HTTP_403_FORBIDDEN, "Forbidden"),
    InvalidTokenError: (status.HTTP_401_UNAUTHORIZED, "Authentication failed"),
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager: database startup and shutdown."""
    settings: Settings = app.state.settings
    configure_logging(settings)

    logger.info(
        "Starting authcore",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    try:
        await init_database()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error("Failed to initialize database", error=str(e))
        raise

    yield

    logger.info("Shutting down authcore")
    await close_database()
    logger.info("Database connection closed")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use. Defaults to the cached application settings.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Credential and session authority",
        docs_url="/docs" if settings.is_development else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.is_development else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    register_health_check(app, settings)
    register_routes(app, settings)
    register_exception_handlers(app, settings)
    register_middleware(app)

    return app


def register_health_check(app: FastAPI, settings: Settings) -> None:
    """Register health check endpoints."""

    @app.get("/health", tags=["health"])
    async def health_check():
        """Return 200 if the service is running."""
        return {
            "status": "healthy",
            "service": settings.app_name,
            "version": settings.app_version,
        }

    @app.get("/ready", tags=["health"])
    async def readiness_check():
        """Return 200 if the database is reachable, 503 otherwise."""
        if await get_db_manager().check_connection():
            return {"status": "ready", "database": "connected"}
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "database": "disconnected"},
        )


def register_routes(app: FastAPI, settings: Settings) -> None:
    """Register API routes."""
    from authcore.infrastructure.api.routes import auth_router

    app.include_router(auth_router, prefix=f"{settings.api_prefix}/auth", tags=["auth"])


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Register handlers that translate business errors into responses."""

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
        for error_type, (status_code, label) in ERROR_STATUS.items():
            if isinstance(exc, error_type):
                headers = (
                    {"WWW-Authenticate": "Bearer"}
                    if status_code == status.HTTP_401_UNAUTHORIZED
                    else None
                )
                return JSONResponse(
                    status_code=status_code,
                    content={"error": label, "message": str(exc)},
                    headers=headers,
                )

        # ConflictError after retries, or anything unexpected in the taxonomy
        logger.error(
            "Unhandled authentication error",
            path=str(request.url.path),
            exc_type=type(exc).__name__,
            retry_exhausted=isinstance(exc, ConflictError),
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error", "message": "Could not complete request"},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
            exc_type=type(exc).__name__,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "message": str(exc) if settings.debug else "An unexpected error occurred",
            },
        )


def register_middleware(app: FastAPI) -> None:
    """Register custom middleware."""

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        """Log requests and propagate a correlation ID."""
        correlation_id = request.headers.get("X-Correlation-ID", f"cid_{uuid.uuid4().hex[:12]}")
        bind_correlation_id(correlation_id)

        logger.info("Request started", method=request.method, path=str(request.url.path))
        try:
            response = await call_next(request)
            logger.info(
                "Request completed",
                method=request.method,
                path=str(request.url.path),
                status_code=response.status_code,
            )
            response.headers["X-Correlation-ID"] = correlation_id
            return response
        finally:
            clear_context()
