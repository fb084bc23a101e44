"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from driver_pay.api.routes import (
    assignments_router,
    health_router,
    legs_router,
    loads_router,
    payables_router,
    profiles_router,
)
from driver_pay.config import get_settings
from driver_pay.database import dispose_db, init_db
from driver_pay.errors import (
    AssignmentError,
    DriverPayError,
    EntityNotFoundError,
    InvalidRuleConfigurationError,
    LegUnassignedError,
    MissingDispatchLegError,
    NoActiveProfileError,
    PayableEditError,
    SplitError,
)
from driver_pay.logging_config import configure_logging

logger = logging.getLogger(__name__)

# Most specific class first
ERROR_STATUS: list[tuple[type[DriverPayError], int, str]] = [
    (EntityNotFoundError, status.HTTP_404_NOT_FOUND, "NOT_FOUND"),
    (MissingDispatchLegError, status.HTTP_404_NOT_FOUND, "MISSING_DISPATCH_LEG"),
    (NoActiveProfileError, status.HTTP_409_CONFLICT, "NO_ACTIVE_PROFILE"),
    (LegUnassignedError, status.HTTP_409_CONFLICT, "LEG_UNASSIGNED"),
    (AssignmentError, status.HTTP_409_CONFLICT, "ASSIGNMENT_CONFLICT"),
    (InvalidRuleConfigurationError, 422, "INVALID_RULE_CONFIGURATION"),
    (PayableEditError, 422, "PAYABLE_EDIT_REJECTED"),
    (SplitError, 422, "INVALID_SPLIT"),
]


def error_status(exc: DriverPayError) -> tuple[int, str]:
    """HTTP status and error code for a domain error."""
    for error_type, status_code, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code, code
    return status.HTTP_400_BAD_REQUEST, "DRIVER_PAY_ERROR"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    init_db()
    yield
    # Shutdown
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Driver Pay Engine API",
        description="Driver and carrier pay calculation for dispatch legs",
        version=settings.engine_version,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(DriverPayError)
    async def driver_pay_exception_handler(
        request: Request, exc: DriverPayError
    ) -> JSONResponse:
        """Map domain errors to HTTP responses."""
        status_code, code = error_status(exc)
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "code": code},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(profiles_router, prefix="/api/v1")
    app.include_router(assignments_router, prefix="/api/v1")
    app.include_router(legs_router, prefix="/api/v1")
    app.include_router(loads_router, prefix="/api/v1")
    app.include_router(payables_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
