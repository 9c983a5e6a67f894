"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from incentive_engine.api.routes import (
    commission_rates_router,
    health_router,
    incentive_config_router,
    incentives_router,
    penalties_router,
    targets_router,
    team_pool_router,
)
from incentive_engine.config import configure_logging
from incentive_engine.database import dispose_db, init_db
from incentive_engine.errors import (
    ActorNotAllowedError,
    ConfigurationError,
    IncentiveEngineError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def status_for_error(exc: IncentiveEngineError) -> int:
    """HTTP status for an engine error."""
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, ActorNotAllowedError):
        return status.HTTP_403_FORBIDDEN
    if isinstance(exc, PreconditionError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, (ValidationError, ConfigurationError)):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    return status.HTTP_400_BAD_REQUEST


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    configure_logging()
    init_db()
    yield
    # Shutdown
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Incentive Engine API",
        description="Sales commissions, bonuses, penalties and team pools",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(IncentiveEngineError)
    async def engine_error_handler(
        request: Request, exc: IncentiveEngineError
    ) -> JSONResponse:
        """Map engine errors to their HTTP status."""
        return JSONResponse(
            status_code=status_for_error(exc),
            content={"detail": exc.message, "code": exc.code, "context": exc.details or None},
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
    for router in (
        incentive_config_router,
        commission_rates_router,
        incentives_router,
        penalties_router,
        targets_router,
        team_pool_router,
    ):
        app.include_router(router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
