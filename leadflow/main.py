"""leadflow: FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from leadflow.adapters.persistence.database import engine
from leadflow.config import settings
from leadflow.domain.errors import (
    AlreadyFinalStageError,
    AlreadyTerminalError,
    ConcurrentUpdateError,
    InvalidStageError,
    LeadAlreadyAssignedError,
    LeadflowError,
    NoAvailableMemberError,
    NotFoundError,
)
from leadflow.infrastructure.api.dependencies import http_client, notification_dispatcher
from leadflow.infrastructure.api.routes_deals import router as deals_router
from leadflow.infrastructure.api.routes_health import router as health_router
from leadflow.infrastructure.api.routes_routing import router as routing_router
from leadflow.infrastructure.api.routes_team import router as team_router

logger = logging.getLogger(__name__)

# Most specific first; the first matching class wins
ERROR_STATUS: list[tuple[type[Exception], int]] = [
    (NotFoundError, 404),
    (NoAvailableMemberError, 503),
    (InvalidStageError, 422),
    (AlreadyFinalStageError, 409),
    (AlreadyTerminalError, 409),
    (LeadAlreadyAssignedError, 409),
    (ConcurrentUpdateError, 409),
    (ValueError, 422),
]


def status_for(exc: Exception) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status
    return 400


async def _domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status = status_for(exc)
    if status == 409 and isinstance(exc, ConcurrentUpdateError):
        logger.warning("Concurrent update on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    try:
        async with engine.begin():
            pass  # Connection pool warmed up
        logger.info("Database connection established")
    except Exception as e:
        logger.warning("Database not available on startup: %s", e)
    notification_dispatcher.start()
    yield
    await notification_dispatcher.stop()
    await http_client.aclose()
    await engine.dispose()


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = FastAPI(
        title="leadflow - lead routing and deal pipeline",
        description="Territory / round-robin lead routing, response SLAs, escalation and CRM deal stages",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_exception_handler(LeadflowError, _domain_error_handler)
    app.add_exception_handler(ValueError, _domain_error_handler)

    # Register routers
    app.include_router(health_router, prefix="/api")
    app.include_router(team_router, prefix="/api")
    app.include_router(routing_router, prefix="/api")
    app.include_router(deals_router, prefix="/api")

    return app


app = create_app()
