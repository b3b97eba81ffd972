"""
Hearth API - Main Entry Point

FastAPI application exposing the weekly stove scheduler, PID power control
and stove/thermostat coordination. Cycles are normally triggered by an
external scheduler hitting the automation routes; set
``HEARTH_INTERNAL_SCHEDULER=true`` to run them in-process instead.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore[import-untyped]
from apscheduler.triggers.interval import IntervalTrigger  # type: ignore[import-untyped]
from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse

from hearth import __version__
from hearth.api.dependencies import (
    build_orchestrator,
    build_state_store,
    build_stove_client,
    build_thermostat_client,
    get_state_store,
    set_state_store,
)
from hearth.api.middleware import APIKeyMiddleware
from hearth.api.routes import api_router
from hearth.config import get_settings
from hearth.core.decision_engine import DecisionEngine
from hearth.core.errors import (
    ConfigurationMissingError,
    HearthError,
    NotFoundError,
    ScheduleValidationError,
    UpstreamUnavailableError,
)
from hearth.models.database import close_db, init_db

# Configure logging
settings = get_settings()
logging.basicConfig(
    level=logging.DEBUG
    if settings.debug
    else getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


# ============================================================================
# Application State
# ============================================================================


class AppState:
    """Centralized application state container."""

    def __init__(self) -> None:
        self.scheduler: AsyncIOScheduler | None = None


app_state = AppState()


# ============================================================================
# Background Tasks
# ============================================================================


async def run_scheduler_check() -> None:
    """One scheduler tick with fresh collaborators."""
    store = get_state_store()
    async with (
        build_stove_client(settings) as stove,
        build_thermostat_client(settings) as thermostat,
    ):
        engine = DecisionEngine(store, stove, thermostat, settings=settings)
        await engine.check()


async def run_coordination_cycle() -> None:
    """One coordination cycle with fresh collaborators."""
    store = get_state_store()
    async with (
        build_stove_client(settings) as stove,
        build_thermostat_client(settings) as thermostat,
    ):
        await build_orchestrator(store, stove, thermostat, settings).run_cycle()


def init_scheduler() -> AsyncIOScheduler:
    """Initialize the in-process cycle scheduler."""
    scheduler = AsyncIOScheduler(
        timezone="UTC",
        job_defaults={
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": 60,
        },
    )

    # Scheduler check - every 60 seconds
    scheduler.add_job(
        run_scheduler_check,
        IntervalTrigger(seconds=60),
        id="scheduler_check",
        name="Scheduler Check",
        replace_existing=True,
    )

    # Stove/thermostat coordination - every 60 seconds
    scheduler.add_job(
        run_coordination_cycle,
        IntervalTrigger(seconds=60),
        id="coordination_cycle",
        name="Coordination Cycle",
        replace_existing=True,
    )

    return scheduler


# ============================================================================
# Lifespan
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan manager for startup and shutdown.
    """
    logger.info("Starting Hearth API...")

    if settings.state_backend == "sql":
        db_url = settings.database_url
        # Mask password in log output
        masked = db_url
        if settings.db_password:
            masked = db_url.replace(settings.db_password, "***")
        logger.info("Connecting to database: %s", masked)
        await init_db()
    else:
        logger.warning("Using the in-memory state store; state is lost on restart")
    set_state_store(build_state_store(settings))

    if settings.internal_scheduler:
        logger.info("Starting in-process cycle scheduler...")
        app_state.scheduler = init_scheduler()
        app_state.scheduler.start()

    logger.info("Hearth API started")
    yield

    logger.info("Shutting down Hearth API...")
    if app_state.scheduler is not None:
        app_state.scheduler.shutdown(wait=True)
        app_state.scheduler = None
    set_state_store(None)
    if settings.state_backend == "sql":
        await close_db()
    logger.info("Hearth API shutdown complete")


# ============================================================================
# FastAPI Application
# ============================================================================

app = FastAPI(
    title="Hearth API",
    description="""
    Hearth heating automation API.

    ## Features

    * **Weekly schedules** - Named schedules of stove power/fan slots
    * **Scheduler mode** - Automatic, manual and semi-manual operation
    * **PID power control** - Room-temperature driven stove power
    * **Coordination** - Thermostat boost while the stove heats
    """,
    version=__version__,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
)


# ============================================================================
# Middleware
# ============================================================================

if settings.api_key:
    logger.info("API key authentication enabled")
    app.add_middleware(APIKeyMiddleware, api_key=settings.api_key, cron_secret=settings.cron_secret)


@app.middleware("http")
async def request_logging_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Log all requests with timing and correlation IDs."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    start_time = time.perf_counter()

    request.state.request_id = request_id

    response = await call_next(request)
    process_time = time.perf_counter() - start_time

    response.headers["X-Request-ID"] = request_id
    response.headers["X-Process-Time"] = f"{process_time:.4f}"

    logger.info(
        "%s %s status=%d duration=%.4fs",
        request.method,
        request.url.path,
        response.status_code,
        process_time,
    )
    return response


# ============================================================================
# Route Registration
# ============================================================================

app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Basic health check."""
    return {
        "status": "healthy",
        "name": get_settings().app_name,
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
    }


# ============================================================================
# Exception Handlers
# ============================================================================


def _error_response(request: Request, code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=code,
        content={
            "error": {
                "code": code,
                "message": message,
                "request_id": getattr(request.state, "request_id", None),
            },
        },
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return _error_response(request, status.HTTP_404_NOT_FOUND, str(exc))


@app.exception_handler(ScheduleValidationError)
async def schedule_validation_handler(
    request: Request, exc: ScheduleValidationError
) -> JSONResponse:
    return _error_response(request, status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc))


@app.exception_handler(ConfigurationMissingError)
async def configuration_missing_handler(
    request: Request, exc: ConfigurationMissingError
) -> JSONResponse:
    return _error_response(request, status.HTTP_409_CONFLICT, str(exc))


@app.exception_handler(UpstreamUnavailableError)
async def upstream_unavailable_handler(
    request: Request, exc: UpstreamUnavailableError
) -> JSONResponse:
    logger.error("Upstream %s unavailable: %s", exc.source, exc)
    return _error_response(request, status.HTTP_503_SERVICE_UNAVAILABLE, str(exc))


@app.exception_handler(HearthError)
async def hearth_error_handler(request: Request, exc: HearthError) -> JSONResponse:
    logger.error("Unhandled engine error: %s", exc)
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error("Unhandled exception: %s", exc, exc_info=True)
    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An internal error occurred" if not settings.debug else str(exc),
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "hearth.api.main:app",
        host=settings.host,
        port=settings.port,
        loop="asyncio",
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
        access_log=True,
    )
