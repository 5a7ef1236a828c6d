"""FastAPI application for SRO Appointments."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sro_appointments import __version__
from sro_appointments.api.middleware import APIKeyMiddleware, RequestLoggingMiddleware
from sro_appointments.api.routes import appointments, health, settings as settings_routes
from sro_appointments.config import Settings, get_settings
from sro_appointments.scheduling.errors import BookingError
from sro_appointments.scheduling.notifier import (
    CompositeNotifier,
    LoggingNotifier,
    NotificationDispatcher,
    Notifier,
)

logger = logging.getLogger(__name__)


def build_dispatcher(settings: Settings) -> NotificationDispatcher:
    """Notification pipeline: application log, plus the JSONL event log when enabled."""
    notifiers: list[Notifier] = [LoggingNotifier()]
    if settings.event_log_enabled:
        from sro_appointments.observability import EventLog

        notifiers.append(EventLog(log_dir=settings.event_log_dir))
    return NotificationDispatcher(
        CompositeNotifier(notifiers),
        timeout_seconds=settings.notification_timeout_seconds,
        max_attempts=settings.notification_max_attempts,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting SRO Appointments API")

    yield

    logger.info("Shutting down SRO Appointments API")
    dispatcher: NotificationDispatcher = app.state.dispatcher
    if dispatcher.pending:
        logger.info(f"Waiting for {dispatcher.pending} pending notifications")
    await dispatcher.drain()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="SRO Appointments API",
        description="Appointment slot allocation and lifecycle for the Student Affairs office",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.dispatcher = build_dispatcher(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(RequestLoggingMiddleware)

    if settings.has_api_key:
        app.add_middleware(APIKeyMiddleware, api_key=settings.api_key)

    # Settings/blocked routes first so /appointments/settings is not read as an id
    app.include_router(health.router, tags=["health"])
    app.include_router(settings_routes.router, prefix="/api/v1", tags=["settings"])
    app.include_router(appointments.router, prefix="/api/v1", tags=["appointments"])

    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, exc: BookingError):
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "error": "validation_error",
                "detail": "Invalid request",
                "context": {"errors": jsonable_errors(exc)},
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc) if settings.debug_mode else None,
            },
        )

    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
