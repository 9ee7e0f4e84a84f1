"""FastAPI application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from bookingcore.api.v1.router import api_router
from bookingcore.commands.engine import CommandEngine
from bookingcore.config import settings
from bookingcore.core.exceptions import AppException
from bookingcore.core.middleware import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from bookingcore.database import async_session_maker, close_db, get_db_context, init_db
from bookingcore.repositories.booking_repository import (
    BookingRepository,
    InMemoryBookingRepository,
    SqlBookingRepository,
)
from bookingcore.services.event_bus import ALL_EVENTS, EventBus
from bookingcore.worker import celery_app

logger = logging.getLogger(__name__)

DELIVER_EVENT_TASK = "bookingcore.tasks.deliver_booking_event"
ENQUEUE_TIMEOUT_SECONDS = 5.0


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def forward_to_worker(event_name: str, payload: dict[str, Any]) -> None:
    """Queue a booking event for webhook delivery by the Celery worker."""
    await asyncio.wait_for(
        asyncio.to_thread(celery_app.send_task, DELIVER_EVENT_TASK, args=[event_name, payload]),
        timeout=ENQUEUE_TIMEOUT_SECONDS,
    )


def log_event(event_name: str, payload: dict[str, Any]) -> None:
    logger.info(
        f"{event_name}: booking {payload.get('reservation_number')} "
        f"{payload.get('previous_status')}/{payload.get('previous_payment_status')} -> "
        f"{payload.get('status')}/{payload.get('payment_status')}"
    )


def build_repository() -> BookingRepository:
    if settings.repository_backend == "memory":
        logger.warning("Using the in-memory booking store; bookings are lost on restart")
        return InMemoryBookingRepository()
    return SqlBookingRepository(async_session_maker)


def build_event_bus() -> EventBus:
    events = EventBus()
    events.on(ALL_EVENTS, log_event, priority=10)
    if settings.event_webhook_url:
        events.on(ALL_EVENTS, forward_to_worker)
    return events


def build_command_engine() -> CommandEngine:
    return CommandEngine(
        repository=build_repository(),
        events=build_event_bus(),
        max_history_size=settings.command_history_max_size,
        timeout_seconds=settings.command_timeout_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events."""
    # Startup
    if settings.debug and settings.repository_backend == "sql":
        await init_db()

    yield

    # Shutdown
    if settings.repository_backend == "sql":
        await close_db()


def create_application(engine: CommandEngine | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Booking lifecycle commands with undo",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.command_engine = engine or build_command_engine()

    # Exception handlers
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        """Handle custom application exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Log unexpected errors and answer with a generic 500."""
        request_id = getattr(request.state, "request_id", None)
        logger.exception(f"[{request_id}] Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={"detail": "An unexpected error occurred", "request_id": request_id},
        )

    # Middleware (order matters - first added = last executed)
    # 1. Security headers (outermost)
    app.add_middleware(SecurityHeadersMiddleware)

    # 2. Rate limiting (production only)
    if settings.environment != "development":
        app.add_middleware(
            RateLimitMiddleware,
            requests_per_minute=settings.rate_limit_per_minute,
        )

    # 3. Request logging
    app.add_middleware(RequestLoggingMiddleware)

    # 4. CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 5. Gzip compression (innermost)
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    # Include API routes
    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/health")
    async def health_check() -> dict:
        """Health check endpoint."""
        health = {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
            "repository": settings.repository_backend,
            "timestamp": datetime.now(UTC).isoformat(),
        }
        if settings.repository_backend == "sql":
            try:
                async with get_db_context() as db:
                    await db.execute(text("SELECT 1"))
                health["database"] = "ok"
            except (SQLAlchemyError, OSError) as e:
                logger.error(f"Health check database round-trip failed: {e}")
                health["database"] = "unavailable"
                health["status"] = "degraded"
        return health

    @app.get("/")
    async def root() -> dict:
        """Root endpoint."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs" if settings.debug else None,
        }

    return app


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "bookingcore.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers,
    )
