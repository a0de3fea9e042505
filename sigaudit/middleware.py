"""Application middleware — rate limiting, CORS, logging, error mapping, shutdown."""

from __future__ import annotations

import signal
import time
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from sigaudit.config import Settings
from sigaudit.errors import (
    DefaultTemplateDeletionError,
    DirectoryClientError,
    MailboxClientError,
    MigrationError,
    NotFoundError,
    StorageError,
)

logger = structlog.get_logger()


def get_limiter(settings: Settings) -> Limiter:
    """Create a rate limiter instance."""
    return Limiter(
        key_func=get_remote_address,
        default_limits=[settings.rate_limit_default],
    )


def configure_cors(app: FastAPI, settings: Settings) -> None:
    """Add CORS middleware to the application."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-RateLimit-Remaining"],
    )


def configure_rate_limiting(app: FastAPI, settings: Settings) -> None:
    """Add rate limiting to the application."""
    limiter = get_limiter(settings)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


async def logging_middleware(request: Request, call_next) -> Response:
    """Structured logging middleware — logs every request."""
    start_time = time.monotonic()
    response = await call_next(request)
    duration_ms = round((time.monotonic() - start_time) * 1000, 2)

    logger.info(
        "http_request",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=duration_ms,
        client_ip=request.client.host if request.client else "unknown",
    )

    return response


def _error_handler(status_code: int, event: str):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        log = logger.warning if status_code < 500 else logger.error
        log(event, path=request.url.path, error=str(exc))
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    return handler


def configure_error_handlers(app: FastAPI) -> None:
    """Translate service errors into HTTP responses."""
    app.add_exception_handler(NotFoundError, _error_handler(404, "resource_not_found"))
    app.add_exception_handler(DefaultTemplateDeletionError, _error_handler(409, "default_template_delete_refused"))
    app.add_exception_handler(DirectoryClientError, _error_handler(502, "directory_unavailable"))
    app.add_exception_handler(MailboxClientError, _error_handler(502, "mailbox_unavailable"))
    app.add_exception_handler(MigrationError, _error_handler(500, "schema_migration_failed"))
    app.add_exception_handler(StorageError, _error_handler(500, "storage_failed"))


def configure_structured_logging(settings: Settings) -> None:
    """Configure structlog for JSON or console output."""
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — startup and shutdown handlers."""
    settings = app.state.settings
    configure_structured_logging(settings)

    logger.info(
        "application_starting",
        version=settings.app_version,
        environment=settings.environment,
        directory_configured=settings.directory_configured,
    )

    # Stop audit runs between users on SIGTERM/SIGINT, then defer to the server's handler
    previous = {sig: signal.getsignal(sig) for sig in (signal.SIGTERM, signal.SIGINT)}

    def _handle_signal(signum, frame):
        app.state.cancel_event.set()
        logger.info("shutdown_signal_received", signal=signum)
        handler = previous.get(signum)
        if callable(handler):
            handler(signum, frame)

    for sig in previous:
        signal.signal(sig, _handle_signal)

    yield

    logger.info("application_shutting_down")
    app.state.cancel_event.set()
    app.state.database.dispose()
