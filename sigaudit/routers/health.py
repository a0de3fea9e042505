"""Health check endpoints for production monitoring."""

from __future__ import annotations

import time

from fastapi import APIRouter, Request

from sigaudit.schemas.health import HealthResponse, ServiceHealth

router = APIRouter(tags=["health"])


async def _check_service(name: str, check_fn) -> ServiceHealth:
    """Run a health check function and return a ServiceHealth result."""
    start = time.monotonic()
    try:
        await check_fn()
        latency = (time.monotonic() - start) * 1000
        return ServiceHealth(
            service=name,
            status="healthy",
            latency_ms=round(latency, 2),
        )
    except Exception as exc:
        latency = (time.monotonic() - start) * 1000
        return ServiceHealth(
            service=name,
            status="unhealthy",
            latency_ms=round(latency, 2),
            details=str(exc)[:200],
        )


async def _check_app() -> None:
    """Application self-check — always passes."""
    pass


def _response(request: Request, services: list[ServiceHealth], failed: str) -> HealthResponse:
    settings = request.app.state.settings
    overall = "healthy" if all(s.status in ("healthy", "not_configured") for s in services) else failed
    return HealthResponse(
        status=overall,
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        directory_configured=settings.directory_configured,
        services=services,
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Basic health check — is the application running?"""
    return _response(request, [await _check_service("app", _check_app)], failed="degraded")


@router.get("/health/ready", response_model=HealthResponse)
async def readiness_check(request: Request) -> HealthResponse:
    """Readiness check — record store reachable, directory credentials present."""
    settings = request.app.state.settings
    database = request.app.state.database

    async def _check_database() -> None:
        database.ping()

    services = [
        await _check_service("app", _check_app),
        await _check_service("record_store", _check_database),
    ]
    if not settings.directory_configured:
        services.append(
            ServiceHealth(service="directory", status="not_configured", details="Client credentials are not set")
        )
    return _response(request, services, failed="unhealthy")


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """Liveness probe — is the process alive?"""
    return {"status": "alive"}
