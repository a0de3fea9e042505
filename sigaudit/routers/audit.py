"""Signature audit API endpoints."""

from __future__ import annotations

import time

import structlog
from fastapi import APIRouter, HTTPException, Request

from sigaudit.errors import AuditCancelledError
from sigaudit.schemas.audit import AuditResult, AuditRunResponse
from sigaudit.services.auditor import summarize

logger = structlog.get_logger()

router = APIRouter(prefix="/api/audit", tags=["audit"])


@router.post("/run", response_model=AuditRunResponse)
async def run_audit(request: Request) -> AuditRunResponse:
    """Classify every enabled directory user against the default template."""
    service = request.app.state.audit_service
    start = time.monotonic()
    try:
        results = await service.audit_all(cancel_event=request.app.state.cancel_event)
    except AuditCancelledError as exc:
        raise HTTPException(
            status_code=503,
            detail=f"Audit cancelled after {len(exc.partial_results)} user(s); service is shutting down",
        ) from exc
    summary = summarize(results, time.monotonic() - start)
    logger.info(
        "audit_run_completed",
        total_users=summary.total_users,
        compliance=summary.profile_compliance_percentage,
        duration=round(summary.audit_duration, 3),
    )
    return AuditRunResponse(results=results, summary=summary)


@router.get("/users/{user_id}", response_model=AuditResult)
async def audit_user(user_id: str, request: Request) -> AuditResult:
    """Audit a single user by directory id or email address."""
    return await request.app.state.audit_service.audit_one(user_id)
