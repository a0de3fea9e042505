"""Signature preview, deployment, history and comparison endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request

from sigaudit.schemas.audit import CompareRequest, CompareResponse
from sigaudit.schemas.signature import (
    DeploymentResult,
    DeployRequest,
    PreviewResponse,
    SignatureHistoryEntry,
)
from sigaudit.services.comparator import classify_difference, compare_signatures

router = APIRouter(prefix="/api/signatures", tags=["signatures"])


@router.post("/compare", response_model=CompareResponse)
async def compare(body: CompareRequest) -> CompareResponse:
    """Compare an expected signature with an observed legacy one."""
    discrepancies = compare_signatures(body.expected_html, body.observed_html)
    return CompareResponse(status=classify_difference(discrepancies), discrepancies=discrepancies)


@router.post("/{user}/preview", response_model=PreviewResponse)
async def preview_signature(user: str, request: Request, template_id: str | None = None) -> PreviewResponse:
    """Render a user's signature without deploying it."""
    return await request.app.state.deployment_service.preview(user, template_id=template_id)


@router.post("/{user}/deploy", response_model=DeploymentResult)
async def deploy_signature(user: str, request: Request, body: DeployRequest | None = None) -> DeploymentResult:
    deployed_by = body.deployed_by if body is not None else None
    return await request.app.state.deployment_service.deploy(user, deployed_by=deployed_by)


@router.get("/{user}/history", response_model=list[SignatureHistoryEntry])
async def signature_history(user: str, request: Request) -> list[SignatureHistoryEntry]:
    """Deployed signatures for a user, newest first."""
    return await request.app.state.deployment_service.history(user)


@router.post("/{user}/rollback/{entry_id}", response_model=DeploymentResult)
async def rollback_signature(
    user: str,
    entry_id: str,
    request: Request,
    body: DeployRequest | None = None,
) -> DeploymentResult:
    """Re-deploy a signature from the user's history."""
    deployed_by = body.deployed_by if body is not None else None
    return await request.app.state.deployment_service.rollback(user, entry_id, deployed_by=deployed_by)
