"""Schemas for signature preview, deployment and history."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SignatureHistoryEntry(BaseModel):
    """A signature that was written to a mailbox."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    html: str
    text: str | None = None
    template_id: str | None = None
    deployed_at: datetime
    deployed_by: str | None = None
    note: str | None = None


class PreviewResponse(BaseModel):
    """Rendered signature for a user, not written anywhere."""

    user_id: str
    template_id: str
    html: str
    text: str


class DeployRequest(BaseModel):
    """Request to deploy or roll back a signature."""

    deployed_by: str | None = Field(default=None, max_length=255)


class DeploymentResult(BaseModel):
    """Outcome of writing a signature to a mailbox."""

    user_id: str
    mail: str | None = None
    success: bool
    message: str
    history_entry: SignatureHistoryEntry | None = None
