"""Schemas for signature audit results and summaries."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field

from sigaudit.schemas.profile import Profile


class SignatureStatus(str, Enum):
    """Compliance state computed for one user in one audit run."""

    MATCH = "Match"                    # Has a legacy signature on file
    MISSING = "Missing"                # No signature found
    OUTDATED = "Outdated"              # Signature differs from the template
    INCONSISTENT = "Inconsistent"      # Signature contradicts the profile
    ERROR = "Error"
    NOT_ACCESSIBLE = "NotAccessible"   # Mailbox access denied
    INCOMPLETE = "Incomplete"          # Job title or department missing
    READY_TO_DEPLOY = "ReadyToDeploy"  # Profile complete, nothing deployed


class Discrepancy(BaseModel):
    """One detected mismatch between expected and observed data."""

    model_config = ConfigDict(frozen=True)

    field: str
    expected_value: str | None = None
    actual_value: str | None = None
    description: str = ""


class AuditResult(BaseModel):
    """Per-user outcome of an audit run."""

    model_config = ConfigDict(frozen=True)

    user: Profile
    status: SignatureStatus
    expected_html: str | None = None
    current_html: str | None = None
    discrepancies: tuple[Discrepancy, ...] = ()
    error_message: str | None = None


class AuditProgress(BaseModel):
    """Progress report emitted after each user is classified."""

    model_config = ConfigDict(frozen=True)

    total_users: int
    processed_users: int
    current_user_name: str


class AuditSummary(BaseModel):
    """Aggregate counts per status bucket for one audit run."""

    model_config = ConfigDict(frozen=True)

    total_users: int = 0
    compliant_users: int = 0
    ready_to_deploy_count: int = 0
    incomplete_profile_count: int = 0
    missing_signatures: int = 0
    outdated_signatures: int = 0
    inconsistent_signatures: int = 0
    error_count: int = 0
    not_accessible_count: int = 0
    audit_timestamp: datetime
    audit_duration: float = Field(default=0.0, ge=0.0, description="Seconds")

    @computed_field
    @property
    def profile_complete_count(self) -> int:
        return self.compliant_users + self.ready_to_deploy_count

    @computed_field
    @property
    def profile_compliance_percentage(self) -> float:
        if self.total_users <= 0:
            return 0.0
        return round(self.profile_complete_count / self.total_users * 100, 1)


class AuditRunResponse(BaseModel):
    """Full audit run response."""

    results: list[AuditResult]
    summary: AuditSummary


class CompareRequest(BaseModel):
    """Request to compare an expected signature against an observed one."""

    expected_html: str = Field(..., min_length=1)
    observed_html: str | None = None


class CompareResponse(BaseModel):
    """Comparator output with the status the differences map onto."""

    status: SignatureStatus
    discrepancies: list[Discrepancy]
