"""Signature audit — per-user compliance classification and audit runs.

The classifier never raises for a single user: collaborator failures and
unexpected errors end up in that user's AuditResult, so an audit run always
returns one result per directory user.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Protocol

import structlog

from sigaudit.errors import AuditCancelledError
from sigaudit.schemas.audit import (
    AuditProgress,
    AuditResult,
    AuditSummary,
    Discrepancy,
    SignatureStatus,
)
from sigaudit.schemas.overrides import OverrideRecord, is_blank, utcnow
from sigaudit.schemas.profile import Profile
from sigaudit.schemas.template import TemplateDefinition
from sigaudit.services.collaborators import DirectoryService, MailboxSignatureService, find_user
from sigaudit.services.override_store import OverrideStore
from sigaudit.services.renderer import render_signature
from sigaudit.services.template_store import TemplateStore

logger = structlog.get_logger()

MAILBOX_ACCESS = "MailboxAccess"

# Descriptions that mean the mailbox refused us, matched case-insensitively
_ACCESS_DENIED_MARKERS = ("access denied", "cannot access")

ProgressSink = Callable[[AuditProgress], None]


class CancelSignal(Protocol):
    """Anything with ``is_set()``: threading.Event, asyncio.Event."""

    def is_set(self) -> bool: ...


def completeness_discrepancies(profile: Profile) -> list[Discrepancy]:
    """Advisory discrepancies for directory data the signature relies on."""
    found = []
    if is_blank(profile.job_title):
        found.append(
            Discrepancy(
                field="JobTitle",
                expected_value="(job title)",
                actual_value=None,
                description="Job title is missing - signature will show empty title",
            )
        )
    if is_blank(profile.department):
        found.append(
            Discrepancy(
                field="Department",
                expected_value="(department)",
                actual_value=None,
                description="Department is missing - signature will show empty department",
            )
        )
    if is_blank(profile.business_phone) and is_blank(profile.mobile_phone):
        found.append(
            Discrepancy(
                field="Phone",
                expected_value="(phone number)",
                actual_value=None,
                description="No phone number set - signature will show empty phone",
            )
        )
    return found


def is_access_denied(discrepancy: Discrepancy) -> bool:
    if discrepancy.field != MAILBOX_ACCESS:
        return False
    description = discrepancy.description.lower()
    return any(marker in description for marker in _ACCESS_DENIED_MARKERS)


def decide_status(discrepancies: list[Discrepancy], current_html: str | None) -> SignatureStatus:
    """First matching rule wins: denied, incomplete, has signature, ready."""
    if any(is_access_denied(d) for d in discrepancies):
        return SignatureStatus.NOT_ACCESSIBLE
    if any(d.field in ("JobTitle", "Department") for d in discrepancies):
        return SignatureStatus.INCOMPLETE
    if not is_blank(current_html):
        return SignatureStatus.MATCH
    return SignatureStatus.READY_TO_DEPLOY


class SignatureClassifier:
    """Decides one user's compliance status."""

    def __init__(self, mailbox: MailboxSignatureService) -> None:
        self.mailbox = mailbox

    async def classify(
        self,
        profile: Profile,
        template: TemplateDefinition,
        overrides: OverrideRecord | None = None,
    ) -> AuditResult:
        log = logger.bind(user_id=profile.id, user=profile.display_name)

        if is_blank(profile.mail):
            log.warning("audit_user_without_mail")
            return AuditResult(
                user=profile,
                status=SignatureStatus.ERROR,
                error_message="User does not have an email address",
            )

        try:
            expected_html = render_signature(template, profile, overrides)
            discrepancies = completeness_discrepancies(profile)

            current_html = None
            try:
                signature = await self.mailbox.get_signature(profile.mail)
                current_html = signature.html
                if not signature.is_accessible:
                    discrepancies.append(
                        Discrepancy(
                            field=MAILBOX_ACCESS,
                            expected_value="Accessible",
                            actual_value="Not accessible",
                            description=signature.access_error or "Cannot access mailbox to deploy signature",
                        )
                    )
            except Exception as exc:
                log.warning("audit_mailbox_check_failed", error=str(exc))
                discrepancies.append(
                    Discrepancy(
                        field=MAILBOX_ACCESS,
                        expected_value="Accessible",
                        actual_value="Error",
                        description=f"Cannot verify mailbox access: {exc}",
                    )
                )

            status = decide_status(discrepancies, current_html)
        except Exception as exc:
            log.error("audit_user_failed", error=str(exc))
            return AuditResult(user=profile, status=SignatureStatus.ERROR, error_message=str(exc))

        log.info("audit_user_classified", status=status.value, discrepancies=len(discrepancies))
        return AuditResult(
            user=profile,
            status=status,
            expected_html=expected_html,
            current_html=current_html,
            discrepancies=tuple(discrepancies),
        )


class AuditService:
    """Runs the classifier over the directory."""

    def __init__(
        self,
        directory: DirectoryService,
        mailbox: MailboxSignatureService,
        templates: TemplateStore,
        overrides: OverrideStore,
    ) -> None:
        self.directory = directory
        self.templates = templates
        self.overrides = overrides
        self.classifier = SignatureClassifier(mailbox)

    async def audit_all(
        self,
        progress: ProgressSink | None = None,
        cancel_event: CancelSignal | None = None,
    ) -> list[AuditResult]:
        """Classify every directory user, one at a time, in directory order."""
        users = await self.directory.list_users()
        template = self.templates.get_default()
        stored = self.overrides.get_many([u.id for u in users])
        total = len(users)
        logger.info("audit_started", total_users=total, template=template.name)

        results: list[AuditResult] = []
        for user in users:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("audit_cancelled", processed_users=len(results), total_users=total)
                raise AuditCancelledError(results)
            results.append(await self.classifier.classify(user, template, stored.get(user.id)))
            if progress is not None:
                progress(
                    AuditProgress(
                        total_users=total,
                        processed_users=len(results),
                        current_user_name=user.display_name,
                    )
                )

        logger.info("audit_completed", total_users=total)
        return results

    async def audit_one(self, user_id_or_email: str) -> AuditResult:
        profile = await find_user(self.directory, user_id_or_email)
        if profile is None:
            logger.warning("audit_user_not_found", lookup=user_id_or_email)
            return AuditResult(
                user=Profile(id=user_id_or_email, display_name="Unknown User"),
                status=SignatureStatus.ERROR,
                error_message="User not found in directory",
            )
        template = self.templates.get_default()
        return await self.classifier.classify(profile, template, self.overrides.get(profile.id))


_BUCKETS = {
    SignatureStatus.MATCH: "compliant_users",
    SignatureStatus.READY_TO_DEPLOY: "ready_to_deploy_count",
    SignatureStatus.INCOMPLETE: "incomplete_profile_count",
    SignatureStatus.MISSING: "missing_signatures",
    SignatureStatus.OUTDATED: "outdated_signatures",
    SignatureStatus.INCONSISTENT: "inconsistent_signatures",
    SignatureStatus.ERROR: "error_count",
    SignatureStatus.NOT_ACCESSIBLE: "not_accessible_count",
}


def summarize(results: list[AuditResult], duration: float) -> AuditSummary:
    counts = dict.fromkeys(_BUCKETS.values(), 0)
    for result in results:
        counts[_BUCKETS[result.status]] += 1
    return AuditSummary(
        total_users=len(results),
        audit_timestamp=utcnow(),
        audit_duration=max(duration, 0.0),
        **counts,
    )


async def run_audit(service: AuditService, progress: ProgressSink | None = None) -> tuple[list[AuditResult], AuditSummary]:
    """Full audit run with timing."""
    start = time.monotonic()
    results = await service.audit_all(progress=progress)
    return results, summarize(results, time.monotonic() - start)
