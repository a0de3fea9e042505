"""Signature deployment — render, write to the mailbox, keep history."""

from __future__ import annotations

import structlog

from sigaudit.errors import NotFoundError, UserNotFoundError
from sigaudit.schemas.overrides import is_blank
from sigaudit.schemas.profile import Profile
from sigaudit.schemas.signature import DeploymentResult, PreviewResponse, SignatureHistoryEntry
from sigaudit.services.collaborators import DirectoryService, MailboxSignatureService, find_user
from sigaudit.services.history_store import SignatureHistoryStore
from sigaudit.services.override_store import OverrideStore
from sigaudit.services.renderer import render_plain_text, render_signature
from sigaudit.services.template_store import TemplateStore

logger = structlog.get_logger()


class SignatureDeploymentService:
    def __init__(
        self,
        directory: DirectoryService,
        mailbox: MailboxSignatureService,
        templates: TemplateStore,
        overrides: OverrideStore,
        history: SignatureHistoryStore,
    ) -> None:
        self.directory = directory
        self.mailbox = mailbox
        self.templates = templates
        self.overrides = overrides
        self.history_store = history

    async def _resolve(self, user_id_or_email: str) -> Profile:
        profile = await find_user(self.directory, user_id_or_email)
        if profile is None:
            raise UserNotFoundError(f"User '{user_id_or_email}' not found in directory")
        return profile

    async def preview(self, user_id_or_email: str, template_id: str | None = None) -> PreviewResponse:
        """Render a user's signature without writing it anywhere.

        Uses the named template when ``template_id`` is given, the default
        otherwise. Raises UserNotFoundError or NotFoundError for unknown ids.
        """
        profile = await self._resolve(user_id_or_email)
        if template_id is None:
            template = self.templates.get_default()
        else:
            template = self.templates.get(template_id)
            if template is None:
                raise NotFoundError(f"Template '{template_id}' not found")
        html = render_signature(template, profile, self.overrides.get(profile.id))
        return PreviewResponse(user_id=profile.id, template_id=template.id, html=html, text=render_plain_text(html))

    async def deploy(self, user_id_or_email: str, deployed_by: str | None = None) -> DeploymentResult:
        """Render with the default template and write it to the user's mailbox.

        Raises UserNotFoundError; MailboxClientError from the mailbox
        collaborator propagates.
        """
        profile = await self._resolve(user_id_or_email)
        if is_blank(profile.mail):
            return DeploymentResult(
                user_id=profile.id,
                success=False,
                message="User does not have an email address",
            )

        template = self.templates.get_default()
        html = render_signature(template, profile, self.overrides.get(profile.id))
        text = render_plain_text(html)
        return await self._write(profile, html, text, template.id, deployed_by, note=None)

    async def rollback(
        self,
        user_id_or_email: str,
        entry_id: str,
        deployed_by: str | None = None,
    ) -> DeploymentResult:
        """Re-deploy a previously written signature from history."""
        profile = await self._resolve(user_id_or_email)
        entry = self.history_store.get(profile.id, entry_id)
        if entry is None:
            raise NotFoundError(f"History entry '{entry_id}' not found for user '{user_id_or_email}'")
        if is_blank(profile.mail):
            return DeploymentResult(
                user_id=profile.id,
                success=False,
                message="User does not have an email address",
            )
        logger.info("signature_rollback_requested", user_id=profile.id, entry_id=entry_id)
        return await self._write(
            profile,
            entry.html,
            entry.text,
            entry.template_id,
            deployed_by,
            note=f"Rollback to {entry.deployed_at.isoformat()} ({entry.id})",
        )

    async def history(self, user_id_or_email: str) -> list[SignatureHistoryEntry]:
        """Deployed signatures for a user, newest first. Raises UserNotFoundError."""
        profile = await self._resolve(user_id_or_email)
        return self.history_store.list_for_user(profile.id)

    async def _write(
        self,
        profile: Profile,
        html: str,
        text: str | None,
        template_id: str | None,
        deployed_by: str | None,
        note: str | None,
    ) -> DeploymentResult:
        ok = await self.mailbox.set_signature(profile.mail, html, text)
        if not ok:
            logger.warning("signature_deploy_rejected", user_id=profile.id, mail=profile.mail)
            return DeploymentResult(
                user_id=profile.id,
                mail=profile.mail,
                success=False,
                message="Mailbox did not accept the signature update",
            )

        entry = self.history_store.record(
            profile.id,
            html,
            text=text,
            template_id=template_id,
            deployed_by=deployed_by,
            note=note,
        )
        logger.info("signature_deployed", user_id=profile.id, mail=profile.mail, history_id=entry.id)
        return DeploymentResult(
            user_id=profile.id,
            mail=profile.mail,
            success=True,
            message="Signature deployed",
            history_entry=entry,
        )
