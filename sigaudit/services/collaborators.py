"""Interfaces the audit core needs from the directory and mailbox services."""

from __future__ import annotations

from typing import Protocol

import structlog

from sigaudit.schemas.profile import MailboxSignature, Profile

logger = structlog.get_logger()


class DirectoryService(Protocol):
    """Identity directory lookups.

    ``list_users`` must exclude disabled accounts and accounts without a
    mail address. Lookups return ``None`` rather than raising.
    """

    async def list_users(self) -> list[Profile]: ...

    async def get_user(self, user_id_or_email: str) -> Profile | None: ...

    async def get_user_by_email(self, email: str) -> Profile | None: ...

    async def update_user(
        self,
        user_id: str,
        job_title: str | None = None,
        department: str | None = None,
        business_phone: str | None = None,
        mobile_phone: str | None = None,
    ) -> bool: ...

    async def get_current_user(self) -> Profile | None: ...


class MailboxSignatureService(Protocol):
    """Reads and writes the signature stored on a mailbox."""

    async def get_signature(self, mail: str) -> MailboxSignature: ...

    async def set_signature(self, mail: str, html: str, text: str | None = None) -> bool: ...


async def find_user(directory: DirectoryService, user_id_or_email: str) -> Profile | None:
    """Id lookup first, then an email lookup when the input looks like one."""
    profile = await directory.get_user(user_id_or_email)
    if profile is None and "@" in user_id_or_email:
        logger.info("user_lookup_by_email", email=user_id_or_email)
        profile = await directory.get_user_by_email(user_id_or_email)
    return profile
