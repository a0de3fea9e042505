"""Directory profile listing and editing."""

from __future__ import annotations

import structlog

from sigaudit.errors import DirectoryClientError, UserNotFoundError
from sigaudit.schemas.profile import Profile, ProfileUpdate
from sigaudit.services.collaborators import DirectoryService, find_user

logger = structlog.get_logger()


class DirectoryProfileService:
    """Edits job title, department and phones on the directory record.

    Overrides change only what the signature shows; this changes the
    directory itself, so audits stop reporting the profile as incomplete.
    """

    def __init__(self, directory: DirectoryService) -> None:
        self.directory = directory

    async def list_users(self) -> list[Profile]:
        """Enabled users with a mail address, ordered by display name."""
        users = await self.directory.list_users()
        return sorted(users, key=lambda u: (u.display_name.lower(), u.id))

    async def get(self, user_id_or_email: str) -> Profile:
        profile = await find_user(self.directory, user_id_or_email)
        if profile is None:
            raise UserNotFoundError(f"User '{user_id_or_email}' not found in directory")
        return profile

    async def update(self, user_id_or_email: str, update: ProfileUpdate) -> Profile:
        """Write changed fields to the directory and return the fresh profile.

        Raises UserNotFoundError, or DirectoryClientError when the directory
        refuses the update.
        """
        profile = await self.get(user_id_or_email)
        changes = update.changes_from(profile)
        if not changes:
            logger.info("directory_profile_unchanged", user_id=profile.id)
            return profile

        if not await self.directory.update_user(profile.id, **changes):
            raise DirectoryClientError(f"Directory rejected the update for user {profile.id}")
        logger.info("directory_profile_updated", user_id=profile.id, fields=sorted(changes))

        refreshed = await self.directory.get_user(profile.id)
        if refreshed is not None:
            return refreshed
        return profile.model_copy(update={name: value or None for name, value in changes.items()})
