"""Exception hierarchy for the signature audit service."""

from __future__ import annotations

from typing import Any


class SigAuditError(Exception):
    """Base class for all service errors."""


class StorageError(SigAuditError):
    """Raised when the record store cannot complete a read or write."""


class MigrationError(SigAuditError):
    """Raised when a schema migration step fails.

    Fatal: the record is left untouched and the load is aborted.
    """

    def __init__(self, version: int, description: str, cause: Exception) -> None:
        self.version = version
        self.description = description
        self.cause = cause
        super().__init__(
            f"Migration to version {version} ({description}) failed. "
            f"Restore from backup or fix manually. Error: {cause}"
        )


class DefaultTemplateDeletionError(SigAuditError):
    """Raised when a caller tries to delete the designated default template."""


class DirectoryClientError(SigAuditError):
    """Raised when identity directory communication fails."""


class MailboxClientError(SigAuditError):
    """Raised when mailbox signature service communication fails."""


class AuditCancelledError(SigAuditError):
    """Raised when an audit run is cancelled between users."""

    def __init__(self, partial_results: list[Any]) -> None:
        self.partial_results = partial_results
        super().__init__(f"Audit cancelled after {len(partial_results)} user(s)")


class NotFoundError(SigAuditError, LookupError):
    """Raised when a requested template, user or history entry does not exist."""


class UserNotFoundError(NotFoundError):
    """Raised when a user cannot be resolved by id or email."""


class AuthenticationError(SigAuditError):
    """Raised when the token endpoint refuses the client credentials."""
