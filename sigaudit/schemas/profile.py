"""Directory profile and mailbox signature value objects."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Profile(BaseModel):
    """Read-only identity/contact record sourced from the directory."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str = ""
    job_title: str | None = None
    department: str | None = None
    mail: str | None = None
    business_phone: str | None = None
    mobile_phone: str | None = None


class MailboxSignature(BaseModel):
    """Signature as read from a user's mailbox.

    ``is_accessible`` with no html/text is a normal outcome: modern clients
    keep signatures in storage the service cannot read.
    """

    model_config = ConfigDict(frozen=True)

    html: str | None = None
    text: str | None = None
    is_accessible: bool = True
    access_error: str | None = None


class ProfileUpdate(BaseModel):
    """Directory attributes an administrator may edit.

    ``None`` leaves a value unchanged; an empty string clears it.
    """

    job_title: str | None = Field(default=None, max_length=128)
    department: str | None = Field(default=None, max_length=64)
    business_phone: str | None = Field(default=None, max_length=64)
    mobile_phone: str | None = Field(default=None, max_length=64)

    @field_validator("job_title", "department", "business_phone", "mobile_phone")
    @classmethod
    def _strip(cls, value: str | None) -> str | None:
        return value.strip() if value is not None else None

    def changes_from(self, profile: Profile) -> dict[str, str]:
        """Fields whose requested value differs from the profile's current one."""
        changes: dict[str, str] = {}
        for name in ("job_title", "department", "business_phone", "mobile_phone"):
            wanted = getattr(self, name)
            if wanted is None:
                continue
            if wanted != (getattr(profile, name) or ""):
                changes[name] = wanted
        return changes
