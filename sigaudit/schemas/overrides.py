"""Per-user signature overrides and the override merge."""

from __future__ import annotations

import re
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sigaudit.schemas.profile import Profile

# Field ids an admin may hide from a user's signature
HIDEABLE_FIELDS = (
    "name",
    "jobtitle",
    "department",
    "businessphone",
    "mobilephone",
    "email",
    "workingdays",
    "dectphone",
    "pronouns",
)

# Profile attribute each overridable field id maps onto
_OVERRIDABLE = {
    "name": ("override_name", "display_name"),
    "jobtitle": ("override_job_title", "job_title"),
    "department": ("override_department", "department"),
    "businessphone": ("override_business_phone", "business_phone"),
    "mobilephone": ("override_mobile_phone", "mobile_phone"),
}

_SLASH_SPACING = re.compile(r"\s*/\s*")


def is_blank(value: str | None) -> bool:
    """True for None, empty or all-whitespace strings."""
    return value is None or not value.strip()


def normalize_pronouns(raw: str | None) -> str | None:
    """Normalise free-form pronouns, e.g. ``"  he / him  "`` -> ``"He/Him"``."""
    if is_blank(raw):
        return None
    collapsed = _SLASH_SPACING.sub("/", raw.strip())
    parts = [p[:1].upper() + p[1:].lower() for p in collapsed.split("/") if p]
    return "/".join(parts)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OverrideRecord(BaseModel):
    """Admin-editable values that take precedence over directory data.

    A field id listed in ``hidden_fields`` suppresses that field in the
    rendered signature regardless of override or directory value.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    override_name: str | None = None
    override_job_title: str | None = None
    override_department: str | None = None
    override_business_phone: str | None = None
    override_mobile_phone: str | None = None
    working_days: str | None = None
    pronouns: str | None = None
    dect_phone: str | None = None
    hidden_fields: frozenset[str] = Field(default_factory=frozenset)
    last_modified: datetime = Field(default_factory=utcnow)

    @field_validator("hidden_fields", mode="before")
    @classmethod
    def _lowercase_hidden(cls, value):
        if value is None:
            return frozenset()
        if isinstance(value, str):
            value = (value,)
        return frozenset(str(v).strip().lower() for v in value if str(v).strip())

    def is_hidden(self, field_id: str) -> bool:
        return field_id.lower() in self.hidden_fields

    def apply_to_profile(self, base: Profile) -> Profile:
        """Return the effective profile: hidden > override > directory value."""
        update: dict[str, str | None] = {}
        for field_id, (override_attr, profile_attr) in _OVERRIDABLE.items():
            if self.is_hidden(field_id):
                # display_name is not optional on Profile
                update[profile_attr] = "" if profile_attr == "display_name" else None
                continue
            override = getattr(self, override_attr)
            if not is_blank(override):
                update[profile_attr] = override
        return base.model_copy(update=update)

    def has_overrides(self) -> bool:
        values = (
            self.override_name,
            self.override_job_title,
            self.override_department,
            self.override_business_phone,
            self.override_mobile_phone,
            self.working_days,
            self.pronouns,
            self.dect_phone,
        )
        return any(not is_blank(v) for v in values) or bool(self.hidden_fields)

    def cleared(self) -> OverrideRecord:
        """Same user, every override removed."""
        return OverrideRecord(user_id=self.user_id)


class OverrideUpdate(BaseModel):
    """Request body for creating or replacing a user's overrides."""

    override_name: str | None = Field(default=None, max_length=255)
    override_job_title: str | None = Field(default=None, max_length=255)
    override_department: str | None = Field(default=None, max_length=255)
    override_business_phone: str | None = Field(default=None, max_length=50)
    override_mobile_phone: str | None = Field(default=None, max_length=50)
    working_days: str | None = Field(default=None, max_length=100)
    pronouns: str | None = Field(default=None, max_length=50)
    dect_phone: str | None = Field(default=None, max_length=50)
    hidden_fields: list[str] = Field(default_factory=list)

    def to_record(self, user_id: str) -> OverrideRecord:
        data = self.model_dump()
        data["pronouns"] = normalize_pronouns(self.pronouns)
        return OverrideRecord(user_id=user_id, **data)
