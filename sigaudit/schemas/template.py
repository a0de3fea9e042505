"""Declarative signature template definitions."""

from __future__ import annotations

import uuid

from pydantic import BaseModel, ConfigDict, Field

# Increment when TemplateDefinition changes shape and register a step in
# sigaudit.services.migrations.TEMPLATE_MIGRATIONS.
CURRENT_TEMPLATE_SCHEMA_VERSION = 1

DEFAULT_TEMPLATE_NAME = "Default Template"
DEFAULT_FONT_FAMILY = "Roboto, Calibri, sans-serif"
DEFAULT_FONT_SIZE = "10pt"
DEFAULT_PRIMARY_COLOR = "#3154A5"
DEFAULT_SECONDARY_COLOR = "#77787B"
DEFAULT_DIVIDER_COLOR = "#3154A5"


class FieldSpec(BaseModel):
    """One configurable line of a rendered signature."""

    model_config = ConfigDict(frozen=True)

    field_id: str
    display_label: str = ""
    enabled: bool = True
    sort_order: int = 0
    prefix: str | None = None
    bold: bool = False
    is_custom_field: bool = False
    default_value: str | None = None
    font_size: str | None = None
    color: str | None = None


class TemplateDefinition(BaseModel):
    """Visual and structural design used to render signatures."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = DEFAULT_TEMPLATE_NAME
    schema_version: int = CURRENT_TEMPLATE_SCHEMA_VERSION
    is_default: bool = False

    # Layout
    signature_width: int = 400

    # Branding
    font_family: str = DEFAULT_FONT_FAMILY
    font_size: str = DEFAULT_FONT_SIZE
    primary_color: str = DEFAULT_PRIMARY_COLOR
    secondary_color: str = DEFAULT_SECONDARY_COLOR
    divider_color: str = DEFAULT_DIVIDER_COLOR

    fields: tuple[FieldSpec, ...] = ()

    # Logo beside the signature
    logo_base64: str | None = None
    logo_width: int = 100

    # Banner below the signature, optionally hyperlinked
    banner_base64: str | None = None
    banner_width: int = 400
    banner_url: str | None = None

    address: str | None = None
    disclaimer_text: str | None = None

    @classmethod
    def create_default(cls, **overrides) -> TemplateDefinition:
        """Canonical default template with the standard field set."""
        fields = (
            FieldSpec(field_id="name", display_label="Name", sort_order=1, bold=True),
            FieldSpec(field_id="jobTitle", display_label="Job Title", sort_order=2),
            FieldSpec(field_id="department", display_label="Department", sort_order=3),
            FieldSpec(field_id="businessPhone", display_label="Business Phone", sort_order=4, prefix="P: "),
            FieldSpec(field_id="dectPhone", display_label="DECT Phone", enabled=False, sort_order=5),
            FieldSpec(field_id="mobilePhone", display_label="Mobile Phone", enabled=False, sort_order=6, prefix="M: "),
            FieldSpec(field_id="email", display_label="Email", sort_order=7, prefix="E: "),
            FieldSpec(field_id="workingDays", display_label="Working Days", enabled=False, sort_order=8),
        )
        values = {"name": DEFAULT_TEMPLATE_NAME, "is_default": True, "fields": fields}
        values.update(overrides)
        return cls(**values)

    def find_field(self, field_id: str) -> FieldSpec | None:
        wanted = field_id.lower()
        return next((f for f in self.fields if f.field_id.lower() == wanted), None)


class TemplateUpdate(BaseModel):
    """Request body for saving a template design."""

    name: str = Field(..., min_length=1, max_length=255)
    signature_width: int = Field(default=400, ge=100, le=1200)
    font_family: str = DEFAULT_FONT_FAMILY
    font_size: str = DEFAULT_FONT_SIZE
    primary_color: str = DEFAULT_PRIMARY_COLOR
    secondary_color: str = DEFAULT_SECONDARY_COLOR
    divider_color: str = DEFAULT_DIVIDER_COLOR
    fields: list[FieldSpec] = Field(default_factory=list)
    logo_base64: str | None = None
    logo_width: int = Field(default=100, ge=10, le=600)
    banner_base64: str | None = None
    banner_width: int = Field(default=400, ge=10, le=1200)
    banner_url: str | None = None
    address: str | None = None
    disclaimer_text: str | None = None

    def to_definition(self, template_id: str, is_default: bool = False) -> TemplateDefinition:
        data = self.model_dump()
        data["fields"] = tuple(self.fields)
        return TemplateDefinition(id=template_id, is_default=is_default, **data)
