"""Signature renderer — template definition x profile x overrides -> HTML.

Pure transformation: no network or storage access, identical inputs give
byte-identical output.
"""

from __future__ import annotations

import html
from collections.abc import Callable
from enum import Enum

from sigaudit.schemas.overrides import OverrideRecord, is_blank
from sigaudit.schemas.profile import Profile
from sigaudit.schemas.template import (
    DEFAULT_FONT_FAMILY,
    DEFAULT_FONT_SIZE,
    DEFAULT_PRIMARY_COLOR,
    DEFAULT_SECONDARY_COLOR,
    FieldSpec,
    TemplateDefinition,
)
from sigaudit.services.html_text import html_to_text

DISCLAIMER_FONT_SIZE = "8pt"


class FieldKind(str, Enum):
    """Known field ids; anything else renders its default value."""

    NAME = "name"
    JOB_TITLE = "jobtitle"
    DEPARTMENT = "department"
    EMAIL = "email"
    BUSINESS_PHONE = "businessphone"
    MOBILE_PHONE = "mobilephone"
    WORKING_DAYS = "workingdays"
    DECT_PHONE = "dectphone"
    CUSTOM = "custom"


def resolve_field_kind(field_id: str) -> FieldKind:
    """Case-insensitive field id lookup; unknown ids are CUSTOM."""
    try:
        return FieldKind(field_id.strip().lower())
    except ValueError:
        return FieldKind.CUSTOM


Resolver = Callable[[FieldSpec, Profile, OverrideRecord | None], str | None]


def _working_days(field: FieldSpec, profile: Profile, overrides: OverrideRecord | None) -> str | None:
    if overrides is not None and not is_blank(overrides.working_days):
        return overrides.working_days
    return field.default_value


def _dect_phone(field: FieldSpec, profile: Profile, overrides: OverrideRecord | None) -> str | None:
    if overrides is not None and not is_blank(overrides.dect_phone):
        return overrides.dect_phone
    return field.default_value


def _name(field: FieldSpec, profile: Profile, overrides: OverrideRecord | None) -> str | None:
    name = profile.display_name
    if is_blank(name):
        return name
    if overrides is not None and not is_blank(overrides.pronouns) and not overrides.is_hidden("pronouns"):
        return f"{name} ({overrides.pronouns.strip()})"
    return name


_RESOLVERS: dict[FieldKind, Resolver] = {
    FieldKind.NAME: _name,
    FieldKind.JOB_TITLE: lambda f, p, o: p.job_title,
    FieldKind.DEPARTMENT: lambda f, p, o: p.department,
    FieldKind.EMAIL: lambda f, p, o: p.mail,
    FieldKind.BUSINESS_PHONE: lambda f, p, o: p.business_phone,
    FieldKind.MOBILE_PHONE: lambda f, p, o: p.mobile_phone,
    FieldKind.WORKING_DAYS: _working_days,
    FieldKind.DECT_PHONE: _dect_phone,
    FieldKind.CUSTOM: lambda f, p, o: f.default_value,
}


def resolve_field_value(
    field: FieldSpec,
    profile: Profile,
    overrides: OverrideRecord | None = None,
) -> str:
    """Value a field renders for an (already merged) profile; empty when hidden."""
    if overrides is not None and overrides.is_hidden(field.field_id):
        return ""
    value = _RESOLVERS[resolve_field_kind(field.field_id)](field, profile, overrides)
    return value or ""


def _or_default(value: str | None, default: str) -> str:
    return default if is_blank(value) else value.strip()


def field_style(field: FieldSpec, template: TemplateDefinition) -> str:
    """Inline CSS for one field line: field overrides, then template defaults."""
    styles = []
    if field.bold:
        styles.append("font-weight: bold")
    if not is_blank(field.font_size):
        styles.append(f"font-size: {field.font_size.strip()}")
    if not is_blank(field.color):
        styles.append(f"color: {field.color.strip()}")
    elif resolve_field_kind(field.field_id) is FieldKind.NAME:
        styles.append(f"color: {_or_default(template.primary_color, DEFAULT_PRIMARY_COLOR)}")
    else:
        styles.append(f"color: {_or_default(template.secondary_color, DEFAULT_SECONDARY_COLOR)}")
    return "; ".join(styles)


def ordered_fields(template: TemplateDefinition) -> list[FieldSpec]:
    """Enabled fields by ascending sort order; ``sorted`` keeps ties stable."""
    return sorted((f for f in template.fields if f.enabled), key=lambda f: f.sort_order)


def render_signature(
    template: TemplateDefinition,
    profile: Profile,
    overrides: OverrideRecord | None = None,
) -> str:
    """Render the branded HTML signature for one user."""
    effective = overrides.apply_to_profile(profile) if overrides is not None else profile

    font_family = html.escape(_or_default(template.font_family, DEFAULT_FONT_FAMILY), quote=True)
    font_size = html.escape(_or_default(template.font_size, DEFAULT_FONT_SIZE), quote=True)
    primary = html.escape(_or_default(template.primary_color, DEFAULT_PRIMARY_COLOR), quote=True)
    secondary = html.escape(_or_default(template.secondary_color, DEFAULT_SECONDARY_COLOR), quote=True)
    has_logo = not is_blank(template.logo_base64)
    colspan = "2" if has_logo else "1"

    lines = [f'<table style="font-family: {font_family}; font-size: {font_size};">', "  <tr>"]

    if has_logo:
        lines.append(
            f'    <td style="padding-right: 15px; border-right: 2px solid {primary}; vertical-align: top;">'
        )
        lines.append(
            f'      <img src="data:image/png;base64,{template.logo_base64.strip()}" '
            f'alt="Logo" width="{template.logo_width}" />'
        )
        lines.append("    </td>")

    content_padding = "padding-left: 15px; " if has_logo else ""
    lines.append(f'    <td style="{content_padding}vertical-align: top;">')

    for field in ordered_fields(template):
        value = resolve_field_value(field, effective, overrides)
        if is_blank(value):
            continue
        display = f"{field.prefix}{value}" if field.prefix else value
        style = html.escape(field_style(field, template), quote=True)
        lines.append(f'      <p style="margin: 0; {style}">{html.escape(display)}</p>')

    if not is_blank(template.address):
        lines.append(f'      <p style="margin: 0; color: {secondary}">{html.escape(template.address.strip())}</p>')

    lines.append("    </td>")
    lines.append("  </tr>")

    if not is_blank(template.disclaimer_text):
        lines.append("  <tr>")
        lines.append(
            f'    <td colspan="{colspan}" style="padding-top: 10px; '
            f'font-size: {DISCLAIMER_FONT_SIZE}; color: {secondary};">'
        )
        lines.append(f"      {html.escape(template.disclaimer_text)}")
        lines.append("    </td>")
        lines.append("  </tr>")

    if not is_blank(template.banner_base64):
        has_link = not is_blank(template.banner_url)
        lines.append("  <tr>")
        lines.append(f'    <td colspan="{colspan}" style="padding-top: 15px;">')
        if has_link:
            lines.append(
                f'      <a href="{html.escape(template.banner_url.strip(), quote=True)}" '
                'target="_blank" style="text-decoration: none;">'
            )
        lines.append(
            f'      <img src="data:image/png;base64,{template.banner_base64.strip()}" '
            f'alt="Banner" width="{template.banner_width}" style="display: block;" />'
        )
        if has_link:
            lines.append("      </a>")
        lines.append("    </td>")
        lines.append("  </tr>")

    lines.append("</table>")
    return "\n".join(lines) + "\n"


def render_plain_text(signature_html: str) -> str:
    """Plain-text rendition of a rendered signature."""
    return html_to_text(signature_html)
