"""Schema migrations for stored templates and override records.

Each step is a named, versioned, pure transformation of one stored record
(a JSON-compatible dict). Steps run in ascending version order from the
stored version to the current one, on a copy, so a failing step leaves the
stored record untouched.

To change a stored shape: bump the current version and append a step.
Never edit or remove a released step.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog

from sigaudit.errors import MigrationError
from sigaudit.schemas.template import TemplateDefinition

logger = structlog.get_logger()

Record = dict[str, Any]


@dataclass(frozen=True)
class MigrationStep:
    """Transformation that upgrades a record to ``version``."""

    version: int
    description: str
    apply: Callable[[Record], Record]


@dataclass
class MigrationOutcome:
    """Result of bringing one record up to date."""

    record: Record
    from_version: int
    to_version: int
    applied: list[int] = field(default_factory=list)
    downgrade_hazard: bool = False

    @property
    def changed(self) -> bool:
        return self.from_version != self.to_version and not self.downgrade_hazard


def validate_steps(steps: Sequence[MigrationStep]) -> tuple[MigrationStep, ...]:
    """Steps must be registered with strictly ascending versions above 1."""
    previous = 1
    for step in steps:
        if step.version <= previous:
            raise ValueError(
                f"Migration step {step.version} ({step.description}) is out of order"
            )
        previous = step.version
    return tuple(steps)


def migrate_record(
    record: Record,
    stored_version: int,
    current_version: int,
    steps: Sequence[MigrationStep],
    collection: str,
) -> MigrationOutcome:
    """Upgrade ``record`` from ``stored_version`` to ``current_version``."""
    if stored_version == current_version:
        return MigrationOutcome(record=record, from_version=stored_version, to_version=current_version)

    if stored_version > current_version:
        logger.warning(
            "schema_version_newer_than_code",
            collection=collection,
            stored_version=stored_version,
            code_version=current_version,
        )
        return MigrationOutcome(
            record=record,
            from_version=stored_version,
            to_version=stored_version,
            downgrade_hazard=True,
        )

    logger.info(
        "schema_upgrade_required",
        collection=collection,
        from_version=stored_version,
        to_version=current_version,
    )

    working = copy.deepcopy(record)
    applied = []
    for step in sorted(steps, key=lambda s: s.version):
        if step.version <= stored_version or step.version > current_version:
            continue
        logger.info("schema_migration_running", collection=collection, version=step.version, description=step.description)
        try:
            working = step.apply(working)
        except Exception as exc:
            logger.error("schema_migration_failed", collection=collection, version=step.version, error=str(exc))
            raise MigrationError(step.version, step.description, exc) from exc
        applied.append(step.version)

    return MigrationOutcome(
        record=working,
        from_version=stored_version,
        to_version=current_version,
        applied=applied,
    )


# Version 1 is the initial template schema; no steps yet.
TEMPLATE_MIGRATIONS: tuple[MigrationStep, ...] = validate_steps(())

# Version 1 is the initial override schema; no steps yet.
CURRENT_OVERRIDE_SCHEMA_VERSION = 1
OVERRIDE_MIGRATIONS: tuple[MigrationStep, ...] = validate_steps(())


def reconcile_fields(template: TemplateDefinition) -> tuple[TemplateDefinition, bool]:
    """Align a loaded template's field list with the canonical default.

    Canonical fields missing from the template are appended. Fields present
    in both keep every user-set property except ``is_custom_field``, which
    is forced to the canonical marker.
    """
    canonical = TemplateDefinition.create_default()
    fields = list(template.fields)
    changed = False

    for default_field in canonical.fields:
        wanted = default_field.field_id.lower()
        position = next((i for i, f in enumerate(fields) if f.field_id.lower() == wanted), None)
        if position is None:
            logger.info("template_field_added", template=template.name, field_id=default_field.field_id)
            fields.append(default_field)
            changed = True
            continue
        existing = fields[position]
        if existing.is_custom_field != default_field.is_custom_field:
            logger.info(
                "template_field_marker_updated",
                template=template.name,
                field_id=existing.field_id,
                old=existing.is_custom_field,
                new=default_field.is_custom_field,
            )
            fields[position] = existing.model_copy(update={"is_custom_field": default_field.is_custom_field})
            changed = True

    if not changed:
        return template, False
    return template.model_copy(update={"fields": tuple(fields)}), True
