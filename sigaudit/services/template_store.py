"""Template storage — saved signature designs with schema migration on load."""

from __future__ import annotations

from collections.abc import Sequence

import structlog
from pydantic import ValidationError
from sqlalchemy import select

from sigaudit.errors import DefaultTemplateDeletionError, StorageError
from sigaudit.models import TemplateRow
from sigaudit.schemas.template import CURRENT_TEMPLATE_SCHEMA_VERSION, TemplateDefinition
from sigaudit.services.migrations import (
    TEMPLATE_MIGRATIONS,
    MigrationStep,
    migrate_record,
    reconcile_fields,
)
from sigaudit.store import Database

logger = structlog.get_logger()


def _to_payload(template: TemplateDefinition) -> dict:
    return template.model_dump(mode="json", exclude={"id", "is_default", "schema_version"})


class TemplateStore:
    """Persists TemplateDefinitions; exactly one is the designated default."""

    def __init__(
        self,
        database: Database,
        current_version: int = CURRENT_TEMPLATE_SCHEMA_VERSION,
        migrations: Sequence[MigrationStep] = TEMPLATE_MIGRATIONS,
    ) -> None:
        self.database = database
        self.current_version = current_version
        self.migrations = tuple(migrations)

    def _load(self, row: TemplateRow) -> TemplateDefinition:
        """Migrate and reconcile a stored row, persisting any change."""
        outcome = migrate_record(
            dict(row.payload),
            stored_version=row.schema_version,
            current_version=self.current_version,
            steps=self.migrations,
            collection="signature_templates",
        )
        try:
            template = TemplateDefinition.model_validate(
                {
                    **outcome.record,
                    "id": row.id,
                    "is_default": row.is_default,
                    "schema_version": outcome.to_version,
                }
            )
        except ValidationError as exc:
            raise StorageError(f"Template {row.id} could not be read: {exc}") from exc

        template, reconciled = reconcile_fields(template)

        if outcome.changed or reconciled:
            logger.info(
                "template_updated_on_load",
                template_id=template.id,
                name=template.name,
                migrated=outcome.applied,
                reconciled=reconciled,
            )
            self._write(template, schema_version=outcome.to_version)
        return template

    def _write(self, template: TemplateDefinition, schema_version: int) -> None:
        with self.database.write() as session:
            row = session.get(TemplateRow, template.id)
            if row is None:
                row = TemplateRow(id=template.id)
                session.add(row)
            row.name = template.name
            row.is_default = template.is_default
            row.schema_version = schema_version
            row.payload = _to_payload(template)

    def get_default(self) -> TemplateDefinition:
        """The designated default template, created on first use."""
        with self.database.read() as session:
            row = session.scalars(
                select(TemplateRow).where(TemplateRow.is_default.is_(True)).order_by(TemplateRow.created_at)
            ).first()
            if row is not None:
                session.expunge(row)
        if row is not None:
            return self._load(row)

        template = TemplateDefinition.create_default()
        logger.info("default_template_created", template_id=template.id)
        self.save(template)
        return template

    def get(self, template_id: str) -> TemplateDefinition | None:
        with self.database.read() as session:
            row = session.get(TemplateRow, template_id)
            if row is not None:
                session.expunge(row)
        return self._load(row) if row is not None else None

    def get_by_name(self, name: str) -> TemplateDefinition | None:
        with self.database.read() as session:
            row = session.scalars(select(TemplateRow).where(TemplateRow.name == name)).first()
            if row is not None:
                session.expunge(row)
        return self._load(row) if row is not None else None

    def save(self, template: TemplateDefinition) -> TemplateDefinition:
        """Upsert by id (last writer wins); stamps the current schema version."""
        if template.schema_version != self.current_version:
            template = template.model_copy(update={"schema_version": self.current_version})
        with self.database.write() as session:
            if template.is_default:
                for other in session.scalars(
                    select(TemplateRow).where(TemplateRow.is_default.is_(True), TemplateRow.id != template.id)
                ):
                    other.is_default = False
            row = session.get(TemplateRow, template.id)
            if row is None:
                row = TemplateRow(id=template.id)
                session.add(row)
            elif row.is_default and not template.is_default:
                # The designated default can only move via set_default
                template = template.model_copy(update={"is_default": True})
            row.name = template.name
            row.is_default = template.is_default
            row.schema_version = self.current_version
            row.payload = _to_payload(template)
        logger.info("template_saved", template_id=template.id, name=template.name)
        return template

    def list_all(self) -> list[TemplateDefinition]:
        """All templates ordered by name; seeds the default when empty."""
        with self.database.read() as session:
            rows = list(session.scalars(select(TemplateRow).order_by(TemplateRow.name)))
            for row in rows:
                session.expunge(row)
        if not rows:
            return [self.get_default()]
        return [self._load(row) for row in rows]

    def set_default(self, template_id: str) -> TemplateDefinition | None:
        template = self.get(template_id)
        if template is None:
            return None
        return self.save(template.model_copy(update={"is_default": True}))

    def delete(self, template_id: str) -> bool:
        """Delete a saved design; the default template can never be deleted."""
        with self.database.write() as session:
            row = session.get(TemplateRow, template_id)
            if row is None:
                logger.warning("template_delete_not_found", template_id=template_id)
                return False
            if row.is_default:
                logger.warning("template_delete_refused_default", template_id=template_id)
                raise DefaultTemplateDeletionError("Cannot delete the default template")
            session.delete(row)
        logger.info("template_deleted", template_id=template_id)
        return True
