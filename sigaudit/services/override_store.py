"""Override storage — per-user signature overrides keyed by directory id."""

from __future__ import annotations

from collections.abc import Sequence

import structlog
from sqlalchemy import select

from sigaudit.models import SchemaMetadataRow, UserOverrideRow
from sigaudit.schemas.overrides import OverrideRecord, utcnow
from sigaudit.services.migrations import (
    CURRENT_OVERRIDE_SCHEMA_VERSION,
    OVERRIDE_MIGRATIONS,
    MigrationStep,
    migrate_record,
)
from sigaudit.store import Database, as_utc

logger = structlog.get_logger()

COLLECTION = "user_overrides"

_COLUMNS = (
    "override_name",
    "override_job_title",
    "override_department",
    "override_business_phone",
    "override_mobile_phone",
    "working_days",
    "pronouns",
    "dect_phone",
)


def _row_to_dict(row: UserOverrideRow) -> dict:
    data = {column: getattr(row, column) for column in _COLUMNS}
    data["user_id"] = row.user_id
    data["hidden_fields"] = list(row.hidden_fields or [])
    return data


def _apply_dict(row: UserOverrideRow, data: dict) -> None:
    for column in _COLUMNS:
        setattr(row, column, data.get(column))
    row.hidden_fields = sorted(data.get("hidden_fields") or [])


def _to_record(row: UserOverrideRow) -> OverrideRecord:
    return OverrideRecord(**_row_to_dict(row), last_modified=as_utc(row.last_modified))


class OverrideStore:
    """Persists OverrideRecords; at most one per user id."""

    def __init__(
        self,
        database: Database,
        current_version: int = CURRENT_OVERRIDE_SCHEMA_VERSION,
        migrations: Sequence[MigrationStep] = OVERRIDE_MIGRATIONS,
    ) -> None:
        self.database = database
        self.current_version = current_version
        self.migrations = tuple(migrations)
        self._schema_checked = False

    def ensure_schema(self) -> None:
        """Bring every stored override up to the current schema version.

        Runs once per store. All rows are migrated in a single write
        transaction, so a failing step leaves the collection untouched.
        """
        if self._schema_checked:
            return
        with self.database.write() as session:
            meta = session.scalars(
                select(SchemaMetadataRow).where(SchemaMetadataRow.collection == COLLECTION)
            ).first()
            if meta is None:
                has_rows = session.scalars(select(UserOverrideRow.id).limit(1)).first() is not None
                # Rows written before versioning existed are version 0
                meta = SchemaMetadataRow(collection=COLLECTION, version=0 if has_rows else self.current_version)
                session.add(meta)

            if meta.version < self.current_version:
                for row in session.scalars(select(UserOverrideRow)):
                    outcome = migrate_record(
                        _row_to_dict(row),
                        stored_version=meta.version,
                        current_version=self.current_version,
                        steps=self.migrations,
                        collection=COLLECTION,
                    )
                    _apply_dict(row, outcome.record)
                logger.info("override_schema_migrated", from_version=meta.version, to_version=self.current_version)
                meta.version = self.current_version
                meta.last_migration = utcnow()
            elif meta.version > self.current_version:
                logger.warning(
                    "schema_version_newer_than_code",
                    collection=COLLECTION,
                    stored_version=meta.version,
                    code_version=self.current_version,
                )
        self._schema_checked = True

    def get(self, user_id: str) -> OverrideRecord | None:
        self.ensure_schema()
        with self.database.read() as session:
            row = session.scalars(select(UserOverrideRow).where(UserOverrideRow.user_id == user_id)).first()
            return _to_record(row) if row is not None else None

    def list_all(self) -> list[OverrideRecord]:
        self.ensure_schema()
        with self.database.read() as session:
            rows = session.scalars(select(UserOverrideRow).order_by(UserOverrideRow.user_id))
            return [_to_record(row) for row in rows]

    def save(self, record: OverrideRecord) -> OverrideRecord:
        """Upsert by user id (last writer wins); stamps ``last_modified``."""
        self.ensure_schema()
        record = record.model_copy(update={"last_modified": utcnow()})
        with self.database.write() as session:
            row = session.scalars(select(UserOverrideRow).where(UserOverrideRow.user_id == record.user_id)).first()
            if row is None:
                row = UserOverrideRow(user_id=record.user_id)
                session.add(row)
            _apply_dict(row, record.model_dump(include=set(_COLUMNS) | {"hidden_fields"}))
            row.last_modified = record.last_modified
        logger.info("overrides_saved", user_id=record.user_id, hidden=sorted(record.hidden_fields))
        return record

    def delete(self, user_id: str) -> bool:
        self.ensure_schema()
        with self.database.write() as session:
            row = session.scalars(select(UserOverrideRow).where(UserOverrideRow.user_id == user_id)).first()
            if row is None:
                return False
            session.delete(row)
        logger.info("overrides_deleted", user_id=user_id)
        return True

    def get_many(self, user_ids: Sequence[str]) -> dict[str, OverrideRecord]:
        """Overrides for several users in one read, keyed by user id."""
        self.ensure_schema()
        if not user_ids:
            return {}
        with self.database.read() as session:
            rows = session.scalars(select(UserOverrideRow).where(UserOverrideRow.user_id.in_(list(user_ids))))
            return {row.user_id: _to_record(row) for row in rows}
