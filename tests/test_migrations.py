"""Schema migration and field reconciliation tests."""

from __future__ import annotations

import pytest

from sigaudit.errors import MigrationError
from sigaudit.models import TemplateRow
from sigaudit.schemas.template import CURRENT_TEMPLATE_SCHEMA_VERSION, FieldSpec, TemplateDefinition
from sigaudit.services.migrations import MigrationStep, migrate_record, reconcile_fields, validate_steps
from sigaudit.services.template_store import TemplateStore


def _store_raw(database, template: TemplateDefinition, schema_version: int, payload: dict | None = None) -> None:
    """Write a template row as an older release would have."""
    if payload is None:
        payload = template.model_dump(mode="json", exclude={"id", "is_default", "schema_version"})
    with database.write() as session:
        session.add(
            TemplateRow(
                id=template.id,
                name=template.name,
                is_default=template.is_default,
                schema_version=schema_version,
                payload=payload,
            )
        )


def _stored_row(database, template_id: str) -> TemplateRow:
    with database.read() as session:
        row = session.get(TemplateRow, template_id)
        session.expunge(row)
        return row


def _tag(version: int):
    def apply(record):
        return {**record, "applied": [*record.get("applied", []), version]}

    return apply


# ─── migrate_record ──────────────────────────────────────────────────────────

class TestMigrateRecord:

    def test_equal_versions_no_op(self):
        record = {"a": 1}
        outcome = migrate_record(record, 3, 3, [MigrationStep(3, "x", _tag(3))], "c")
        assert outcome.record is record
        assert outcome.applied == []
        assert not outcome.changed

    def test_steps_in_range_applied_once_in_order(self):
        steps = [MigrationStep(v, f"step {v}", _tag(v)) for v in (4, 2, 3, 5)]
        outcome = migrate_record({}, 2, 4, steps, "c")
        assert outcome.record["applied"] == [3, 4]
        assert outcome.applied == [3, 4]
        assert outcome.to_version == 4
        assert outcome.changed

    def test_input_record_not_mutated(self):
        record = {"nested": {"value": 1}}

        def bump(r):
            r["nested"]["value"] = 2
            return r

        migrate_record(record, 1, 2, [MigrationStep(2, "bump", bump)], "c")
        assert record == {"nested": {"value": 1}}

    def test_stored_newer_left_untouched(self):
        record = {"a": 1}
        outcome = migrate_record(record, 7, 1, [], "c")
        assert outcome.downgrade_hazard
        assert outcome.record is record
        assert not outcome.changed

    def test_failing_step_raises(self):
        def boom(record):
            raise KeyError("fieldDesigns")

        steps = [MigrationStep(2, "ok", _tag(2)), MigrationStep(3, "rename fields", boom)]
        with pytest.raises(MigrationError) as exc_info:
            migrate_record({}, 1, 3, steps, "c")
        assert exc_info.value.version == 3
        assert "rename fields" in str(exc_info.value)

    def test_validate_steps_rejects_disorder(self):
        with pytest.raises(ValueError):
            validate_steps([MigrationStep(3, "b", _tag(3)), MigrationStep(2, "a", _tag(2))])
        with pytest.raises(ValueError):
            validate_steps([MigrationStep(2, "a", _tag(2)), MigrationStep(2, "dup", _tag(2))])


# ─── reconcile_fields ────────────────────────────────────────────────────────

class TestReconcileFields:

    def test_canonical_template_unchanged(self):
        template = TemplateDefinition.create_default()
        result, changed = reconcile_fields(template)
        assert not changed
        assert result is template

    def test_missing_field_appended(self):
        canonical = TemplateDefinition.create_default()
        fields = tuple(f for f in canonical.fields if f.field_id != "dectPhone")
        result, changed = reconcile_fields(canonical.model_copy(update={"fields": fields}))
        assert changed
        assert result.fields[-1].field_id == "dectPhone"
        assert len(result.fields) == len(canonical.fields)

    def test_marker_forced_other_properties_kept(self):
        template = TemplateDefinition(
            name="Custom",
            fields=(
                FieldSpec(field_id="NAME", display_label="Full name", sort_order=9, bold=False,
                          is_custom_field=True, prefix="N: ", color="#000000"),
                FieldSpec(field_id="pager", default_value="Pager 7", is_custom_field=True),
            ),
        )
        result, changed = reconcile_fields(template)
        assert changed
        name = result.find_field("name")
        assert name.is_custom_field is False
        assert (name.display_label, name.sort_order, name.bold, name.prefix, name.color) == (
            "Full name", 9, False, "N: ", "#000000"
        )
        assert result.find_field("pager").is_custom_field is True
        assert {f.field_id.lower() for f in result.fields} >= {"dectphone", "workingdays", "email"}


# ─── Load path ───────────────────────────────────────────────────────────────

class TestTemplateLoadMigration:

    def test_older_version_upgraded_and_persisted(self, database, template_store):
        template = TemplateDefinition.create_default()
        _store_raw(database, template, CURRENT_TEMPLATE_SCHEMA_VERSION - 1)

        loaded = template_store.get_default()

        assert loaded.schema_version == CURRENT_TEMPLATE_SCHEMA_VERSION
        assert _stored_row(database, template.id).schema_version == CURRENT_TEMPLATE_SCHEMA_VERSION

    def test_registered_step_runs_on_load(self, database):
        template = TemplateDefinition.create_default()
        _store_raw(database, template, 1)

        def rebrand(record):
            return {**record, "primary_color": "#AA0000"}

        store = TemplateStore(database, current_version=2, migrations=[MigrationStep(2, "rebrand", rebrand)])
        loaded = store.get(template.id)

        assert loaded.primary_color == "#AA0000"
        assert loaded.schema_version == 2
        row = _stored_row(database, template.id)
        assert row.schema_version == 2
        assert row.payload["primary_color"] == "#AA0000"

    def test_failed_migration_aborts_load(self, database):
        template = TemplateDefinition.create_default()
        _store_raw(database, template, 1)

        def boom(record):
            raise ValueError("bad payload")

        store = TemplateStore(database, current_version=2, migrations=[MigrationStep(2, "boom", boom)])
        with pytest.raises(MigrationError):
            store.get(template.id)
        row = _stored_row(database, template.id)
        assert row.schema_version == 1
        assert row.payload["primary_color"] == template.primary_color

    def test_newer_version_loaded_as_is(self, database, template_store):
        template = TemplateDefinition.create_default(name="From the future")
        _store_raw(database, template, CURRENT_TEMPLATE_SCHEMA_VERSION + 3)

        loaded = template_store.get(template.id)

        assert loaded.name == "From the future"
        assert _stored_row(database, template.id).schema_version == CURRENT_TEMPLATE_SCHEMA_VERSION + 3

    def test_missing_canonical_field_added_on_load(self, database, template_store):
        canonical = TemplateDefinition.create_default()
        fields = tuple(
            f.model_copy(update={"is_custom_field": True, "prefix": "T: "}) if f.field_id == "jobTitle" else f
            for f in canonical.fields
            if f.field_id != "dectPhone"
        )
        template = canonical.model_copy(update={"fields": fields})
        _store_raw(database, template, CURRENT_TEMPLATE_SCHEMA_VERSION)

        loaded = template_store.get_default()

        assert loaded.find_field("dectPhone") is not None
        job_title = loaded.find_field("jobTitle")
        assert job_title.prefix == "T: "
        assert job_title.is_custom_field is False
        stored_ids = [f["field_id"] for f in _stored_row(database, template.id).payload["fields"]]
        assert "dectPhone" in stored_ids
