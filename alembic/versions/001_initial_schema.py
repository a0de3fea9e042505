"""Initial schema — overrides, templates, signature history, schema metadata.

Revision ID: 001
Revises: None
Create Date: 2026-10-17
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Per-user overrides
    op.create_table(
        "user_overrides",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), unique=True, nullable=False),
        sa.Column("override_name", sa.String(255), nullable=True),
        sa.Column("override_job_title", sa.String(255), nullable=True),
        sa.Column("override_department", sa.String(255), nullable=True),
        sa.Column("override_business_phone", sa.String(50), nullable=True),
        sa.Column("override_mobile_phone", sa.String(50), nullable=True),
        sa.Column("working_days", sa.String(100), nullable=True),
        sa.Column("pronouns", sa.String(50), nullable=True),
        sa.Column("dect_phone", sa.String(50), nullable=True),
        sa.Column("hidden_fields", sa.JSON, nullable=False),
        sa.Column("last_modified", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_user_overrides_user_id", "user_overrides", ["user_id"])

    # Signature templates
    op.create_table(
        "signature_templates",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("schema_version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("payload", sa.JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_signature_templates_name", "signature_templates", ["name"])

    # Deployed signature history
    op.create_table(
        "signature_history",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("html", sa.Text, nullable=False),
        sa.Column("text", sa.Text, nullable=True),
        sa.Column("template_id", sa.String(36), nullable=True),
        sa.Column("deployed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deployed_by", sa.String(255), nullable=True),
        sa.Column("note", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_signature_history_user_id", "signature_history", ["user_id"])

    # Applied record schema versions
    op.create_table(
        "schema_metadata",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("collection", sa.String(100), unique=True, nullable=False),
        sa.Column("version", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_migration", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("schema_metadata")
    op.drop_table("signature_history")
    op.drop_table("signature_templates")
    op.drop_table("user_overrides")
