"""Signature history and schema bookkeeping records."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sigaudit.models.base import Base


class SignatureHistoryRow(Base):
    """A signature written to a user's mailbox, kept for rollback."""

    __tablename__ = "signature_history"

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    html: Mapped[str] = mapped_column(Text, nullable=False)
    text: Mapped[str | None] = mapped_column(Text, nullable=True)
    template_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    deployed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    deployed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    note: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<SignatureHistory user={self.user_id[:8]} at={self.deployed_at:%Y-%m-%d}>"


class SchemaMetadataRow(Base):
    """Applied schema version for a record collection, e.g. ``user_overrides``."""

    __tablename__ = "schema_metadata"

    collection: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_migration: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<SchemaMetadata {self.collection} v{self.version}>"
