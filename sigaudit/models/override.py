"""User override records — per-user signature values keyed by directory id."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from sigaudit.models.base import Base


class UserOverrideRow(Base):
    """Persisted overrides for one directory user."""

    __tablename__ = "user_overrides"

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    override_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    override_job_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    override_department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    override_business_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    override_mobile_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    working_days: Mapped[str | None] = mapped_column(String(100), nullable=True)
    pronouns: Mapped[str | None] = mapped_column(String(50), nullable=True)
    dect_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    hidden_fields: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    last_modified: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<UserOverride user={self.user_id[:8]}>"
