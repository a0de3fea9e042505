"""Template records — one row per saved signature design."""

from __future__ import annotations

from sqlalchemy import JSON, Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from sigaudit.models.base import Base


class TemplateRow(Base):
    """A saved signature design.

    ``payload`` holds the serialised design at ``schema_version``; it is
    migrated forward on load.
    """

    __tablename__ = "signature_templates"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    schema_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)

    def __repr__(self) -> str:
        return f"<Template {self.name} v{self.schema_version}>"
