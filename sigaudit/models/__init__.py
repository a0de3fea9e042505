"""Database models for the signature audit service."""

from sigaudit.models.base import Base
from sigaudit.models.override import UserOverrideRow
from sigaudit.models.template import TemplateRow
from sigaudit.models.history import SchemaMetadataRow, SignatureHistoryRow

__all__ = [
    "Base",
    "UserOverrideRow",
    "TemplateRow",
    "SignatureHistoryRow",
    "SchemaMetadataRow",
]
