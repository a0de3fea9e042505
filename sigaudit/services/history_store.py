"""Signature history — deployed signatures kept per user for rollback."""

from __future__ import annotations

import structlog
from sqlalchemy import select

from sigaudit.models import SignatureHistoryRow
from sigaudit.schemas.overrides import utcnow
from sigaudit.schemas.signature import SignatureHistoryEntry
from sigaudit.store import Database, as_utc

logger = structlog.get_logger()


def _to_entry(row: SignatureHistoryRow) -> SignatureHistoryEntry:
    return SignatureHistoryEntry(
        id=row.id,
        user_id=row.user_id,
        html=row.html,
        text=row.text,
        template_id=row.template_id,
        deployed_at=as_utc(row.deployed_at),
        deployed_by=row.deployed_by,
        note=row.note,
    )


class SignatureHistoryStore:
    """Newest-first deployment history, capped at ``limit`` entries per user."""

    def __init__(self, database: Database, limit: int = 20) -> None:
        self.database = database
        self.limit = limit

    def record(
        self,
        user_id: str,
        html: str,
        text: str | None = None,
        template_id: str | None = None,
        deployed_by: str | None = None,
        note: str | None = None,
    ) -> SignatureHistoryEntry:
        with self.database.write() as session:
            row = SignatureHistoryRow(
                user_id=user_id,
                html=html,
                text=text,
                template_id=template_id,
                deployed_at=utcnow(),
                deployed_by=deployed_by,
                note=note,
            )
            session.add(row)
            session.flush()
            entry = _to_entry(row)

            stale = session.scalars(
                select(SignatureHistoryRow)
                .where(SignatureHistoryRow.user_id == user_id)
                .order_by(SignatureHistoryRow.deployed_at.desc(), SignatureHistoryRow.created_at.desc())
                .offset(self.limit)
            ).all()
            for old in stale:
                session.delete(old)
        if stale:
            logger.info("signature_history_pruned", user_id=user_id, removed=len(stale))
        return entry

    def list_for_user(self, user_id: str) -> list[SignatureHistoryEntry]:
        with self.database.read() as session:
            rows = session.scalars(
                select(SignatureHistoryRow)
                .where(SignatureHistoryRow.user_id == user_id)
                .order_by(SignatureHistoryRow.deployed_at.desc(), SignatureHistoryRow.created_at.desc())
            )
            return [_to_entry(row) for row in rows]

    def get(self, user_id: str, entry_id: str) -> SignatureHistoryEntry | None:
        with self.database.read() as session:
            row = session.get(SignatureHistoryRow, entry_id)
            if row is None or row.user_id != user_id:
                return None
            return _to_entry(row)
