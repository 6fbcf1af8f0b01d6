"""DB-backed audit log. Appends AuditLog rows in the caller's session and reads them back."""

import uuid
from datetime import timezone
from typing import List

from pydantic_core import to_jsonable_python
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from changeset_audit.domain.models.audit import AuditAction, AuditEntry
from changeset_audit.infrastructure.database.models import AuditLog


def _to_row(entry: AuditEntry) -> AuditLog:
    # Binary columns are stored as base64 text; raw bytes need not be UTF-8.
    return AuditLog(
        table_name=entry.table_name,
        field_name=entry.field_name,
        primary_key=entry.primary_key,
        action=entry.action.value,
        old_value=to_jsonable_python(entry.old_value, bytes_mode="base64"),
        new_value=to_jsonable_python(entry.new_value, bytes_mode="base64"),
        old_label=entry.old_label,
        new_label=entry.new_label,
        changeset_uuid_bin=entry.changeset_id,
        changed_by=entry.changed_by,
        created_at=entry.created_at,
    )


def _to_entry(row: AuditLog) -> AuditEntry:
    created_at = row.created_at
    # Rows are written in UTC; some backends drop the offset on read.
    if created_at is not None and created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return AuditEntry(
        table_name=row.table_name,
        primary_key=row.primary_key,
        action=AuditAction(row.action),
        field_name=row.field_name,
        old_value=row.old_value,
        new_value=row.new_value,
        old_label=row.old_label,
        new_label=row.new_label,
        changeset_id=row.changeset_uuid_bin,
        changed_by=row.changed_by,
        created_at=created_at,
    )


class DbAuditLogRepository:
    """Append-only audit log on PostgreSQL (audit_log table). Implements AuditSink protocol."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def insert(self, entry: AuditEntry) -> None:
        """Add one row and flush; commit is owned by whoever owns the transaction."""
        self._session.add(_to_row(entry))
        await self._session.flush()

    async def list_by_changeset(self, changeset_id: uuid.UUID) -> List[AuditEntry]:
        """Every entry written by one change-set execution, in insertion order."""
        stmt = (
            select(AuditLog)
            .where(AuditLog.changeset_uuid_bin == changeset_id)
            .order_by(AuditLog.id)
        )
        result = await self._session.execute(stmt)
        return [_to_entry(row) for row in result.scalars().all()]

    async def list_for_record(self, table_name: str, primary_key: str) -> List[AuditEntry]:
        """History of one record, oldest first."""
        stmt = (
            select(AuditLog)
            .where(
                AuditLog.table_name == table_name,
                AuditLog.primary_key == str(primary_key),
            )
            .order_by(AuditLog.id)
        )
        result = await self._session.execute(stmt)
        return [_to_entry(row) for row in result.scalars().all()]
