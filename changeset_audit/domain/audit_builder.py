"""Builds audit entries from computed record changes. Never writes."""

import uuid
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from changeset_audit.domain.labels import resolve_label
from changeset_audit.domain.models.audit import AuditAction, AuditEntry, RecordChange


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuditEntryBuilder:
    """
    Turns RecordChanges into AuditEntries sharing one changeset_id, actor and timestamp.
    UPDATE: one entry per changed field. CREATE/DELETE: one whole-record entry.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._clock = clock or _utc_now

    def build(
        self,
        action: AuditAction,
        changes: Iterable[RecordChange],
        changeset_id: uuid.UUID,
        changed_by: str,
    ) -> List[AuditEntry]:
        created_at = self._clock()
        entries: List[AuditEntry] = []
        for change in changes:
            if action == AuditAction.UPDATE:
                entries.extend(self._update_entries(change, changeset_id, changed_by, created_at))
            elif action == AuditAction.CREATE:
                entries.append(self._create_entry(change, changeset_id, changed_by, created_at))
            elif action == AuditAction.DELETE:
                entries.append(self._delete_entry(change, changeset_id, changed_by, created_at))
        return entries

    @staticmethod
    def _update_entries(
        change: RecordChange,
        changeset_id: uuid.UUID,
        changed_by: str,
        created_at: datetime,
    ) -> List[AuditEntry]:
        entries = []
        for field_name, delta in change.fields.items():
            # An update row must carry at least one value.
            if delta.old_value is None and delta.new_value is None:
                continue
            entries.append(
                AuditEntry(
                    table_name=change.table_name,
                    primary_key=change.primary_key,
                    action=AuditAction.UPDATE,
                    field_name=field_name,
                    old_value=delta.old_value,
                    new_value=delta.new_value,
                    old_label=resolve_label(change.record_type, field_name, delta.old_value),
                    new_label=resolve_label(change.record_type, field_name, delta.new_value),
                    changeset_id=changeset_id,
                    changed_by=changed_by,
                    created_at=created_at,
                )
            )
        return entries

    @staticmethod
    def _create_entry(
        change: RecordChange,
        changeset_id: uuid.UUID,
        changed_by: str,
        created_at: datetime,
    ) -> AuditEntry:
        return AuditEntry(
            table_name=change.table_name,
            primary_key=change.primary_key,
            action=AuditAction.CREATE,
            field_name=None,
            old_value=None,
            new_value=change.after,
            old_label=None,
            new_label=resolve_label(change.record_type, None, change.after),
            changeset_id=changeset_id,
            changed_by=changed_by,
            created_at=created_at,
        )

    @staticmethod
    def _delete_entry(
        change: RecordChange,
        changeset_id: uuid.UUID,
        changed_by: str,
        created_at: datetime,
    ) -> AuditEntry:
        return AuditEntry(
            table_name=change.table_name,
            primary_key=change.primary_key,
            action=AuditAction.DELETE,
            field_name=None,
            old_value=change.before,
            new_value=None,
            old_label=resolve_label(change.record_type, None, change.before),
            new_label=None,
            changeset_id=changeset_id,
            changed_by=changed_by,
            created_at=created_at,
        )
