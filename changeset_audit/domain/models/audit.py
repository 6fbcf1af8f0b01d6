"""Domain models for change-sets and audit entries. Pure data, no ORM or infrastructure."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class AuditAction(str, Enum):
    """Auditable persistence actions."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class NewRecord:
    """The single member of a CREATE change-set: target table plus constructor attributes."""

    table_name: str
    attributes: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FieldChange:
    old_value: Any
    new_value: Any


@dataclass(frozen=True)
class RecordChange:
    """
    One record's contribution to a change-set.
    UPDATE fills `fields`; CREATE fills `after`; DELETE fills `before`.
    """

    record_type: type
    table_name: str
    primary_key: str
    fields: Mapping[str, FieldChange] = field(default_factory=dict)
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class AuditEntry:
    """
    Immutable audit row: one changed field (UPDATE) or one whole record (CREATE/DELETE).
    field_name is None for whole-record rows.
    """

    table_name: str
    primary_key: str
    action: AuditAction
    field_name: Optional[str]
    old_value: Any
    new_value: Any
    old_label: Optional[str]
    new_label: Optional[str]
    changeset_id: uuid.UUID
    changed_by: str
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Structured representation for JSON logging."""
        return {
            "table_name": self.table_name,
            "primary_key": self.primary_key,
            "action": self.action.value,
            "field_name": self.field_name,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "old_label": self.old_label,
            "new_label": self.new_label,
            "changeset_id": str(self.changeset_id),
            "changed_by": self.changed_by,
            "created_at": self.created_at.isoformat(),
        }
