"""Audit domain models. No ORM."""

from changeset_audit.domain.models.audit import (
    AuditAction,
    AuditEntry,
    FieldChange,
    NewRecord,
    RecordChange,
)
from changeset_audit.domain.models.execution import ExecutionState

__all__ = [
    "AuditAction",
    "AuditEntry",
    "ExecutionState",
    "FieldChange",
    "NewRecord",
    "RecordChange",
]
