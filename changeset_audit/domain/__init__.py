"""Domain layer: audit models, labels, entry builder, exceptions. Pure logic only."""

from changeset_audit.domain.audit_builder import AuditEntryBuilder
from changeset_audit.domain.exceptions import (
    AuditError,
    InvalidActionError,
    InvalidChangeSetError,
    InvalidExecutionStateError,
    MisconfiguredError,
    UnknownTableError,
    UnsupportedKeyError,
)
from changeset_audit.domain.labels import LabelProvider, resolve_label
from changeset_audit.domain.models import (
    AuditAction,
    AuditEntry,
    ExecutionState,
    FieldChange,
    NewRecord,
    RecordChange,
)

__all__ = [
    "AuditAction",
    "AuditEntry",
    "AuditEntryBuilder",
    "AuditError",
    "ExecutionState",
    "FieldChange",
    "InvalidActionError",
    "InvalidChangeSetError",
    "InvalidExecutionStateError",
    "LabelProvider",
    "MisconfiguredError",
    "NewRecord",
    "RecordChange",
    "UnknownTableError",
    "UnsupportedKeyError",
    "resolve_label",
]
