"""Change-set audit engine: atomic per-field audit trails for ORM create, update and delete."""

from changeset_audit.application import AuditLogService, AuditOutcome, init
from changeset_audit.domain import (
    AuditAction,
    AuditEntry,
    AuditError,
    InvalidActionError,
    InvalidChangeSetError,
    LabelProvider,
    MisconfiguredError,
    NewRecord,
    UnknownTableError,
    UnsupportedKeyError,
)
from changeset_audit.infrastructure.database.registry import RecordRegistry

__all__ = [
    "AuditAction",
    "AuditEntry",
    "AuditError",
    "AuditLogService",
    "AuditOutcome",
    "InvalidActionError",
    "InvalidChangeSetError",
    "LabelProvider",
    "MisconfiguredError",
    "NewRecord",
    "RecordRegistry",
    "UnknownTableError",
    "UnsupportedKeyError",
    "init",
]
