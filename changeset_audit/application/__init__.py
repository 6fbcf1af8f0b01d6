"""Application layer: change-set validation and the transactional audit executor."""

from changeset_audit.application.audit_log_service import AuditLogService, AuditOutcome, init
from changeset_audit.application.audit_sink import AuditSink
from changeset_audit.application.changeset_validator import ChangeSetValidator

__all__ = [
    "AuditLogService",
    "AuditOutcome",
    "AuditSink",
    "ChangeSetValidator",
    "init",
]
