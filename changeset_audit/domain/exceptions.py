"""Audit engine exceptions. Raised before any storage I/O begins."""


class AuditError(Exception):
    """Base for all audit engine errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class MisconfiguredError(AuditError):
    """Raised when no acting user is bound, so changes cannot be attributed."""


class InvalidActionError(AuditError):
    """Raised when the action is not one of CREATE, UPDATE, DELETE."""


class InvalidChangeSetError(AuditError):
    """Raised when a change-set has the wrong cardinality or an unsupported member."""


class UnsupportedKeyError(InvalidChangeSetError):
    """Raised when a member's record type has a composite primary key."""


class UnknownTableError(AuditError):
    """Raised when CREATE targets a table name with no registered record type."""


class InvalidExecutionStateError(AuditError):
    """Raised when an execution attempts a lifecycle transition that is not allowed."""
