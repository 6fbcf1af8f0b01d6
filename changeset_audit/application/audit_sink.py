"""Audit sink protocol. Application layer depends on this; infrastructure implements it."""

from typing import Protocol

from changeset_audit.domain.models.audit import AuditEntry


class AuditSink(Protocol):
    """Append-only target for audit entries, bound to the executing transaction."""

    async def insert(self, entry: AuditEntry) -> None:
        """Append one entry inside the current transaction. Must not update or delete rows."""
        ...
