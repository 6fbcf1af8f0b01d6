# changeset_audit/infrastructure/database/models.py

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, BigInteger, Column, DateTime, Integer, LargeBinary, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import TypeDecorator

from changeset_audit.infrastructure.database.session import Base


class BinaryUUID(TypeDecorator):
    """UUID stored as 16 raw bytes."""

    impl = LargeBinary(16)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, uuid.UUID):
            value = uuid.UUID(str(value))
        return value.bytes

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return uuid.UUID(bytes=bytes(value))


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


JsonValue = JSON().with_variant(JSONB(), "postgresql")


class AuditLog(Base):
    """Append-only audit row. One per changed field (UPDATE) or per whole record (CREATE/DELETE)."""

    __tablename__ = "audit_log"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)

    table_name = Column(String(255), nullable=False, index=True)
    field_name = Column(String(255), nullable=True)
    primary_key = Column(String(255), nullable=False, index=True)
    action = Column(String(16), nullable=False)

    old_value = Column(JsonValue, nullable=True)
    new_value = Column(JsonValue, nullable=True)
    old_label = Column(Text, nullable=True)
    new_label = Column(Text, nullable=True)

    changeset_uuid_bin = Column(BinaryUUID(), nullable=False, index=True)
    changed_by = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utc_now)
