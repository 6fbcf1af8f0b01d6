"""Audit log service: the transaction boundary. Validates, diffs, mutates and audits one change-set atomically."""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from changeset_audit.application.audit_sink import AuditSink
from changeset_audit.application.changeset_validator import ChangeSetValidator
from changeset_audit.config.settings import get_settings
from changeset_audit.core.context import actor_id_ctx, changeset_id_ctx
from changeset_audit.domain.audit_builder import AuditEntryBuilder
from changeset_audit.domain.exceptions import AuditError, InvalidExecutionStateError
from changeset_audit.domain.models.audit import (
    AuditAction,
    AuditEntry,
    FieldChange,
    NewRecord,
    RecordChange,
)
from changeset_audit.domain.models.execution import ExecutionState, can_transition
from changeset_audit.infrastructure.database.audit_log_repository_db import DbAuditLogRepository
from changeset_audit.infrastructure.database.inspection import (
    column_for,
    current_snapshot,
    dirty_fields,
    fields_without_prior_value,
    identity_clause,
    instance_state,
    persisted_snapshot,
    primary_key_of,
    table_name_of,
    unloaded_columns,
)
from changeset_audit.infrastructure.database.registry import RecordRegistry
from changeset_audit.infrastructure.database.session import Base, get_session_factory

SinkFactory = Callable[[AsyncSession], AuditSink]

# States in which storage may already hold uncommitted writes.
_WRITE_STATES = frozenset({ExecutionState.MUTATING, ExecutionState.AUDIT_WRITING})


@dataclass(frozen=True)
class AuditOutcome:
    """Result of one change-set execution. records is empty for DELETE."""

    action: AuditAction
    changeset_id: uuid.UUID
    records: Tuple[Any, ...]
    entries: Tuple[AuditEntry, ...]


class AuditLogService:
    """
    Builder-style entry point: bind a user (required), optionally a session and a
    timeout, then call create / update / delete.

    Transaction strategy: with no bound session the service opens one and owns
    commit/rollback. With a bound session, manage_transaction=True commits or rolls
    back that session; manage_transaction=False only flushes and leaves both to the
    caller. Data mutation and audit rows always share one session.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        registry: Optional[RecordRegistry] = None,
        sink_factory: SinkFactory = DbAuditLogRepository,
        builder: Optional[AuditEntryBuilder] = None,
        timeout_seconds: Optional[float] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._session_factory = session_factory
        self._registry = registry if registry is not None else RecordRegistry.from_base(Base)
        self._validator = ChangeSetValidator(self._registry)
        self._sink_factory = sink_factory
        self._builder = builder or AuditEntryBuilder()
        self._timeout = timeout_seconds
        self._logger = logger or logging.getLogger(__name__)
        self._user: Any = None
        self._session: Optional[AsyncSession] = None
        self._state = ExecutionState.IDLE

    @property
    def state(self) -> ExecutionState:
        return self._state

    def with_user(self, user: Any) -> "AuditLogService":
        """Set the user (anything with an `id`) associated with all changes."""
        self._user = user
        return self

    def with_transaction(self, session: AsyncSession) -> "AuditLogService":
        """Run inside an existing session instead of opening one."""
        self._session = session
        return self

    def with_timeout(self, seconds: Optional[float]) -> "AuditLogService":
        """Bound mutation + audit writes + commit. Expiry rolls back when the service manages the transaction."""
        self._timeout = seconds
        return self

    async def create(
        self,
        table_name: str,
        attributes: Mapping[str, Any],
        manage_transaction: bool = True,
    ) -> AuditOutcome:
        return await self.execute(
            AuditAction.CREATE,
            [NewRecord(table_name=table_name, attributes=dict(attributes))],
            manage_transaction,
        )

    async def delete(self, record: Any, manage_transaction: bool = True) -> AuditOutcome:
        return await self.execute(AuditAction.DELETE, [record], manage_transaction)

    async def update(self, change_set: Sequence[Any], manage_transaction: bool = True) -> AuditOutcome:
        return await self.execute(AuditAction.UPDATE, change_set, manage_transaction)

    async def execute(
        self,
        action: Any,
        change_set: Sequence[Any],
        manage_transaction: bool = True,
    ) -> AuditOutcome:
        """
        Perform one auditable action. Validation errors are raised before any I/O.
        Any later failure rolls back (when managed) and is re-raised unchanged.
        """
        self._state = ExecutionState.IDLE
        self._transition(ExecutionState.VALIDATING)
        try:
            audit_action = self._validator.validate(self._user, action, change_set)
        except AuditError as e:
            self._transition(ExecutionState.REJECTED)
            self._logger.warning(
                "changeset_rejected",
                extra={"action": str(action), "error": e.message},
            )
            raise

        members = list(change_set)
        changeset_id = uuid.uuid4()
        changed_by = str(self._user.id)
        changeset_token = changeset_id_ctx.set(str(changeset_id))
        actor_token = actor_id_ctx.set(changed_by)
        self._logger.info(
            "changeset_validated",
            extra={
                "action": audit_action.value,
                "changeset_id": str(changeset_id),
                "members": len(members),
            },
        )
        try:
            if self._session is not None:
                return await self._run(
                    self._session, manage_transaction, audit_action, members, changeset_id, changed_by
                )
            session_factory = self._session_factory or get_session_factory()
            async with session_factory() as session:
                return await self._run(
                    session, True, audit_action, members, changeset_id, changed_by
                )
        finally:
            changeset_id_ctx.reset(changeset_token)
            actor_id_ctx.reset(actor_token)

    async def _run(
        self,
        session: AsyncSession,
        manage: bool,
        action: AuditAction,
        members: List[Any],
        changeset_id: uuid.UUID,
        changed_by: str,
    ) -> AuditOutcome:
        try:
            work = self._apply(session, manage, action, members, changeset_id, changed_by)
            if self._timeout is not None:
                return await asyncio.wait_for(work, timeout=self._timeout)
            return await work
        except Exception as e:
            self._logger.error(
                "changeset_failed",
                extra={
                    "action": action.value,
                    "changeset_id": str(changeset_id),
                    "state": self._state.value,
                    "manage_transaction": manage,
                    "error": repr(e),
                },
            )
            if self._state in _WRITE_STATES:
                if manage:
                    await self._rollback(session, changeset_id)
                self._transition(ExecutionState.ROLLED_BACK)
            elif self._state == ExecutionState.DIFFING:
                self._transition(ExecutionState.REJECTED)
            raise

    async def _apply(
        self,
        session: AsyncSession,
        manage: bool,
        action: AuditAction,
        members: List[Any],
        changeset_id: uuid.UUID,
        changed_by: str,
    ) -> AuditOutcome:
        self._transition(ExecutionState.DIFFING)
        if action == AuditAction.UPDATE:
            changes = await self._diff_updates(session, members)
        elif action == AuditAction.DELETE:
            changes = [await self._snapshot_for_delete(session, members[0])]
        else:
            changes = []

        self._transition(ExecutionState.MUTATING)
        if action == AuditAction.UPDATE:
            records: Tuple[Any, ...] = tuple(members)
            changed = {id(c.record) for c in changes}
            for record in members:
                if id(record) in changed:
                    session.add(record)
            await session.flush()
        elif action == AuditAction.CREATE:
            record = await self._insert(session, members[0])
            records = (record,)
            changes = [self._created_change(record)]
        else:
            await session.delete(members[0])
            await session.flush()
            records = ()
        self._logger.info(
            "changeset_mutated",
            extra={
                "action": action.value,
                "changeset_id": str(changeset_id),
                "records": len(changes),
            },
        )

        self._transition(ExecutionState.AUDIT_WRITING)
        entries = self._builder.build(
            action, [c.change for c in changes], changeset_id, changed_by
        )
        sink = self._sink_factory(session)
        for entry in entries:
            await sink.insert(entry)

        if manage:
            await session.commit()
        # With a caller-owned transaction this means "flushed into it", not durable.
        self._transition(ExecutionState.COMMITTED)
        self._logger.info(
            "changeset_committed",
            extra={
                "action": action.value,
                "changeset_id": str(changeset_id),
                "entries": len(entries),
                "manage_transaction": manage,
            },
        )
        return AuditOutcome(
            action=action,
            changeset_id=changeset_id,
            records=records,
            entries=tuple(entries),
        )

    @classmethod
    async def _diff_updates(cls, session: AsyncSession, members: List[Any]) -> List["_PlannedChange"]:
        planned = []
        seen = set()
        for record in members:
            if id(record) in seen:
                continue
            seen.add(id(record))
            fields = dirty_fields(record)
            missing = fields_without_prior_value(record, list(fields))
            if missing:
                fields = await cls._with_stored_old_values(session, record, fields, missing)
            if not fields:
                continue
            state = instance_state(record)
            planned.append(
                _PlannedChange(
                    record=record,
                    change=RecordChange(
                        record_type=state.mapper.class_,
                        table_name=table_name_of(state.mapper),
                        primary_key=primary_key_of(record),
                        fields=fields,
                    ),
                )
            )
        return planned

    @staticmethod
    async def _with_stored_old_values(
        session: AsyncSession,
        record: Any,
        fields: Mapping[str, FieldChange],
        missing: List[str],
    ) -> dict:
        """Read old values of expired or deferred columns from the stored row."""
        mapper = instance_state(record).mapper
        stmt = select(*[column_for(mapper, key) for key in missing]).where(identity_clause(record))
        # Pending edits must not reach storage before the old values are read.
        with session.no_autoflush:
            row = (await session.execute(stmt)).one()
        stored = dict(zip(missing, row))
        resolved = {}
        for key, change in fields.items():
            if key in stored:
                if stored[key] == change.new_value:
                    continue
                change = FieldChange(old_value=stored[key], new_value=change.new_value)
            resolved[key] = change
        return resolved

    @staticmethod
    async def _snapshot_for_delete(session: AsyncSession, record: Any) -> "_PlannedChange":
        session.add(record)
        unloaded = unloaded_columns(record)
        if unloaded:
            await session.refresh(record, attribute_names=unloaded)
        state = instance_state(record)
        return _PlannedChange(
            record=record,
            change=RecordChange(
                record_type=state.mapper.class_,
                table_name=table_name_of(state.mapper),
                primary_key=primary_key_of(record),
                before=persisted_snapshot(record),
            ),
        )

    async def _insert(self, session: AsyncSession, new_record: NewRecord) -> Any:
        model = self._registry.get(new_record.table_name)
        record = model(**dict(new_record.attributes))
        session.add(record)
        await session.flush()
        # Load server-generated values so the snapshot is what was actually stored.
        await session.refresh(record)
        return record

    @staticmethod
    def _created_change(record: Any) -> "_PlannedChange":
        state = instance_state(record)
        return _PlannedChange(
            record=record,
            change=RecordChange(
                record_type=state.mapper.class_,
                table_name=table_name_of(state.mapper),
                primary_key=primary_key_of(record),
                after=current_snapshot(record),
            ),
        )

    async def _rollback(self, session: AsyncSession, changeset_id: uuid.UUID) -> None:
        try:
            await session.rollback()
        except Exception:
            # Re-raising happens in _run with the triggering error.
            self._logger.exception(
                "changeset_rollback_failed",
                extra={"changeset_id": str(changeset_id)},
            )
            return
        self._logger.info(
            "changeset_rolled_back",
            extra={"changeset_id": str(changeset_id)},
        )

    def _transition(self, new_state: ExecutionState) -> None:
        if not can_transition(self._state, new_state):
            raise InvalidExecutionStateError(
                f"Invalid execution transition from {self._state.value} to {new_state.value}"
            )
        self._logger.debug(
            "changeset_state",
            extra={"from_state": self._state.value, "to_state": new_state.value},
        )
        self._state = new_state


@dataclass(frozen=True)
class _PlannedChange:
    """A computed RecordChange plus the live record it came from."""

    record: Any
    change: RecordChange


def init(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    registry: Optional[RecordRegistry] = None,
    timeout_seconds: Optional[float] = None,
    **kwargs: Any,
) -> AuditLogService:
    """Start a fresh invocation context. Timeout defaults to AUDIT_TIMEOUT_SECONDS."""
    if timeout_seconds is None:
        timeout_seconds = get_settings().audit_timeout_seconds
    return AuditLogService(
        session_factory=session_factory,
        registry=registry,
        timeout_seconds=timeout_seconds,
        **kwargs,
    )
