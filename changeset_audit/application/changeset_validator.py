"""Structural validation of change-sets. Runs before any storage I/O."""

from typing import Any, Sequence

from changeset_audit.domain.exceptions import (
    InvalidActionError,
    InvalidChangeSetError,
    MisconfiguredError,
    UnknownTableError,
    UnsupportedKeyError,
)
from changeset_audit.domain.models.audit import AuditAction, NewRecord
from changeset_audit.infrastructure.database.inspection import (
    has_composite_key,
    instance_state,
    is_auditable,
    is_pre_existing,
    mapper_for,
)
from changeset_audit.infrastructure.database.registry import RecordRegistry

SINGLE_MEMBER_ACTIONS = frozenset({AuditAction.CREATE, AuditAction.DELETE})


def _describe(member: Any) -> str:
    if isinstance(member, NewRecord):
        return f"NewRecord({member.table_name!r})"
    return type(member).__name__


def validate_actor(actor: Any) -> None:
    """Changes must be attributable. Raises MisconfiguredError if no actor id is bound."""
    if actor is None or getattr(actor, "id", None) is None:
        raise MisconfiguredError("Providing a user is required")


def coerce_action(action: Any) -> AuditAction:
    """Raises InvalidActionError unless action is CREATE, UPDATE or DELETE."""
    if isinstance(action, AuditAction):
        return action
    try:
        return AuditAction(action)
    except ValueError:
        raise InvalidActionError(f"Invalid action: {action!r}") from None


class ChangeSetValidator:
    """
    Checks actor, action and change-set shape. First failing rule wins:
    actor, action, member types, cardinality, CREATE table, key shape, pre-existing rows.
    """

    def __init__(self, registry: RecordRegistry) -> None:
        self._registry = registry

    def validate(self, actor: Any, action: Any, change_set: Sequence[Any]) -> AuditAction:
        validate_actor(actor)
        audit_action = coerce_action(action)
        members = list(change_set or ())

        for member in members:
            if not self._is_supported_member(audit_action, member):
                raise InvalidChangeSetError(
                    f"Unsupported change-set member for {audit_action.value}: {_describe(member)}"
                )

        if not members:
            raise InvalidChangeSetError("Change-set must contain at least one member")
        if audit_action in SINGLE_MEMBER_ACTIONS and len(members) != 1:
            raise InvalidChangeSetError(
                f"Audit action {audit_action.value} supports exactly one member within the change-set, "
                f"got {len(members)}"
            )

        if audit_action == AuditAction.CREATE:
            new_record: NewRecord = members[0]
            if new_record.table_name not in self._registry:
                raise UnknownTableError(f"Unknown table name provided: {new_record.table_name!r}")

        for member in members:
            mapper = self._mapper_of(member)
            if has_composite_key(mapper):
                raise UnsupportedKeyError(
                    f"Composite primary keys are not supported: {_describe(member)}"
                )

        if audit_action != AuditAction.CREATE:
            for member in members:
                if not is_pre_existing(member):
                    raise InvalidChangeSetError(
                        f"{audit_action.value} requires a pre-existing row: {_describe(member)}"
                    )

        return audit_action

    @staticmethod
    def _is_supported_member(action: AuditAction, member: Any) -> bool:
        if action == AuditAction.CREATE:
            return isinstance(member, NewRecord)
        return is_auditable(member)

    def _mapper_of(self, member: Any):
        if isinstance(member, NewRecord):
            return mapper_for(self._registry.get(member.table_name))
        return instance_state(member).mapper
