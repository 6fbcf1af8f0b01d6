"""SQLAlchemy introspection for audited records: identity, dirty fields, snapshots. Read-only."""

from typing import Any, Dict, List, Optional

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import InstanceState, Mapper

from changeset_audit.domain.models.audit import FieldChange


def instance_state(record: Any) -> Optional[InstanceState]:
    """Return the ORM state of a mapped instance, or None for anything else."""
    state = sa_inspect(record, raiseerr=False)
    if isinstance(state, InstanceState):
        return state
    return None


def mapper_for(record_type: Any) -> Optional[Mapper]:
    mapper = sa_inspect(record_type, raiseerr=False)
    if isinstance(mapper, Mapper):
        return mapper
    return None


def is_auditable_mapper(mapper: Mapper) -> bool:
    """A record type is auditable when it maps to a named table with a primary key."""
    return getattr(mapper.local_table, "name", None) is not None and len(mapper.primary_key) > 0


def is_auditable(record: Any) -> bool:
    state = instance_state(record)
    return state is not None and is_auditable_mapper(state.mapper)


def table_name_of(mapper: Mapper) -> str:
    return mapper.local_table.name


def has_composite_key(mapper: Mapper) -> bool:
    return len(mapper.primary_key) > 1


def is_pre_existing(record: Any) -> bool:
    """True for rows already in storage: persistent, or detached with an identity key."""
    state = instance_state(record)
    return state is not None and state.has_identity


def primary_key_of(record: Any) -> str:
    """String-encoded primary key. Composite keys are rejected before this is reached."""
    state = instance_state(record)
    if state.identity is not None:
        values = state.identity
    else:
        values = state.mapper.primary_key_from_instance(record)
    return ",".join(str(v) for v in values)


def _column_keys(state: InstanceState) -> List[str]:
    return [attr.key for attr in state.mapper.column_attrs]


def unloaded_columns(record: Any) -> List[str]:
    """Column attributes not yet loaded (expired or deferred)."""
    state = instance_state(record)
    unloaded = state.unloaded
    return [key for key in _column_keys(state) if key in unloaded]


def dirty_fields(record: Any) -> Dict[str, FieldChange]:
    """
    Changed column attributes since last load, in declaration order.
    Old value from the loaded state, new value from memory. Values are not coerced.
    An expired or deferred column has no loaded state; its old value is None here
    and the caller fetches the stored one.
    """
    state = instance_state(record)
    changes: Dict[str, FieldChange] = {}
    for key in _column_keys(state):
        history = state.attrs[key].history
        if not history.has_changes():
            continue
        old_value = history.deleted[0] if history.deleted else None
        new_value = history.added[0] if history.added else None
        changes[key] = FieldChange(old_value=old_value, new_value=new_value)
    return changes


def persisted_snapshot(record: Any) -> Dict[str, Any]:
    """Last-persisted value of every column attribute, ignoring unflushed edits."""
    state = instance_state(record)
    snapshot: Dict[str, Any] = {}
    for key in _column_keys(state):
        history = state.attrs[key].history
        if history.deleted:
            snapshot[key] = history.deleted[0]
        elif history.unchanged:
            snapshot[key] = history.unchanged[0]
        else:
            snapshot[key] = None
    return snapshot


def current_snapshot(record: Any) -> Dict[str, Any]:
    """In-memory value of every loaded column attribute. Never triggers a load."""
    state = instance_state(record)
    return {key: state.dict.get(key) for key in _column_keys(state)}


def fields_without_prior_value(record: Any, keys: List[str]) -> List[str]:
    """Keys whose history holds no loaded value: set after being expired or deferred."""
    state = instance_state(record)
    missing = []
    for key in keys:
        history = state.attrs[key].history
        if not history.deleted and not history.unchanged:
            missing.append(key)
    return missing


def identity_clause(record: Any):
    """WHERE clause matching the stored row of a single-key record."""
    state = instance_state(record)
    pk_column = state.mapper.primary_key[0]
    return pk_column == state.identity[0]


def column_for(mapper: Mapper, key: str):
    return mapper.column_attrs[key].columns[0]
