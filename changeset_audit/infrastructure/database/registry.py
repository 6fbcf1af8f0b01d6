"""Explicit table-name → record-type registry. Built once at startup."""

from typing import Dict, Iterable, List, Optional

from changeset_audit.infrastructure.database.inspection import (
    is_auditable_mapper,
    mapper_for,
    table_name_of,
)
from changeset_audit.infrastructure.database.models import AuditLog


class RecordRegistry:
    """Maps table names to mapped classes so CREATE can construct records by table name."""

    def __init__(self, models: Iterable[type] = ()) -> None:
        self._models: Dict[str, type] = {}
        for model in models:
            self.register(model)

    @classmethod
    def from_base(cls, base, exclude: Iterable[str] = (AuditLog.__tablename__,)) -> "RecordRegistry":
        """Register every mapped class of a declarative base, except excluded tables."""
        excluded = set(exclude)
        registry = cls()
        for mapper in base.registry.mappers:
            # Single-table subclasses share their parent's table.
            if mapper.single:
                continue
            if table_name_of(mapper) in excluded:
                continue
            registry.register(mapper.class_)
        return registry

    def register(self, model: type) -> type:
        """Register a mapped class. Returns it, so this also works as a class decorator."""
        mapper = mapper_for(model)
        if mapper is None or not is_auditable_mapper(mapper):
            raise ValueError(f"{model!r} is not a mapped record type with a table and primary key")
        table_name = table_name_of(mapper)
        existing = self._models.get(table_name)
        if existing is not None and existing is not model:
            raise ValueError(
                f"Table {table_name!r} already registered to {existing.__name__}"
            )
        self._models[table_name] = model
        return model

    def get(self, table_name: str) -> Optional[type]:
        return self._models.get(table_name)

    def table_names(self) -> List[str]:
        return sorted(self._models)

    def __contains__(self, table_name: object) -> bool:
        return table_name in self._models

    def __len__(self) -> int:
        return len(self._models)
