"""Human-readable label capability for record types. Pure, no side effects on records."""

from typing import Any, Optional


class LabelProvider:
    """
    Optional capability a record type mixes in to translate raw persisted values
    into the labels a user saw. field_name is None when labelling a whole-record
    snapshot (CREATE/DELETE). Return None when a value has no label.

    No ABCMeta here: declarative ORM bases bring their own metaclass.
    """

    @classmethod
    def audit_label(cls, field_name: Optional[str], value: Any) -> Optional[str]:
        raise NotImplementedError(f"{cls.__name__} must implement audit_label")


def supports_labels(record_type: type) -> bool:
    return isinstance(record_type, type) and issubclass(record_type, LabelProvider)


def resolve_label(record_type: type, field_name: Optional[str], value: Any) -> Optional[str]:
    """Return the label for value, or None when the record type has no label capability."""
    if not supports_labels(record_type):
        return None
    label = record_type.audit_label(field_name, value)
    if label is None:
        return None
    return str(label)
