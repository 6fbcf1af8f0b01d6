"""RecordRegistry: explicit table-name lookup built at startup."""

import pytest
from sqlalchemy import Column, Integer
from sqlalchemy.orm import declarative_base

from changeset_audit.infrastructure.database.registry import RecordRegistry
from changeset_audit.infrastructure.database.session import Base
from tests.support.models import DashboardUser, DeliveryFee, DeliveryProfile, ProfileZone


def test_from_base_registers_mapped_tables_except_audit_log():
    registry = RecordRegistry.from_base(Base)

    assert registry.get("delivery_profiles") is DeliveryProfile
    assert registry.get("delivery_fees") is DeliveryFee
    assert "profile_zones" in registry
    assert "audit_log" not in registry


def test_explicit_registration():
    registry = RecordRegistry([DeliveryFee])

    assert registry.table_names() == ["delivery_fees"]
    assert len(registry) == 1
    assert registry.get("delivery_profiles") is None


def test_register_works_as_decorator():
    other_base = declarative_base()
    registry = RecordRegistry()

    @registry.register
    class Dealer(other_base):
        __tablename__ = "dealers"
        id = Column(Integer, primary_key=True)

    assert registry.get("dealers") is Dealer


def test_register_rejects_unmapped_types():
    with pytest.raises(ValueError):
        RecordRegistry().register(DashboardUser)


def test_register_rejects_conflicting_table():
    other_base = declarative_base()

    class OtherFees(other_base):
        __tablename__ = "delivery_fees"
        id = Column(Integer, primary_key=True)

    registry = RecordRegistry([DeliveryFee])
    registry.register(DeliveryFee)
    with pytest.raises(ValueError):
        registry.register(OtherFees)


def test_composite_key_types_can_be_registered():
    # Rejected at validation time, not registration.
    assert RecordRegistry([ProfileZone]).get("profile_zones") is ProfileZone
