"""ChangeSetValidator: rule order and first-failure semantics."""

import pytest
from sqlalchemy.orm import make_transient_to_detached

from changeset_audit.application.changeset_validator import ChangeSetValidator
from changeset_audit.domain.exceptions import (
    InvalidActionError,
    InvalidChangeSetError,
    MisconfiguredError,
    UnknownTableError,
    UnsupportedKeyError,
)
from changeset_audit.domain.models.audit import AuditAction, NewRecord
from tests.support.models import DashboardUser, DeliveryFee, DeliveryProfile, ProfileZone


def _existing(record):
    """Give a transient record a database identity without touching storage."""
    make_transient_to_detached(record)
    return record


@pytest.fixture
def validator(registry):
    return ChangeSetValidator(registry)


@pytest.fixture
def user():
    return DashboardUser(id=1, email="a@example.com")


def test_valid_update(validator, user):
    members = [_existing(DeliveryProfile(id=1, dealer_name="A")), _existing(DeliveryFee(id=2))]
    assert validator.validate(user, "UPDATE", members) == AuditAction.UPDATE


def test_valid_create_and_delete(validator, user):
    assert validator.validate(user, AuditAction.CREATE, [NewRecord("delivery_fees", {})]) == AuditAction.CREATE
    assert validator.validate(user, "DELETE", [_existing(DeliveryFee(id=3))]) == AuditAction.DELETE


@pytest.mark.parametrize("actor", [None, object()])
def test_actor_required(validator, actor):
    with pytest.raises(MisconfiguredError):
        validator.validate(actor, "UPDATE", [_existing(DeliveryFee(id=1))])


def test_actor_checked_before_action(validator):
    with pytest.raises(MisconfiguredError):
        validator.validate(None, "UPSERT", [])


@pytest.mark.parametrize("action", [None, "", "UPSERT", "update"])
def test_invalid_action(validator, user, action):
    with pytest.raises(InvalidActionError):
        validator.validate(user, action, [_existing(DeliveryFee(id=1))])


def test_unsupported_member_names_first_offender(validator, user):
    members = [_existing(DeliveryFee(id=1)), {"tableName": "delivery_fees"}, "x"]
    with pytest.raises(InvalidChangeSetError) as exc_info:
        validator.validate(user, "UPDATE", members)
    assert "dict" in exc_info.value.message


def test_create_member_must_be_new_record(validator, user):
    with pytest.raises(InvalidChangeSetError):
        validator.validate(user, "CREATE", [DeliveryFee(distance_miles=1)])


def test_update_member_cannot_be_new_record(validator, user):
    with pytest.raises(InvalidChangeSetError):
        validator.validate(user, "UPDATE", [NewRecord("delivery_fees", {})])


@pytest.mark.parametrize("action", ["UPDATE", "CREATE", "DELETE"])
def test_empty_change_set(validator, user, action):
    with pytest.raises(InvalidChangeSetError):
        validator.validate(user, action, [])


def test_delete_cardinality(validator, user):
    members = [_existing(DeliveryFee(id=1)), _existing(DeliveryFee(id=2))]
    with pytest.raises(InvalidChangeSetError):
        validator.validate(user, "DELETE", members)


def test_create_cardinality_checked_before_table(validator, user):
    members = [NewRecord("nope", {}), NewRecord("nope", {})]
    with pytest.raises(InvalidChangeSetError):
        validator.validate(user, "CREATE", members)


def test_create_unknown_table(validator, user):
    with pytest.raises(UnknownTableError):
        validator.validate(user, "CREATE", [NewRecord("dealer_invoices", {})])


def test_composite_key_rejected_for_update(validator, user):
    members = [_existing(DeliveryFee(id=1)), _existing(ProfileZone(profile_id=1, zip_code="02139"))]
    with pytest.raises(UnsupportedKeyError):
        validator.validate(user, "UPDATE", members)


def test_composite_key_rejected_for_create(validator, user):
    with pytest.raises(UnsupportedKeyError) as exc_info:
        validator.validate(user, "CREATE", [NewRecord("profile_zones", {"profile_id": 1})])
    assert isinstance(exc_info.value, InvalidChangeSetError)


@pytest.mark.parametrize("action", ["UPDATE", "DELETE"])
def test_update_and_delete_require_existing_rows(validator, user, action):
    with pytest.raises(InvalidChangeSetError):
        validator.validate(user, action, [DeliveryFee(distance_miles=1)])
