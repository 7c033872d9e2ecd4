from types import SimpleNamespace

import pytest

from petsync.services.access_policy import (
    Actor,
    ListingScope,
    Operation,
    authorize_appointment,
    authorize_create,
    can_access_appointment,
    can_administer_business,
    can_create_for_business,
    listing_scope,
)
from petsync.services.exceptions import AccessDenied, UnknownActorRole

B1 = 1
B2 = 2
STAFF_ID = 10
CLIENT_ID = 20


def _appointment(business_id: int = B1, staff_id: int | None = STAFF_ID, client_id: int = CLIENT_ID):
    return SimpleNamespace(business_id=business_id, staff_id=staff_id, client_id=client_id)


SUPER_ADMIN = Actor(role='super_admin', user_id=1)
ADMIN_B1 = Actor(role='business_admin', user_id=2, business_ids=frozenset({B1}))
ADMIN_B2 = Actor(role='business_admin', user_id=3, business_ids=frozenset({B2}))
STAFF_ASSIGNED_NO_MEMBERSHIP = Actor(role='staff', user_id=STAFF_ID)
STAFF_MEMBER_B1 = Actor(role='staff', user_id=11, business_ids=frozenset({B1}))
STAFF_MEMBER_B2 = Actor(role='staff', user_id=12, business_ids=frozenset({B2}))
OWNER_CLIENT = Actor(role='client', user_id=CLIENT_ID)
OTHER_CLIENT = Actor(role='client', user_id=21)
UNKNOWN = Actor(role='groomer', user_id=99, business_ids=frozenset({B1}))


@pytest.mark.parametrize(
    ('actor', 'operation', 'expected'),
    [
        (SUPER_ADMIN, Operation.READ, False),
        (SUPER_ADMIN, Operation.UPDATE, False),
        (SUPER_ADMIN, Operation.CHECK_IN, False),
        (SUPER_ADMIN, Operation.START, False),
        (SUPER_ADMIN, Operation.COMPLETE, False),
        (SUPER_ADMIN, Operation.CANCEL, True),
        (ADMIN_B1, Operation.READ, True),
        (ADMIN_B1, Operation.UPDATE, True),
        (ADMIN_B1, Operation.CHECK_IN, True),
        (ADMIN_B1, Operation.CANCEL, True),
        (ADMIN_B2, Operation.READ, False),
        (ADMIN_B2, Operation.UPDATE, False),
        (ADMIN_B2, Operation.CANCEL, False),
        (STAFF_ASSIGNED_NO_MEMBERSHIP, Operation.READ, True),
        (STAFF_ASSIGNED_NO_MEMBERSHIP, Operation.CHECK_IN, True),
        (STAFF_ASSIGNED_NO_MEMBERSHIP, Operation.START, True),
        (STAFF_ASSIGNED_NO_MEMBERSHIP, Operation.COMPLETE, True),
        (STAFF_ASSIGNED_NO_MEMBERSHIP, Operation.UPDATE, True),
        (STAFF_ASSIGNED_NO_MEMBERSHIP, Operation.CANCEL, True),
        (STAFF_MEMBER_B1, Operation.READ, True),
        (STAFF_MEMBER_B1, Operation.CHECK_IN, True),
        (STAFF_MEMBER_B1, Operation.UPDATE, True),
        (STAFF_MEMBER_B1, Operation.CANCEL, False),
        (STAFF_MEMBER_B2, Operation.READ, False),
        (STAFF_MEMBER_B2, Operation.CHECK_IN, False),
        (OWNER_CLIENT, Operation.READ, True),
        (OWNER_CLIENT, Operation.CANCEL, True),
        (OWNER_CLIENT, Operation.UPDATE, False),
        (OWNER_CLIENT, Operation.CHECK_IN, False),
        (OTHER_CLIENT, Operation.READ, False),
        (OTHER_CLIENT, Operation.CANCEL, False),
        (UNKNOWN, Operation.READ, False),
        (UNKNOWN, Operation.CANCEL, False),
    ],
)
def test_can_access_appointment_matches_policy_table(actor: Actor, operation: Operation, expected: bool) -> None:
    assert can_access_appointment(actor, _appointment(), operation) is expected


def test_can_access_appointment_defaults_to_read() -> None:
    assert can_access_appointment(ADMIN_B1, _appointment()) is True
    assert can_access_appointment(SUPER_ADMIN, _appointment()) is False


def test_can_access_appointment_accepts_operation_names() -> None:
    assert can_access_appointment(SUPER_ADMIN, _appointment(), 'cancel') is True


def test_staff_assignment_does_not_match_unassigned_appointment() -> None:
    appointment = _appointment(staff_id=None)

    assert can_access_appointment(STAFF_ASSIGNED_NO_MEMBERSHIP, appointment, Operation.CANCEL) is False
    assert can_access_appointment(STAFF_ASSIGNED_NO_MEMBERSHIP, appointment, Operation.READ) is False


def test_create_is_not_a_per_appointment_operation() -> None:
    assert can_access_appointment(ADMIN_B1, _appointment(), Operation.CREATE) is False


@pytest.mark.parametrize(
    ('actor', 'business_id', 'expected'),
    [
        (ADMIN_B1, B1, True),
        (ADMIN_B1, B2, False),
        (STAFF_MEMBER_B1, B1, True),
        (STAFF_ASSIGNED_NO_MEMBERSHIP, B1, False),
        (SUPER_ADMIN, B1, False),
        (OWNER_CLIENT, B1, False),
        (UNKNOWN, B1, False),
    ],
)
def test_can_create_for_business(actor: Actor, business_id: int, expected: bool) -> None:
    assert can_create_for_business(actor, business_id) is expected


def test_can_administer_business() -> None:
    assert can_administer_business(SUPER_ADMIN, B2) is True
    assert can_administer_business(ADMIN_B1, B1) is True
    assert can_administer_business(ADMIN_B1, B2) is False
    assert can_administer_business(STAFF_MEMBER_B1, B1) is False


def test_authorize_appointment_raises_access_denied() -> None:
    with pytest.raises(AccessDenied) as exception_info:
        authorize_appointment(ADMIN_B2, _appointment(), Operation.READ)

    assert exception_info.value.message == 'Not allowed to read this appointment.'


def test_authorize_appointment_raises_unknown_role_as_access_denied() -> None:
    with pytest.raises(UnknownActorRole):
        authorize_appointment(UNKNOWN, _appointment(), Operation.READ)

    with pytest.raises(AccessDenied):
        authorize_appointment(UNKNOWN, _appointment(), Operation.READ)


def test_authorize_create_rejects_client() -> None:
    with pytest.raises(AccessDenied):
        authorize_create(OWNER_CLIENT, B1)


def test_listing_scope_per_role() -> None:
    assert listing_scope(SUPER_ADMIN) == ListingScope(unrestricted=True)
    assert listing_scope(ADMIN_B1) == ListingScope(business_ids=frozenset({B1}))
    assert listing_scope(STAFF_MEMBER_B1) == ListingScope(business_ids=frozenset({B1}), staff_id=11)
    assert listing_scope(OWNER_CLIENT) == ListingScope(client_id=CLIENT_ID)
    assert listing_scope(UNKNOWN).is_empty


def test_listing_scope_includes_matches_any_populated_field() -> None:
    staff_scope = listing_scope(STAFF_ASSIGNED_NO_MEMBERSHIP)

    assert staff_scope.includes(_appointment()) is True
    assert staff_scope.includes(_appointment(staff_id=None)) is False
    assert listing_scope(ADMIN_B2).includes(_appointment()) is False
    assert listing_scope(OWNER_CLIENT).includes(_appointment()) is True
