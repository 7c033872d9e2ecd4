"""Role-scoped access decisions for appointments.

Every decision is a pure function of the acting user and the target
appointment (or business id). The table below is the single place where the
role/operation policy lives; routes and services only ask it questions.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol

from petsync.services.exceptions import AccessDenied, UnknownActorRole


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    BUSINESS_ADMIN = "business_admin"
    STAFF = "staff"
    CLIENT = "client"


class Operation(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    CHECK_IN = "check_in"
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"


class AppointmentLike(Protocol):
    business_id: int
    staff_id: int | None
    client_id: int


@dataclass(frozen=True)
class Actor:
    role: str
    user_id: int
    business_ids: frozenset[int] = frozenset()

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(role=user.role, user_id=user.id, business_ids=frozenset(user.business_ids))


@dataclass(frozen=True)
class ListingScope:
    """Which appointments an actor may list.

    An appointment is visible when the scope is unrestricted, or when it
    matches any of the populated fields.
    """

    unrestricted: bool = False
    business_ids: frozenset[int] = frozenset()
    staff_id: int | None = None
    client_id: int | None = None

    @property
    def is_empty(self) -> bool:
        return (
            not self.unrestricted
            and not self.business_ids
            and self.staff_id is None
            and self.client_id is None
        )

    def includes(self, appointment: AppointmentLike) -> bool:
        if self.unrestricted:
            return True
        if appointment.business_id in self.business_ids:
            return True
        if self.staff_id is not None and appointment.staff_id == self.staff_id:
            return True
        return self.client_id is not None and appointment.client_id == self.client_id


Policy = Callable[[Actor, AppointmentLike], bool]


def always(actor: Actor, appointment: AppointmentLike) -> bool:
    return True


def never(actor: Actor, appointment: AppointmentLike) -> bool:
    return False


def own_business(actor: Actor, appointment: AppointmentLike) -> bool:
    return appointment.business_id in actor.business_ids


def assigned_only(actor: Actor, appointment: AppointmentLike) -> bool:
    return appointment.staff_id is not None and appointment.staff_id == actor.user_id


def own_business_or_assigned(actor: Actor, appointment: AppointmentLike) -> bool:
    return assigned_only(actor, appointment) or own_business(actor, appointment)


def own_appointment(actor: Actor, appointment: AppointmentLike) -> bool:
    return appointment.client_id == actor.user_id


# Super admins are kept out of single-appointment endpoints except cancel.
APPOINTMENT_POLICIES: dict[Operation, dict[Role, Policy]] = {
    Operation.READ: {
        Role.SUPER_ADMIN: never,
        Role.BUSINESS_ADMIN: own_business,
        Role.STAFF: own_business_or_assigned,
        Role.CLIENT: own_appointment,
    },
    Operation.UPDATE: {
        Role.SUPER_ADMIN: never,
        Role.BUSINESS_ADMIN: own_business,
        Role.STAFF: own_business_or_assigned,
        Role.CLIENT: never,
    },
    Operation.CHECK_IN: {
        Role.SUPER_ADMIN: never,
        Role.BUSINESS_ADMIN: own_business,
        Role.STAFF: own_business_or_assigned,
        Role.CLIENT: never,
    },
    Operation.START: {
        Role.SUPER_ADMIN: never,
        Role.BUSINESS_ADMIN: own_business,
        Role.STAFF: own_business_or_assigned,
        Role.CLIENT: never,
    },
    Operation.COMPLETE: {
        Role.SUPER_ADMIN: never,
        Role.BUSINESS_ADMIN: own_business,
        Role.STAFF: own_business_or_assigned,
        Role.CLIENT: never,
    },
    Operation.CANCEL: {
        Role.SUPER_ADMIN: always,
        Role.BUSINESS_ADMIN: own_business,
        Role.STAFF: assigned_only,
        Role.CLIENT: own_appointment,
    },
}

BOOKING_ROLES = frozenset({Role.BUSINESS_ADMIN, Role.STAFF})


def resolve_role(role: str | Role) -> Role | None:
    try:
        return Role(role)
    except ValueError:
        return None


def can_access_appointment(
    actor: Actor,
    appointment: AppointmentLike,
    operation: Operation | str = Operation.READ,
) -> bool:
    role = resolve_role(actor.role)
    if role is None:
        return False
    policies = APPOINTMENT_POLICIES.get(Operation(operation), {})
    return policies.get(role, never)(actor, appointment)


def can_create_for_business(actor: Actor, business_id: int) -> bool:
    role = resolve_role(actor.role)
    return role in BOOKING_ROLES and business_id in actor.business_ids


def can_administer_business(actor: Actor, business_id: int) -> bool:
    role = resolve_role(actor.role)
    if role is Role.SUPER_ADMIN:
        return True
    return role is Role.BUSINESS_ADMIN and business_id in actor.business_ids


def authorize_appointment(
    actor: Actor,
    appointment: AppointmentLike,
    operation: Operation | str = Operation.READ,
) -> None:
    if resolve_role(actor.role) is None:
        raise UnknownActorRole(f"Unknown role '{actor.role}'.")
    if not can_access_appointment(actor, appointment, operation):
        raise AccessDenied(f"Not allowed to {Operation(operation).value.replace('_', ' ')} this appointment.")


def authorize_create(actor: Actor, business_id: int) -> None:
    if resolve_role(actor.role) is None:
        raise UnknownActorRole(f"Unknown role '{actor.role}'.")
    if not can_create_for_business(actor, business_id):
        raise AccessDenied("Not allowed to book appointments for this business.")


def listing_scope(actor: Actor) -> ListingScope:
    role = resolve_role(actor.role)
    if role is Role.SUPER_ADMIN:
        return ListingScope(unrestricted=True)
    if role is Role.BUSINESS_ADMIN:
        return ListingScope(business_ids=actor.business_ids)
    if role is Role.STAFF:
        return ListingScope(business_ids=actor.business_ids, staff_id=actor.user_id)
    if role is Role.CLIENT:
        return ListingScope(client_id=actor.user_id)
    return ListingScope()
