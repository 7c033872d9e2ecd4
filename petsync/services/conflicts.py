"""Double-booking detection.

Intervals are half-open: an appointment occupies ``[start_time, end_time)``,
so one ending at 11:00 does not collide with one starting at 11:00.

Staff matching: an appointment with no assigned staff occupies the whole
business timeline. Two blocking appointments of the same business clash when
their intervals overlap and either side is unassigned or both share the same
staff member.
"""

from contextlib import contextmanager
from datetime import datetime
from threading import Lock
from typing import Iterable, Iterator, Protocol

from sqlalchemy import or_
from sqlalchemy.orm import Session

from petsync.models.appointment import Appointment, AppointmentStatus
from petsync.models.business import Business
from petsync.services.exceptions import InvalidInterval, SlotUnavailable

BLOCKING_STATUSES = frozenset({
    AppointmentStatus.SCHEDULED.value,
    AppointmentStatus.CONFIRMED.value,
    AppointmentStatus.IN_PROGRESS.value,
})


class ScheduledLike(Protocol):
    id: int | None
    business_id: int
    staff_id: int | None
    start_time: datetime
    end_time: datetime
    status: str


def validate_interval(start: datetime, end: datetime) -> None:
    if start >= end:
        raise InvalidInterval("Appointment must start before it ends.")


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and b_start < a_end


def staff_collides(requested_staff_id: int | None, existing_staff_id: int | None) -> bool:
    if requested_staff_id is None or existing_staff_id is None:
        return True
    return requested_staff_id == existing_staff_id


def is_blocking(status: str) -> bool:
    return status in BLOCKING_STATUSES


def find_conflict_in(
    appointments: Iterable[ScheduledLike],
    business_id: int,
    staff_id: int | None,
    start: datetime,
    end: datetime,
    exclude_appointment_id: int | None = None,
) -> ScheduledLike | None:
    for appointment in appointments:
        if appointment.business_id != business_id:
            continue
        if exclude_appointment_id is not None and appointment.id == exclude_appointment_id:
            continue
        if not is_blocking(appointment.status):
            continue
        if not staff_collides(staff_id, appointment.staff_id):
            continue
        if intervals_overlap(appointment.start_time, appointment.end_time, start, end):
            return appointment
    return None


def has_conflict_in(
    appointments: Iterable[ScheduledLike],
    business_id: int,
    staff_id: int | None,
    start: datetime,
    end: datetime,
    exclude_appointment_id: int | None = None,
) -> bool:
    return find_conflict_in(appointments, business_id, staff_id, start, end, exclude_appointment_id) is not None


def find_conflict(
    db: Session,
    business_id: int,
    staff_id: int | None,
    start: datetime,
    end: datetime,
    exclude_appointment_id: int | None = None,
) -> Appointment | None:
    query = db.query(Appointment).filter(
        Appointment.business_id == business_id,
        Appointment.status.in_(sorted(BLOCKING_STATUSES)),
        Appointment.start_time < end,
        Appointment.end_time > start,
    )
    if staff_id is not None:
        query = query.filter(or_(Appointment.staff_id == staff_id, Appointment.staff_id.is_(None)))
    if exclude_appointment_id is not None:
        query = query.filter(Appointment.id != exclude_appointment_id)
    return query.order_by(Appointment.start_time.asc()).first()


def has_conflict(
    db: Session,
    business_id: int,
    staff_id: int | None,
    start: datetime,
    end: datetime,
    exclude_appointment_id: int | None = None,
) -> bool:
    return find_conflict(db, business_id, staff_id, start, end, exclude_appointment_id) is not None


def ensure_slot_available(
    db: Session,
    business_id: int,
    staff_id: int | None,
    start: datetime,
    end: datetime,
    exclude_appointment_id: int | None = None,
) -> None:
    validate_interval(start, end)
    conflict = find_conflict(db, business_id, staff_id, start, end, exclude_appointment_id)
    if conflict is not None:
        raise SlotUnavailable(conflicting_id=conflict.id)


_registry_lock = Lock()
_business_locks: dict[int, Lock] = {}


def _lock_for(business_id: int) -> Lock:
    with _registry_lock:
        lock = _business_locks.get(business_id)
        if lock is None:
            lock = _business_locks[business_id] = Lock()
        return lock


@contextmanager
def schedule_guard(db: Session, business_id: int) -> Iterator[None]:
    """Serialize check-then-write sequences on one business timeline.

    The process-local lock covers concurrent requests in this worker; the
    business row lock covers other workers on databases that honour
    ``SELECT ... FOR UPDATE``. Callers must commit before leaving the block.
    """
    with _lock_for(business_id):
        db.query(Business.id).filter(Business.id == business_id).with_for_update().first()
        yield
