import logging
from datetime import date, datetime, time, timedelta
from typing import Any

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from petsync.core import config
from petsync.database import as_utc_naive, utcnow
from petsync.models.appointment import Appointment, AppointmentStatus
from petsync.models.business import Business
from petsync.models.pet import Pet
from petsync.models.user import User
from petsync.services import audit, lifecycle
from petsync.services.access_policy import (
    Actor,
    ListingScope,
    Operation,
    Role,
    authorize_appointment,
    authorize_create,
    can_administer_business,
    can_create_for_business,
    listing_scope,
    resolve_role,
)
from petsync.services.conflicts import ensure_slot_available, find_conflict, schedule_guard, validate_interval
from petsync.services.exceptions import AccessDenied, NotFound, UnknownActorRole, ValidationFailed
from petsync.services.notifications import AppointmentNotice

logger = logging.getLogger(__name__)

SCHEDULE_FIELDS = frozenset({'staff_id', 'start_time', 'duration_minutes'})
UPDATABLE_FIELDS = SCHEDULE_FIELDS | {'service_name', 'price_amount', 'notes', 'special_requests'}
STAFF_ROLES = frozenset({Role.STAFF.value, Role.BUSINESS_ADMIN.value})
NON_REVENUE_STATUSES = frozenset({AppointmentStatus.CANCELLED.value, AppointmentStatus.NO_SHOW.value})


def get_appointment_record(db: Session, appointment_id: int) -> Appointment:
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        raise NotFound('Appointment not found.')
    return appointment


def _get_active_business(db: Session, business_id: int) -> Business:
    business = db.get(Business, business_id)
    if business is None or not business.is_active:
        raise NotFound('Business not found.')
    return business


def _ensure_staff_member(db: Session, business: Business, staff_id: int) -> None:
    staff = db.get(User, staff_id)
    if staff is None or not staff.is_active or staff.role not in STAFF_ROLES or not business.has_member(staff_id):
        raise ValidationFailed('Assigned staff must be an active member of this business.')


def _schedule_bounds(start_time: datetime, duration_minutes: int) -> tuple[datetime, datetime]:
    start = as_utc_naive(start_time).replace(second=0, microsecond=0)
    end = start + timedelta(minutes=duration_minutes)
    validate_interval(start, end)
    if not config.MIN_APPOINTMENT_MINUTES <= duration_minutes <= config.MAX_APPOINTMENT_MINUTES:
        raise ValidationFailed(
            f'Duration must be {config.MIN_APPOINTMENT_MINUTES}-{config.MAX_APPOINTMENT_MINUTES} minutes.'
        )
    return start, end


def snapshot(appointment: Appointment) -> dict[str, Any]:
    data = {}
    for column in Appointment.__table__.columns:
        value = getattr(appointment, column.name)
        data[column.name] = value.isoformat() if isinstance(value, datetime) else value
    return data


def build_notice(db: Session, appointment: Appointment, reason: str | None = None) -> AppointmentNotice | None:
    client = db.get(User, appointment.client_id)
    pet = db.get(Pet, appointment.pet_id)
    business = db.get(Business, appointment.business_id)
    if client is None or not client.email or pet is None or business is None:
        return None
    return AppointmentNotice(
        client_email=client.email,
        client_name=client.full_name or client.email,
        pet_name=pet.name,
        service_name=appointment.service_name,
        start_time=appointment.start_time,
        business_name=business.name,
        reason=reason,
    )


def book_appointment(
    db: Session,
    actor: Actor,
    *,
    business_id: int,
    client_id: int,
    pet_id: int,
    service_name: str,
    duration_minutes: int,
    start_time: datetime,
    staff_id: int | None = None,
    price_amount: float = 0,
    notes: str | None = None,
    special_requests: str | None = None,
) -> Appointment:
    business = _get_active_business(db, business_id)
    authorize_create(actor, business_id)

    client = db.get(User, client_id)
    pet = db.get(Pet, pet_id)
    if client is None or client.role != Role.CLIENT.value or pet is None:
        raise NotFound('Client or pet not found.')
    if pet.owner_id != client.id:
        raise ValidationFailed('Pet does not belong to this client.')
    if staff_id is not None:
        _ensure_staff_member(db, business, staff_id)

    start, end = _schedule_bounds(start_time, duration_minutes)
    now = utcnow()

    with schedule_guard(db, business_id):
        ensure_slot_available(db, business_id, staff_id, start, end)
        appointment = Appointment(
            business_id=business_id,
            client_id=client_id,
            pet_id=pet_id,
            staff_id=staff_id,
            staff_assigned_at=now if staff_id is not None else None,
            service_name=service_name,
            duration_minutes=duration_minutes,
            price_amount=price_amount,
            start_time=start,
            end_time=end,
            status=AppointmentStatus.SCHEDULED.value,
            notes=notes,
            special_requests=special_requests,
            photos=[],
            created_by_id=actor.user_id,
        )
        db.add(appointment)
        db.commit()

    db.refresh(appointment)
    logger.info('Booked appointment %s for business %s at %s', appointment.id, business_id, start)
    audit.record(
        db,
        user_id=actor.user_id,
        business_id=business_id,
        action='CREATE',
        resource='appointment',
        resource_id=appointment.id,
    )
    return appointment


def _scope_clause(scope: ListingScope):
    conditions = []
    if scope.business_ids:
        conditions.append(Appointment.business_id.in_(sorted(scope.business_ids)))
    if scope.staff_id is not None:
        conditions.append(Appointment.staff_id == scope.staff_id)
    if scope.client_id is not None:
        conditions.append(Appointment.client_id == scope.client_id)
    return or_(*conditions)


def list_appointments(
    db: Session,
    actor: Actor,
    *,
    business_id: int | None = None,
    client_id: int | None = None,
    staff_id: int | None = None,
    status: str | None = None,
    on_date: date | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    page: int = 1,
    limit: int = config.DEFAULT_PAGE_SIZE,
) -> tuple[list[Appointment], int]:
    if resolve_role(actor.role) is None:
        raise UnknownActorRole(f"Unknown role '{actor.role}'.")

    scope = listing_scope(actor)
    if scope.is_empty:
        return [], 0

    query = db.query(Appointment)
    if not scope.unrestricted:
        query = query.filter(_scope_clause(scope))

    if business_id is not None:
        query = query.filter(Appointment.business_id == business_id)
    if client_id is not None:
        query = query.filter(Appointment.client_id == client_id)
    if staff_id is not None:
        query = query.filter(Appointment.staff_id == staff_id)
    if status:
        query = query.filter(Appointment.status == status)

    if on_date is not None:
        date_from = date_to = on_date
    if date_from is not None:
        query = query.filter(Appointment.start_time >= datetime.combine(date_from, time.min))
    if date_to is not None:
        query = query.filter(Appointment.start_time < datetime.combine(date_to + timedelta(days=1), time.min))

    total = query.count()
    appointments = (
        query.order_by(Appointment.start_time.asc(), Appointment.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return appointments, total


def get_appointment(db: Session, actor: Actor, appointment_id: int) -> Appointment:
    appointment = get_appointment_record(db, appointment_id)
    authorize_appointment(actor, appointment, Operation.READ)
    return appointment


def update_appointment(db: Session, actor: Actor, appointment_id: int, changes: dict[str, Any]) -> Appointment:
    """Patch editable fields of an active appointment.

    Any change to staff, start time or duration is conflict-checked against
    the business timeline, excluding the appointment itself.
    """
    unknown = sorted(set(changes) - UPDATABLE_FIELDS)
    if unknown:
        raise ValidationFailed(f"Field(s) cannot be updated: {', '.join(unknown)}.")

    appointment = get_appointment_record(db, appointment_id)
    authorize_appointment(actor, appointment, Operation.UPDATE)
    lifecycle.ensure_transition_allowed(appointment, Operation.UPDATE)

    before = snapshot(appointment)
    now = utcnow()
    schedule_changed = bool(SCHEDULE_FIELDS & set(changes))

    if schedule_changed:
        staff_id = changes.get('staff_id', appointment.staff_id)
        start_time = changes.get('start_time') or appointment.start_time
        duration_minutes = changes.get('duration_minutes', appointment.duration_minutes)
        if duration_minutes is None:
            raise ValidationFailed('Duration is required.')
        if staff_id is not None and staff_id != appointment.staff_id:
            _ensure_staff_member(db, _get_active_business(db, appointment.business_id), staff_id)
        start, end = _schedule_bounds(start_time, duration_minutes)

        with schedule_guard(db, appointment.business_id):
            ensure_slot_available(
                db,
                appointment.business_id,
                staff_id,
                start,
                end,
                exclude_appointment_id=appointment.id,
            )
            if staff_id != appointment.staff_id:
                appointment.staff_assigned_at = now if staff_id is not None else None
            appointment.staff_id = staff_id
            appointment.start_time = start
            appointment.end_time = end
            appointment.duration_minutes = duration_minutes
            _apply_details(appointment, changes)
            db.commit()
    else:
        _apply_details(appointment, changes)
        db.commit()

    db.refresh(appointment)
    logger.info('Updated appointment %s (schedule changed: %s)', appointment.id, schedule_changed)
    audit.record(
        db,
        user_id=actor.user_id,
        business_id=appointment.business_id,
        action='UPDATE',
        resource='appointment',
        resource_id=appointment.id,
        details={'before': before, 'after': snapshot(appointment)},
    )
    return appointment


def _apply_details(appointment: Appointment, changes: dict[str, Any]) -> None:
    for field in UPDATABLE_FIELDS - SCHEDULE_FIELDS:
        if field in changes and (changes[field] is not None or field in ('notes', 'special_requests')):
            setattr(appointment, field, changes[field])


def cancel_appointment(db: Session, actor: Actor, appointment_id: int, reason: str | None = None) -> Appointment:
    appointment = get_appointment_record(db, appointment_id)
    authorize_appointment(actor, appointment, Operation.CANCEL)
    lifecycle.cancel(appointment, cancelled_by_id=actor.user_id, now=utcnow(), reason=reason)
    db.commit()
    db.refresh(appointment)

    logger.info('Cancelled appointment %s by user %s', appointment.id, actor.user_id)
    audit.record(
        db,
        user_id=actor.user_id,
        business_id=appointment.business_id,
        action='CANCEL',
        resource='appointment',
        resource_id=appointment.id,
        details={'reason': reason},
    )
    return appointment


def check_in_appointment(db: Session, actor: Actor, appointment_id: int) -> Appointment:
    appointment = get_appointment_record(db, appointment_id)
    authorize_appointment(actor, appointment, Operation.CHECK_IN)
    lifecycle.check_in(appointment, utcnow())
    db.commit()
    db.refresh(appointment)
    logger.info('Checked in appointment %s', appointment.id)
    return appointment


def start_service(db: Session, actor: Actor, appointment_id: int) -> Appointment:
    appointment = get_appointment_record(db, appointment_id)
    authorize_appointment(actor, appointment, Operation.START)
    lifecycle.start_service(appointment, utcnow())
    db.commit()
    db.refresh(appointment)
    logger.info('Started service for appointment %s', appointment.id)
    return appointment


def complete_service(
    db: Session,
    actor: Actor,
    appointment_id: int,
    notes: str | None = None,
    photos: list[str] | None = None,
) -> Appointment:
    appointment = get_appointment_record(db, appointment_id)
    authorize_appointment(actor, appointment, Operation.COMPLETE)
    lifecycle.complete_service(appointment, utcnow(), notes=notes, photos=photos)
    db.commit()
    db.refresh(appointment)
    logger.info('Completed service for appointment %s', appointment.id)
    return appointment


def check_slot(
    db: Session,
    actor: Actor,
    *,
    business_id: int,
    start_time: datetime,
    end_time: datetime,
    staff_id: int | None = None,
    exclude_appointment_id: int | None = None,
) -> Appointment | None:
    """Return the first blocking appointment in the way, or None when the slot is free."""
    if resolve_role(actor.role) is None:
        raise UnknownActorRole(f"Unknown role '{actor.role}'.")
    if not can_create_for_business(actor, business_id):
        raise AccessDenied('Not allowed to view availability for this business.')
    start_time, end_time = as_utc_naive(start_time), as_utc_naive(end_time)
    validate_interval(start_time, end_time)
    return find_conflict(db, business_id, staff_id, start_time, end_time, exclude_appointment_id)


def appointment_statistics(
    db: Session,
    actor: Actor,
    *,
    business_id: int,
    date_from: date | None = None,
    date_to: date | None = None,
) -> dict[str, Any]:
    if resolve_role(actor.role) is None:
        raise UnknownActorRole(f"Unknown role '{actor.role}'.")
    if not can_administer_business(actor, business_id):
        raise AccessDenied('Not allowed to view reports for this business.')

    query = db.query(
        Appointment.status,
        func.count(Appointment.id),
        func.coalesce(func.sum(Appointment.price_amount), 0),
    ).filter(Appointment.business_id == business_id)
    if date_from is not None:
        query = query.filter(Appointment.start_time >= datetime.combine(date_from, time.min))
    if date_to is not None:
        query = query.filter(Appointment.start_time < datetime.combine(date_to + timedelta(days=1), time.min))

    by_status = [
        {'status': status, 'count': count, 'total_revenue': float(revenue)}
        for status, count, revenue in query.group_by(Appointment.status).order_by(Appointment.status).all()
    ]
    return {
        'total_appointments': sum(row['count'] for row in by_status),
        'total_revenue': sum(row['total_revenue'] for row in by_status if row['status'] not in NON_REVENUE_STATUSES),
        'by_status': by_status,
    }
