from datetime import date, datetime

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.orm import Session

from petsync.auth.dependencies import get_current_actor
from petsync.core import config
from petsync.database import get_db
from petsync.models.appointment import AppointmentStatus
from petsync.routes.common import ensure_database_ready, page_count, translate_errors
from petsync.services import appointment_service, notifications
from petsync.services.access_policy import Actor

router = APIRouter(tags=['appointments'])

MIN_SERVICE_NAME_LENGTH = 2
MAX_SERVICE_NAME_LENGTH = 100


def _normalize_service_name(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    if not MIN_SERVICE_NAME_LENGTH <= len(normalized) <= MAX_SERVICE_NAME_LENGTH:
        raise ValueError(
            f'Service name must be {MIN_SERVICE_NAME_LENGTH}-{MAX_SERVICE_NAME_LENGTH} characters.'
        )
    return normalized


def _normalize_text(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    if not normalized:
        return None
    if len(normalized) > config.MAX_APPOINTMENT_NOTES_LENGTH:
        raise ValueError(f'Text must be {config.MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')
    return normalized


class CreateAppointmentRequest(BaseModel):
    business_id: int
    client_id: int
    pet_id: int
    service_name: str
    duration_minutes: int
    start_time: datetime
    price: float = Field(default=0, ge=0)
    staff_id: int | None = None
    notes: str | None = None
    special_requests: str | None = None

    @field_validator('service_name')
    @classmethod
    def validate_service_name(cls, value: str) -> str:
        return _normalize_service_name(value)

    @field_validator('notes', 'special_requests')
    @classmethod
    def validate_text(cls, value: str | None) -> str | None:
        return _normalize_text(value)


class UpdateAppointmentRequest(BaseModel):
    model_config = ConfigDict(extra='forbid')

    staff_id: int | None = None
    start_time: datetime | None = None
    duration_minutes: int | None = None
    service_name: str | None = None
    price: float | None = Field(default=None, ge=0)
    notes: str | None = None
    special_requests: str | None = None

    @field_validator('service_name')
    @classmethod
    def validate_service_name(cls, value: str | None) -> str | None:
        return _normalize_service_name(value)

    @field_validator('notes', 'special_requests')
    @classmethod
    def validate_text(cls, value: str | None) -> str | None:
        return _normalize_text(value)


class CancelAppointmentRequest(BaseModel):
    reason: str | None = None
    notify_client: bool = True

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _normalize_text(value)


class CompleteServiceRequest(BaseModel):
    notes: str | None = None
    photos: list[str] = Field(default_factory=list)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_text(value)


class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    business_id: int
    client_id: int
    pet_id: int
    staff_id: int | None = None
    service_name: str
    duration_minutes: int
    price_amount: float
    price_currency: str
    start_time: datetime
    end_time: datetime
    status: str
    notes: str | None = None
    special_requests: str | None = None
    checked_in_at: datetime | None = None
    service_started_at: datetime | None = None
    service_completed_at: datetime | None = None
    photos: list[str] = Field(default_factory=list)
    cancelled_by_id: int | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    created_by_id: int
    created_at: datetime
    updated_at: datetime


class PaginationResponse(BaseModel):
    current: int
    pages: int
    total: int


class AppointmentListResponse(BaseModel):
    appointments: list[AppointmentResponse]
    pagination: PaginationResponse


class SlotAvailabilityResponse(BaseModel):
    available: bool
    conflicting_appointment_id: int | None = None


class StatusStatisticResponse(BaseModel):
    status: str
    count: int
    total_revenue: float


class AppointmentStatisticsResponse(BaseModel):
    total_appointments: int
    total_revenue: float
    by_status: list[StatusStatisticResponse]


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with translate_errors(db):
        appointment = appointment_service.book_appointment(
            db,
            actor,
            business_id=data.business_id,
            client_id=data.client_id,
            pet_id=data.pet_id,
            service_name=data.service_name,
            duration_minutes=data.duration_minutes,
            start_time=data.start_time,
            staff_id=data.staff_id,
            price_amount=data.price,
            notes=data.notes,
            special_requests=data.special_requests,
        )
        notice = appointment_service.build_notice(db, appointment)

    if notice is not None:
        background_tasks.add_task(notifications.notify_appointment_confirmed, notice)
    return appointment


@router.get('', response_model=AppointmentListResponse)
def list_appointments(
    business_id: int | None = Query(default=None),
    client_id: int | None = Query(default=None),
    staff_id: int | None = Query(default=None),
    appointment_status: AppointmentStatus | None = Query(default=None, alias='status'),
    on_date: date | None = Query(default=None, alias='date'),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with translate_errors(db):
        appointments, total = appointment_service.list_appointments(
            db,
            actor,
            business_id=business_id,
            client_id=client_id,
            staff_id=staff_id,
            status=appointment_status.value if appointment_status else None,
            on_date=on_date,
            date_from=date_from,
            date_to=date_to,
            page=page,
            limit=limit,
        )

    return AppointmentListResponse(
        appointments=[AppointmentResponse.model_validate(appointment) for appointment in appointments],
        pagination=PaginationResponse(current=page, pages=page_count(total, limit), total=total),
    )


@router.get('/availability', response_model=SlotAvailabilityResponse)
def check_availability(
    business_id: int = Query(...),
    start_time: datetime = Query(...),
    end_time: datetime = Query(...),
    staff_id: int | None = Query(default=None),
    exclude_appointment_id: int | None = Query(default=None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with translate_errors(db):
        conflict = appointment_service.check_slot(
            db,
            actor,
            business_id=business_id,
            start_time=start_time,
            end_time=end_time,
            staff_id=staff_id,
            exclude_appointment_id=exclude_appointment_id,
        )

    if conflict is None:
        return SlotAvailabilityResponse(available=True)
    return SlotAvailabilityResponse(available=False, conflicting_appointment_id=conflict.id)


@router.get('/stats/overview', response_model=AppointmentStatisticsResponse)
def get_statistics(
    business_id: int = Query(...),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with translate_errors(db):
        return appointment_service.appointment_statistics(
            db,
            actor,
            business_id=business_id,
            date_from=date_from,
            date_to=date_to,
        )


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with translate_errors(db):
        return appointment_service.get_appointment(db, actor, appointment_id)


@router.put('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    data: UpdateAppointmentRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    changes = data.model_dump(exclude_unset=True)
    if 'price' in changes:
        changes['price_amount'] = changes.pop('price')

    with translate_errors(db):
        return appointment_service.update_appointment(db, actor, appointment_id, changes)


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    data: CancelAppointmentRequest | None = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    data = data or CancelAppointmentRequest()

    notice = None
    with translate_errors(db):
        appointment = appointment_service.cancel_appointment(db, actor, appointment_id, reason=data.reason)
        if data.notify_client:
            notice = appointment_service.build_notice(db, appointment, reason=data.reason)

    if notice is not None:
        background_tasks.add_task(notifications.notify_appointment_cancelled, notice)
    return appointment


@router.post('/{appointment_id}/checkin', response_model=AppointmentResponse)
def check_in_appointment(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with translate_errors(db):
        return appointment_service.check_in_appointment(db, actor, appointment_id)


@router.post('/{appointment_id}/start', response_model=AppointmentResponse)
def start_service(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with translate_errors(db):
        return appointment_service.start_service(db, actor, appointment_id)


@router.post('/{appointment_id}/complete', response_model=AppointmentResponse)
def complete_service(
    appointment_id: int,
    data: CompleteServiceRequest | None = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    data = data or CompleteServiceRequest()

    with translate_errors(db):
        return appointment_service.complete_service(
            db,
            actor,
            appointment_id,
            notes=data.notes,
            photos=data.photos,
        )
