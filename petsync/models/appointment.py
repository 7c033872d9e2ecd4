"""Appointment model definitions."""

from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text

from petsync.database import Base, utcnow


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    # Reserved: no operation produces these yet.
    NO_SHOW = "no_show"
    RESCHEDULED = "rescheduled"


class Appointment(Base):
    """A booked service for one pet, occupying [start_time, end_time) on a business timeline."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointments_business_start", "business_id", "start_time"),
        Index("idx_appointments_staff_start", "staff_id", "start_time"),
        Index("idx_appointments_client_status", "client_id", "status"),
        Index("idx_appointments_time_range", "start_time", "end_time"),
    )

    id = Column(Integer, primary_key=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False)
    client_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    pet_id = Column(Integer, ForeignKey("pets.id"), nullable=False)
    staff_id = Column(Integer, ForeignKey("users.id"))
    staff_assigned_at = Column(DateTime)

    service_name = Column(String, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    price_amount = Column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)
    price_currency = Column(String(3), nullable=False, default="USD")

    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(String, nullable=False, default=AppointmentStatus.SCHEDULED.value)

    notes = Column(Text)
    special_requests = Column(Text)

    checked_in_at = Column(DateTime)
    service_started_at = Column(DateTime)
    service_completed_at = Column(DateTime)
    photos = Column(JSON, nullable=False, default=list)

    cancelled_by_id = Column(Integer, ForeignKey("users.id"))
    cancelled_at = Column(DateTime)
    cancellation_reason = Column(Text)

    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
