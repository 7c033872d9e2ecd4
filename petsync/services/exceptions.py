class SchedulingError(Exception):
    """Base exception for appointment scheduling and access decisions."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInterval(SchedulingError):
    """Raised when an appointment would not start strictly before it ends."""


class SlotUnavailable(SchedulingError):
    """Raised when a blocking appointment already occupies the requested interval."""

    def __init__(self, message: str = "Time slot is not available.", *, conflicting_id: int | None = None):
        super().__init__(message)
        self.conflicting_id = conflicting_id


class AccessDenied(SchedulingError):
    """Raised when the acting user may not perform an operation."""


class UnknownActorRole(AccessDenied):
    """Raised for roles outside the recognized set; handled as a denial."""


class InvalidTransition(SchedulingError):
    """Raised when the appointment status does not permit the requested operation."""


class NotFound(SchedulingError):
    """Raised when a referenced record does not exist."""


class ValidationFailed(SchedulingError):
    """Raised when request references are inconsistent with stored data."""
