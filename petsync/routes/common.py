from contextlib import contextmanager
from typing import Iterator, NoReturn

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from petsync.database import ensure_schema
from petsync.services.exceptions import (
    AccessDenied,
    InvalidInterval,
    InvalidTransition,
    NotFound,
    SchedulingError,
    SlotUnavailable,
    ValidationFailed,
)

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'

ERROR_STATUS_CODES: list[tuple[type[SchedulingError], int]] = [
    (InvalidInterval, status.HTTP_400_BAD_REQUEST),
    (ValidationFailed, status.HTTP_400_BAD_REQUEST),
    (AccessDenied, status.HTTP_403_FORBIDDEN),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (SlotUnavailable, status.HTTP_409_CONFLICT),
    (InvalidTransition, status.HTTP_409_CONFLICT),
]


def ensure_database_ready() -> None:
    try:
        ensure_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def raise_http_error(exc: SchedulingError) -> NoReturn:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            raise HTTPException(status_code=status_code, detail=exc.message) from exc
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc


@contextmanager
def translate_errors(db: Session) -> Iterator[None]:
    try:
        yield
    except SchedulingError as exc:
        db.rollback()
        raise_http_error(exc)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def page_count(total: int, limit: int) -> int:
    return (total + limit - 1) // limit if limit else 0
