from datetime import date, datetime, time, timedelta
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from petsync.auth.dependencies import get_current_actor
from petsync.core import config
from petsync.database import get_db
from petsync.routes.common import ensure_database_ready, page_count, translate_errors
from petsync.services import audit
from petsync.services.access_policy import Actor, Role, can_administer_business, resolve_role

router = APIRouter(tags=['audit'])


class AuditLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    business_id: int | None = None
    action: str
    resource: str
    resource_id: int | None = None
    details: dict[str, Any]
    created_at: datetime


class AuditLogListResponse(BaseModel):
    logs: list[AuditLogResponse]
    total: int
    page: int
    pages: int


def resolve_audit_scope(actor: Actor, business_id: int | None) -> frozenset[int] | None:
    role = resolve_role(actor.role)
    if role is Role.SUPER_ADMIN:
        return None if business_id is None else frozenset({business_id})
    if role is not Role.BUSINESS_ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Only administrators can view audit logs.')
    if business_id is None:
        return actor.business_ids
    if not can_administer_business(actor, business_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Access denied to this business.')
    return frozenset({business_id})


@router.get('', response_model=AuditLogListResponse)
def list_audit_logs(
    business_id: int | None = Query(default=None),
    user_id: int | None = Query(default=None),
    resource: str | None = Query(default=None),
    action: str | None = Query(default=None),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=config.MAX_PAGE_SIZE),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    business_ids = resolve_audit_scope(actor, business_id)

    ensure_database_ready()

    with translate_errors(db):
        logs, total = audit.list_logs(
            db,
            business_ids=business_ids,
            user_id=user_id,
            resource=resource,
            action=action,
            date_from=datetime.combine(date_from, time.min) if date_from else None,
            date_to=datetime.combine(date_to + timedelta(days=1), time.min) - timedelta(microseconds=1) if date_to else None,
            page=page,
            limit=limit,
        )

    return AuditLogListResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=total,
        page=page,
        pages=page_count(total, limit),
    )
