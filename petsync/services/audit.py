import logging
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from petsync.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


def record(
    db: Session,
    *,
    user_id: int,
    business_id: int | None,
    action: str,
    resource: str,
    resource_id: int | None = None,
    details: dict[str, Any] | None = None,
) -> AuditLog | None:
    """Persist one audit entry in its own commit.

    Called after the audited change is committed; a failure here is logged
    and the audited change stands.
    """
    entry = AuditLog(
        user_id=user_id,
        business_id=business_id,
        action=action,
        resource=resource,
        resource_id=resource_id,
        details=details or {},
    )
    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception('Failed to write audit log for %s %s %s', action, resource, resource_id)
        return None
    return entry


def list_logs(
    db: Session,
    *,
    business_ids: frozenset[int] | None = None,
    user_id: int | None = None,
    resource: str | None = None,
    action: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[AuditLog], int]:
    """Return one page of audit entries, newest first, and the total count.

    ``business_ids=None`` means unrestricted; an empty set matches nothing.
    """
    query = db.query(AuditLog)
    if business_ids is not None:
        query = query.filter(AuditLog.business_id.in_(sorted(business_ids)))
    if user_id is not None:
        query = query.filter(AuditLog.user_id == user_id)
    if resource:
        query = query.filter(AuditLog.resource == resource)
    if action:
        query = query.filter(AuditLog.action == action.upper())
    if date_from is not None:
        query = query.filter(AuditLog.created_at >= date_from)
    if date_to is not None:
        query = query.filter(AuditLog.created_at <= date_to)

    total = query.count()
    logs = (
        query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return logs, total
