"""Audit log model definitions."""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String

from petsync.database import Base, utcnow


class AuditLog(Base):
    """One recorded user action against a resource."""
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("idx_audit_logs_user_created", "user_id", "created_at"),
        Index("idx_audit_logs_business_created", "business_id", "created_at"),
        Index("idx_audit_logs_resource_action", "resource", "action"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    business_id = Column(Integer, ForeignKey("businesses.id"))
    action = Column(String, nullable=False)  # CREATE/UPDATE/CANCEL
    resource = Column(String, nullable=False)
    resource_id = Column(Integer)
    details = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False, default=utcnow)
