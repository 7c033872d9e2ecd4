"""User model definitions."""

from sqlalchemy import Boolean, Column, Integer, String
from sqlalchemy.orm import relationship

from petsync.database import Base


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=False, default="")
    hashed_password = Column(String, nullable=False, default="")
    role = Column(String, nullable=False)  # super_admin/business_admin/staff/client
    is_active = Column(Boolean, nullable=False, default=True)

    businesses = relationship("Business", secondary="business_members", back_populates="members")

    @property
    def business_ids(self) -> frozenset[int]:
        return frozenset(business.id for business in self.businesses)
