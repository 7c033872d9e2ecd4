"""Business model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Table
from sqlalchemy.orm import relationship

from petsync.database import Base


business_members = Table(
    "business_members",
    Base.metadata,
    Column("business_id", Integer, ForeignKey("businesses.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Business(Base):
    """A grooming or veterinary business; the scoping unit for staff and appointments."""
    __tablename__ = "businesses"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    timezone = Column(String, nullable=False, default="UTC")
    is_active = Column(Boolean, nullable=False, default=True)

    members = relationship("User", secondary=business_members, back_populates="businesses")

    def has_member(self, user_id: int) -> bool:
        return any(member.id == user_id for member in self.members)
