"""Pet model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, String

from petsync.database import Base


class Pet(Base):
    """A client's pet."""
    __tablename__ = "pets"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    species = Column(String)
