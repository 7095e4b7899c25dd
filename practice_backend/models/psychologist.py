"""Psychologist model definitions."""

from sqlalchemy import Column, Integer, ForeignKey, Numeric, String
from practice_backend.database import Base


class Psychologist(Base):
    """Professional profile linked to a user account."""
    __tablename__ = "psychologists"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    specialization = Column(String)
    bio = Column(String)
    hourly_rate = Column(Numeric(10, 2), nullable=False)
