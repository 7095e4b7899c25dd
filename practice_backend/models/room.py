"""Room model definitions."""

from sqlalchemy import Boolean, Column, Integer, String
from practice_backend.database import Base


class Room(Base):
    """A consulting room that appointments and reservations occupy."""
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    capacity = Column(Integer, nullable=False)
    has_wifi = Column(Boolean, nullable=False, default=True)
    has_air_conditioning = Column(Boolean, nullable=False, default=True)
    square_meters = Column(Integer)
    image_url = Column(String)
