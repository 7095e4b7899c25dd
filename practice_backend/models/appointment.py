"""Appointment model definitions."""

from sqlalchemy import Column, Date, ForeignKey, Integer, String, Time
from practice_backend.database import Base


class Appointment(Base):
    """Represents a patient session with a psychologist in a room."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    patient_name = Column(String, nullable=False)
    psychologist_id = Column(Integer, ForeignKey("psychologists.id"), nullable=False)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    status = Column(String, nullable=False, default="scheduled")
    notes = Column(String)
