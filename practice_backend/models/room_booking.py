"""Room booking model definitions."""

from sqlalchemy import Column, Date, ForeignKey, Integer, String, Time
from practice_backend.database import Base


class RoomBooking(Base):
    """Represents a room occupied for a time window on a given date."""
    __tablename__ = "room_bookings"

    id = Column(Integer, primary_key=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    psychologist_id = Column(Integer, ForeignKey("psychologists.id"), nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    purpose = Column(String)
    # Set when the booking mirrors an appointment.
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=True)
