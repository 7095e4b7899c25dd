"""Plain records handed out by every ResourceStore implementation."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal


APPOINTMENT_STATUSES = (
    'scheduled',
    'confirmed',
    'canceled',
    'completed',
    'first-session',
    'pending-confirmation',
)
CANCELED_STATUS = 'canceled'


@dataclass(frozen=True)
class BookedInterval:
    id: int
    start_time: str
    end_time: str


@dataclass
class UserRecord:
    id: int
    email: str
    full_name: str
    role: str
    hashed_password: str | None = None


@dataclass
class RoomRecord:
    id: int
    name: str
    capacity: int
    has_wifi: bool = True
    has_air_conditioning: bool = True
    square_meters: int | None = None
    image_url: str | None = None


@dataclass
class PsychologistRecord:
    id: int
    user_id: int
    hourly_rate: Decimal
    specialization: str | None = None
    bio: str | None = None


@dataclass
class AppointmentRecord:
    id: int
    patient_name: str
    psychologist_id: int
    room_id: int
    date: date
    start_time: str
    end_time: str
    status: str
    notes: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status != CANCELED_STATUS


@dataclass
class RoomBookingRecord:
    id: int
    room_id: int
    psychologist_id: int
    date: date
    start_time: str
    end_time: str
    purpose: str | None = None
    appointment_id: int | None = None
