"""
Storage contract for the booking core.

Two strategies implement it: ``MemoryResourceStore`` for local runs and
tests, and ``SqlResourceStore`` for a real database. The application picks
one explicitly when it is built (see ``build_store``).
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import date
from typing import Any, Iterable

from practice_backend.core.locks import LockKey
from practice_backend.store.records import (
    AppointmentRecord,
    BookedInterval,
    PsychologistRecord,
    RoomBookingRecord,
    RoomRecord,
    UserRecord,
)


class ResourceStore(ABC):

    @abstractmethod
    def transaction(self, lock_keys: Iterable[LockKey] = ()) -> AbstractContextManager['ResourceStore']:
        """Hold the given booking locks and yield a store whose writes commit together.

        Reads made through the yielded store see the writes made through it,
        and an exception inside the block discards all of them.
        """

    # Reference data

    @abstractmethod
    def get_user(self, user_id: int) -> UserRecord | None: ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> UserRecord | None: ...

    @abstractmethod
    def insert_user(self, fields: dict[str, Any]) -> UserRecord: ...

    @abstractmethod
    def get_room(self, room_id: int) -> RoomRecord | None: ...

    @abstractmethod
    def list_rooms(self) -> list[RoomRecord]: ...

    @abstractmethod
    def insert_room(self, fields: dict[str, Any]) -> RoomRecord: ...

    @abstractmethod
    def get_psychologist(self, psychologist_id: int) -> PsychologistRecord | None: ...

    @abstractmethod
    def list_psychologists(self) -> list[PsychologistRecord]: ...

    @abstractmethod
    def insert_psychologist(self, fields: dict[str, Any]) -> PsychologistRecord: ...

    # Booking read path

    @abstractmethod
    def list_bookings_for_room(self, room_id: int, day: date) -> list[BookedInterval]:
        """Every room booking of ``room_id`` on ``day``."""

    @abstractmethod
    def list_appointments_for_psychologist(self, psychologist_id: int, day: date) -> list[BookedInterval]:
        """Non-canceled appointments of ``psychologist_id`` on ``day``."""

    @abstractmethod
    def list_appointments(
        self,
        psychologist_id: int | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[AppointmentRecord]: ...

    @abstractmethod
    def get_appointment(self, appointment_id: int) -> AppointmentRecord | None: ...

    @abstractmethod
    def list_room_bookings(
        self,
        room_id: int | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[RoomBookingRecord]: ...

    @abstractmethod
    def get_room_booking(self, booking_id: int) -> RoomBookingRecord | None: ...

    @abstractmethod
    def get_companion_booking(self, appointment_id: int) -> RoomBookingRecord | None: ...

    # Booking write path

    @abstractmethod
    def insert_appointment(self, fields: dict[str, Any]) -> AppointmentRecord: ...

    @abstractmethod
    def update_appointment(self, appointment_id: int, fields: dict[str, Any]) -> AppointmentRecord | None: ...

    @abstractmethod
    def delete_appointment(self, appointment_id: int) -> bool: ...

    @abstractmethod
    def insert_room_booking(self, fields: dict[str, Any]) -> RoomBookingRecord: ...

    @abstractmethod
    def update_room_booking(self, booking_id: int, fields: dict[str, Any]) -> RoomBookingRecord | None: ...

    @abstractmethod
    def delete_room_booking(self, booking_id: int) -> bool: ...


def in_date_range(day: date, start_date: date | None, end_date: date | None) -> bool:
    if start_date is not None and day < start_date:
        return False
    if end_date is not None and day > end_date:
        return False
    return True


def build_store(backend: str) -> ResourceStore:
    if backend == 'memory':
        from practice_backend.store.memory import MemoryResourceStore

        return MemoryResourceStore()

    if backend == 'database':
        from practice_backend.database import SessionLocal
        from practice_backend.store.sql import SqlResourceStore

        return SqlResourceStore(SessionLocal)

    raise ValueError(f"Unknown store backend '{backend}'.")
