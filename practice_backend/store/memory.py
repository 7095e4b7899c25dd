import copy
from contextlib import contextmanager
from dataclasses import fields as dataclass_fields, replace
from datetime import date
from itertools import count
from threading import RLock
from typing import Any, Iterable, Iterator

from practice_backend.core.errors import InvalidInput
from practice_backend.core.locks import LockKey
from practice_backend.store.base import ResourceStore, in_date_range
from practice_backend.store.records import (
    AppointmentRecord,
    BookedInterval,
    PsychologistRecord,
    RoomBookingRecord,
    RoomRecord,
    UserRecord,
)


def _sort_key(record) -> tuple:
    return (record.date, record.start_time, record.id)


class MemoryResourceStore(ResourceStore):
    """Dict-backed store. One re-entrant lock serializes every transaction."""

    def __init__(self) -> None:
        self._guard = RLock()
        self._tables: dict[str, dict[int, Any]] = {
            'users': {},
            'rooms': {},
            'psychologists': {},
            'appointments': {},
            'room_bookings': {},
        }
        self._ids = {name: count(1) for name in self._tables}

    @contextmanager
    def transaction(self, lock_keys: Iterable[LockKey] = ()) -> Iterator['MemoryResourceStore']:
        del lock_keys
        with self._guard:
            snapshot = copy.deepcopy(self._tables)
            try:
                yield self
            except BaseException:
                self._tables = snapshot
                raise

    def _insert(self, table: str, record_type, values: dict[str, Any]):
        allowed = {field.name for field in dataclass_fields(record_type)} - {'id'}
        unknown = set(values) - allowed
        if unknown:
            raise InvalidInput(f"Unknown fields for {table}: {', '.join(sorted(unknown))}.")

        with self._guard:
            record = record_type(id=next(self._ids[table]), **values)
            self._tables[table][record.id] = record
            return replace(record)

    def _update(self, table: str, record_id: int, values: dict[str, Any]):
        with self._guard:
            record = self._tables[table].get(record_id)
            if record is None:
                return None
            updated = replace(record, **values)
            self._tables[table][record_id] = updated
            return replace(updated)

    def _delete(self, table: str, record_id: int) -> bool:
        with self._guard:
            return self._tables[table].pop(record_id, None) is not None

    def _get(self, table: str, record_id: int):
        with self._guard:
            record = self._tables[table].get(record_id)
            return replace(record) if record is not None else None

    def _all(self, table: str) -> list:
        with self._guard:
            return [replace(record) for record in self._tables[table].values()]

    def get_user(self, user_id: int) -> UserRecord | None:
        return self._get('users', user_id)

    def get_user_by_email(self, email: str) -> UserRecord | None:
        normalized = email.strip().lower()
        return next((user for user in self._all('users') if user.email.lower() == normalized), None)

    def insert_user(self, fields: dict[str, Any]) -> UserRecord:
        return self._insert('users', UserRecord, fields)

    def get_room(self, room_id: int) -> RoomRecord | None:
        return self._get('rooms', room_id)

    def list_rooms(self) -> list[RoomRecord]:
        return sorted(self._all('rooms'), key=lambda room: room.id)

    def insert_room(self, fields: dict[str, Any]) -> RoomRecord:
        return self._insert('rooms', RoomRecord, fields)

    def get_psychologist(self, psychologist_id: int) -> PsychologistRecord | None:
        return self._get('psychologists', psychologist_id)

    def list_psychologists(self) -> list[PsychologistRecord]:
        return sorted(self._all('psychologists'), key=lambda psychologist: psychologist.id)

    def insert_psychologist(self, fields: dict[str, Any]) -> PsychologistRecord:
        return self._insert('psychologists', PsychologistRecord, fields)

    def list_bookings_for_room(self, room_id: int, day: date) -> list[BookedInterval]:
        return [
            BookedInterval(booking.id, booking.start_time, booking.end_time)
            for booking in self.list_room_bookings(room_id=room_id, start_date=day, end_date=day)
        ]

    def list_appointments_for_psychologist(self, psychologist_id: int, day: date) -> list[BookedInterval]:
        return [
            BookedInterval(appointment.id, appointment.start_time, appointment.end_time)
            for appointment in self.list_appointments(psychologist_id=psychologist_id, start_date=day, end_date=day)
            if appointment.is_active
        ]

    def list_appointments(
        self,
        psychologist_id: int | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[AppointmentRecord]:
        appointments = [
            appointment
            for appointment in self._all('appointments')
            if (psychologist_id is None or appointment.psychologist_id == psychologist_id)
            and in_date_range(appointment.date, start_date, end_date)
        ]
        return sorted(appointments, key=_sort_key)

    def get_appointment(self, appointment_id: int) -> AppointmentRecord | None:
        return self._get('appointments', appointment_id)

    def list_room_bookings(
        self,
        room_id: int | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[RoomBookingRecord]:
        bookings = [
            booking
            for booking in self._all('room_bookings')
            if (room_id is None or booking.room_id == room_id)
            and in_date_range(booking.date, start_date, end_date)
        ]
        return sorted(bookings, key=_sort_key)

    def get_room_booking(self, booking_id: int) -> RoomBookingRecord | None:
        return self._get('room_bookings', booking_id)

    def get_companion_booking(self, appointment_id: int) -> RoomBookingRecord | None:
        return next(
            (booking for booking in self._all('room_bookings') if booking.appointment_id == appointment_id),
            None,
        )

    def insert_appointment(self, fields: dict[str, Any]) -> AppointmentRecord:
        return self._insert('appointments', AppointmentRecord, fields)

    def update_appointment(self, appointment_id: int, fields: dict[str, Any]) -> AppointmentRecord | None:
        return self._update('appointments', appointment_id, fields)

    def delete_appointment(self, appointment_id: int) -> bool:
        return self._delete('appointments', appointment_id)

    def insert_room_booking(self, fields: dict[str, Any]) -> RoomBookingRecord:
        return self._insert('room_bookings', RoomBookingRecord, fields)

    def update_room_booking(self, booking_id: int, fields: dict[str, Any]) -> RoomBookingRecord | None:
        return self._update('room_bookings', booking_id, fields)

    def delete_room_booking(self, booking_id: int) -> bool:
        return self._delete('room_bookings', booking_id)
