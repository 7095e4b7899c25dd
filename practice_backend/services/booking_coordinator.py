"""
Creates and changes appointments together with the room bookings that
mirror them.

Every appointment that is not canceled owns one companion room booking
(``RoomBooking.appointment_id``) covering the same room, date and times.
Both rows are written inside one store transaction that also holds the
booking locks for the affected ``(room, date)`` and, for quick-booking,
``(psychologist, date)`` keys, so the availability check and the inserts
cannot interleave with another request for the same slot.

Listeners are told about a change only after it committed. A failing
listener is logged and ignored; it never undoes the booking.
"""

import logging
from datetime import date
from typing import Any, Callable, Iterable

from practice_backend.core import config
from practice_backend.core.errors import BookingInconsistent, InvalidInput, ResourceNotFound
from practice_backend.core.locks import LockKey, psychologist_key, room_key
from practice_backend.services.booking_validator import BookingValidator, Conflict, ResourceKind
from practice_backend.services.time_intervals import TimeValue, ensure_valid_range, normalize_time
from practice_backend.store.base import ResourceStore
from practice_backend.store.records import (
    APPOINTMENT_STATUSES,
    CANCELED_STATUS,
    AppointmentRecord,
    RoomBookingRecord,
)

logger = logging.getLogger(__name__)

SCHEDULED_STATUS = 'scheduled'
PENDING_CONFIRMATION_STATUS = 'pending-confirmation'

APPOINTMENT_FIELDS = ('patient_name', 'psychologist_id', 'room_id', 'date', 'start_time', 'end_time', 'status', 'notes')
ROOM_BOOKING_FIELDS = ('room_id', 'psychologist_id', 'date', 'start_time', 'end_time', 'purpose')
SLOT_FIELDS = ('room_id', 'psychologist_id', 'date', 'start_time', 'end_time')
NULLABLE_FIELDS = ('notes', 'purpose')

BookingListener = Callable[[str, Any], None]


def appointment_purpose(patient_name: str) -> str:
    return f'Appointment with {patient_name}'


def _companion_fields(appointment: AppointmentRecord) -> dict[str, Any]:
    return {
        'room_id': appointment.room_id,
        'psychologist_id': appointment.psychologist_id,
        'date': appointment.date,
        'start_time': appointment.start_time,
        'end_time': appointment.end_time,
        'purpose': appointment_purpose(appointment.patient_name),
    }


def _validate_status(status: str) -> str:
    normalized = status.strip().lower()
    if normalized not in APPOINTMENT_STATUSES:
        raise InvalidInput(f"Invalid status '{status}'. Use one of: {', '.join(APPOINTMENT_STATUSES)}.")
    return normalized


def _validate_times(start_time: TimeValue, end_time: TimeValue) -> tuple[str, str]:
    ensure_valid_range(start_time, end_time)
    return normalize_time(start_time), normalize_time(end_time)


def _appointment_lock_keys(appointment: AppointmentRecord, changes: dict[str, Any]) -> set[LockKey]:
    # Both the slot being left and the slot being taken.
    target_date = changes.get('date', appointment.date)
    return {
        room_key(appointment.room_id, appointment.date),
        room_key(changes.get('room_id', appointment.room_id), target_date),
        psychologist_key(appointment.psychologist_id, appointment.date),
        psychologist_key(changes.get('psychologist_id', appointment.psychologist_id), target_date),
    }


def _pick(changes: dict[str, Any], allowed: Iterable[str], kind: str) -> dict[str, Any]:
    allowed = tuple(allowed)
    unknown = set(changes) - set(allowed)
    if unknown:
        raise InvalidInput(f"Unknown {kind} fields: {', '.join(sorted(unknown))}.")
    return {name: value for name, value in changes.items() if value is not None or name in NULLABLE_FIELDS}


class BookingCoordinator:

    def __init__(
        self,
        store: ResourceStore,
        listeners: Iterable[BookingListener] = (),
        quick_book_room_id: int = config.QUICK_BOOK_DEFAULT_ROOM_ID,
    ) -> None:
        self.store = store
        self.listeners = list(listeners)
        self.quick_book_room_id = quick_book_room_id

    def add_listener(self, listener: BookingListener) -> None:
        self.listeners.append(listener)

    def _notify(self, event: str, payload: Any) -> None:
        for listener in self.listeners:
            try:
                listener(event, payload)
            except Exception:
                logger.exception('Booking listener failed for %s; the booking stays committed.', event)

    def _require_references(self, store: ResourceStore, room_id: int, psychologist_id: int) -> None:
        if store.get_room(room_id) is None:
            raise ResourceNotFound('Room not found')
        if store.get_psychologist(psychologist_id) is None:
            raise ResourceNotFound('Psychologist not found')

    def _create_with_companion(
        self,
        lock_keys: list[LockKey],
        fields: dict[str, Any],
        check_psychologist: bool,
        room_conflict_message: str | None,
        psychologist_conflict_message: str | None,
    ) -> tuple[AppointmentRecord, RoomBookingRecord]:
        with self.store.transaction(lock_keys) as tx:
            self._require_references(tx, fields['room_id'], fields['psychologist_id'])

            validator = BookingValidator(tx)
            validator.ensure_room_available(
                fields['room_id'], fields['date'], fields['start_time'], fields['end_time'],
                message=room_conflict_message,
            )
            if check_psychologist:
                validator.ensure_psychologist_available(
                    fields['psychologist_id'], fields['date'], fields['start_time'], fields['end_time'],
                    message=psychologist_conflict_message,
                )

            appointment = tx.insert_appointment(fields)
            companion = tx.insert_room_booking({**_companion_fields(appointment), 'appointment_id': appointment.id})

        logger.info(
            'Appointment %s booked in room %s on %s from %s to %s (room booking %s).',
            appointment.id, appointment.room_id, appointment.date, appointment.start_time, appointment.end_time,
            companion.id,
        )
        self._notify('appointment.created', appointment)
        return appointment, companion

    def create_appointment(
        self,
        *,
        patient_name: str,
        psychologist_id: int,
        room_id: int,
        date: date,
        start_time: TimeValue,
        end_time: TimeValue,
        status: str = SCHEDULED_STATUS,
        notes: str | None = None,
    ) -> AppointmentRecord:
        start_time, end_time = _validate_times(start_time, end_time)
        fields = {
            'patient_name': patient_name,
            'psychologist_id': psychologist_id,
            'room_id': room_id,
            'date': date,
            'start_time': start_time,
            'end_time': end_time,
            'status': _validate_status(status),
            'notes': notes,
        }
        appointment, _ = self._create_with_companion(
            [room_key(room_id, date), psychologist_key(psychologist_id, date)],
            fields,
            check_psychologist=False,
            room_conflict_message=None,
            psychologist_conflict_message=None,
        )
        return appointment

    def quick_book(
        self,
        *,
        patient_name: str,
        psychologist_id: int,
        date: date,
        start_time: TimeValue,
        end_time: TimeValue,
        room_id: int | None = None,
        notes: str | None = None,
        room_conflict_message: str | None = None,
        psychologist_conflict_message: str | None = None,
    ) -> AppointmentRecord:
        """Self-scheduling entry point. The result always awaits staff confirmation."""
        start_time, end_time = _validate_times(start_time, end_time)
        if self.store.get_psychologist(psychologist_id) is None:
            raise ResourceNotFound('Psychologist not found')

        room_id = room_id or self.quick_book_room_id
        fields = {
            'patient_name': patient_name,
            'psychologist_id': psychologist_id,
            'room_id': room_id,
            'date': date,
            'start_time': start_time,
            'end_time': end_time,
            'status': PENDING_CONFIRMATION_STATUS,
            'notes': notes,
        }
        appointment, _ = self._create_with_companion(
            [room_key(room_id, date), psychologist_key(psychologist_id, date)],
            fields,
            check_psychologist=True,
            room_conflict_message=room_conflict_message,
            psychologist_conflict_message=psychologist_conflict_message,
        )
        return appointment

    def update_appointment(self, appointment_id: int, changes: dict[str, Any]) -> AppointmentRecord:
        """Apply a status change, an edit, or a reschedule.

        Status moves are unconstrained. A canceled appointment gives its room
        back; leaving ``canceled`` or moving the slot checks the room again.
        """
        changes = _pick(changes, APPOINTMENT_FIELDS, 'appointment')
        if 'status' in changes:
            changes['status'] = _validate_status(changes['status'])

        current = self.store.get_appointment(appointment_id)
        if current is None:
            raise ResourceNotFound('Appointment not found')

        lock_keys = _appointment_lock_keys(current, changes)

        with self.store.transaction(lock_keys) as tx:
            current = tx.get_appointment(appointment_id)
            if current is None:
                raise ResourceNotFound('Appointment not found')
            if _appointment_lock_keys(current, changes) != lock_keys:
                raise InvalidInput('Appointment was moved by another request. Reload it and try again.')

            merged = {name: getattr(current, name) for name in APPOINTMENT_FIELDS}
            merged.update(changes)
            merged['start_time'], merged['end_time'] = _validate_times(merged['start_time'], merged['end_time'])
            changes.update(start_time=merged['start_time'], end_time=merged['end_time'])

            if merged['room_id'] != current.room_id or merged['psychologist_id'] != current.psychologist_id:
                self._require_references(tx, merged['room_id'], merged['psychologist_id'])

            companion = tx.get_companion_booking(appointment_id)
            slot_moved = any(merged[name] != getattr(current, name) for name in SLOT_FIELDS)
            reactivated = current.status == CANCELED_STATUS and merged['status'] != CANCELED_STATUS

            if merged['status'] == CANCELED_STATUS:
                if companion is not None:
                    tx.delete_room_booking(companion.id)
            elif slot_moved or reactivated or companion is None:
                BookingValidator(tx).ensure_room_available(
                    merged['room_id'], merged['date'], merged['start_time'], merged['end_time'],
                    exclude_booking_id=companion.id if companion else None,
                )

            updated = tx.update_appointment(appointment_id, changes)

            if updated.is_active:
                if companion is None:
                    tx.insert_room_booking({**_companion_fields(updated), 'appointment_id': updated.id})
                else:
                    tx.update_room_booking(companion.id, _companion_fields(updated))

        logger.info('Appointment %s updated (%s).', appointment_id, ', '.join(sorted(changes)) or 'no changes')
        self._notify('appointment.updated', updated)
        return updated

    def delete_appointment(self, appointment_id: int) -> None:
        current = self.store.get_appointment(appointment_id)
        if current is None:
            raise ResourceNotFound('Appointment not found')

        with self.store.transaction([room_key(current.room_id, current.date)]) as tx:
            companion = tx.get_companion_booking(appointment_id)
            if companion is not None:
                tx.delete_room_booking(companion.id)
            if not tx.delete_appointment(appointment_id):
                raise ResourceNotFound('Appointment not found')

        logger.info('Appointment %s deleted together with its room booking.', appointment_id)
        self._notify('appointment.deleted', current)

    def create_room_booking(
        self,
        *,
        room_id: int,
        psychologist_id: int,
        date: date,
        start_time: TimeValue,
        end_time: TimeValue,
        purpose: str | None = None,
    ) -> RoomBookingRecord:
        """Reserve a room without a patient appointment, e.g. for a meeting."""
        start_time, end_time = _validate_times(start_time, end_time)

        with self.store.transaction([room_key(room_id, date)]) as tx:
            self._require_references(tx, room_id, psychologist_id)
            BookingValidator(tx).ensure_room_available(room_id, date, start_time, end_time)
            booking = tx.insert_room_booking({
                'room_id': room_id,
                'psychologist_id': psychologist_id,
                'date': date,
                'start_time': start_time,
                'end_time': end_time,
                'purpose': purpose,
            })

        logger.info('Room %s reserved on %s from %s to %s (booking %s).', room_id, date, start_time, end_time, booking.id)
        self._notify('room_booking.created', booking)
        return booking

    def update_room_booking(self, booking_id: int, changes: dict[str, Any]) -> RoomBookingRecord:
        changes = _pick(changes, ROOM_BOOKING_FIELDS, 'room booking')

        current = self.store.get_room_booking(booking_id)
        if current is None:
            raise ResourceNotFound('Room booking not found')
        if current.appointment_id is not None:
            raise InvalidInput('This room booking belongs to an appointment. Change the appointment instead.')

        target_room = changes.get('room_id', current.room_id)
        target_date = changes.get('date', current.date)

        with self.store.transaction([room_key(target_room, target_date)]) as tx:
            current = tx.get_room_booking(booking_id)
            if current is None:
                raise ResourceNotFound('Room booking not found')

            merged = {name: getattr(current, name) for name in ROOM_BOOKING_FIELDS}
            merged.update(changes)
            if (merged['room_id'], merged['date']) != (target_room, target_date):
                raise InvalidInput('Room booking was moved by another request. Reload it and try again.')
            merged['start_time'], merged['end_time'] = _validate_times(merged['start_time'], merged['end_time'])
            changes.update(start_time=merged['start_time'], end_time=merged['end_time'])

            if merged['room_id'] != current.room_id or merged['psychologist_id'] != current.psychologist_id:
                self._require_references(tx, merged['room_id'], merged['psychologist_id'])

            BookingValidator(tx).ensure_room_available(
                merged['room_id'], merged['date'], merged['start_time'], merged['end_time'],
                exclude_booking_id=booking_id,
            )
            updated = tx.update_room_booking(booking_id, changes)

        self._notify('room_booking.updated', updated)
        return updated

    def delete_room_booking(self, booking_id: int) -> None:
        current = self.store.get_room_booking(booking_id)
        if current is None:
            raise ResourceNotFound('Room booking not found')
        if current.appointment_id is not None:
            raise InvalidInput('This room booking belongs to an appointment. Cancel or delete the appointment instead.')

        with self.store.transaction([room_key(current.room_id, current.date)]) as tx:
            if not tx.delete_room_booking(booking_id):
                raise ResourceNotFound('Room booking not found')

        self._notify('room_booking.deleted', current)

    def reconcile_room_bookings(self) -> list[RoomBookingRecord]:
        """Recreate missing companion bookings for active appointments.

        Returns the bookings it created. Appointments whose room has since been
        taken by someone else cannot be repaired automatically and are reported
        through ``BookingInconsistent`` after the repairable ones are saved.
        """
        repaired: list[RoomBookingRecord] = []
        unresolved: list[int] = []

        for appointment in self.store.list_appointments():
            if not appointment.is_active or self.store.get_companion_booking(appointment.id) is not None:
                continue

            with self.store.transaction([room_key(appointment.room_id, appointment.date)]) as tx:
                if tx.get_companion_booking(appointment.id) is not None:
                    continue
                result = BookingValidator(tx).validate(
                    ResourceKind.ROOM, appointment.room_id, appointment.date,
                    appointment.start_time, appointment.end_time,
                )
                if isinstance(result, Conflict):
                    unresolved.append(appointment.id)
                    continue
                repaired.append(tx.insert_room_booking({**_companion_fields(appointment), 'appointment_id': appointment.id}))

        if repaired:
            logger.warning('Recreated %d missing room bookings.', len(repaired))
        if unresolved:
            logger.error('Appointments %s have no room booking and their room is taken.', unresolved)
            raise BookingInconsistent(
                details={
                    'appointmentIds': unresolved,
                    'repairedBookingIds': [booking.id for booking in repaired],
                },
            )
        return repaired
