import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum

from practice_backend.core.errors import InvalidInput, PsychologistUnavailable, RoomUnavailable
from practice_backend.services.time_intervals import TimeValue, ensure_valid_range, overlaps
from practice_backend.store.base import ResourceStore
from practice_backend.store.records import BookedInterval

logger = logging.getLogger(__name__)


class ResourceKind(str, Enum):
    ROOM = 'room'
    PSYCHOLOGIST = 'psychologist'


@dataclass(frozen=True)
class Ok:
    pass


@dataclass(frozen=True)
class Conflict:
    conflicting: BookedInterval


ValidationResult = Ok | Conflict


class BookingValidator:
    """Checks a proposed interval against what the store holds right now.

    The check reads and never writes. Callers that go on to insert must run
    it inside ``store.transaction`` with the matching lock keys, otherwise a
    concurrent request can slip in between the read and the write.
    """

    def __init__(self, store: ResourceStore) -> None:
        self.store = store

    def _existing(self, kind: ResourceKind, resource_id: int, day: date) -> list[BookedInterval]:
        if kind is ResourceKind.ROOM:
            return self.store.list_bookings_for_room(resource_id, day)
        if kind is ResourceKind.PSYCHOLOGIST:
            return self.store.list_appointments_for_psychologist(resource_id, day)
        raise InvalidInput(f'Unknown resource kind: {kind}.')

    def validate(
        self,
        kind: ResourceKind,
        resource_id: int,
        day: date,
        start_time: TimeValue,
        end_time: TimeValue,
        exclude_id: int | None = None,
    ) -> ValidationResult:
        ensure_valid_range(start_time, end_time)

        for existing in self._existing(kind, resource_id, day):
            if existing.id == exclude_id:
                continue
            if overlaps(start_time, end_time, existing.start_time, existing.end_time):
                return Conflict(existing)

        return Ok()

    def ensure_room_available(
        self,
        room_id: int,
        day: date,
        start_time: TimeValue,
        end_time: TimeValue,
        exclude_booking_id: int | None = None,
        message: str | None = None,
    ) -> None:
        result = self.validate(ResourceKind.ROOM, room_id, day, start_time, end_time, exclude_booking_id)
        if isinstance(result, Conflict):
            logger.info(
                'Room %s is taken on %s between %s and %s by booking %s.',
                room_id, day, result.conflicting.start_time, result.conflicting.end_time, result.conflicting.id,
            )
            raise RoomUnavailable(message, details={'conflictingBookingId': result.conflicting.id})

    def ensure_psychologist_available(
        self,
        psychologist_id: int,
        day: date,
        start_time: TimeValue,
        end_time: TimeValue,
        exclude_appointment_id: int | None = None,
        message: str | None = None,
    ) -> None:
        result = self.validate(
            ResourceKind.PSYCHOLOGIST, psychologist_id, day, start_time, end_time, exclude_appointment_id,
        )
        if isinstance(result, Conflict):
            logger.info(
                'Psychologist %s already has appointment %s on %s between %s and %s.',
                psychologist_id, result.conflicting.id, day, result.conflicting.start_time, result.conflicting.end_time,
            )
            raise PsychologistUnavailable(message, details={'conflictingAppointmentId': result.conflicting.id})

    def is_room_available(self, room_id: int, day: date, start_time: TimeValue, end_time: TimeValue) -> bool:
        return isinstance(self.validate(ResourceKind.ROOM, room_id, day, start_time, end_time), Ok)
