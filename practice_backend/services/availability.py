"""Free-slot enumeration for psychologists and rooms.

The calculator is a pure function of its inputs: the same date range, busy
intervals, working hours and slot duration always produce the same list.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Iterator, Mapping

from practice_backend.core import config
from practice_backend.core.errors import InvalidInput, ResourceNotFound
from practice_backend.services.time_intervals import TimeValue, ensure_valid_range, format_minutes, overlaps
from practice_backend.store.base import ResourceStore

logger = logging.getLogger(__name__)

SATURDAY = 5

BusyInterval = tuple[TimeValue, TimeValue]


@dataclass(frozen=True)
class DaySlots:
    date: date
    slots: list[str] = field(default_factory=list)


def iterate_business_days(start_date: date, end_date: date) -> Iterator[date]:
    current_day = start_date
    while current_day <= end_date:
        if current_day.weekday() < SATURDAY:
            yield current_day
        current_day += timedelta(days=1)


def calculate_time_slots(
    working_start: TimeValue,
    working_end: TimeValue,
    slot_duration: int,
    busy: Iterable[BusyInterval] = (),
) -> list[str]:
    if slot_duration <= 0:
        raise InvalidInput('Slot duration must be a positive number of minutes.')

    day_start, day_end = ensure_valid_range(working_start, working_end)
    busy_intervals = list(busy)
    available_slots: list[str] = []

    current = day_start
    while current + slot_duration <= day_end:
        slot_end = current + slot_duration
        slot_start_label, slot_end_label = format_minutes(current), format_minutes(slot_end)

        if not any(overlaps(slot_start_label, slot_end_label, busy_start, busy_end) for busy_start, busy_end in busy_intervals):
            available_slots.append(f'{slot_start_label} - {slot_end_label}')

        current = slot_end

    return available_slots


def iter_available_days(
    start_date: date,
    end_date: date,
    busy_by_date: Mapping[date, Iterable[BusyInterval]],
    working_start: TimeValue = config.WORKING_HOURS_START,
    working_end: TimeValue = config.WORKING_HOURS_END,
    slot_duration: int = config.SLOT_DURATION_MINUTES,
) -> Iterator[DaySlots]:
    for day in iterate_business_days(start_date, end_date):
        yield DaySlots(
            date=day,
            slots=calculate_time_slots(working_start, working_end, slot_duration, busy_by_date.get(day, ())),
        )


def calculate_available_slots(
    start_date: date,
    end_date: date,
    busy_by_date: Mapping[date, Iterable[BusyInterval]],
    working_start: TimeValue = config.WORKING_HOURS_START,
    working_end: TimeValue = config.WORKING_HOURS_END,
    slot_duration: int = config.SLOT_DURATION_MINUTES,
) -> list[DaySlots]:
    """One entry per weekday in ``[start_date, end_date]``, in date order.

    A day without free slots is kept with an empty list so callers can tell a
    fully booked day from a day outside the range.
    """
    validate_date_range(start_date, end_date)
    return list(iter_available_days(start_date, end_date, busy_by_date, working_start, working_end, slot_duration))


def validate_date_range(start_date: date, end_date: date) -> None:
    if start_date > end_date:
        raise InvalidInput('Start date must be on or before end date.')

    if (end_date - start_date).days + 1 > config.MAX_AVAILABILITY_RANGE_DAYS:
        raise InvalidInput(f'Date range cannot exceed {config.MAX_AVAILABILITY_RANGE_DAYS} days.')


def group_busy_by_date(records: Iterable) -> dict[date, list[BusyInterval]]:
    busy_by_date: dict[date, list[BusyInterval]] = {}
    for record in records:
        busy_by_date.setdefault(record.date, []).append((record.start_time, record.end_time))
    return busy_by_date


class AvailabilityService:
    """Reads busy intervals from the store and hands them to the calculator."""

    def __init__(
        self,
        store: ResourceStore,
        working_start: str = config.WORKING_HOURS_START,
        working_end: str = config.WORKING_HOURS_END,
        slot_duration: int = config.SLOT_DURATION_MINUTES,
    ) -> None:
        self.store = store
        self.working_start = working_start
        self.working_end = working_end
        self.slot_duration = slot_duration

    def for_psychologist(
        self,
        psychologist_id: int,
        start_date: date,
        end_date: date,
        slot_duration: int | None = None,
    ) -> list[DaySlots]:
        validate_date_range(start_date, end_date)
        if self.store.get_psychologist(psychologist_id) is None:
            raise ResourceNotFound('Psychologist not found')

        appointments = self.store.list_appointments(
            psychologist_id=psychologist_id,
            start_date=start_date,
            end_date=end_date,
        )
        busy_by_date = group_busy_by_date(appointment for appointment in appointments if appointment.is_active)
        return self._calculate(start_date, end_date, busy_by_date, slot_duration)

    def for_room(
        self,
        room_id: int,
        start_date: date,
        end_date: date,
        slot_duration: int | None = None,
    ) -> list[DaySlots]:
        validate_date_range(start_date, end_date)
        if self.store.get_room(room_id) is None:
            raise ResourceNotFound('Room not found')

        bookings = self.store.list_room_bookings(room_id=room_id, start_date=start_date, end_date=end_date)
        return self._calculate(start_date, end_date, group_busy_by_date(bookings), slot_duration)

    def _calculate(self, start_date, end_date, busy_by_date, slot_duration) -> list[DaySlots]:
        days = calculate_available_slots(
            start_date,
            end_date,
            busy_by_date,
            working_start=self.working_start,
            working_end=self.working_end,
            slot_duration=slot_duration or self.slot_duration,
        )
        logger.debug('Computed availability for %s to %s across %d business days.', start_date, end_date, len(days))
        return days
