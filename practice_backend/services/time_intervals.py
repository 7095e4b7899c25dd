"""Wall-clock time helpers shared by the booking validator and the slot calculator.

Times are venue-local ``HH:MM`` values with no timezone. Everything is
compared as minutes since midnight; intervals are half-open, so a booking
ending at 11:00 does not overlap one starting at 11:00.
"""

import re
from datetime import time

from practice_backend.core.errors import InvalidInput

MINUTES_PER_DAY = 24 * 60

_TIME_PATTERN = re.compile(r'^(\d{1,2}):(\d{2})(?::(\d{2}))?$')

TimeValue = str | time


def to_minutes(value: TimeValue) -> int:
    if isinstance(value, time):
        return value.hour * 60 + value.minute

    if not isinstance(value, str):
        raise InvalidInput(f'Invalid time value: {value!r}.')

    match = _TIME_PATTERN.match(value.strip())
    if not match:
        raise InvalidInput(f"Invalid time '{value}'. Use the HH:MM format.")

    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise InvalidInput(f"Invalid time '{value}'. Use the HH:MM format.")

    return hours * 60 + minutes


def format_minutes(minutes: int) -> str:
    if minutes < 0 or minutes >= MINUTES_PER_DAY:
        raise InvalidInput(f'{minutes} minutes is outside a single day.')
    return f'{minutes // 60:02d}:{minutes % 60:02d}'


def normalize_time(value: TimeValue) -> str:
    return format_minutes(to_minutes(value))


def to_time(value: TimeValue) -> time:
    minutes = to_minutes(value)
    return time(minutes // 60, minutes % 60)


def overlaps(a_start: TimeValue, a_end: TimeValue, b_start: TimeValue, b_end: TimeValue) -> bool:
    return to_minutes(a_start) < to_minutes(b_end) and to_minutes(a_end) > to_minutes(b_start)


def ensure_valid_range(start: TimeValue, end: TimeValue) -> tuple[int, int]:
    start_minutes, end_minutes = to_minutes(start), to_minutes(end)
    if start_minutes >= end_minutes:
        raise InvalidInput('Start time must be before end time.')
    return start_minutes, end_minutes
