from datetime import date
from types import GeneratorType

import pytest

from practice_backend.core.errors import InvalidInput, ResourceNotFound
from practice_backend.services.availability import (
    AvailabilityService,
    DaySlots,
    calculate_available_slots,
    calculate_time_slots,
    iter_available_days,
)

MONDAY = date(2024, 6, 3)


def test_single_busy_hour_removes_exactly_that_slot() -> None:
    days = calculate_available_slots(
        MONDAY,
        MONDAY,
        {MONDAY: [('14:00', '15:00')]},
        working_start='08:00',
        working_end='18:00',
        slot_duration=60,
    )

    assert days == [
        DaySlots(
            date=MONDAY,
            slots=[
                '08:00 - 09:00',
                '09:00 - 10:00',
                '10:00 - 11:00',
                '11:00 - 12:00',
                '12:00 - 13:00',
                '13:00 - 14:00',
                '15:00 - 16:00',
                '16:00 - 17:00',
                '17:00 - 18:00',
            ],
        )
    ]


def test_weekends_are_skipped() -> None:
    friday, monday = date(2024, 6, 7), date(2024, 6, 10)

    days = calculate_available_slots(friday, monday, {})

    assert [day.date for day in days] == [friday, monday]


def test_fully_booked_day_is_kept_with_no_slots() -> None:
    days = calculate_available_slots(MONDAY, date(2024, 6, 4), {MONDAY: [('08:00', '18:00')]})

    assert days[0] == DaySlots(date=MONDAY, slots=[])
    assert len(days[1].slots) == 10


def test_results_are_deterministic() -> None:
    busy = {MONDAY: [('09:30', '10:15'), ('16:00', '17:00')]}

    first = calculate_available_slots(MONDAY, date(2024, 6, 14), busy)
    second = calculate_available_slots(MONDAY, date(2024, 6, 14), busy)

    assert first == second


def test_slot_ending_when_busy_interval_starts_is_offered() -> None:
    slots = calculate_time_slots('08:00', '12:00', 60, [('09:00', '10:00')])

    assert slots == ['08:00 - 09:00', '10:00 - 11:00', '11:00 - 12:00']


def test_partial_overlap_blocks_the_whole_slot() -> None:
    slots = calculate_time_slots('08:00', '11:00', 60, [('09:30', '09:45')])

    assert slots == ['08:00 - 09:00', '10:00 - 11:00']


def test_last_slot_never_runs_past_closing_time() -> None:
    slots = calculate_time_slots('08:00', '10:30', 60)

    assert slots == ['08:00 - 09:00', '09:00 - 10:00']


def test_busy_times_read_from_the_database_format_are_understood() -> None:
    slots = calculate_time_slots('08:00', '10:00', 60, [('08:00:00', '09:00:00')])

    assert slots == ['09:00 - 10:00']


def test_iter_available_days_is_lazy() -> None:
    days = iter_available_days(MONDAY, date(2024, 6, 5), {})

    assert isinstance(days, GeneratorType)
    assert next(days).date == MONDAY


@pytest.mark.parametrize(
    ('start_date', 'end_date', 'kwargs'),
    [
        (date(2024, 6, 5), MONDAY, {}),
        (MONDAY, MONDAY, {'slot_duration': 0}),
        (MONDAY, MONDAY, {'working_start': '18:00', 'working_end': '08:00'}),
        (MONDAY, date(2025, 6, 3), {}),
    ],
)
def test_invalid_inputs_are_rejected(start_date: date, end_date: date, kwargs: dict) -> None:
    with pytest.raises(InvalidInput):
        calculate_available_slots(start_date, end_date, {}, **kwargs)


def test_room_availability_uses_room_bookings(store, coordinator) -> None:
    coordinator.create_room_booking(
        room_id=2, psychologist_id=1, date=MONDAY, start_time='10:00', end_time='11:00', purpose='Supervisão',
    )
    service = AvailabilityService(store, working_start='08:00', working_end='12:00', slot_duration=60)

    assert service.for_room(2, MONDAY, MONDAY)[0].slots == ['08:00 - 09:00', '09:00 - 10:00', '11:00 - 12:00']
    assert service.for_room(1, MONDAY, MONDAY)[0].slots == [
        '08:00 - 09:00', '09:00 - 10:00', '10:00 - 11:00', '11:00 - 12:00',
    ]


def test_psychologist_availability_ignores_canceled_appointments(store, coordinator) -> None:
    kept = coordinator.create_appointment(
        patient_name='Maria', psychologist_id=1, room_id=1, date=MONDAY, start_time='08:00', end_time='09:00',
    )
    canceled = coordinator.create_appointment(
        patient_name='João', psychologist_id=1, room_id=2, date=MONDAY, start_time='10:00', end_time='11:00',
    )
    coordinator.update_appointment(canceled.id, {'status': 'canceled'})
    service = AvailabilityService(store, working_start='08:00', working_end='11:00', slot_duration=60)

    days = service.for_psychologist(kept.psychologist_id, MONDAY, MONDAY)

    assert days[0].slots == ['09:00 - 10:00', '10:00 - 11:00']


def test_custom_slot_duration_overrides_default(store) -> None:
    service = AvailabilityService(store, working_start='08:00', working_end='10:00', slot_duration=60)

    assert service.for_room(1, MONDAY, MONDAY, slot_duration=30)[0].slots == [
        '08:00 - 08:30', '08:30 - 09:00', '09:00 - 09:30', '09:30 - 10:00',
    ]


def test_unknown_resources_are_reported(store) -> None:
    service = AvailabilityService(store)

    with pytest.raises(ResourceNotFound):
        service.for_room(99, MONDAY, MONDAY)
    with pytest.raises(ResourceNotFound):
        service.for_psychologist(99, MONDAY, MONDAY)
