from datetime import date

import pytest

from practice_backend.core.errors import InvalidInput, PsychologistUnavailable, RoomUnavailable
from practice_backend.services.booking_validator import BookingValidator, Conflict, Ok, ResourceKind

MONDAY = date(2024, 6, 3)


@pytest.fixture
def validator(store) -> BookingValidator:
    store.insert_room_booking({
        'room_id': 1,
        'psychologist_id': 1,
        'date': MONDAY,
        'start_time': '10:00',
        'end_time': '11:00',
        'purpose': 'Reunião de equipe',
    })
    store.insert_appointment({
        'patient_name': 'Maria',
        'psychologist_id': 2,
        'room_id': 2,
        'date': MONDAY,
        'start_time': '09:00',
        'end_time': '10:00',
        'status': 'confirmed',
    })
    store.insert_appointment({
        'patient_name': 'Pedro',
        'psychologist_id': 2,
        'room_id': 2,
        'date': MONDAY,
        'start_time': '14:00',
        'end_time': '15:00',
        'status': 'canceled',
    })
    return BookingValidator(store)


def test_free_room_is_ok(validator) -> None:
    assert validator.validate(ResourceKind.ROOM, 1, MONDAY, '08:00', '09:00') == Ok()


def test_back_to_back_booking_is_ok(validator) -> None:
    assert isinstance(validator.validate(ResourceKind.ROOM, 1, MONDAY, '11:00', '12:00'), Ok)
    assert isinstance(validator.validate(ResourceKind.ROOM, 1, MONDAY, '09:00', '10:00'), Ok)


def test_overlapping_booking_conflicts(validator) -> None:
    result = validator.validate(ResourceKind.ROOM, 1, MONDAY, '10:30', '11:30')

    assert isinstance(result, Conflict)
    assert (result.conflicting.start_time, result.conflicting.end_time) == ('10:00', '11:00')


def test_other_rooms_and_dates_do_not_conflict(validator) -> None:
    assert isinstance(validator.validate(ResourceKind.ROOM, 2, MONDAY, '10:30', '11:30'), Ok)
    assert isinstance(validator.validate(ResourceKind.ROOM, 1, date(2024, 6, 4), '10:30', '11:30'), Ok)


def test_excluded_booking_is_ignored(validator, store) -> None:
    existing = store.list_bookings_for_room(1, MONDAY)[0]

    result = validator.validate(ResourceKind.ROOM, 1, MONDAY, '10:15', '11:15', exclude_id=existing.id)

    assert isinstance(result, Ok)


def test_psychologist_check_ignores_canceled_appointments(validator) -> None:
    assert isinstance(validator.validate(ResourceKind.PSYCHOLOGIST, 2, MONDAY, '09:30', '10:30'), Conflict)
    assert isinstance(validator.validate(ResourceKind.PSYCHOLOGIST, 2, MONDAY, '14:00', '15:00'), Ok)


def test_inverted_range_is_rejected_before_reading(validator) -> None:
    with pytest.raises(InvalidInput):
        validator.validate(ResourceKind.ROOM, 1, MONDAY, '12:00', '11:00')


def test_ensure_helpers_raise_conflict_errors(validator) -> None:
    with pytest.raises(RoomUnavailable) as room_error:
        validator.ensure_room_available(1, MONDAY, '10:30', '11:30')
    assert room_error.value.status_code == 409
    assert 'conflictingBookingId' in room_error.value.details

    with pytest.raises(PsychologistUnavailable) as psychologist_error:
        validator.ensure_psychologist_available(2, MONDAY, '09:30', '10:30', message='Horário ocupado.')
    assert psychologist_error.value.message == 'Horário ocupado.'


def test_is_room_available(validator) -> None:
    assert validator.is_room_available(1, MONDAY, '11:00', '12:00') is True
    assert validator.is_room_available(1, MONDAY, '10:59', '12:00') is False
