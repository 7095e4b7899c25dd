from datetime import date

import pytest

from practice_backend.core.errors import InvalidInput
from practice_backend.core.locks import room_key
from practice_backend.store.base import build_store
from practice_backend.store.memory import MemoryResourceStore

MONDAY = date(2024, 6, 3)


def _meeting(store, start: str, end: str, **overrides):
    fields = {
        'room_id': 1,
        'psychologist_id': 1,
        'date': MONDAY,
        'start_time': start,
        'end_time': end,
    }
    fields.update(overrides)
    return store.insert_room_booking(fields)


def test_records_are_handed_out_as_copies(store) -> None:
    booking = _meeting(store, '10:00', '11:00')

    booking.start_time = '07:00'

    assert store.get_room_booking(booking.id).start_time == '10:00'


def test_unknown_fields_are_rejected(store) -> None:
    with pytest.raises(InvalidInput):
        store.insert_room({'name': 'Sala 3', 'capacity': 1, 'floor': 2})


def test_bookings_come_back_in_calendar_order(store) -> None:
    _meeting(store, '14:00', '15:00')
    _meeting(store, '08:00', '09:00', date=date(2024, 6, 4))
    _meeting(store, '09:00', '10:00')

    bookings = store.list_room_bookings(room_id=1)

    assert [(booking.date, booking.start_time) for booking in bookings] == [
        (MONDAY, '09:00'),
        (MONDAY, '14:00'),
        (date(2024, 6, 4), '08:00'),
    ]


def test_failed_transaction_restores_previous_state(store) -> None:
    kept = _meeting(store, '08:00', '09:00')

    with pytest.raises(RuntimeError):
        with store.transaction([room_key(1, MONDAY)]) as tx:
            tx.delete_room_booking(kept.id)
            _meeting(tx, '10:00', '11:00')
            raise RuntimeError('second write failed')

    assert [booking.id for booking in store.list_room_bookings()] == [kept.id]


def test_committed_transaction_keeps_writes(store) -> None:
    with store.transaction([room_key(1, MONDAY)]) as tx:
        _meeting(tx, '10:00', '11:00')

    assert len(store.list_bookings_for_room(1, MONDAY)) == 1


def test_user_lookup_by_email_ignores_case(store) -> None:
    assert store.get_user_by_email('ANA@consultorio.example ').full_name == 'Ana Lima'
    assert store.get_user_by_email('nobody@consultorio.example') is None


def test_build_store_picks_backend() -> None:
    assert isinstance(build_store('memory'), MemoryResourceStore)
    with pytest.raises(ValueError):
        build_store('redis')
