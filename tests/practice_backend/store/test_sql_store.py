import threading
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from practice_backend.core.errors import PsychologistUnavailable, RoomUnavailable, StoreUnavailable
from practice_backend.core.locks import KeyedLock, psychologist_key, room_key
from practice_backend.database import Base
from practice_backend.models.appointment import Appointment
from practice_backend.models.psychologist import Psychologist
from practice_backend.models.room import Room
from practice_backend.models.room_booking import RoomBooking
from practice_backend.models.user import User
from practice_backend.services.booking_coordinator import BookingCoordinator
from practice_backend.store.sql import SqlResourceStore, advisory_lock_id

MONDAY = date(2024, 6, 3)
TABLES = [User.__table__, Room.__table__, Psychologist.__table__, Appointment.__table__, RoomBooking.__table__]


@pytest.fixture
def sql_engine():
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=TABLES)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine, tables=list(reversed(TABLES)))
        engine.dispose()


@pytest.fixture
def sql_store(sql_engine) -> SqlResourceStore:
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=sql_engine)
    store = SqlResourceStore(testing_session_local)

    user = store.insert_user({'email': 'ana@consultorio.example', 'full_name': 'Ana Lima', 'role': 'psychologist'})
    store.insert_room({'name': 'Sala 1', 'capacity': 2})
    store.insert_room({'name': 'Sala 2', 'capacity': 3})
    store.insert_psychologist({'user_id': user.id, 'hourly_rate': Decimal('150.00')})
    return store


def test_reference_data_round_trips(sql_store) -> None:
    assert [room.name for room in sql_store.list_rooms()] == ['Sala 1', 'Sala 2']
    assert sql_store.get_psychologist(1).hourly_rate == Decimal('150.00')
    assert sql_store.get_user_by_email(' ANA@consultorio.example ').full_name == 'Ana Lima'
    assert sql_store.get_room(99) is None


def test_times_are_returned_as_wall_clock_strings(sql_store) -> None:
    booking = sql_store.insert_room_booking({
        'room_id': 1,
        'psychologist_id': 1,
        'date': MONDAY,
        'start_time': '9:00',
        'end_time': '10:30',
    })

    assert (booking.start_time, booking.end_time) == ('09:00', '10:30')
    assert sql_store.get_room_booking(booking.id).start_time == '09:00'


def test_room_read_path_filters_by_room_and_date(sql_store) -> None:
    for room_id, day, start, end in [
        (1, MONDAY, '10:00', '11:00'),
        (1, MONDAY, '08:00', '09:00'),
        (2, MONDAY, '10:00', '11:00'),
        (1, date(2024, 6, 4), '10:00', '11:00'),
    ]:
        sql_store.insert_room_booking({
            'room_id': room_id, 'psychologist_id': 1, 'date': day, 'start_time': start, 'end_time': end,
        })

    intervals = sql_store.list_bookings_for_room(1, MONDAY)

    assert sorted((interval.start_time, interval.end_time) for interval in intervals) == [
        ('08:00', '09:00'),
        ('10:00', '11:00'),
    ]
    assert len(sql_store.list_room_bookings(room_id=1, start_date=MONDAY, end_date=date(2024, 6, 4))) == 3


def test_psychologist_read_path_skips_canceled(sql_store) -> None:
    for start, end, status in [('09:00', '10:00', 'scheduled'), ('11:00', '12:00', 'canceled')]:
        sql_store.insert_appointment({
            'patient_name': 'Maria',
            'psychologist_id': 1,
            'room_id': 1,
            'date': MONDAY,
            'start_time': start,
            'end_time': end,
            'status': status,
        })

    intervals = sql_store.list_appointments_for_psychologist(1, MONDAY)

    assert [(interval.start_time, interval.end_time) for interval in intervals] == [('09:00', '10:00')]


def test_transaction_discards_every_write_on_failure(sql_store) -> None:
    with pytest.raises(RuntimeError):
        with sql_store.transaction([room_key(1, MONDAY)]) as tx:
            appointment = tx.insert_appointment({
                'patient_name': 'Maria',
                'psychologist_id': 1,
                'room_id': 1,
                'date': MONDAY,
                'start_time': '10:00',
                'end_time': '11:00',
                'status': 'scheduled',
            })
            assert tx.get_appointment(appointment.id) is not None
            raise RuntimeError('insert of the room booking failed')

    assert sql_store.list_appointments() == []


def test_coordinator_keeps_both_records_in_step(sql_store) -> None:
    coordinator = BookingCoordinator(sql_store)

    appointment = coordinator.create_appointment(
        patient_name='Maria', psychologist_id=1, room_id=1, date=MONDAY, start_time='10:00', end_time='11:00',
    )
    with pytest.raises(RoomUnavailable):
        coordinator.create_appointment(
            patient_name='João', psychologist_id=1, room_id=1, date=MONDAY, start_time='10:30', end_time='11:30',
        )
    coordinator.create_appointment(
        patient_name='João', psychologist_id=1, room_id=1, date=MONDAY, start_time='11:00', end_time='12:00',
    )

    companion = sql_store.get_companion_booking(appointment.id)
    assert companion.purpose == 'Appointment with Maria'
    assert len(sql_store.list_appointments()) == 2
    assert len(sql_store.list_room_bookings()) == 2

    coordinator.delete_appointment(appointment.id)
    assert sql_store.get_companion_booking(appointment.id) is None
    assert len(sql_store.list_room_bookings()) == 1


def test_database_errors_surface_as_store_unavailable(sql_store, sql_engine) -> None:
    Base.metadata.drop_all(bind=sql_engine, tables=list(reversed(TABLES)))

    with pytest.raises(StoreUnavailable):
        sql_store.list_rooms()

    Base.metadata.create_all(bind=sql_engine, tables=TABLES)


def test_advisory_lock_id_fits_a_signed_bigint() -> None:
    lock_id = advisory_lock_id(room_key(1, MONDAY))

    assert -(2**63) <= lock_id < 2**63
    assert lock_id == advisory_lock_id(room_key(1, MONDAY))
    assert lock_id != advisory_lock_id(room_key(2, MONDAY))


@pytest.fixture
def keyed_lock() -> KeyedLock:
    return KeyedLock()


@pytest.fixture
def file_store(tmp_path, keyed_lock) -> SqlResourceStore:
    engine = create_engine(
        f"sqlite:///{tmp_path / 'practice.db'}",
        connect_args={'check_same_thread': False, 'timeout': 30},
    )
    Base.metadata.create_all(bind=engine, tables=TABLES)
    store = SqlResourceStore(sessionmaker(autocommit=False, autoflush=False, bind=engine), keyed_lock=keyed_lock)

    for email in ('ana@consultorio.example', 'bruno@consultorio.example'):
        user = store.insert_user({'email': email, 'full_name': email.split('@')[0], 'role': 'psychologist'})
        store.insert_psychologist({'user_id': user.id, 'hourly_rate': Decimal('150.00')})
    store.insert_room({'name': 'Sala 1', 'capacity': 2})
    store.insert_room({'name': 'Sala 2', 'capacity': 3})
    try:
        yield store
    finally:
        engine.dispose()


def test_contended_slot_is_booked_once_across_sessions(file_store) -> None:
    coordinator = BookingCoordinator(file_store)
    barrier = threading.Barrier(8)
    outcomes = []

    def attempt(psychologist_id: int) -> None:
        barrier.wait()
        try:
            coordinator.create_appointment(
                patient_name='Maria', psychologist_id=psychologist_id, room_id=1, date=MONDAY,
                start_time='10:00', end_time='11:00',
            )
            outcomes.append('booked')
        except RoomUnavailable:
            outcomes.append('conflict')

    threads = [threading.Thread(target=attempt, args=(1 + index % 2,)) for index in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == ['booked'] + ['conflict'] * 7
    assert len(file_store.list_room_bookings(room_id=1)) == 1
    assert len(file_store.list_appointments()) == 1


def test_staff_booking_waits_for_the_psychologist_lock(file_store, keyed_lock) -> None:
    coordinator = BookingCoordinator(file_store)
    finished = threading.Event()

    def staff_booking() -> None:
        coordinator.create_appointment(
            patient_name='João', psychologist_id=1, room_id=2, date=MONDAY, start_time='09:00', end_time='10:00',
        )
        finished.set()

    with keyed_lock.hold([psychologist_key(1, MONDAY), room_key(1, MONDAY)]):
        thread = threading.Thread(target=staff_booking)
        thread.start()
        assert not finished.wait(timeout=0.2)
        assert file_store.list_appointments() == []

    thread.join(timeout=10)
    assert finished.is_set()
    assert len(keyed_lock) == 0


def test_quick_book_and_staff_booking_race_keeps_psychologist_free_of_overlaps(file_store) -> None:
    coordinator = BookingCoordinator(file_store, quick_book_room_id=1)
    barrier = threading.Barrier(2)
    outcomes = {}

    def quick_book() -> None:
        barrier.wait()
        try:
            coordinator.quick_book(
                patient_name='Carla', psychologist_id=1, date=MONDAY, start_time='09:30', end_time='10:30',
            )
            outcomes['quick_book'] = 'booked'
        except PsychologistUnavailable:
            outcomes['quick_book'] = 'conflict'

    def staff_booking() -> None:
        barrier.wait()
        coordinator.create_appointment(
            patient_name='João', psychologist_id=1, room_id=2, date=MONDAY, start_time='09:00', end_time='10:00',
        )
        outcomes['staff'] = 'booked'

    threads = [threading.Thread(target=quick_book), threading.Thread(target=staff_booking)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    appointments = file_store.list_appointments(psychologist_id=1)
    assert outcomes['staff'] == 'booked'
    if outcomes['quick_book'] == 'booked':
        quick = next(appointment for appointment in appointments if appointment.status == 'pending-confirmation')
        staff = next(appointment for appointment in appointments if appointment.status == 'scheduled')
        assert quick.id < staff.id
    else:
        assert [appointment.status for appointment in appointments] == ['scheduled']
