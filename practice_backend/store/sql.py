import logging
import zlib
from contextlib import contextmanager
from datetime import date
from typing import Any, Callable, Iterable, Iterator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from practice_backend.core.errors import InvalidInput, StoreUnavailable
from practice_backend.core.locks import KeyedLock, LockKey, lock_key_name
from practice_backend.models.appointment import Appointment
from practice_backend.models.psychologist import Psychologist
from practice_backend.models.room import Room
from practice_backend.models.room_booking import RoomBooking
from practice_backend.models.user import User
from practice_backend.services.time_intervals import normalize_time, to_time
from practice_backend.store.base import ResourceStore
from practice_backend.store.records import (
    CANCELED_STATUS,
    AppointmentRecord,
    BookedInterval,
    PsychologistRecord,
    RoomBookingRecord,
    RoomRecord,
    UserRecord,
)

logger = logging.getLogger(__name__)

TIME_FIELDS = ('start_time', 'end_time')


def advisory_lock_id(key: LockKey) -> int:
    # pg_advisory_xact_lock takes a signed bigint.
    return zlib.crc32(lock_key_name(key).encode('utf-8')) - 2**31


def _to_columns(fields: dict[str, Any]) -> dict[str, Any]:
    return {
        name: to_time(value) if name in TIME_FIELDS and value is not None else value
        for name, value in fields.items()
    }


def _user_record(user: User) -> UserRecord:
    return UserRecord(
        id=user.id,
        email=user.email,
        full_name=user.full_name or '',
        role=user.role,
        hashed_password=user.hashed_password,
    )


def _room_record(room: Room) -> RoomRecord:
    return RoomRecord(
        id=room.id,
        name=room.name,
        capacity=room.capacity,
        has_wifi=room.has_wifi,
        has_air_conditioning=room.has_air_conditioning,
        square_meters=room.square_meters,
        image_url=room.image_url,
    )


def _psychologist_record(psychologist: Psychologist) -> PsychologistRecord:
    return PsychologistRecord(
        id=psychologist.id,
        user_id=psychologist.user_id,
        hourly_rate=psychologist.hourly_rate,
        specialization=psychologist.specialization,
        bio=psychologist.bio,
    )


def _appointment_record(appointment: Appointment) -> AppointmentRecord:
    return AppointmentRecord(
        id=appointment.id,
        patient_name=appointment.patient_name,
        psychologist_id=appointment.psychologist_id,
        room_id=appointment.room_id,
        date=appointment.date,
        start_time=normalize_time(appointment.start_time),
        end_time=normalize_time(appointment.end_time),
        status=appointment.status,
        notes=appointment.notes,
    )


def _room_booking_record(booking: RoomBooking) -> RoomBookingRecord:
    return RoomBookingRecord(
        id=booking.id,
        room_id=booking.room_id,
        psychologist_id=booking.psychologist_id,
        date=booking.date,
        start_time=normalize_time(booking.start_time),
        end_time=normalize_time(booking.end_time),
        purpose=booking.purpose,
        appointment_id=booking.appointment_id,
    )


class SqlResourceStore(ResourceStore):
    """SQLAlchemy-backed store.

    Outside ``transaction`` every call runs in its own short session. Inside
    it, calls share one session that commits when the block exits.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        keyed_lock: KeyedLock | None = None,
        session: Session | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._keyed_lock = keyed_lock if keyed_lock is not None else KeyedLock()
        self._session = session

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        if self._session is not None:
            yield self._session
            return

        db = self._session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception('Database call failed.')
            raise StoreUnavailable() from exc
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _take_advisory_locks(self, db: Session, keys: list[LockKey]) -> None:
        if db.get_bind().dialect.name != 'postgresql':
            return
        for key in keys:
            db.execute(text('SELECT pg_advisory_xact_lock(:lock_id)'), {'lock_id': advisory_lock_id(key)})

    @contextmanager
    def transaction(self, lock_keys: Iterable[LockKey] = ()) -> Iterator['SqlResourceStore']:
        if self._session is not None:
            yield self
            return

        keys = sorted(set(lock_keys), key=lock_key_name)
        with self._keyed_lock.hold(keys):
            db = self._session_factory()
            try:
                self._take_advisory_locks(db, keys)
                yield SqlResourceStore(self._session_factory, self._keyed_lock, session=db)
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                logger.exception('Booking transaction failed.')
                raise StoreUnavailable() from exc
            except BaseException:
                db.rollback()
                raise
            finally:
                db.close()

    def _add(self, db: Session, model, fields: dict[str, Any]):
        try:
            instance = model(**_to_columns(fields))
        except TypeError as exc:
            raise InvalidInput(str(exc)) from exc

        db.add(instance)
        db.flush()
        db.refresh(instance)
        return instance

    def get_user(self, user_id: int) -> UserRecord | None:
        with self._session_scope() as db:
            user = db.get(User, user_id)
            return _user_record(user) if user else None

    def get_user_by_email(self, email: str) -> UserRecord | None:
        with self._session_scope() as db:
            user = db.query(User).filter(User.email == email.strip().lower()).first()
            return _user_record(user) if user else None

    def insert_user(self, fields: dict[str, Any]) -> UserRecord:
        with self._session_scope() as db:
            return _user_record(self._add(db, User, fields))

    def get_room(self, room_id: int) -> RoomRecord | None:
        with self._session_scope() as db:
            room = db.get(Room, room_id)
            return _room_record(room) if room else None

    def list_rooms(self) -> list[RoomRecord]:
        with self._session_scope() as db:
            return [_room_record(room) for room in db.query(Room).order_by(Room.id.asc()).all()]

    def insert_room(self, fields: dict[str, Any]) -> RoomRecord:
        with self._session_scope() as db:
            return _room_record(self._add(db, Room, fields))

    def get_psychologist(self, psychologist_id: int) -> PsychologistRecord | None:
        with self._session_scope() as db:
            psychologist = db.get(Psychologist, psychologist_id)
            return _psychologist_record(psychologist) if psychologist else None

    def list_psychologists(self) -> list[PsychologistRecord]:
        with self._session_scope() as db:
            psychologists = db.query(Psychologist).order_by(Psychologist.id.asc()).all()
            return [_psychologist_record(psychologist) for psychologist in psychologists]

    def insert_psychologist(self, fields: dict[str, Any]) -> PsychologistRecord:
        with self._session_scope() as db:
            return _psychologist_record(self._add(db, Psychologist, fields))

    def list_bookings_for_room(self, room_id: int, day: date) -> list[BookedInterval]:
        with self._session_scope() as db:
            rows = db.query(RoomBooking.id, RoomBooking.start_time, RoomBooking.end_time).filter(
                RoomBooking.room_id == room_id,
                RoomBooking.date == day,
            ).all()
            return [BookedInterval(row_id, normalize_time(start), normalize_time(end)) for row_id, start, end in rows]

    def list_appointments_for_psychologist(self, psychologist_id: int, day: date) -> list[BookedInterval]:
        with self._session_scope() as db:
            rows = db.query(Appointment.id, Appointment.start_time, Appointment.end_time).filter(
                Appointment.psychologist_id == psychologist_id,
                Appointment.date == day,
                Appointment.status != CANCELED_STATUS,
            ).all()
            return [BookedInterval(row_id, normalize_time(start), normalize_time(end)) for row_id, start, end in rows]

    def list_appointments(
        self,
        psychologist_id: int | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[AppointmentRecord]:
        with self._session_scope() as db:
            query = db.query(Appointment)
            if psychologist_id is not None:
                query = query.filter(Appointment.psychologist_id == psychologist_id)
            if start_date is not None:
                query = query.filter(Appointment.date >= start_date)
            if end_date is not None:
                query = query.filter(Appointment.date <= end_date)
            appointments = query.order_by(
                Appointment.date.asc(),
                Appointment.start_time.asc(),
                Appointment.id.asc(),
            ).all()
            return [_appointment_record(appointment) for appointment in appointments]

    def get_appointment(self, appointment_id: int) -> AppointmentRecord | None:
        with self._session_scope() as db:
            appointment = db.get(Appointment, appointment_id)
            return _appointment_record(appointment) if appointment else None

    def list_room_bookings(
        self,
        room_id: int | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[RoomBookingRecord]:
        with self._session_scope() as db:
            query = db.query(RoomBooking)
            if room_id is not None:
                query = query.filter(RoomBooking.room_id == room_id)
            if start_date is not None:
                query = query.filter(RoomBooking.date >= start_date)
            if end_date is not None:
                query = query.filter(RoomBooking.date <= end_date)
            bookings = query.order_by(
                RoomBooking.date.asc(),
                RoomBooking.start_time.asc(),
                RoomBooking.id.asc(),
            ).all()
            return [_room_booking_record(booking) for booking in bookings]

    def get_room_booking(self, booking_id: int) -> RoomBookingRecord | None:
        with self._session_scope() as db:
            booking = db.get(RoomBooking, booking_id)
            return _room_booking_record(booking) if booking else None

    def get_companion_booking(self, appointment_id: int) -> RoomBookingRecord | None:
        with self._session_scope() as db:
            booking = db.query(RoomBooking).filter(RoomBooking.appointment_id == appointment_id).first()
            return _room_booking_record(booking) if booking else None

    def insert_appointment(self, fields: dict[str, Any]) -> AppointmentRecord:
        with self._session_scope() as db:
            return _appointment_record(self._add(db, Appointment, fields))

    def update_appointment(self, appointment_id: int, fields: dict[str, Any]) -> AppointmentRecord | None:
        with self._session_scope() as db:
            appointment = db.get(Appointment, appointment_id)
            if appointment is None:
                return None
            for name, value in _to_columns(fields).items():
                setattr(appointment, name, value)
            db.flush()
            return _appointment_record(appointment)

    def delete_appointment(self, appointment_id: int) -> bool:
        with self._session_scope() as db:
            appointment = db.get(Appointment, appointment_id)
            if appointment is None:
                return False
            db.delete(appointment)
            db.flush()
            return True

    def insert_room_booking(self, fields: dict[str, Any]) -> RoomBookingRecord:
        with self._session_scope() as db:
            return _room_booking_record(self._add(db, RoomBooking, fields))

    def update_room_booking(self, booking_id: int, fields: dict[str, Any]) -> RoomBookingRecord | None:
        with self._session_scope() as db:
            booking = db.get(RoomBooking, booking_id)
            if booking is None:
                return None
            for name, value in _to_columns(fields).items():
                setattr(booking, name, value)
            db.flush()
            return _room_booking_record(booking)

    def delete_room_booking(self, booking_id: int) -> bool:
        with self._session_scope() as db:
            booking = db.get(RoomBooking, booking_id)
            if booking is None:
                return False
            db.delete(booking)
            db.flush()
            return True
