from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from practice_backend.core import config


def _engine_options(database_url: str) -> dict:
    if database_url.startswith('sqlite'):
        return {'connect_args': {'check_same_thread': False}}
    return {'pool_pre_ping': True}


engine = create_engine(config.DATABASE_URL, echo=config.SQL_ECHO, **_engine_options(config.DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_booking_schema_checked = False


def ensure_booking_schema(bind=None) -> None:
    """Add columns and indexes that older databases were created without."""
    global _booking_schema_checked

    if _booking_schema_checked:
        return

    bind = bind or engine

    with _schema_lock:
        if _booking_schema_checked:
            return

        inspector = inspect(bind)
        table_names = inspector.get_table_names()

        with bind.begin() as connection:
            if 'room_bookings' in table_names:
                existing_columns = {column['name'] for column in inspector.get_columns('room_bookings')}
                if 'appointment_id' not in existing_columns:
                    connection.execute(text('ALTER TABLE room_bookings ADD COLUMN appointment_id INTEGER'))
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_room_bookings_room_date ON room_bookings(room_id, date)')
                )
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_room_bookings_appointment ON room_bookings(appointment_id)')
                )

            if 'appointments' in table_names:
                existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
                if 'notes' not in existing_columns:
                    connection.execute(text('ALTER TABLE appointments ADD COLUMN notes VARCHAR'))
                connection.execute(
                    text(
                        'CREATE INDEX IF NOT EXISTS idx_appointments_psychologist_date '
                        'ON appointments(psychologist_id, date)'
                    )
                )

        _booking_schema_checked = True
