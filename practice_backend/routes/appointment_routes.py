from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import field_validator

from practice_backend.auth.dependencies import get_current_user
from practice_backend.core.errors import BookingError, PsychologistUnavailable, RoomUnavailable
from practice_backend.dependencies import get_coordinator, get_store
from practice_backend.routes.base import CamelModel, clean_text, clean_time
from practice_backend.services.booking_coordinator import SCHEDULED_STATUS, BookingCoordinator
from practice_backend.store.base import ResourceStore
from practice_backend.store.records import APPOINTMENT_STATUSES, UserRecord

router = APIRouter(tags=['appointments'])

OptionalDate = date | None

MAX_PATIENT_NAME_LENGTH = 120
MAX_APPOINTMENT_NOTES_LENGTH = 2000

QUICK_BOOK_ROOM_CONFLICT_MESSAGE = 'Este horário não está mais disponível. Por favor, escolha outro horário.'
QUICK_BOOK_PSYCHOLOGIST_CONFLICT_MESSAGE = 'O psicólogo já possui um agendamento neste horário. Por favor, escolha outro horário.'


def _validate_patient_name(value: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError('Patient name is required.')
    if len(normalized) > MAX_PATIENT_NAME_LENGTH:
        raise ValueError(f'Patient name must be {MAX_PATIENT_NAME_LENGTH} characters or fewer.')
    return normalized


def _validate_notes(value: str | None) -> str | None:
    normalized = clean_text(value)
    if normalized and len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
        raise ValueError(f'Notes must be {MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')
    return normalized


def _validate_status(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized not in APPOINTMENT_STATUSES:
        raise ValueError(f"Status must be one of: {', '.join(APPOINTMENT_STATUSES)}.")
    return normalized


class CreateAppointmentRequest(CamelModel):
    patient_name: str
    psychologist_id: int
    room_id: int
    date: date
    start_time: str
    end_time: str
    status: str = SCHEDULED_STATUS
    notes: str | None = None

    @field_validator('patient_name')
    @classmethod
    def validate_patient_name(cls, value: str) -> str:
        return _validate_patient_name(value)

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_times(cls, value: str) -> str:
        return clean_time(value)

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        return _validate_status(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _validate_notes(value)


class QuickBookRequest(CamelModel):
    patient_name: str
    psychologist_id: int
    date: date
    start_time: str
    end_time: str
    room_id: int | None = None
    # Sent by the booking page; quick bookings are always created pending confirmation.
    status: str | None = None
    notes: str | None = None

    @field_validator('patient_name')
    @classmethod
    def validate_patient_name(cls, value: str) -> str:
        return _validate_patient_name(value)

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_times(cls, value: str) -> str:
        return clean_time(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _validate_notes(value)


class UpdateAppointmentRequest(CamelModel):
    patient_name: str | None = None
    psychologist_id: int | None = None
    room_id: int | None = None
    date: OptionalDate = None
    start_time: str | None = None
    end_time: str | None = None
    status: str | None = None
    notes: str | None = None

    @field_validator('patient_name')
    @classmethod
    def validate_patient_name(cls, value: str | None) -> str | None:
        return None if value is None else _validate_patient_name(value)

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_times(cls, value: str | None) -> str | None:
        return clean_time(value)

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        return _validate_status(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _validate_notes(value)


class AppointmentResponse(CamelModel):
    id: int
    patient_name: str
    psychologist_id: int
    room_id: int
    date: date
    start_time: str
    end_time: str
    status: str
    notes: str | None = None


@router.get('/appointments', response_model=list[AppointmentResponse])
def list_appointments(
    psychologist_id: int | None = Query(default=None, alias='psychologistId'),
    day: date | None = Query(default=None, alias='date'),
    start_date: date | None = Query(default=None, alias='startDate'),
    end_date: date | None = Query(default=None, alias='endDate'),
    store: ResourceStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    del current_user
    if day is not None:
        start_date = end_date = day
    elif (start_date is None) != (end_date is None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='startDate and endDate must be provided together.',
        )

    try:
        return store.list_appointments(psychologist_id=psychologist_id, start_date=start_date, end_date=end_date)
    except BookingError as exc:
        raise exc.to_http_exception() from exc


@router.get('/appointments/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    store: ResourceStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    del current_user
    try:
        appointment = store.get_appointment(appointment_id)
    except BookingError as exc:
        raise exc.to_http_exception() from exc

    if appointment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Appointment not found')
    return appointment


@router.post('/appointments', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    coordinator: BookingCoordinator = Depends(get_coordinator),
    current_user: UserRecord = Depends(get_current_user),
):
    del current_user
    try:
        return coordinator.create_appointment(
            patient_name=data.patient_name,
            psychologist_id=data.psychologist_id,
            room_id=data.room_id,
            date=data.date,
            start_time=data.start_time,
            end_time=data.end_time,
            status=data.status,
            notes=data.notes,
        )
    except BookingError as exc:
        raise exc.to_http_exception() from exc


@router.post('/appointments/quick-book', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def quick_book_appointment(
    data: QuickBookRequest,
    coordinator: BookingCoordinator = Depends(get_coordinator),
):
    try:
        return coordinator.quick_book(
            patient_name=data.patient_name,
            psychologist_id=data.psychologist_id,
            date=data.date,
            start_time=data.start_time,
            end_time=data.end_time,
            room_id=data.room_id,
            notes=data.notes,
            room_conflict_message=QUICK_BOOK_ROOM_CONFLICT_MESSAGE,
            psychologist_conflict_message=QUICK_BOOK_PSYCHOLOGIST_CONFLICT_MESSAGE,
        )
    except (RoomUnavailable, PsychologistUnavailable) as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.message) from exc
    except BookingError as exc:
        raise exc.to_http_exception() from exc


@router.put('/appointments/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    data: UpdateAppointmentRequest,
    coordinator: BookingCoordinator = Depends(get_coordinator),
    current_user: UserRecord = Depends(get_current_user),
):
    del current_user
    changes = data.model_dump(exclude_unset=True)
    try:
        return coordinator.update_appointment(appointment_id, changes)
    except BookingError as exc:
        raise exc.to_http_exception() from exc


@router.delete('/appointments/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(
    appointment_id: int,
    coordinator: BookingCoordinator = Depends(get_coordinator),
    current_user: UserRecord = Depends(get_current_user),
):
    del current_user
    try:
        coordinator.delete_appointment(appointment_id)
    except BookingError as exc:
        raise exc.to_http_exception() from exc
