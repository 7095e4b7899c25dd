from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import field_validator

from practice_backend.auth.dependencies import get_current_user
from practice_backend.core.errors import BookingError
from practice_backend.dependencies import get_coordinator, get_store
from practice_backend.routes.base import CamelModel, clean_text, clean_time
from practice_backend.services.booking_coordinator import BookingCoordinator
from practice_backend.store.base import ResourceStore
from practice_backend.store.records import UserRecord

router = APIRouter(tags=['room-bookings'])

OptionalDate = date | None

MAX_PURPOSE_LENGTH = 255


def _validate_purpose(value: str | None) -> str | None:
    normalized = clean_text(value)
    if normalized and len(normalized) > MAX_PURPOSE_LENGTH:
        raise ValueError(f'Purpose must be {MAX_PURPOSE_LENGTH} characters or fewer.')
    return normalized


class CreateRoomBookingRequest(CamelModel):
    room_id: int
    psychologist_id: int
    date: date
    start_time: str
    end_time: str
    purpose: str | None = None

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_times(cls, value: str) -> str:
        return clean_time(value)

    @field_validator('purpose')
    @classmethod
    def validate_purpose(cls, value: str | None) -> str | None:
        return _validate_purpose(value)


class UpdateRoomBookingRequest(CamelModel):
    room_id: int | None = None
    psychologist_id: int | None = None
    date: OptionalDate = None
    start_time: str | None = None
    end_time: str | None = None
    purpose: str | None = None

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_times(cls, value: str | None) -> str | None:
        return clean_time(value)

    @field_validator('purpose')
    @classmethod
    def validate_purpose(cls, value: str | None) -> str | None:
        return _validate_purpose(value)


class RoomBookingResponse(CamelModel):
    id: int
    room_id: int
    psychologist_id: int
    date: date
    start_time: str
    end_time: str
    purpose: str | None = None
    appointment_id: int | None = None


@router.get('/room-bookings', response_model=list[RoomBookingResponse])
def list_room_bookings(
    room_id: int | None = Query(default=None, alias='roomId'),
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
        return store.list_room_bookings(room_id=room_id, start_date=start_date, end_date=end_date)
    except BookingError as exc:
        raise exc.to_http_exception() from exc


@router.post('/room-bookings/reconcile', response_model=list[RoomBookingResponse])
def reconcile_room_bookings(
    coordinator: BookingCoordinator = Depends(get_coordinator),
    current_user: UserRecord = Depends(get_current_user),
):
    del current_user
    try:
        return coordinator.reconcile_room_bookings()
    except BookingError as exc:
        raise exc.to_http_exception() from exc


@router.get('/room-bookings/{booking_id}', response_model=RoomBookingResponse)
def get_room_booking(
    booking_id: int,
    store: ResourceStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    del current_user
    try:
        booking = store.get_room_booking(booking_id)
    except BookingError as exc:
        raise exc.to_http_exception() from exc

    if booking is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Room booking not found')
    return booking


@router.post('/room-bookings', response_model=RoomBookingResponse, status_code=status.HTTP_201_CREATED)
def create_room_booking(
    data: CreateRoomBookingRequest,
    coordinator: BookingCoordinator = Depends(get_coordinator),
    current_user: UserRecord = Depends(get_current_user),
):
    del current_user
    try:
        return coordinator.create_room_booking(
            room_id=data.room_id,
            psychologist_id=data.psychologist_id,
            date=data.date,
            start_time=data.start_time,
            end_time=data.end_time,
            purpose=data.purpose,
        )
    except BookingError as exc:
        raise exc.to_http_exception() from exc


@router.put('/room-bookings/{booking_id}', response_model=RoomBookingResponse)
def update_room_booking(
    booking_id: int,
    data: UpdateRoomBookingRequest,
    coordinator: BookingCoordinator = Depends(get_coordinator),
    current_user: UserRecord = Depends(get_current_user),
):
    del current_user
    try:
        return coordinator.update_room_booking(booking_id, data.model_dump(exclude_unset=True))
    except BookingError as exc:
        raise exc.to_http_exception() from exc


@router.delete('/room-bookings/{booking_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_room_booking(
    booking_id: int,
    coordinator: BookingCoordinator = Depends(get_coordinator),
    current_user: UserRecord = Depends(get_current_user),
):
    del current_user
    try:
        coordinator.delete_room_booking(booking_id)
    except BookingError as exc:
        raise exc.to_http_exception() from exc
