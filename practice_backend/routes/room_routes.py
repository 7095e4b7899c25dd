from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator

from practice_backend.auth.dependencies import get_current_user
from practice_backend.core.errors import BookingError
from practice_backend.dependencies import get_store
from practice_backend.routes.base import CamelModel, clean_text, clean_time
from practice_backend.services.booking_validator import BookingValidator
from practice_backend.store.base import ResourceStore
from practice_backend.store.records import UserRecord

router = APIRouter(tags=['rooms'])


class CreateRoomRequest(CamelModel):
    name: str
    capacity: int
    has_wifi: bool = True
    has_air_conditioning: bool = True
    square_meters: int | None = None
    image_url: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = clean_text(value)
        if not normalized:
            raise ValueError('Room name is required.')
        return normalized

    @field_validator('capacity')
    @classmethod
    def validate_capacity(cls, value: int) -> int:
        if value < 1:
            raise ValueError('Capacity must be at least 1.')
        return value


class RoomResponse(CamelModel):
    id: int
    name: str
    capacity: int
    has_wifi: bool
    has_air_conditioning: bool
    square_meters: int | None = None
    image_url: str | None = None


class RoomAvailabilityResponse(BaseModel):
    available: bool


@router.get('/rooms', response_model=list[RoomResponse])
def list_rooms(store: ResourceStore = Depends(get_store)):
    try:
        return store.list_rooms()
    except BookingError as exc:
        raise exc.to_http_exception() from exc


@router.get('/rooms/availability/{room_id}', response_model=RoomAvailabilityResponse)
def check_room_availability(
    room_id: int,
    day: date = Query(..., alias='date'),
    start_time: str = Query(..., alias='startTime'),
    end_time: str = Query(..., alias='endTime'),
    store: ResourceStore = Depends(get_store),
):
    try:
        start_time, end_time = clean_time(start_time), clean_time(end_time)
        if store.get_room(room_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Room not found')

        available = BookingValidator(store).is_room_available(room_id, day, start_time, end_time)
        return RoomAvailabilityResponse(available=available)
    except BookingError as exc:
        raise exc.to_http_exception() from exc


@router.get('/rooms/{room_id}', response_model=RoomResponse)
def get_room(room_id: int, store: ResourceStore = Depends(get_store)):
    try:
        room = store.get_room(room_id)
    except BookingError as exc:
        raise exc.to_http_exception() from exc

    if room is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Room not found')
    return room


@router.post('/rooms', response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
def create_room(
    data: CreateRoomRequest,
    store: ResourceStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    del current_user
    try:
        return store.insert_room(data.model_dump())
    except BookingError as exc:
        raise exc.to_http_exception() from exc
