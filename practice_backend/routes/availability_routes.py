from datetime import date

from fastapi import APIRouter, Depends, Query

from practice_backend.core.errors import BookingError
from practice_backend.dependencies import get_availability_service
from practice_backend.routes.base import CamelModel
from practice_backend.services.availability import AvailabilityService

router = APIRouter(tags=['availability'])

MAX_SLOT_DURATION_MINUTES = 240


class DaySlotsResponse(CamelModel):
    date: date
    slots: list[str]


@router.get('/availability/psychologists/{psychologist_id}', response_model=list[DaySlotsResponse])
def list_psychologist_availability(
    psychologist_id: int,
    start_date: date = Query(..., alias='startDate'),
    end_date: date = Query(..., alias='endDate'),
    slot_duration: int | None = Query(default=None, alias='slotDuration', ge=5, le=MAX_SLOT_DURATION_MINUTES),
    availability: AvailabilityService = Depends(get_availability_service),
):
    try:
        return availability.for_psychologist(psychologist_id, start_date, end_date, slot_duration)
    except BookingError as exc:
        raise exc.to_http_exception() from exc


@router.get('/availability/rooms/{room_id}', response_model=list[DaySlotsResponse])
def list_room_availability(
    room_id: int,
    start_date: date = Query(..., alias='startDate'),
    end_date: date = Query(..., alias='endDate'),
    slot_duration: int | None = Query(default=None, alias='slotDuration', ge=5, le=MAX_SLOT_DURATION_MINUTES),
    availability: AvailabilityService = Depends(get_availability_service),
):
    try:
        return availability.for_room(room_id, start_date, end_date, slot_duration)
    except BookingError as exc:
        raise exc.to_http_exception() from exc
