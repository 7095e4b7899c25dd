from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import field_validator

from practice_backend.auth.dependencies import get_current_user
from practice_backend.core.errors import BookingError
from practice_backend.dependencies import get_store
from practice_backend.routes.base import CamelModel, clean_text
from practice_backend.store.base import ResourceStore
from practice_backend.store.records import UserRecord

router = APIRouter(tags=['psychologists'])


class CreatePsychologistRequest(CamelModel):
    user_id: int
    hourly_rate: Decimal
    specialization: str | None = None
    bio: str | None = None

    @field_validator('hourly_rate')
    @classmethod
    def validate_hourly_rate(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError('Hourly rate cannot be negative.')
        return value.quantize(Decimal('0.01'))

    @field_validator('specialization', 'bio')
    @classmethod
    def validate_text(cls, value: str | None) -> str | None:
        return clean_text(value)


class PsychologistResponse(CamelModel):
    id: int
    user_id: int
    hourly_rate: Decimal
    specialization: str | None = None
    bio: str | None = None


@router.get('/psychologists', response_model=list[PsychologistResponse])
def list_psychologists(store: ResourceStore = Depends(get_store)):
    try:
        return store.list_psychologists()
    except BookingError as exc:
        raise exc.to_http_exception() from exc


@router.get('/psychologists/{psychologist_id}', response_model=PsychologistResponse)
def get_psychologist(psychologist_id: int, store: ResourceStore = Depends(get_store)):
    try:
        psychologist = store.get_psychologist(psychologist_id)
    except BookingError as exc:
        raise exc.to_http_exception() from exc

    if psychologist is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Psychologist not found')
    return psychologist


@router.post('/psychologists', response_model=PsychologistResponse, status_code=status.HTTP_201_CREATED)
def create_psychologist(
    data: CreatePsychologistRequest,
    store: ResourceStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    del current_user
    try:
        if store.get_user(data.user_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='User not found')
        return store.insert_psychologist(data.model_dump())
    except BookingError as exc:
        raise exc.to_http_exception() from exc
