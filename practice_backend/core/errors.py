"""
Booking domain errors.

Services raise these; routes convert them with ``to_http_exception`` so the
status code of every failure kind lives in one place.
"""

from typing import Any

from fastapi import HTTPException, status


class BookingError(Exception):
    """Base class for booking and availability failures."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = 'Booking operation failed.'

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None) -> None:
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.message)


class InvalidInput(BookingError, ValueError):
    """Missing fields, malformed dates or times, or an empty time range."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Invalid booking input.'


class ResourceNotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Resource not found.'


class RoomUnavailable(BookingError):
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Room is not available for the specified time'


class PsychologistUnavailable(BookingError):
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Psychologist already has an appointment at the specified time'


class BookingInconsistent(BookingError):
    """An appointment exists without the room booking that should mirror it."""

    status_code = status.HTTP_409_CONFLICT
    default_message = 'Appointments without a matching room booking were found.'

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail={'message': self.message, **self.details})


class StoreUnavailable(BookingError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = 'Booking storage is unavailable.'
