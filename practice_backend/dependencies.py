from fastapi import Request

from practice_backend.services.availability import AvailabilityService
from practice_backend.services.booking_coordinator import BookingCoordinator
from practice_backend.store.base import ResourceStore


def get_store(request: Request) -> ResourceStore:
    return request.app.state.store


def get_coordinator(request: Request) -> BookingCoordinator:
    return request.app.state.coordinator


def get_availability_service(request: Request) -> AvailabilityService:
    return request.app.state.availability
