import os
from decimal import Decimal

import pytest

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')
os.environ.setdefault('STORE_BACKEND', 'memory')

from practice_backend.auth import jwt_handler  # noqa: E402
from practice_backend.services.booking_coordinator import BookingCoordinator  # noqa: E402
from practice_backend.store.memory import MemoryResourceStore  # noqa: E402

STAFF_EMAIL = 'recepcao@consultorio.example'


def seed_reference_data(store) -> None:
    store.insert_user({'email': STAFF_EMAIL, 'full_name': 'Recepção', 'role': 'receptionist'})
    first_user = store.insert_user({'email': 'ana@consultorio.example', 'full_name': 'Ana Lima', 'role': 'psychologist'})
    second_user = store.insert_user({'email': 'bruno@consultorio.example', 'full_name': 'Bruno Reis', 'role': 'psychologist'})

    store.insert_room({'name': 'Sala 1', 'capacity': 2, 'square_meters': 12})
    store.insert_room({'name': 'Sala 2', 'capacity': 4, 'square_meters': 18})

    store.insert_psychologist({'user_id': first_user.id, 'hourly_rate': Decimal('150.00'), 'specialization': 'TCC'})
    store.insert_psychologist({'user_id': second_user.id, 'hourly_rate': Decimal('180.00')})


@pytest.fixture
def store() -> MemoryResourceStore:
    memory_store = MemoryResourceStore()
    seed_reference_data(memory_store)
    return memory_store


@pytest.fixture
def coordinator(store) -> BookingCoordinator:
    return BookingCoordinator(store, quick_book_room_id=1)


@pytest.fixture
def staff_headers() -> dict[str, str]:
    token = jwt_handler.create_access_token(subject=STAFF_EMAIL, role='receptionist')
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def client(store):
    from fastapi.testclient import TestClient

    from practice_backend.main import create_app

    return TestClient(create_app(store=store))
