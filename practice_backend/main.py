import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from practice_backend.core import config
from practice_backend.routes import (
    appointment_routes,
    auth_routes,
    availability_routes,
    psychologist_routes,
    room_booking_routes,
    room_routes,
)
from practice_backend.services.availability import AvailabilityService
from practice_backend.services.booking_coordinator import BookingCoordinator
from practice_backend.store.base import ResourceStore, build_store

logger = logging.getLogger(__name__)


def initialize_database() -> None:
    from practice_backend.database import Base, engine, ensure_booking_schema
    from practice_backend.models import appointment, psychologist, room, room_booking, user  # noqa: F401

    try:
        Base.metadata.create_all(bind=engine)
        ensure_booking_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info('Rejected request to %s: %s', request.url.path, exc.errors())
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={'message': 'Invalid request data.', 'detail': jsonable_encoder(exc.errors())},
    )


def create_app(store: ResourceStore | None = None) -> FastAPI:
    config.validate_runtime_config()
    logging.basicConfig(level=config.LOG_LEVEL)

    app = FastAPI(title='Practice Office API')

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    if store is None:
        store = build_store(config.STORE_BACKEND)
        if config.STORE_BACKEND == 'database':
            app.on_event('startup')(initialize_database)
        logger.info('Using the %s store.', config.STORE_BACKEND)

    app.state.store = store
    app.state.coordinator = BookingCoordinator(store)
    app.state.availability = AvailabilityService(store)

    @app.get('/')
    def root():
        return {'status': 'Practice Office API Running'}

    app.include_router(auth_routes.router, prefix='/auth')
    app.include_router(room_routes.router, prefix='/api')
    app.include_router(psychologist_routes.router, prefix='/api')
    app.include_router(appointment_routes.router, prefix='/api')
    app.include_router(room_booking_routes.router, prefix='/api')
    app.include_router(availability_routes.router, prefix='/api')

    return app


app = create_app()
