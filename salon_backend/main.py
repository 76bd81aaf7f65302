import logging
import os

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from salon_backend.core import config
from salon_backend.core.errors import http_error_handler, request_validation_handler
from salon_backend.database import Base, engine, ensure_appointment_schema
from salon_backend.models import appointment, availability, blocked_date, post, service, user  # noqa: F401
from salon_backend.routes import (
    appointment_routes,
    auth_routes,
    availability_routes,
    blocked_date_routes,
    post_routes,
    service_routes,
    staff_routes,
)

logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

app = FastAPI(title=f'{config.BUSINESS_NAME} API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.mount(config.MEDIA_URL_PREFIX, StaticFiles(directory=config.MEDIA_ROOT, check_dir=False), name='media')

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    os.makedirs(config.MEDIA_ROOT, exist_ok=True)
    try:
        Base.metadata.create_all(bind=engine)
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': f'{config.BUSINESS_NAME} API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(availability_routes.router, prefix='/availability')
app.include_router(blocked_date_routes.router, prefix='/blocked-dates')
app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(service_routes.router, prefix='/services')
app.include_router(post_routes.router, prefix='/posts')
app.include_router(staff_routes.router, prefix='/staff')
