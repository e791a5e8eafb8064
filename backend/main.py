import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from backend.core import config
from backend.database import Base, engine, ensure_availability_schema, ensure_session_schema
from backend.models import availability, client, session, therapist, time_off, user  # noqa: F401
from backend.routes import availability_routes, client_routes, public_routes, scheduling_routes, session_routes

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

config.validate_runtime_config()

app = FastAPI(title='Therapy Scheduler API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        ensure_availability_schema()
        ensure_session_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Therapy Scheduler API Running'}


app.include_router(public_routes.router, prefix='/public')
app.include_router(availability_routes.router, prefix='/availability')
app.include_router(availability_routes.time_off_router, prefix='/therapists')
app.include_router(session_routes.router, prefix='/sessions')
app.include_router(scheduling_routes.router, prefix='/scheduling')
app.include_router(client_routes.router, prefix='/clients')
