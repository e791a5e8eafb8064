from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from backend.core import config


def build_engine(database_url: str):
    connect_args = {}
    if database_url.startswith('sqlite'):
        # Request handlers run in a threadpool.
        connect_args['check_same_thread'] = False
    return create_engine(database_url, connect_args=connect_args)


engine = build_engine(config.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_session_schema_checked = False
_availability_schema_checked = False


def ensure_session_schema() -> None:
    """Create the indexes the booking path relies on when an older table lacks them.

    The partial unique index is the last-resort guard against two concurrent
    bookings committing the same therapist/time.
    """
    global _session_schema_checked

    if _session_schema_checked:
        return

    with _schema_lock:
        if _session_schema_checked:
            return

        inspector = inspect(engine)

        if 'sessions' not in inspector.get_table_names():
            _session_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('sessions')}
        migration_steps = [
            ('notes', 'ALTER TABLE sessions ADD COLUMN notes VARCHAR'),
            ('created_at', 'ALTER TABLE sessions ADD COLUMN created_at TIMESTAMP'),
            ('updated_at', 'ALTER TABLE sessions ADD COLUMN updated_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_sessions_therapist_range ON sessions(therapist_id, start_time, end_time)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_sessions_client_range ON sessions(client_id, start_time, end_time)')
            )
            connection.execute(
                text(
                    'CREATE UNIQUE INDEX IF NOT EXISTS uq_sessions_therapist_scheduled_slot '
                    "ON sessions(therapist_id, start_time, end_time) WHERE status = 'scheduled'"
                )
            )

        _session_schema_checked = True


def ensure_availability_schema() -> None:
    global _availability_schema_checked

    if _availability_schema_checked:
        return

    with _schema_lock:
        if _availability_schema_checked:
            return

        inspector = inspect(engine)

        if 'availability' not in inspector.get_table_names():
            _availability_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('availability')}
        migration_steps = [
            ('recurring_weekly', 'ALTER TABLE availability ADD COLUMN recurring_weekly BOOLEAN DEFAULT TRUE'),
            ('created_by', 'ALTER TABLE availability ADD COLUMN created_by INTEGER'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_availability_therapist_day ON availability(therapist_id, day_of_week)')
            )

        _availability_schema_checked = True


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
