from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from backend.core import config

_connect_args = {"check_same_thread": False} if config.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(config.DATABASE_URL, connect_args=_connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_schedule_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_schedule_schema() -> None:
    global _schedule_schema_checked

    if _schedule_schema_checked:
        return

    with _schema_lock:
        if _schedule_schema_checked:
            return

        table_names = set(inspect(engine).get_table_names())
        index_statements = []

        if 'teacher_available_slots' in table_names:
            index_statements.append(
                'CREATE INDEX IF NOT EXISTS idx_available_slots_teacher_weekday '
                'ON teacher_available_slots(teacher_id, weekday, start_time)'
            )
        if 'reservations' in table_names:
            index_statements.append(
                'CREATE INDEX IF NOT EXISTS idx_reservations_teacher_time '
                'ON reservations(teacher_id, reserve_time)'
            )
            index_statements.append(
                'CREATE INDEX IF NOT EXISTS idx_reservations_teacher_time_status '
                'ON reservations(teacher_id, reserve_time, teacher_status)'
            )

        if index_statements:
            with engine.begin() as connection:
                for statement in index_statements:
                    connection.execute(text(statement))

        _schedule_schema_checked = True
