from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator
from incident_dedup.config import settings

_engine_kwargs: dict = {"pool_pre_ping": True}
if "sqlite" in settings.DATABASE_URL:
    _engine_kwargs["connect_args"] = {"check_same_thread": False}
else:
    _engine_kwargs["pool_size"] = settings.DB_POOL_SIZE
    _engine_kwargs["max_overflow"] = settings.DB_MAX_OVERFLOW
engine = create_engine(settings.DATABASE_URL, **_engine_kwargs)

if "sqlite" in settings.DATABASE_URL:
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create the raw_data table if it does not exist yet."""
    from incident_dedup.models import Base  # noqa: F401 - registers every model
    Base.metadata.create_all(bind=engine)
    _run_migrations()


def _run_migrations() -> None:
    """Idempotent ALTER TABLE migrations for columns added after the first schema.

    Checks column existence with sqlalchemy.inspect() so real SQL errors
    propagate instead of being swallowed.
    """
    from sqlalchemy import inspect as sa_inspect, text

    inspector = sa_inspect(engine)

    # (table_name, column_name, column_type_sql)
    column_migrations = [
        ("raw_data", "linked_incident", "VARCHAR(32)"),
        ("raw_data", "processing_status", "VARCHAR(50)"),
        ("raw_data", "processing_notes", "TEXT"),
        ("raw_data", "last_processed", "DATETIME"),
    ]

    existing = {c["name"] for c in inspector.get_columns("raw_data")}
    with engine.connect() as conn:
        for table_name, col_name, col_type in column_migrations:
            if col_name not in existing:
                conn.execute(text(
                    f"ALTER TABLE {table_name} ADD COLUMN {col_name} {col_type}"
                ))
                conn.commit()
                existing.add(col_name)
