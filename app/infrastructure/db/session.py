"""
Database engine and sessions (SQLAlchemy)

The dispatch tick fans due obligations out to DISPATCH_WORKERS threads, each
with its own session, so the PostgreSQL pool is sized for them on top of the
API's request sessions. Connections run in UTC: lease and due timestamps are
compared in the database.
"""
import psycopg
from sqlalchemy import create_engine, text
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session

from app.config import Settings, get_settings

# Connections kept for API requests and the scheduler on top of the worker pool
API_POOL_HEADROOM = 5


class Base(DeclarativeBase):
    """Declarative base for the journal, subscription and print order models"""
    pass


# Process-wide engine and session factory
_engine = None
_SessionLocal = None


def engine_options(settings: Settings) -> dict:
    """create_engine() keyword arguments for the configured database."""
    options = {"pool_pre_ping": True}
    if settings.get_sqlalchemy_url().startswith("postgresql"):
        options["pool_size"] = settings.DISPATCH_WORKERS + API_POOL_HEADROOM
        options["connect_args"] = {"options": "-c timezone=utc"}
    return options


def get_engine():
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine(settings.get_sqlalchemy_url(), **engine_options(settings))
    return _engine


def get_session_factory():
    """Session factory shared by API requests and dispatch worker threads"""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(bind=get_engine(), autoflush=False, autocommit=False)
    return _SessionLocal


def get_db() -> Session:
    """
    FastAPI dependency: one session per request, always closed

    Usage:
        @router.get("/entries")
        def list_entries(db: Session = Depends(get_db)):
            ...
    """
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


def check_db_connection() -> None:
    """
    Readiness check: PostgreSQL is queried over a short-lived raw psycopg
    connection so a saturated pool does not mask an outage; other databases
    go through the engine.

    Raises:
        psycopg.OperationalError / sqlalchemy.exc.OperationalError: database unreachable
    """
    settings = get_settings()
    if settings.DATABASE_URL.startswith("postgresql://"):
        with psycopg.connect(settings.DATABASE_URL, connect_timeout=3) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return
    with get_engine().connect() as conn:
        conn.execute(text("SELECT 1"))
