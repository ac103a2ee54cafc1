"""
Database engine and sessions (SQLAlchemy)

One engine per process. The pool is sized for the generation worker pool:
every worker opens its own session for its series.
"""
import psycopg
from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session

from recurring_ledger.config import get_settings


class Base(DeclarativeBase):
    """Declarative base of the ledger tables"""
    pass


_engine = None
_SessionLocal = None


def get_engine():
    """Process-wide engine, created on first use"""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine(
            settings.get_sqlalchemy_url(),
            pool_pre_ping=True,
            pool_size=max(5, settings.GENERATION_WORKERS + 1),
            echo=settings.DEBUG,
        )
    return _engine


def get_session_factory():
    """sessionmaker bound to the engine; passed to GenerationEngine for its workers"""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(bind=get_engine(), autoflush=False, autocommit=False)
    return _SessionLocal


def get_db() -> Session:
    """
    FastAPI dependency: one session per request, always closed

    Usage:
        @router.get("/series")
        def list_series(db: Session = Depends(get_db)):
            ...
    """
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create missing tables (recurring_series, ledger_entries, users, categories)."""
    from recurring_ledger.infrastructure.db import models  # noqa: F401

    Base.metadata.create_all(get_engine())


def check_db_connection() -> None:
    """
    Readiness probe: plain psycopg round trip, bypassing the SQLAlchemy pool

    Raises:
        psycopg.OperationalError: database unreachable
    """
    settings = get_settings()
    with psycopg.connect(settings.DATABASE_URL, connect_timeout=3) as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT 1;")
            cur.fetchone()
