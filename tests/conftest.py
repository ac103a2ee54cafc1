"""
Pytest fixtures for testing
"""
import pytest
from datetime import date, datetime
from decimal import Decimal
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session

from recurring_ledger.infrastructure.db.session import Base
from recurring_ledger.infrastructure.db.models import User, CategoryInfo, RecurringSeriesModel

_NOW = datetime(2026, 1, 1, 0, 0, 0)


def enable_sqlite_savepoints(engine, begin_statement: str = "BEGIN"):
    """pysqlite starts transactions on its own and breaks SAVEPOINT; let SQLAlchemy emit BEGIN."""
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        dbapi_conn.isolation_level = None

    @event.listens_for(engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql(begin_statement)


def seed_owner(session: Session, account_id: int = 1, category_id: int = 10) -> CategoryInfo:
    """Owner plus one expense category."""
    session.add(User(id=account_id, email=f"user{account_id}@example.com", created_at=_NOW))
    category = CategoryInfo(
        category_id=category_id, account_id=account_id,
        title="Rent", category_type="expense", is_archived=False,
        created_at=_NOW,
    )
    session.add(category)
    session.flush()
    return category


@pytest.fixture
def db_engine():
    """Create in-memory SQLite engine for tests"""
    engine = create_engine("sqlite:///:memory:")
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Session:
    """Create database session for tests"""
    SessionLocal = sessionmaker(bind=db_engine, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def sample_account_id():
    """Sample account ID for tests"""
    return 1


@pytest.fixture
def category(db_session, sample_account_id):
    """Owner with one expense category."""
    return seed_owner(db_session, sample_account_id)


@pytest.fixture
def make_series(db_session, sample_account_id, category):
    """Factory: persist a series (monthly rent from 2026-01-01 unless overridden)."""
    def _make(**overrides):
        fields = dict(
            account_id=sample_account_id,
            category_id=category.category_id,
            amount=Decimal("100.00"),
            kind="expense",
            description="Rent",
            frequency="monthly",
            start_date=date(2026, 1, 1),
            end_date=None,
            is_active=True,
        )
        fields.update(overrides)
        fields.setdefault("next_occurrence", fields["start_date"])
        series = RecurringSeriesModel(**fields, created_at=_NOW, updated_at=_NOW)
        db_session.add(series)
        db_session.flush()
        return series
    return _make
