"""
SQLAlchemy ORM models
"""
from decimal import Decimal
from datetime import date as date_type
from sqlalchemy import String, DateTime, Integer, Text, TIMESTAMP, Date, func, Boolean, Numeric, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column

from recurring_ledger.infrastructure.db.session import Base


class User(Base):
    """
    Ledger owner. Lifecycle is managed outside this service.
    """
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    created_at: Mapped[DateTime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )


class CategoryInfo(Base):
    """
    Financial category referenced by series and entries
    """
    __tablename__ = "categories"

    category_id: Mapped[int] = mapped_column(primary_key=True)
    account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    category_type: Mapped[str] = mapped_column(String(20), nullable=False)  # income/expense
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )


# ============================================================================
# Recurring series & ledger entries
# ============================================================================


class RecurringSeriesModel(Base):
    """Recurrence rule describing a repeating ledger entry"""
    __tablename__ = "recurring_series"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    category_id: Mapped[int] = mapped_column(Integer, nullable=False)  # -> categories

    amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)  # income/expense
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    frequency: Mapped[str] = mapped_column(String(16), nullable=False)  # daily/weekly/monthly/yearly
    start_date: Mapped[date_type] = mapped_column(Date, nullable=False)
    end_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)  # inclusive
    next_occurrence: Mapped[date_type | None] = mapped_column(Date, nullable=True)  # NULL = exhausted
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    __table_args__ = (
        Index('ix_recurring_series_due', 'is_active', 'next_occurrence'),
    )


class LedgerEntryModel(Base):
    """Concrete dated transaction (user-created, generated or override)"""
    __tablename__ = "ledger_entries"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    category_id: Mapped[int] = mapped_column(Integer, nullable=False)  # -> categories

    amount: Mapped[Decimal] = mapped_column(Numeric(precision=20, scale=2), nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)  # income/expense
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    entry_date: Mapped[date_type] = mapped_column(Date, nullable=False)

    # Weak link: lookup only, no FK, cleared when the series is deleted
    series_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    is_override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    __table_args__ = (
        UniqueConstraint('series_id', 'entry_date', name='uq_ledger_entry_series_date'),
        Index('ix_ledger_entry_account_date', 'account_id', 'entry_date'),
    )
