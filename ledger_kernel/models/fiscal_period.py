"""
Module: ledger_kernel.models.fiscal_period
Responsibility: ORM persistence for fiscal periods -- the date ranges that
    accept postings.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Entries may only be created or posted into an open period whose
      [start_date, end_date] range contains the entry date.
    - A closed period never reopens.

Failure modes:
    - ClosedPeriodError / DateOutsidePeriodError raised by the services.
    - ValueError from close() on an already closed period.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import Boolean, Date, DateTime, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class FiscalPeriod(TrackedBase):
    """
    Fiscal period for posting control.

    Guarantees:
        - period_code is unique.
        - start_date <= end_date (checked by PeriodService).
        - close() stamps closed_at/closed_by_id from an injected clock.
    """

    __tablename__ = "fiscal_periods"

    __table_args__ = (
        UniqueConstraint("period_code", name="uq_period_code"),
        Index("idx_period_dates", "start_date", "end_date"),
    )

    # e.g. "2024-01", "FY2024"
    period_code: Mapped[str] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Inclusive bounds
    start_date: Mapped[date] = mapped_column(Date, nullable=False)

    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    is_closed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    closed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        state = "closed" if self.is_closed else "open"
        return f"<FiscalPeriod {self.period_code}: {state}>"

    @property
    def is_open(self) -> bool:
        return not self.is_closed

    def contains_date(self, check_date: date) -> bool:
        """Check if a date falls within this period."""
        return self.start_date <= check_date <= self.end_date

    def close(self, actor_id: UUID, closed_at: datetime) -> None:
        """Close the period.

        Raises: ValueError if the period is already closed.
        """
        if self.is_closed:
            raise ValueError(f"Period {self.period_code} is already closed")

        self.is_closed = True
        self.closed_at = closed_at
        self.closed_by_id = actor_id
        self.updated_by_id = actor_id
