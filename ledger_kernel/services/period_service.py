"""
PeriodService -- fiscal period lifecycle and posting-date validation.

Responsibility:
    Creates and closes fiscal periods and answers whether an entry dated
    ``entry_date`` may be written into a given period.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by JournalEntryStore on create, update, post and reverse.

Invariants enforced:
    - No writes into a closed period.
    - The entry date must fall inside [start_date, end_date].
    - Periods never overlap.
    - Flush-only: never commits or rolls back.

Failure modes:
    - PeriodNotFoundError: unknown period id, or no period covers a date.
    - ClosedPeriodError / DateOutsidePeriodError from validate_posting().
    - PeriodOverlapError: new period overlaps an existing one.
    - InvalidTransitionError: closing an already closed period.
    - ValueError: start_date after end_date.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import FiscalPeriodInfo
from ledger_kernel.exceptions import (
    ClosedPeriodError,
    DateOutsidePeriodError,
    InvalidTransitionError,
    PeriodNotFoundError,
    PeriodOverlapError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.fiscal_period import FiscalPeriod
from ledger_kernel.services.base import BaseService

logger = get_logger("services.period")


class PeriodService(BaseService[FiscalPeriod]):
    """
    Service for fiscal periods.

    Contract:
        Public methods return frozen ``FiscalPeriodInfo`` DTOs.  Validation
        methods raise typed exceptions.

    Guarantees:
        - close_period() locks the period row, so a concurrent close sees
          the committed state and fails cleanly.
        - Timestamps come from the injected clock.

    Non-goals:
        - Does NOT reopen periods.
        - Does NOT run closing entries or year-end rollovers.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def _to_dto(self, period: FiscalPeriod) -> FiscalPeriodInfo:
        return FiscalPeriodInfo(
            id=period.id,
            period_code=period.period_code,
            name=period.name,
            start_date=period.start_date,
            end_date=period.end_date,
            is_closed=period.is_closed,
            closed_at=period.closed_at,
            closed_by_id=period.closed_by_id,
        )

    def _load(self, period_id: UUID, lock: bool = False) -> FiscalPeriod:
        stmt = select(FiscalPeriod).where(FiscalPeriod.id == period_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        period = self.session.execute(stmt).scalar_one_or_none()
        if period is None:
            raise PeriodNotFoundError(str(period_id))
        return period

    def create_period(
        self,
        period_code: str,
        name: str,
        start_date: date,
        end_date: date,
        actor_id: UUID,
    ) -> FiscalPeriodInfo:
        """
        Create a new open fiscal period.

        Raises:
            ValueError: If start_date > end_date.
            PeriodOverlapError: If the range overlaps an existing period.
        """
        if start_date > end_date:
            raise ValueError(
                f"start_date ({start_date}) cannot be after end_date ({end_date})"
            )

        # Two ranges overlap when start1 <= end2 and start2 <= end1
        overlapping = self.session.execute(
            select(FiscalPeriod)
            .where(
                FiscalPeriod.start_date <= end_date,
                FiscalPeriod.end_date >= start_date,
            )
            .limit(1)
        ).scalar_one_or_none()
        if overlapping is not None:
            raise PeriodOverlapError(period_code, overlapping.period_code)

        period = FiscalPeriod(
            period_code=period_code,
            name=name,
            start_date=start_date,
            end_date=end_date,
            is_closed=False,
            created_by_id=actor_id,
        )
        self.session.add(period)
        self.session.flush()

        logger.info(
            "period_created",
            extra={
                "period_code": period_code,
                "start_date": str(start_date),
                "end_date": str(end_date),
            },
        )
        return self._to_dto(period)

    def close_period(self, period_id: UUID, actor_id: UUID) -> FiscalPeriodInfo:
        """
        Close a fiscal period.  Later writes dated inside it are rejected.

        Raises:
            PeriodNotFoundError: Unknown period.
            InvalidTransitionError: Period already closed.
        """
        period = self._load(period_id, lock=True)
        if period.is_closed:
            raise InvalidTransitionError("FiscalPeriod", str(period.id), "closed", "closed")

        period.close(actor_id, self._clock.now())
        self.session.flush()

        logger.info("period_closed", extra={"period_code": period.period_code})
        return self._to_dto(period)

    def get_period(self, period_id: UUID) -> FiscalPeriodInfo:
        """Raises PeriodNotFoundError when the id is unknown."""
        return self._to_dto(self._load(period_id))

    def get_period_for_date(self, check_date: date) -> FiscalPeriodInfo:
        """Period whose range covers ``check_date``; PeriodNotFoundError if none."""
        period = self.session.execute(
            select(FiscalPeriod).where(
                FiscalPeriod.start_date <= check_date,
                FiscalPeriod.end_date >= check_date,
            )
        ).scalar_one_or_none()
        if period is None:
            raise PeriodNotFoundError(str(check_date))
        return self._to_dto(period)

    def get_open_periods(self) -> list[FiscalPeriodInfo]:
        """Open periods, newest first."""
        periods = self.session.execute(
            select(FiscalPeriod)
            .where(FiscalPeriod.is_closed.is_(False))
            .order_by(FiscalPeriod.start_date.desc())
        ).scalars().all()
        return [self._to_dto(p) for p in periods]

    def validate_posting(self, period_id: UUID, entry_date: date) -> FiscalPeriodInfo:
        """
        Check that an entry dated ``entry_date`` may be written into the period.

        Raises:
            PeriodNotFoundError: Unknown period.
            ClosedPeriodError: Period is closed.
            DateOutsidePeriodError: Date outside the period range.
        """
        period = self._load(period_id)

        if period.is_closed:
            logger.warning(
                "posting_to_closed_period",
                extra={"period_code": period.period_code, "entry_date": str(entry_date)},
            )
            raise ClosedPeriodError(period.period_code, str(entry_date))

        if not period.contains_date(entry_date):
            logger.warning(
                "posting_date_outside_period",
                extra={"period_code": period.period_code, "entry_date": str(entry_date)},
            )
            raise DateOutsidePeriodError(
                period.period_code,
                str(entry_date),
                str(period.start_date),
                str(period.end_date),
            )

        return self._to_dto(period)
