"""
SequenceAllocator -- voucher numbering via locked counter rows.

Responsibility:
    Issues the next entry number for a voucher type.  The integer comes
    from a dedicated counter row that is locked for every allocation; the
    rendering into ``JE-2024-00001`` is a pure function of the voucher
    type's pattern (domain/numbering.py).

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by JournalEntryStore when a new entry has no number.

Invariants enforced:
    - Monotonic and collision-free: ``SELECT ... FOR UPDATE`` on PostgreSQL,
      ``BEGIN IMMEDIATE`` writer serialization on SQLite.  The aggregate
      max-plus-one pattern is never used and no process-local counter exists.
    - Transactional: the increment is only visible after the caller's
      transaction commits.  A rolled-back caller gives its number back.

Failure modes:
    - VoucherTypeNotFoundError: unknown voucher type id.
    - ValidationError: voucher type is inactive.
    - IntegrityError on a concurrent first use of a counter is absorbed by
      a savepoint rollback and a locked re-read.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.numbering import counter_name, format_entry_number
from ledger_kernel.exceptions import ValidationError, VoucherTypeNotFoundError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.voucher_type import SequenceCounter, VoucherType
from ledger_kernel.services.base import BaseService

logger = get_logger("services.sequence")


class SequenceAllocator(BaseService[SequenceCounter]):
    """
    Allocates voucher numbers.

    Contract:
        ``next_number(voucher_type_id, entry_date)`` returns a number no
        other committed entry of the same type (and year, for year-scoped
        patterns) holds.

    Guarantees:
        - Counter scope is ``voucher:{code}`` or ``voucher:{code}:{year}``.
        - Under normal operation no value is skipped.

    Non-goals:
        - Does NOT check entry_number uniqueness for caller-supplied numbers
          (JournalEntryStore does).
        - Does NOT commit.

    Usage:
        with session.begin():
            number = allocator.next_number(voucher_type.id, date(2024, 3, 1))
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def counter_name(self, voucher_type: VoucherType, entry_date: date | None) -> str:
        return counter_name(voucher_type.code, voucher_type.number_pattern, entry_date)

    def next_number(self, voucher_type_id: UUID, entry_date: date | None = None) -> str:
        """
        Allocate and render the next number for a voucher type.

        Preconditions:
            - The caller is inside an active transaction.
        Postconditions:
            - The counter row stays locked until the transaction ends.

        Args:
            voucher_type_id: Voucher type to number.
            entry_date: Accounting date; selects the yearly counter for
                year-scoped patterns.  Defaults to today.

        Raises:
            VoucherTypeNotFoundError: Unknown voucher type.
            ValidationError: Voucher type is inactive.
        """
        voucher_type = self.session.get(VoucherType, voucher_type_id)
        if voucher_type is None:
            raise VoucherTypeNotFoundError(str(voucher_type_id))
        if not voucher_type.is_active:
            raise ValidationError(f"Voucher type {voucher_type.code} is inactive")

        entry_date = entry_date or self._clock.today()
        value = self.next_value(self.counter_name(voucher_type, entry_date))
        number = format_entry_number(
            voucher_type.number_pattern,
            voucher_type.prefix,
            value,
            entry_date=entry_date,
            code=voucher_type.code,
        )
        logger.info(
            "entry_number_allocated",
            extra={"voucher_type": voucher_type.code, "entry_number": number},
        )
        return number

    def _lock_counter(self, sequence_name: str) -> SequenceCounter | None:
        # populate_existing: a counter cached by this session is stale once
        # another transaction has committed past it.
        return self.session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Lock the named counter, increment it and return the new value.

        The first use of a name creates the row inside a savepoint; when a
        concurrent transaction wins that race the savepoint is rolled back
        and the now-existing row is locked and incremented instead.

        Returns:
            The next value (always > 0).
        """
        counter = self._lock_counter(sequence_name)

        if counter is None:
            savepoint = self.session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self.session.add(counter)
                self.session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._lock_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self.session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a counter without incrementing; None if unused."""
        return self.session.execute(
            select(SequenceCounter.current_value).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
