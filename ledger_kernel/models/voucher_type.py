"""
Module: ledger_kernel.models.voucher_type
Responsibility: Voucher (comprobante) types and the locked counters that
    number them.
Architecture position: Kernel > Models.  May import from db/ and domain/
    numbering only.

Invariants enforced:
    - VoucherType.code is unique; number_pattern only uses known placeholders.
    - SequenceCounter.name is unique; the row is the sole source of truth for
      the next number.  The aggregate-max-plus-one pattern is never used.
"""

from sqlalchemy import BigInteger, Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates

from ledger_kernel.db.base import Base, TrackedBase
from ledger_kernel.domain.numbering import DEFAULT_NUMBER_PATTERN, validate_pattern


class VoucherType(TrackedBase):
    """
    Kind of journal voucher: general journal, cash receipt, disbursement...

    Contract:
        ``prefix`` and ``number_pattern`` fully determine how counter values
        render as entry numbers (see domain/numbering.py).
    """

    __tablename__ = "voucher_types"

    __table_args__ = (UniqueConstraint("code", name="uq_voucher_type_code"),)

    # e.g. "JE", "RC", "CE"
    code: Mapped[str] = mapped_column(String(10), nullable=False)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    prefix: Mapped[str] = mapped_column(String(10), nullable=False)

    number_pattern: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default=DEFAULT_NUMBER_PATTERN,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    @validates("number_pattern")
    def _check_pattern(self, key, value):
        return validate_pattern(value)

    def __repr__(self) -> str:
        return f"<VoucherType {self.code}>"


class SequenceCounter(Base):
    """
    Named counter row, locked for every allocation.

    One row per voucher type (per year for year-scoped patterns), e.g.
    ``voucher:JE:2024``.
    """

    __tablename__ = "sequence_counters"

    __table_args__ = (UniqueConstraint("name", name="uq_sequence_counter_name"),)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
