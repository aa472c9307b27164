"""
Module: ledger_kernel.models.legal_document
Responsibility: ORM persistence for legal source documents (invoices, notes,
    receipts) that drive generated vouchers, their detail lines and their
    status history.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - document_number is unique per document type.
    - Status changes follow DOCUMENT_TRANSITIONS (draft -> approved ->
      cancelled, or draft -> cancelled).
    - Every status change leaves a LegalDocumentStatusHistory row.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.db.types import ZERO
from ledger_kernel.exceptions import InvalidTransitionError


class DocumentStatus(str, Enum):
    DRAFT = "draft"
    APPROVED = "approved"
    CANCELLED = "cancelled"


DOCUMENT_TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.DRAFT: frozenset({DocumentStatus.APPROVED, DocumentStatus.CANCELLED}),
    DocumentStatus.APPROVED: frozenset({DocumentStatus.CANCELLED}),
    DocumentStatus.CANCELLED: frozenset(),
}


class DocumentType(TrackedBase):
    """
    Kind of legal document (sales invoice, credit note, ...).

    ``code`` keys the voucher line builder used when generating vouchers;
    ``counter_account_id`` and ``detail_side`` drive the default builder.
    """

    __tablename__ = "document_types"

    __table_args__ = (UniqueConstraint("code", name="uq_document_type_code"),)

    code: Mapped[str] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    default_voucher_type_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("voucher_types.id"), nullable=True
    )

    counter_account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=True
    )

    # Side the default voucher builder books detail amounts on; the counter
    # account takes the other side
    detail_side: Mapped[str] = mapped_column(String(6), default="debit", nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    @validates("detail_side")
    def _check_detail_side(self, key, value):
        if value not in ("debit", "credit"):
            raise ValueError(f"detail_side must be debit or credit, got {value!r}")
        return value

    def __repr__(self) -> str:
        return f"<DocumentType {self.code}>"


class LegalDocument(TrackedBase):
    """
    Legal source document.

    Contract:
        A document drives zero or more generated journal entries, at most one
        per voucher type.  It cannot be cancelled while any of them is
        posted (enforced by DocumentVoucherBridge).
    """

    __tablename__ = "legal_documents"

    __table_args__ = (
        UniqueConstraint("document_type_id", "document_number", name="uq_document_type_number"),
        Index("idx_document_status", "status"),
        Index("idx_document_date", "document_date"),
    )

    document_type_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("document_types.id"), nullable=False
    )

    document_number: Mapped[str] = mapped_column(String(50), nullable=False)

    document_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[DocumentStatus] = mapped_column(
        String(10), default=DocumentStatus.DRAFT, nullable=False
    )

    document_amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False, default=ZERO)

    tax_amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False, default=ZERO)

    total_amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False, default=ZERO)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    exchange_rate: Mapped[Decimal] = mapped_column(
        Numeric(20, 6), nullable=False, default=Decimal("1")
    )

    fiscal_period_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("fiscal_periods.id"), nullable=False
    )

    third_party_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    document_type: Mapped["DocumentType"] = relationship(lazy="joined")

    details: Mapped[list["LegalDocumentDetail"]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="LegalDocumentDetail.line_number",
        lazy="selectin",
    )

    status_history: Mapped[list["LegalDocumentStatusHistory"]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="LegalDocumentStatusHistory.changed_at",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<LegalDocument {self.document_number} status={self.status_enum.value}>"

    @property
    def status_enum(self) -> DocumentStatus:
        return DocumentStatus(self.status)

    @property
    def is_approved(self) -> bool:
        return self.status_enum == DocumentStatus.APPROVED

    @property
    def is_cancelled(self) -> bool:
        return self.status_enum == DocumentStatus.CANCELLED

    def validate_transition(self, target: DocumentStatus) -> None:
        allowed = DOCUMENT_TRANSITIONS.get(self.status_enum, frozenset())
        if target not in allowed:
            raise InvalidTransitionError(
                "LegalDocument", str(self.id), self.status_enum.value, target.value
            )


class LegalDocumentDetail(TrackedBase):
    """Detail line of a legal document; maps an amount to an account."""

    __tablename__ = "legal_document_details"

    __table_args__ = (
        UniqueConstraint("document_id", "line_number", name="uq_document_detail_line"),
    )

    document_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("legal_documents.id"), nullable=False
    )

    line_number: Mapped[int] = mapped_column(Integer, nullable=False)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=True
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False, default=ZERO)

    document: Mapped["LegalDocument"] = relationship(back_populates="details")


class LegalDocumentStatusHistory(TrackedBase):
    """Append-only record of a document status change."""

    __tablename__ = "legal_document_status_history"

    document_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("legal_documents.id"), nullable=False
    )

    from_status: Mapped[str | None] = mapped_column(String(10), nullable=True)

    to_status: Mapped[str] = mapped_column(String(10), nullable=False)

    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    changed_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    document: Mapped["LegalDocument"] = relationship(back_populates="status_history")
