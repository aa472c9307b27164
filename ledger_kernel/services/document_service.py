"""
DocumentService -- legal document lifecycle (create, approve, lookup).

Responsibility:
    Registers legal source documents with their detail lines and moves
    them from DRAFT to APPROVED.  Cancellation lives in
    DocumentVoucherBridge because it cascades to the generated vouchers.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - document_number is unique per document type.
    - Status changes follow DOCUMENT_TRANSITIONS and each one appends a
      LegalDocumentStatusHistory row.
    - document_amount is the sum of the detail amounts; total_amount adds
      the tax amount.

Failure modes:
    - DocumentTypeNotFoundError, PeriodNotFoundError, DocumentNotFoundError.
    - DuplicateDocumentNumberError: number reused within a type.
    - DocumentNotReadyError: approving a document without details.
    - InvalidTransitionError: approving a non-draft document.
"""

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.db.types import ZERO, to_money, validate_currency
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import DocumentDetailSpec
from ledger_kernel.exceptions import (
    DocumentNotFoundError,
    DocumentNotReadyError,
    DocumentTypeNotFoundError,
    DuplicateDocumentNumberError,
    PeriodNotFoundError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.fiscal_period import FiscalPeriod
from ledger_kernel.models.legal_document import (
    DocumentStatus,
    DocumentType,
    LegalDocument,
    LegalDocumentDetail,
    LegalDocumentStatusHistory,
)
from ledger_kernel.services.base import BaseService

logger = get_logger("services.document")


class DocumentService(BaseService[LegalDocument]):
    """
    Service for legal documents.

    Contract:
        Methods return the flushed ``LegalDocument`` ORM instance; the
        orchestrator turns it into a DTO.

    Non-goals:
        - Does NOT generate vouchers or cancel documents (see
          DocumentVoucherBridge).
        - Does NOT compute taxes; tax_amount is supplied by the caller.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def get(self, document_id: UUID, lock: bool = False) -> LegalDocument:
        """Raises DocumentNotFoundError when the id is unknown."""
        stmt = select(LegalDocument).where(LegalDocument.id == document_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        document = self.session.execute(stmt).scalar_one_or_none()
        if document is None:
            raise DocumentNotFoundError(str(document_id))
        return document

    def create_document(
        self,
        document_type_id: UUID,
        document_number: str,
        document_date: date,
        fiscal_period_id: UUID,
        actor_id: UUID,
        details: Sequence[DocumentDetailSpec] = (),
        currency: str = "USD",
        exchange_rate: Decimal = Decimal("1"),
        tax_amount: Decimal | int | str = ZERO,
        third_party_id: UUID | None = None,
        reference: str | None = None,
        description: str | None = None,
    ) -> LegalDocument:
        """Register a DRAFT document with its details."""
        document_type = self.session.get(DocumentType, document_type_id)
        if document_type is None:
            raise DocumentTypeNotFoundError(str(document_type_id))
        if self.session.get(FiscalPeriod, fiscal_period_id) is None:
            raise PeriodNotFoundError(str(fiscal_period_id))

        currency = validate_currency(currency)
        exchange_rate = Decimal(str(exchange_rate))
        if exchange_rate <= 0:
            raise ValidationError(f"Exchange rate must be positive, got {exchange_rate}")

        existing = self.session.execute(
            select(LegalDocument.id).where(
                LegalDocument.document_type_id == document_type_id,
                LegalDocument.document_number == document_number,
            )
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateDocumentNumberError(document_number, str(document_type_id))

        document_amount = sum((d.amount for d in details), ZERO)
        tax = to_money(tax_amount)

        document = LegalDocument(
            document_type_id=document_type_id,
            document_number=document_number,
            document_date=document_date,
            status=DocumentStatus.DRAFT.value,
            document_amount=document_amount,
            tax_amount=tax,
            total_amount=document_amount + tax,
            currency=currency,
            exchange_rate=exchange_rate,
            fiscal_period_id=fiscal_period_id,
            third_party_id=third_party_id,
            reference=reference,
            description=description,
            created_by_id=actor_id,
        )
        document.details = [
            LegalDocumentDetail(
                line_number=position + 1,
                description=detail.description,
                account_id=detail.account_id,
                amount=detail.amount,
                created_by_id=actor_id,
            )
            for position, detail in enumerate(details)
        ]
        self.session.add(document)
        self.record_status_change(document, None, DocumentStatus.DRAFT, actor_id)
        self.session.flush()

        logger.info(
            "document_created",
            extra={
                "document_id": str(document.id),
                "document_type": document_type.code,
                "document_number": document_number,
                "total_amount": str(document.total_amount),
            },
        )
        return document

    def approve(self, document_id: UUID, actor_id: UUID) -> LegalDocument:
        """DRAFT -> APPROVED.  A document needs at least one detail line."""
        document = self.get(document_id, lock=True)
        document.validate_transition(DocumentStatus.APPROVED)
        if not document.details:
            raise DocumentNotReadyError(str(document.id), "document has no detail lines")

        document.status = DocumentStatus.APPROVED.value
        document.approved_at = self._clock.now()
        document.approved_by_id = actor_id
        document.updated_by_id = actor_id
        self.record_status_change(document, DocumentStatus.DRAFT, DocumentStatus.APPROVED, actor_id)
        self.session.flush()

        logger.info(
            "document_approved",
            extra={"document_id": str(document.id), "document_number": document.document_number},
        )
        return document

    def record_status_change(
        self,
        document: LegalDocument,
        from_status: DocumentStatus | None,
        to_status: DocumentStatus,
        actor_id: UUID,
        reason: str | None = None,
    ) -> LegalDocumentStatusHistory:
        """Append a status history row to ``document`` (flushed with it)."""
        row = LegalDocumentStatusHistory(
            from_status=from_status.value if from_status else None,
            to_status=to_status.value,
            reason=reason,
            changed_by_id=actor_id,
            changed_at=self._clock.now(),
            created_by_id=actor_id,
        )
        document.status_history.append(row)
        return row
