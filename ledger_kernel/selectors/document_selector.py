"""
Module: ledger_kernel.selectors.document_selector
Responsibility: Read-only view of legal documents, their details, status
    history and the vouchers generated from them.
Architecture position: Kernel > Selectors.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.models.journal import JournalEntry
from ledger_kernel.models.legal_document import DocumentStatus, LegalDocument
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class DocumentDetailDTO:
    line_number: int
    account_id: UUID | None
    description: str | None
    amount: Decimal


@dataclass(frozen=True)
class StatusChangeDTO:
    from_status: str | None
    to_status: str
    reason: str | None
    changed_by_id: UUID
    changed_at: datetime


@dataclass(frozen=True)
class LegalDocumentDTO:
    id: UUID
    document_type_id: UUID
    document_type_code: str
    document_number: str
    document_date: date
    status: DocumentStatus
    document_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    currency: str
    fiscal_period_id: UUID
    third_party_id: UUID | None
    reference: str | None
    cancellation_reason: str | None
    details: tuple[DocumentDetailDTO, ...]
    status_history: tuple[StatusChangeDTO, ...]
    entry_ids: tuple[UUID, ...] = ()


def document_to_dto(document: LegalDocument, entry_ids: tuple[UUID, ...] = ()) -> LegalDocumentDTO:
    return LegalDocumentDTO(
        id=document.id,
        document_type_id=document.document_type_id,
        document_type_code=document.document_type.code,
        document_number=document.document_number,
        document_date=document.document_date,
        status=document.status_enum,
        document_amount=document.document_amount,
        tax_amount=document.tax_amount,
        total_amount=document.total_amount,
        currency=document.currency,
        fiscal_period_id=document.fiscal_period_id,
        third_party_id=document.third_party_id,
        reference=document.reference,
        cancellation_reason=document.cancellation_reason,
        details=tuple(
            DocumentDetailDTO(
                line_number=d.line_number,
                account_id=d.account_id,
                description=d.description,
                amount=d.amount,
            )
            for d in document.details
        ),
        status_history=tuple(
            StatusChangeDTO(
                from_status=h.from_status,
                to_status=h.to_status,
                reason=h.reason,
                changed_by_id=h.changed_by_id,
                changed_at=h.changed_at,
            )
            for h in document.status_history
        ),
        entry_ids=entry_ids,
    )


class DocumentSelector(BaseSelector[LegalDocument]):
    """Legal document lookups."""

    def linked_entry_ids(self, document: LegalDocument) -> tuple[UUID, ...]:
        """Ids of the vouchers generated from ``document``, by entry number."""
        return tuple(
            self.session.execute(
                select(JournalEntry.id)
                .where(
                    JournalEntry.document_type_id == document.document_type_id,
                    JournalEntry.document_id == document.id,
                )
                .order_by(JournalEntry.entry_number)
            ).scalars()
        )

    def to_dto(self, document: LegalDocument) -> LegalDocumentDTO:
        return document_to_dto(document, self.linked_entry_ids(document))

    def get_document(self, document_id: UUID) -> LegalDocumentDTO | None:
        document = self.session.get(LegalDocument, document_id)
        if document is None:
            return None
        return self.to_dto(document)
