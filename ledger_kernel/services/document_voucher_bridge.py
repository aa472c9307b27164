"""
DocumentVoucherBridge -- legal documents to journal vouchers and back.

Responsibility:
    Generates the journal entry (voucher) of a given type for an approved
    legal document, and cancels a document together with the draft
    vouchers it produced.

Architecture position:
    Kernel > Services -- imperative shell.
    Consumes DocumentService (document rows, status history) and
    JournalEntryStore (all journal writes).

Invariants enforced:
    - One voucher per (document type, document, voucher type); a second
      request is a DuplicateVoucherError carrying the existing entry id.
    - Vouchers are generated only from APPROVED documents.
    - A document with any POSTED voucher cannot be cancelled.  The document
      row and its voucher rows are locked before the check, so an entry
      cannot be posted between the check and the cancellation.
    - Cancellation is all-or-nothing: draft vouchers go to CANCELLED in the
      same unit of work as the document.

Failure modes:
    - DocumentNotFoundError, VoucherTypeNotFoundError.
    - InvalidTransitionError: document not approved / already cancelled.
    - DuplicateVoucherError, PostedEntriesExistError (ConflictError).
    - MissingReasonError: cancellation without a reason.
    - DocumentNotReadyError: the line builder cannot derive lines.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import EntryHeader, LineSpec
from ledger_kernel.exceptions import (
    DocumentNotReadyError,
    DuplicateVoucherError,
    InvalidTransitionError,
    MissingReasonError,
    PostedEntriesExistError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.journal import EntrySource, JournalEntry, JournalEntryStatus
from ledger_kernel.models.legal_document import DocumentStatus, LegalDocument
from ledger_kernel.services.document_service import DocumentService
from ledger_kernel.services.journal_entry_store import JournalEntryStore

logger = get_logger("services.document_voucher")


@dataclass(frozen=True)
class VoucherDraft:
    """Lines a builder derived from a document, and whether to post them at once."""

    lines: tuple[LineSpec, ...]
    post_immediately: bool = False


LineBuilder = Callable[[LegalDocument], VoucherDraft]


def counter_account_builder(document: LegalDocument) -> VoucherDraft:
    """
    Default builder.

    Books each detail amount on its account, on the document type's
    ``detail_side`` (debit by default), and balances the total on the
    type's counter-account on the opposite side.  A purchase invoice thus
    debits expenses and credits payables; a sales invoice configured with
    ``detail_side="credit"`` credits revenue and debits receivables.
    """
    document_type = document.document_type
    details_on_credit = document_type.detail_side == "credit"
    counter_account_id = document_type.counter_account_id
    if counter_account_id is None:
        raise DocumentNotReadyError(
            str(document.id),
            f"document type {document.document_type.code} has no counter account",
        )

    lines: list[LineSpec] = []
    total = ZERO
    for detail in document.details:
        if detail.account_id is None:
            raise DocumentNotReadyError(
                str(document.id), f"detail {detail.line_number} has no account"
            )
        if detail.amount <= 0:
            continue
        side = LineSpec.credit if details_on_credit else LineSpec.debit
        lines.append(side(detail.account_id, detail.amount, detail.description))
        total += detail.amount

    if not lines:
        raise DocumentNotReadyError(str(document.id), "document has no positive detail amounts")

    counter_side = LineSpec.debit if details_on_credit else LineSpec.credit
    lines.append(counter_side(counter_account_id, total, f"Documento {document.document_number}"))
    return VoucherDraft(lines=tuple(lines))


class LineBuilderRegistry:
    """
    Line builders keyed by document type code.

    Codes without a registered builder fall back to the default builder.
    """

    def __init__(self, default: LineBuilder = counter_account_builder):
        self._builders: dict[str, LineBuilder] = {}
        self._default = default

    def register(self, document_type_code: str, builder: LineBuilder) -> None:
        self._builders[document_type_code] = builder

    def resolve(self, document_type_code: str) -> LineBuilder:
        return self._builders.get(document_type_code, self._default)


class DocumentVoucherBridge:
    """
    Links legal documents to the vouchers they generate.

    Contract:
        ``generate_voucher`` returns the new journal entry (DRAFT, or POSTED
        when the builder asks for it).  ``cancel_document`` returns the
        cancelled document.

    Non-goals:
        - Does NOT commit.
        - Does NOT reverse posted vouchers on cancellation; posted vouchers
          block it instead.
    """

    def __init__(
        self,
        session: Session,
        entry_store: JournalEntryStore,
        clock: Clock | None = None,
        line_builders: LineBuilderRegistry | None = None,
    ):
        self.session = session
        self._clock = clock or SystemClock()
        self._entries = entry_store
        self._documents = DocumentService(session, self._clock)
        self._builders = line_builders or LineBuilderRegistry()

    def generate_voucher(
        self,
        document_id: UUID,
        voucher_type_id: UUID | None,
        actor_id: UUID,
    ) -> JournalEntry:
        """
        Create the voucher of ``voucher_type_id`` for an approved document.

        ``voucher_type_id`` may be None, in which case the document type's
        default voucher type is used.
        """
        document = self._documents.get(document_id, lock=True)
        if document.status_enum != DocumentStatus.APPROVED:
            raise InvalidTransitionError(
                "LegalDocument", str(document.id), document.status_enum.value, "voucher_generated"
            )

        document_type = document.document_type
        voucher_type_id = voucher_type_id or document_type.default_voucher_type_id
        if voucher_type_id is None:
            raise ValidationError(
                f"Document type {document_type.code} has no default voucher type"
            )

        existing_id = self.session.execute(
            select(JournalEntry.id).where(
                JournalEntry.document_type_id == document.document_type_id,
                JournalEntry.document_id == document.id,
                JournalEntry.voucher_type_id == voucher_type_id,
            )
        ).scalar_one_or_none()
        if existing_id is not None:
            logger.warning(
                "duplicate_voucher_rejected",
                extra={"document_id": str(document.id), "existing_entry_id": str(existing_id)},
            )
            raise DuplicateVoucherError(str(document.id), str(voucher_type_id), str(existing_id))

        draft = self._builders.resolve(document_type.code)(document)

        header = EntryHeader(
            voucher_type_id=voucher_type_id,
            entry_date=document.document_date,
            fiscal_period_id=document.fiscal_period_id,
            reference=document.reference,
            description=(
                f"Comprobante generado a partir del documento "
                f"{document_type.name} {document.document_number}"
            ),
            currency=document.currency,
            exchange_rate=document.exchange_rate,
            third_party_id=document.third_party_id,
            document_type_id=document.document_type_id,
            document_id=document.id,
        )
        entry = self._entries.create(header, draft.lines, actor_id, source_kind=EntrySource.DOCUMENT)
        if draft.post_immediately:
            entry = self._entries.post(entry.id, actor_id)

        logger.info(
            "voucher_generated",
            extra={
                "document_id": str(document.id),
                "entry_id": str(entry.id),
                "entry_number": entry.entry_number,
                "posted": draft.post_immediately,
            },
        )
        return entry

    def cancel_document(self, document_id: UUID, reason: str, actor_id: UUID) -> LegalDocument:
        """
        Cancel a document and every draft voucher generated from it.

        Raises:
            MissingReasonError: Blank reason.
            InvalidTransitionError: Document already cancelled.
            PostedEntriesExistError: A linked voucher is POSTED.
        """
        if not reason or not reason.strip():
            raise MissingReasonError("cancel a document")

        document = self._documents.get(document_id, lock=True)
        previous = document.status_enum
        document.validate_transition(DocumentStatus.CANCELLED)

        linked = self.session.execute(
            select(JournalEntry)
            .where(
                JournalEntry.document_type_id == document.document_type_id,
                JournalEntry.document_id == document.id,
            )
            .order_by(JournalEntry.entry_number)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()

        blocking = [str(entry.id) for entry in linked if entry.is_posted]
        if blocking:
            logger.warning(
                "document_cancel_blocked",
                extra={"document_id": str(document.id), "blocking_entry_ids": blocking},
            )
            raise PostedEntriesExistError(str(document.id), blocking)

        note = f"Anulación automática por cancelación del documento {document.document_number}"
        cancelled_entries = []
        for entry in linked:
            if entry.status_enum == JournalEntryStatus.DRAFT:
                self._entries.cancel(entry.id, actor_id, note)
                cancelled_entries.append(str(entry.id))

        document.status = DocumentStatus.CANCELLED.value
        document.cancelled_at = self._clock.now()
        document.cancelled_by_id = actor_id
        document.cancellation_reason = reason
        document.updated_by_id = actor_id
        self._documents.record_status_change(
            document, previous, DocumentStatus.CANCELLED, actor_id, reason
        )
        self.session.flush()

        logger.info(
            "document_cancelled",
            extra={
                "document_id": str(document.id),
                "document_number": document.document_number,
                "cancelled_entry_ids": cancelled_entries,
            },
        )
        return document
