"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
CATEGORIES
===============================================================================

Every failure the kernel reports belongs to exactly one of four categories.
Callers catch the category (or a specific subclass) by type, never by
parsing messages:

    LedgerKernelError (base)
    |
    +-- ValidationError        bad input: reported, never retried
    |   +-- EmptyEntryError
    |   +-- InvalidLineError
    |   +-- UnbalancedEntryError
    |   +-- AccountNotPostableError
    |   +-- ClosedPeriodError
    |   +-- DateOutsidePeriodError
    |   +-- InvalidCurrencyError
    |   +-- MissingReasonError
    |   +-- InvalidFilterError
    |   +-- DocumentNotReadyError
    |
    +-- NotFoundError          missing entry/account/period/document
    |   +-- EntryNotFoundError
    |   +-- AccountNotFoundError
    |   +-- PeriodNotFoundError
    |   +-- VoucherTypeNotFoundError
    |   +-- DocumentNotFoundError
    |   +-- DocumentTypeNotFoundError
    |
    +-- InvalidStateError      stale client view of an entity's lifecycle
    |   +-- InvalidTransitionError
    |   +-- ImmutabilityViolationError
    |
    +-- ConflictError          clashes with existing data; carries the blocker
        +-- DuplicateVoucherError
        +-- PostedEntriesExistError
        +-- DuplicateEntryNumberError
        +-- PeriodOverlapError
        +-- DuplicateDocumentNumberError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                      | When Raised
------------|---------------------------|--------------------------------------
Validation  | EMPTY_ENTRY               | Entry has no lines
            | INVALID_LINE              | Missing account, both/neither side set
            | UNBALANCED_ENTRY          | |debits - credits| >= 0.01
            | ACCOUNT_NOT_POSTABLE      | Account inactive or not a leaf
            | CLOSED_PERIOD             | Fiscal period is closed
            | DATE_OUTSIDE_PERIOD       | Entry date outside period range
            | INVALID_CURRENCY          | Not an ISO 4217 code
            | MISSING_REASON            | Reversal/cancellation without reason
            | INVALID_FILTER            | Bad page, limit or date range
            | DOCUMENT_NOT_READY        | Approving a document with no details
------------|---------------------------|--------------------------------------
NotFound    | ENTRY_NOT_FOUND           | Journal entry id unknown
            | ACCOUNT_NOT_FOUND         | Account id unknown
            | PERIOD_NOT_FOUND          | Fiscal period id unknown
            | VOUCHER_TYPE_NOT_FOUND    | Voucher type id unknown
            | DOCUMENT_NOT_FOUND        | Legal document id unknown
            | DOCUMENT_TYPE_NOT_FOUND   | Document type id unknown
------------|---------------------------|--------------------------------------
State       | INVALID_TRANSITION        | Transition not in the state table
            | IMMUTABILITY_VIOLATION    | ORM write to a non-draft entry/line
------------|---------------------------|--------------------------------------
Conflict    | DUPLICATE_VOUCHER         | Document already has that voucher
            | POSTED_ENTRIES_EXIST      | Cancelling a document with posted vouchers
            | DUPLICATE_ENTRY_NUMBER    | Supplied number already used for type
            | PERIOD_OVERLAP            | New period overlaps an existing one
            | DUPLICATE_DOCUMENT_NUMBER | Document number reused for its type

===============================================================================
HANDLING PATTERN
===============================================================================

    try:
        orchestrator.cancel_document(document_id, reason, actor_id)
    except PostedEntriesExistError as e:
        # Structured data tells the caller which entries block the cancel
        return {"error": e.code, "blocking_entries": e.blocking_entry_ids}
    except ValidationError as e:
        return {"error": e.code, "message": str(e)}

The `code` attribute is a class attribute so that it is available without
instantiation (API documentation, static analysis).  All context is stored
as attributes because exceptions are logged as structured JSON.
"""

from decimal import Decimal


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# =============================================================================
# Validation
# =============================================================================


class ValidationError(LedgerKernelError):
    """Input violates a business rule; reported to the caller, never retried."""

    code: str = "VALIDATION_ERROR"


class EmptyEntryError(ValidationError):
    """Journal entry has no lines."""

    code: str = "EMPTY_ENTRY"

    def __init__(self):
        super().__init__("Journal entry must have at least one line")


class InvalidLineError(ValidationError):
    """A single journal line is malformed."""

    code: str = "INVALID_LINE"

    def __init__(self, line_number: int, reason: str):
        self.line_number = line_number
        self.reason = reason
        super().__init__(f"Line {line_number}: {reason}")


class UnbalancedEntryError(ValidationError):
    """Journal entry debits do not equal credits within tolerance."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, total_debit: Decimal, total_credit: Decimal):
        self.total_debit = total_debit
        self.total_credit = total_credit
        self.difference = abs(total_debit - total_credit)
        super().__init__(
            f"Unbalanced entry: debits={total_debit}, credits={total_credit}, "
            f"difference={self.difference}"
        )


class AccountNotPostableError(ValidationError):
    """Account exists but cannot receive journal lines."""

    code: str = "ACCOUNT_NOT_POSTABLE"

    def __init__(self, account_id: str, account_code: str, reason: str):
        self.account_id = account_id
        self.account_code = account_code
        self.reason = reason
        super().__init__(f"Account {account_code} cannot receive entries: {reason}")


class ClosedPeriodError(ValidationError):
    """Attempted to write into a closed fiscal period."""

    code: str = "CLOSED_PERIOD"

    def __init__(self, period_code: str, entry_date: str):
        self.period_code = period_code
        self.entry_date = entry_date
        super().__init__(
            f"Cannot post to closed period {period_code} (entry_date: {entry_date})"
        )


class DateOutsidePeriodError(ValidationError):
    """Entry date does not fall within the referenced fiscal period."""

    code: str = "DATE_OUTSIDE_PERIOD"

    def __init__(self, period_code: str, entry_date: str, start_date: str, end_date: str):
        self.period_code = period_code
        self.entry_date = entry_date
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            f"Date {entry_date} is outside period {period_code} "
            f"[{start_date}, {end_date}]"
        )


class InvalidCurrencyError(ValidationError):
    """Currency code is not a recognised ISO 4217 code."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: '{currency}'")


class MissingReasonError(ValidationError):
    """A reversal or cancellation was requested without a reason."""

    code: str = "MISSING_REASON"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"A reason is required to {operation}")


class InvalidFilterError(ValidationError):
    """Report filter or pagination argument is out of range."""

    code: str = "INVALID_FILTER"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid filter '{field}': {reason}")


class DocumentNotReadyError(ValidationError):
    """Legal document is missing data required for the requested step."""

    code: str = "DOCUMENT_NOT_READY"

    def __init__(self, document_id: str, reason: str):
        self.document_id = document_id
        self.reason = reason
        super().__init__(f"Document {document_id} is not ready: {reason}")


# =============================================================================
# Not found
# =============================================================================


class NotFoundError(LedgerKernelError):
    """A referenced entity does not exist."""

    code: str = "NOT_FOUND"
    entity_type: str = "entity"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class EntryNotFoundError(NotFoundError):
    code: str = "ENTRY_NOT_FOUND"
    entity_type: str = "JournalEntry"


class AccountNotFoundError(NotFoundError):
    code: str = "ACCOUNT_NOT_FOUND"
    entity_type: str = "Account"


class PeriodNotFoundError(NotFoundError):
    code: str = "PERIOD_NOT_FOUND"
    entity_type: str = "FiscalPeriod"


class VoucherTypeNotFoundError(NotFoundError):
    code: str = "VOUCHER_TYPE_NOT_FOUND"
    entity_type: str = "VoucherType"


class DocumentNotFoundError(NotFoundError):
    code: str = "DOCUMENT_NOT_FOUND"
    entity_type: str = "LegalDocument"


class DocumentTypeNotFoundError(NotFoundError):
    code: str = "DOCUMENT_TYPE_NOT_FOUND"
    entity_type: str = "DocumentType"


# =============================================================================
# Invalid state
# =============================================================================


class InvalidStateError(LedgerKernelError):
    """Operation is not allowed in the entity's current lifecycle state."""

    code: str = "INVALID_STATE"


class InvalidTransitionError(InvalidStateError):
    """
    Requested status transition is not in the entity's transition table.

    Raised for mutating a non-draft entry, double-posting, reversing a
    draft, double-cancelling, and generating vouchers from unapproved
    documents.
    """

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_status: str,
        target_status: str,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"{entity_type} {entity_id} cannot go from "
            f"'{current_status}' to '{target_status}'"
        )


class ImmutabilityViolationError(InvalidStateError):
    """
    Attempted to modify or delete a journal entry or line after it left draft.

    Raised by the ORM listeners in db/immutability.py; it is the last line
    of defense behind the service-level transition checks.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# =============================================================================
# Conflict
# =============================================================================


class ConflictError(LedgerKernelError):
    """Operation clashes with existing data; carries what blocks it."""

    code: str = "CONFLICT"


class DuplicateVoucherError(ConflictError):
    """A voucher of this type was already generated for the document."""

    code: str = "DUPLICATE_VOUCHER"

    def __init__(self, document_id: str, voucher_type_id: str, existing_entry_id: str):
        self.document_id = document_id
        self.voucher_type_id = voucher_type_id
        self.existing_entry_id = existing_entry_id
        super().__init__(
            f"Document {document_id} already has voucher {existing_entry_id} "
            f"of type {voucher_type_id}"
        )


class PostedEntriesExistError(ConflictError):
    """Document cannot be cancelled while any of its vouchers is posted."""

    code: str = "POSTED_ENTRIES_EXIST"

    def __init__(self, document_id: str, blocking_entry_ids: list[str]):
        self.document_id = document_id
        self.blocking_entry_ids = blocking_entry_ids
        super().__init__(
            f"Cannot cancel document {document_id}: posted entries exist "
            f"({', '.join(blocking_entry_ids)})"
        )


class DuplicateEntryNumberError(ConflictError):
    """Supplied entry number is already used by the voucher type."""

    code: str = "DUPLICATE_ENTRY_NUMBER"

    def __init__(self, entry_number: str, voucher_type_id: str):
        self.entry_number = entry_number
        self.voucher_type_id = voucher_type_id
        super().__init__(
            f"Entry number {entry_number} already exists for voucher type "
            f"{voucher_type_id}"
        )


class PeriodOverlapError(ConflictError):
    """New fiscal period overlaps an existing one."""

    code: str = "PERIOD_OVERLAP"

    def __init__(self, period_code: str, existing_period_code: str):
        self.period_code = period_code
        self.existing_period_code = existing_period_code
        super().__init__(
            f"Period {period_code} overlaps existing period {existing_period_code}"
        )


class DuplicateDocumentNumberError(ConflictError):
    """Document number is already used by the document type."""

    code: str = "DUPLICATE_DOCUMENT_NUMBER"

    def __init__(self, document_number: str, document_type_id: str):
        self.document_number = document_number
        self.document_type_id = document_type_id
        super().__init__(
            f"Document number {document_number} already exists for document type "
            f"{document_type_id}"
        )
