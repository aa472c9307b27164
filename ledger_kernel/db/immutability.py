"""
ORM-Level Immutability Enforcement for journal entries and lines.

===============================================================================
WHY THIS EXISTS
===============================================================================

Posted vouchers are the ledger's history.  Once an entry leaves DRAFT its
amounts, accounts, dates and numbers are frozen; corrections happen through
a new reversing entry, never by editing the old one.

JournalEntryStore already refuses such edits through its transition table.
These listeners catch anything that slips past the services: a script that
loads an entry and edits it directly, a test that forgets the store, a bulk
change through the session.

    session.flush()
         |
         v
    [before_update]  --> _check_entry_update()  --> ImmutabilityViolationError
    [before_delete]  --> _check_entry_delete()
    [before_update]  --> _check_line_update()
    [before_delete]  --> _check_line_delete()
         |
         v
    SQL sent to the database (only if every check passes)

===============================================================================
RULES
===============================================================================

Entity        | Frozen when                  | Still allowed
--------------|------------------------------|-----------------------------------
JournalEntry  | status was not DRAFT         | POSTED -> REVERSED with reversal
              |                              | metadata; audit fields
JournalLine   | parent entry is not DRAFT    | nothing
Delete        | entry/line not DRAFT         | nothing

The DRAFT -> POSTED and DRAFT -> CANCELLED flushes are allowed because the
status history shows DRAFT as the previous value.

===============================================================================
USAGE
===============================================================================

    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup; idempotent
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})

# Fields a POSTED -> REVERSED flush may touch besides status
_REVERSAL_FIELDS = frozenset({"reversed_at", "reversed_by_id", "reversal_reason"})


def _status_value(status) -> str:
    return status.value if hasattr(status, "value") else str(status)


def _previous_status(target) -> str:
    """Status the row had in the database before this flush."""
    history = get_history(target, "status")
    if history.deleted:
        return _status_value(history.deleted[0])
    return _status_value(target.status)


def _reject(entity_type: str, entity_id, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(entity_type, str(entity_id), reason)


def _check_entry_update(mapper, connection, target):
    """Block changes to an entry that was already out of DRAFT."""
    previous = _previous_status(target)
    if previous == "draft":
        return

    current = _status_value(target.status)
    allowed = set(_AUDIT_FIELDS)
    if previous == "posted" and current == "reversed":
        allowed |= _REVERSAL_FIELDS | {"status"}

    for attr in inspect(target).attrs:
        if attr.key in allowed or not attr.history.has_changes():
            continue
        _reject(
            "JournalEntry",
            target.id,
            "UPDATE",
            f"Cannot modify field '{attr.key}' on {previous} journal entry",
            field=attr.key,
        )


def _check_entry_delete(mapper, connection, target):
    previous = _previous_status(target)
    if previous != "draft":
        _reject(
            "JournalEntry",
            target.id,
            "DELETE",
            f"Cannot delete {previous} journal entry",
        )


def _parent_status(target) -> str | None:
    entry = target.entry
    if entry is None:
        return None
    return _previous_status(entry)


def _check_line_update(mapper, connection, target):
    status = _parent_status(target)
    if status is not None and status != "draft":
        changed = [
            attr.key
            for attr in inspect(target).attrs
            if attr.key not in _AUDIT_FIELDS
            and attr.key != "entry"
            and attr.history.has_changes()
        ]
        if changed:
            _reject(
                "JournalLine",
                target.id,
                "UPDATE",
                f"Cannot modify line of {status} journal entry",
                field=changed[0],
            )


def _check_line_delete(mapper, connection, target):
    status = _parent_status(target)
    if status is not None and status != "draft":
        _reject(
            "JournalLine",
            target.id,
            "DELETE",
            f"Cannot delete line of {status} journal entry",
        )


_LISTENERS = (
    ("JournalEntry", "before_update", _check_entry_update),
    ("JournalEntry", "before_delete", _check_entry_delete),
    ("JournalLine", "before_update", _check_line_update),
    ("JournalLine", "before_delete", _check_line_delete),
)


def _targets():
    from ledger_kernel.models.journal import JournalEntry, JournalLine

    return {"JournalEntry": JournalEntry, "JournalLine": JournalLine}


def register_immutability_listeners() -> None:
    """Attach the listeners (idempotent)."""
    targets = _targets()
    for name, event_name, fn in _LISTENERS:
        if not event.contains(targets[name], event_name, fn):
            event.listen(targets[name], event_name, fn)
    logger.debug("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """Detach the listeners. TESTS ONLY."""
    targets = _targets()
    for name, event_name, fn in _LISTENERS:
        if event.contains(targets[name], event_name, fn):
            event.remove(targets[name], event_name, fn)
