"""
ORM-Level Immutability Enforcement for ledger rows.

===============================================================================
WHY THIS EXISTS
===============================================================================

The movement ledger is the only record of how stock got to where it is.
Once a transaction header or line is written it is never changed or
removed; a mistake is corrected by posting a new transaction
(LedgerRecorder.reverse) that leaves a visible trail.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |                                                        ^
         v                                                        |
    [before_delete event] --> _check_*_delete() -----------------+
         |
         v
    SQL sent to database (only if checks pass)

If a check fails the flush is aborted and nothing reaches the database.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                       | When Immutable         | Why
-----------------------------|------------------------|---------------------------
InventoryTransactionModel    | ALWAYS (from creation) | Ledger is append-only
InventoryTransactionLineModel| ALWAYS (from creation) | Lines are part of the txn

updated_at / updated_by_id are audit metadata and may change.

===============================================================================
USAGE
===============================================================================

    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # idempotent, called by SqlAlchemyStore

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect

from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})


def _changed_fields(target) -> list[str]:
    insp = inspect(target)
    return [
        attr.key
        for attr in insp.attrs
        if attr.key not in _AUDIT_FIELDS and attr.history.has_changes()
    ]


def _block(entity_type: str, target, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "reason": reason,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_transaction_immutability(mapper, connection, target):
    """Prevent any field change on a recorded movement transaction."""
    fields = _changed_fields(target)
    if fields:
        _block(
            "InventoryTransaction",
            target,
            "UPDATE",
            f"recorded movement transactions cannot be modified ({', '.join(fields)})",
        )


def _check_transaction_delete(mapper, connection, target):
    _block(
        "InventoryTransaction",
        target,
        "DELETE",
        "recorded movement transactions cannot be deleted; post a reversal",
    )


def _check_line_immutability(mapper, connection, target):
    """Prevent any field change on a recorded stock line."""
    fields = _changed_fields(target)
    if fields:
        _block(
            "InventoryTransactionLine",
            target,
            "UPDATE",
            f"recorded stock lines cannot be modified ({', '.join(fields)})",
        )


def _check_line_delete(mapper, connection, target):
    _block(
        "InventoryTransactionLine",
        target,
        "DELETE",
        "recorded stock lines cannot be deleted",
    )


_LISTENERS = (
    ("before_update", _check_transaction_immutability, "transaction"),
    ("before_delete", _check_transaction_delete, "transaction"),
    ("before_update", _check_line_immutability, "line"),
    ("before_delete", _check_line_delete, "line"),
)


def _targets():
    from ledger_kernel.models.movement import (
        InventoryTransactionLineModel,
        InventoryTransactionModel,
    )

    return {
        "transaction": InventoryTransactionModel,
        "line": InventoryTransactionLineModel,
    }


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement event listeners.

    Safe to call repeatedly; already-registered listeners are skipped.
    """
    targets = _targets()
    for event_name, fn, target_key in _LISTENERS:
        target = targets[target_key]
        if not event.contains(target, event_name, fn):
            event.listen(target, event_name, fn)


def unregister_immutability_listeners() -> None:
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that need to violate immutability
    intentionally.
    """
    targets = _targets()
    for event_name, fn, target_key in _LISTENERS:
        target = targets[target_key]
        if event.contains(target, event_name, fn):
            event.remove(target, event_name, fn)


def immutability_listeners_registered() -> bool:
    targets = _targets()
    return all(
        event.contains(targets[key], name, fn) for name, fn, key in _LISTENERS
    )
