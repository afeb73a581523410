"""
Typed Exception Hierarchy for the Inventory Ledger.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every failure a caller can react to has its own class, a machine-readable
``code`` class attribute, and its context stored as attributes.  Callers
catch by type and read structured fields; nobody parses messages.

    try:
        coordinator.transfer(...)
    except PartialTransferFailure as e:
        log.error("transfer half posted", extra={"outbound": e.outbound_txn_id})
        coordinator.complete_transfer(e)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- ValidationError                  raised before any write
    |   +-- EmptyLinesError
    |   +-- InvalidQuantityError
    |   +-- InvalidUnitCostError
    |   +-- InvalidAmountError
    |   +-- InvalidWarehouseError
    |   +-- SameWarehouseTransferError
    |   +-- LineDirectionError
    |   +-- InsufficientStockError
    |   +-- NoWarehouseSelectedError
    |   +-- EmptyCountError
    |   +-- CountIdMissingError
    |   +-- CountLineNotFoundError
    |   +-- DuplicateCountLineError
    |   +-- MixedBinLevelCountLineError
    |   +-- InvalidCountTransitionError
    |   +-- TransactionNotFoundError
    |   +-- ReservationNotFoundError
    |   +-- OrderLineMismatchError
    |
    +-- BusinessRuleError                raised before any write
    |   +-- OverReceiptError
    |   +-- OverAllocationError
    |   +-- ReservationNotActiveError
    |   +-- TransactionAlreadyReversedError
    |
    +-- PersistenceFailure               one single-row write failed
    |
    +-- PartialFailure                   some rows written, then a write failed
    |   +-- PartialPostingFailure
    |   +-- PartialTransferFailure
    |
    +-- ImmutabilityViolationError       update/delete on a ledger row
    |
    +-- InvariantViolationError          consistency check failed pre-write

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|-------------------------------------
Validation      | EMPTY_LINES                   | Movement requested with no lines
                | INVALID_QUANTITY              | Line quantity <= 0
                | INVALID_UNIT_COST             | Line unit cost < 0
                | INVALID_AMOUNT                | Negative or malformed money amount
                | INVALID_WAREHOUSE             | Warehouse id unknown or inactive
                | SAME_WAREHOUSE_TRANSFER       | Transfer source == destination
                | LINE_DIRECTION_NOT_ALLOWED    | Direction override on non-adjustment
                | INSUFFICIENT_STOCK            | Outward line exceeds current stock
                | NO_WAREHOUSE_SELECTED         | Count setup without warehouse
                | EMPTY_COUNT                   | Count completion with no lines
                | COUNT_ID_MISSING              | Count completion without session id
                | COUNT_LINE_NOT_FOUND          | Edit of unknown count line
                | DUPLICATE_COUNT_LINE          | Same product/variant/bin counted twice
                | INVALID_COUNT_TRANSITION      | Action not allowed in current state
                | TRANSACTION_NOT_FOUND         | Reversal of an unknown transaction
                | ORDER_LINE_MISMATCH           | PO line missing or on another PO
----------------|-------------------------------|-------------------------------------
Business rule   | OVER_RECEIPT                  | Accepted qty > pending qty
                | OVER_ALLOCATION               | Sum applied > amount received
                | TRANSACTION_ALREADY_REVERSED  | Second reversal of one transaction
----------------|-------------------------------|-------------------------------------
Persistence     | PERSISTENCE_FAILURE           | Single-row write failed
                | PARTIAL_POSTING_FAILURE       | Multi-row posting stopped midway
                | PARTIAL_TRANSFER_FAILURE      | Transfer stopped between legs
----------------|-------------------------------|-------------------------------------
Integrity       | IMMUTABILITY_VIOLATION        | Ledger row update/delete attempted
                | INVARIANT_VIOLATION           | Snapshot/header/symmetry check failed

===============================================================================
"""

from typing import Any
from uuid import UUID


class LedgerKernelError(Exception):
    """
    Base exception for all inventory ledger errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Validation exceptions


class ValidationError(LedgerKernelError):
    """Bad or missing input.  Always raised before any write."""

    code: str = "VALIDATION_ERROR"


class EmptyLinesError(ValidationError):
    """A movement was requested with no lines."""

    code: str = "EMPTY_LINES"

    def __init__(self, txn_type: str):
        self.txn_type = txn_type
        super().__init__(f"Movement {txn_type} requires at least one line")


class InvalidQuantityError(ValidationError):
    """Line quantity is not strictly positive."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, product_id: str, quantity: str):
        self.product_id = product_id
        self.quantity = quantity
        super().__init__(
            f"Quantity must be positive for product {product_id}, got {quantity}"
        )


class InvalidUnitCostError(ValidationError):
    """Line unit cost is negative."""

    code: str = "INVALID_UNIT_COST"

    def __init__(self, product_id: str, unit_cost: str):
        self.product_id = product_id
        self.unit_cost = unit_cost
        super().__init__(
            f"Unit cost cannot be negative for product {product_id}, got {unit_cost}"
        )


class InvalidAmountError(ValidationError):
    """A money amount is negative or otherwise unusable."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, amount: str):
        self.field = field
        self.amount = amount
        super().__init__(f"Invalid amount for {field}: {amount}")


class InvalidWarehouseError(ValidationError):
    """Warehouse id does not resolve to an active warehouse."""

    code: str = "INVALID_WAREHOUSE"

    def __init__(self, warehouse_id: str | None):
        self.warehouse_id = warehouse_id
        super().__init__(f"Warehouse not found or inactive: {warehouse_id}")


class SameWarehouseTransferError(ValidationError):
    """Transfer source and destination are the same warehouse."""

    code: str = "SAME_WAREHOUSE_TRANSFER"

    def __init__(self, warehouse_id: str):
        self.warehouse_id = warehouse_id
        super().__init__(
            f"Transfer source and destination must differ (both {warehouse_id})"
        )


class LineDirectionError(ValidationError):
    """A line direction override was given on a non-adjustment movement."""

    code: str = "LINE_DIRECTION_NOT_ALLOWED"

    def __init__(self, txn_type: str, product_id: str):
        self.txn_type = txn_type
        self.product_id = product_id
        super().__init__(
            f"Per-line direction is only allowed on adjustments, "
            f"not {txn_type} (product {product_id})"
        )


class InsufficientStockError(ValidationError):
    """An outward line would take stock below zero."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        product_id: str,
        warehouse_id: str,
        available: str,
        required: str,
    ):
        self.product_id = product_id
        self.warehouse_id = warehouse_id
        self.available = available
        self.required = required
        super().__init__(
            f"Insufficient stock for product {product_id} in warehouse "
            f"{warehouse_id}. Available: {available}, Required: {required}"
        )


class NoWarehouseSelectedError(ValidationError):
    """Physical count setup submitted without a warehouse."""

    code: str = "NO_WAREHOUSE_SELECTED"

    def __init__(self) -> None:
        super().__init__("A warehouse must be selected to start counting")


class EmptyCountError(ValidationError):
    """Physical count completion attempted with no count lines."""

    code: str = "EMPTY_COUNT"

    def __init__(self, count_id: str):
        self.count_id = count_id
        super().__init__(f"Count {count_id} has no lines to complete")


class CountIdMissingError(ValidationError):
    """Physical count completion attempted without a valid session id."""

    code: str = "COUNT_ID_MISSING"

    def __init__(self) -> None:
        super().__init__("Count session has no count id; start the count first")


class CountLineNotFoundError(ValidationError):
    """A count line id is unknown to the session."""

    code: str = "COUNT_LINE_NOT_FOUND"

    def __init__(self, count_id: str, line_id: str):
        self.count_id = count_id
        self.line_id = line_id
        super().__init__(f"Count line {line_id} not found in count {count_id}")


class DuplicateCountLineError(ValidationError):
    """The same product/variant/bin was added to a count twice."""

    code: str = "DUPLICATE_COUNT_LINE"

    def __init__(self, count_id: str, product_id: str):
        self.count_id = count_id
        self.product_id = product_id
        super().__init__(
            f"Product {product_id} is already counted in count {count_id}"
        )


class MixedBinLevelCountLineError(ValidationError):
    """A count mixes whole-warehouse and bin-level lines for one product."""

    code: str = "MIXED_BIN_LEVEL_COUNT_LINE"

    def __init__(self, count_id: str, product_id: str):
        self.count_id = count_id
        self.product_id = product_id
        super().__init__(
            f"Product {product_id} cannot be counted both for the whole "
            f"warehouse and by bin in count {count_id}"
        )


class InvalidCountTransitionError(ValidationError):
    """Action is not permitted in the count session's current state."""

    code: str = "INVALID_COUNT_TRANSITION"

    def __init__(self, count_id: str | None, state: str, action: str):
        self.count_id = count_id
        self.state = state
        self.action = action
        super().__init__(
            f"Cannot {action} count {count_id} in state '{state}'"
        )


class TransactionNotFoundError(ValidationError):
    """No movement transaction exists with the given id."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, txn_id: str):
        self.txn_id = txn_id
        super().__init__(f"Movement transaction not found: {txn_id}")


class ReservationNotFoundError(ValidationError):
    """No stock reservation exists with the given id."""

    code: str = "RESERVATION_NOT_FOUND"

    def __init__(self, reservation_id: str):
        self.reservation_id = reservation_id
        super().__init__(f"Stock reservation not found: {reservation_id}")


class OrderLineMismatchError(ValidationError):
    """Purchase-order line does not exist or belongs to another order."""

    code: str = "ORDER_LINE_MISMATCH"

    def __init__(self, po_id: str, po_detail_id: str):
        self.po_id = po_id
        self.po_detail_id = po_detail_id
        super().__init__(
            f"Purchase order line {po_detail_id} is not an open line of PO {po_id}"
        )


# Business-rule exceptions


class BusinessRuleError(LedgerKernelError):
    """A business rule rejected the request.  Raised before any write."""

    code: str = "BUSINESS_RULE_ERROR"


class OverReceiptError(BusinessRuleError):
    """Accepted quantity exceeds the purchase-order line's pending quantity."""

    code: str = "OVER_RECEIPT"

    def __init__(self, po_detail_id: str, pending: str, accepted: str):
        self.po_detail_id = po_detail_id
        self.pending = pending
        self.accepted = accepted
        super().__init__(
            f"Cannot accept {accepted} on PO line {po_detail_id}: "
            f"only {pending} pending"
        )


class OverAllocationError(BusinessRuleError):
    """Total applied to invoices exceeds the amount received."""

    code: str = "OVER_ALLOCATION"

    def __init__(self, customer_id: str, total_received: str, total_applied: str):
        self.customer_id = customer_id
        self.total_received = total_received
        self.total_applied = total_applied
        super().__init__(
            f"Total allocated {total_applied} exceeds amount received "
            f"{total_received} for customer {customer_id}"
        )


class ReservationNotActiveError(BusinessRuleError):
    """The reservation was already released."""

    code: str = "RESERVATION_NOT_ACTIVE"

    def __init__(self, reservation_id: str, status: str):
        self.reservation_id = reservation_id
        self.status = status
        super().__init__(
            f"Stock reservation {reservation_id} is {status}, not active"
        )


class TransactionAlreadyReversedError(BusinessRuleError):
    """The transaction already has a reversal posted against it."""

    code: str = "TRANSACTION_ALREADY_REVERSED"

    def __init__(self, txn_id: str, reversal_txn_id: str):
        self.txn_id = txn_id
        self.reversal_txn_id = reversal_txn_id
        super().__init__(
            f"Transaction {txn_id} already reversed by {reversal_txn_id}"
        )


# Persistence exceptions


class PersistenceFailure(LedgerKernelError):
    """
    A single-row write failed.

    Carries the table, operation and the identity of what was being written
    so the caller can retry or report.  Nothing was written by this call.
    """

    code: str = "PERSISTENCE_FAILURE"

    def __init__(self, table: str, operation: str, key: str | None, cause: str):
        self.table = table
        self.operation = operation
        self.key = key
        self.cause = cause
        super().__init__(f"{operation} on {table} failed for {key}: {cause}")


class PartialFailure(LedgerKernelError):
    """
    A multi-row sequence wrote some rows and then failed.

    ``saga`` is the live saga object; ``saga.execute()`` retries the pending
    steps and returns the operation's normal result.
    """

    code: str = "PARTIAL_FAILURE"

    def __init__(self, saga: Any, cause: Exception):
        self._saga = saga
        self.operation = saga.operation
        self.reference = saga.reference
        self.completed_steps = saga.completed_step_names
        self.pending_steps = saga.pending_step_names
        self.written_ids = tuple(str(i) for i in saga.written_record_ids)
        self.cause = f"{type(cause).__name__}: {cause}"
        super().__init__(
            f"{self.operation} {self.reference} partially written: "
            f"{len(self.completed_steps)} step(s) done, "
            f"{len(self.pending_steps)} pending ({self.cause})"
        )

    @property
    def saga(self) -> Any:
        return self._saga


class PartialPostingFailure(PartialFailure):
    """A posting (header + detail rows, or allocation writes) stopped midway."""

    code: str = "PARTIAL_POSTING_FAILURE"


class PartialTransferFailure(PartialFailure):
    """
    A transfer stopped between (or inside) its legs.

    ``outbound_txn_id`` is the id of the outbound leg when that leg was fully
    written, else None.
    """

    code: str = "PARTIAL_TRANSFER_FAILURE"

    def __init__(self, saga: Any, cause: Exception):
        outbound = saga.result("outbound")
        self.outbound_txn_id: UUID | None = (
            outbound.id if outbound is not None else None
        )
        self.outbound_txn_number: str | None = (
            outbound.txn_number if outbound is not None else None
        )
        super().__init__(saga, cause)


# Integrity exceptions


class ImmutabilityViolationError(LedgerKernelError):
    """
    Attempted to modify or delete an immutable ledger record.

    Movement transactions and their lines are append-only; corrections are
    new transactions.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


class InvariantViolationError(LedgerKernelError):
    """A ledger invariant check failed before writing."""

    code: str = "INVARIANT_VIOLATION"

    def __init__(self, invariant: str, detail: str):
        self.invariant = invariant
        self.detail = detail
        super().__init__(f"Invariant {invariant} violated: {detail}")
