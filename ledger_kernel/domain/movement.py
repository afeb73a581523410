"""
Movement DTOs -- Pure domain objects for the stock movement ledger.

Responsibility:
    Defines the immutable data structures that flow through LedgerRecorder:
    LineRequest (caller input), StockLine (one persisted line with its
    before/after snapshot) and MovementTransaction (header plus its ordered
    lines).
Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
Invariants enforced:
    - StockLine: quantity > 0, unit_cost >= 0, exactly one warehouse field
      set, new_stock = previous_stock +/- quantity by direction,
      total_cost = quantity * unit_cost.  Checked on construction, so an
      inconsistent line cannot exist in memory, let alone be persisted.
    - MovementTransaction: header totals are computed from the lines by
      ``build``; ``header_sum_violations`` re-checks stored totals against
      the lines (used on rows read back from storage).
Failure modes:
    - InvariantViolationError on an inconsistent StockLine.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, time
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from ledger_kernel.exceptions import InvariantViolationError
from ledger_kernel.invariants import LedgerInvariant


class MovementDirection(str, Enum):
    """Which way stock moves relative to the line's warehouse."""

    INWARD = "inward"
    OUTWARD = "outward"

    def flipped(self) -> MovementDirection:
        if self is MovementDirection.INWARD:
            return MovementDirection.OUTWARD
        return MovementDirection.INWARD


class MovementType(str, Enum):
    """
    Ledger transaction type.

    The type fixes the default direction of its lines.  Adjustments may
    carry lines in either direction (see LineRequest.direction).
    """

    PURCHASE_IN = "purchase_in"
    SALE_OUT = "sale_out"
    ADJUSTMENT_IN = "adjustment_in"
    ADJUSTMENT_OUT = "adjustment_out"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"

    @property
    def direction(self) -> MovementDirection:
        if self in INWARD_TYPES:
            return MovementDirection.INWARD
        return MovementDirection.OUTWARD

    @property
    def is_adjustment(self) -> bool:
        return self in (MovementType.ADJUSTMENT_IN, MovementType.ADJUSTMENT_OUT)

    @property
    def is_transfer(self) -> bool:
        return self in (MovementType.TRANSFER_IN, MovementType.TRANSFER_OUT)


INWARD_TYPES: frozenset[MovementType] = frozenset({
    MovementType.PURCHASE_IN,
    MovementType.ADJUSTMENT_IN,
    MovementType.TRANSFER_IN,
})

OUTWARD_TYPES: frozenset[MovementType] = frozenset(MovementType) - INWARD_TYPES


@dataclass(frozen=True)
class LineRequest:
    """
    One requested line of a movement, before snapshots are known.

    ``direction`` overrides the transaction type's direction and is only
    accepted on adjustment transactions.
    """

    product_id: UUID
    quantity: Decimal
    unit_cost: Decimal = Decimal("0")
    uom_id: UUID | None = None
    variant_id: UUID | None = None
    bin_id: UUID | None = None
    reason_code: str | None = None
    direction: MovementDirection | None = None


@dataclass(frozen=True)
class MovementReference:
    """What a movement points back to: source document and free text."""

    reference_document: str | None = None
    related_id: UUID | None = None
    remarks: str | None = None


StockKey = tuple[UUID, UUID | None, UUID | None]


@dataclass(frozen=True)
class StockLine:
    """
    One product's movement with its point-in-time stock snapshot.

    Contract:
        Inward lines set only ``to_warehouse_id``; outward lines set only
        ``from_warehouse_id``.  The snapshot is consistent with direction.
    """

    line_no: int
    product_id: UUID
    quantity: Decimal
    unit_cost: Decimal
    total_cost: Decimal
    previous_stock: Decimal
    new_stock: Decimal
    from_warehouse_id: UUID | None = None
    to_warehouse_id: UUID | None = None
    uom_id: UUID | None = None
    variant_id: UUID | None = None
    bin_id: UUID | None = None
    reason_code: str | None = None

    def __post_init__(self) -> None:
        if (self.from_warehouse_id is None) == (self.to_warehouse_id is None):
            raise InvariantViolationError(
                LedgerInvariant.SINGLE_WAREHOUSE_FIELD.value,
                f"line {self.line_no} for product {self.product_id} must set "
                "exactly one of from_warehouse_id / to_warehouse_id",
            )
        if self.quantity <= 0:
            raise InvariantViolationError(
                LedgerInvariant.SNAPSHOT_CONSISTENCY.value,
                f"line {self.line_no} quantity must be positive, got {self.quantity}",
            )
        expected = self.expected_new_stock(
            self.direction, self.previous_stock, self.quantity
        )
        if self.new_stock != expected:
            raise InvariantViolationError(
                LedgerInvariant.SNAPSHOT_CONSISTENCY.value,
                f"line {self.line_no}: {self.direction.value} of {self.quantity} "
                f"from {self.previous_stock} must give {expected}, "
                f"got {self.new_stock}",
            )
        if self.total_cost != self.quantity * self.unit_cost:
            raise InvariantViolationError(
                LedgerInvariant.HEADER_SUMS.value,
                f"line {self.line_no} total_cost {self.total_cost} != "
                f"{self.quantity} x {self.unit_cost}",
            )

    @staticmethod
    def expected_new_stock(
        direction: MovementDirection, previous: Decimal, quantity: Decimal
    ) -> Decimal:
        if direction is MovementDirection.INWARD:
            return previous + quantity
        return previous - quantity

    @property
    def direction(self) -> MovementDirection:
        if self.to_warehouse_id is not None:
            return MovementDirection.INWARD
        return MovementDirection.OUTWARD

    @property
    def warehouse_id(self) -> UUID:
        return self.to_warehouse_id or self.from_warehouse_id  # type: ignore[return-value]

    @property
    def stock_key(self) -> StockKey:
        return (self.product_id, self.variant_id, self.bin_id)

    @property
    def signed_quantity(self) -> Decimal:
        if self.direction is MovementDirection.INWARD:
            return self.quantity
        return -self.quantity


@dataclass(frozen=True)
class MovementTransaction:
    """
    A ledger header with its ordered lines; the atomic unit of the ledger.

    Built once, never edited.  ``id`` is assigned before anything is
    written so that a retried posting writes the same rows.
    """

    txn_number: str
    txn_type: MovementType
    txn_date: date
    txn_time: time
    warehouse_id: UUID
    lines: tuple[StockLine, ...]
    total_items: int
    total_quantity: Decimal
    total_value: Decimal
    reference_document: str | None = None
    related_id: UUID | None = None
    remarks: str | None = None
    reverses_txn_id: UUID | None = None
    id: UUID = field(default_factory=uuid4)

    @classmethod
    def build(
        cls,
        *,
        txn_number: str,
        txn_type: MovementType,
        txn_date: date,
        txn_time: time,
        warehouse_id: UUID,
        lines: tuple[StockLine, ...],
        reference: MovementReference | None = None,
        reverses_txn_id: UUID | None = None,
    ) -> MovementTransaction:
        """Build a transaction whose totals are summed from its lines."""
        reference = reference or MovementReference()
        return cls(
            txn_number=txn_number,
            txn_type=txn_type,
            txn_date=txn_date,
            txn_time=txn_time,
            warehouse_id=warehouse_id,
            lines=lines,
            total_items=len(lines),
            total_quantity=sum((ln.quantity for ln in lines), Decimal("0")),
            total_value=sum((ln.total_cost for ln in lines), Decimal("0")),
            reference_document=reference.reference_document,
            related_id=reference.related_id,
            remarks=reference.remarks,
            reverses_txn_id=reverses_txn_id,
        )

    def header_sum_violations(self) -> list[str]:
        """Describe every mismatch between stored totals and the lines."""
        violations = []
        if self.total_items != len(self.lines):
            violations.append(
                f"total_items {self.total_items} != {len(self.lines)} lines"
            )
        quantity = sum((ln.quantity for ln in self.lines), Decimal("0"))
        if self.total_quantity != quantity:
            violations.append(
                f"total_quantity {self.total_quantity} != line sum {quantity}"
            )
        value = sum((ln.total_cost for ln in self.lines), Decimal("0"))
        if self.total_value != value:
            violations.append(f"total_value {self.total_value} != line sum {value}")
        return violations

    def quantity_by_product(self) -> dict[tuple[UUID, UUID | None], Decimal]:
        totals: dict[tuple[UUID, UUID | None], Decimal] = defaultdict(
            lambda: Decimal("0")
        )
        for ln in self.lines:
            totals[(ln.product_id, ln.variant_id)] += ln.quantity
        return dict(totals)
