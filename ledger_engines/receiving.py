"""
Module: ledger_engines.receiving
Responsibility:
    Apply goods-receipt quantities to open purchase-order lines: accepted
    quantity closes pending quantity, rejected quantity is only recorded.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Called by
    ledger_modules.receiving.ReceivingAllocator.

Invariants enforced:
    - pending_quantity never goes negative: accepting more than is pending
      raises OverReceiptError before anything is written.
    - rejected = received - accepted, never negative.
    - Several receipt lines against one PO line are applied cumulatively.

Rule:
    new_received = received + accepted
    new_pending  = pending - accepted
    new_status   = fully_received if new_pending <= 0 else partially_received
                   (unchanged when nothing on the line was accepted)
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_engines.tracer import traced_engine
from ledger_kernel.exceptions import (
    InvalidQuantityError,
    OrderLineMismatchError,
    OverReceiptError,
)

_ZERO = Decimal("0")


class LineStatus(str, Enum):
    OPEN = "open"
    PARTIALLY_RECEIVED = "partially_received"
    FULLY_RECEIVED = "fully_received"


@dataclass(frozen=True)
class OpenOrderLine:
    """A purchase-order line as it stands before this receipt."""

    po_detail_id: UUID
    po_id: UUID
    product_id: UUID
    ordered_quantity: Decimal
    received_quantity: Decimal
    pending_quantity: Decimal
    rate: Decimal = Decimal("0")
    line_status: LineStatus = LineStatus.OPEN
    variant_id: UUID | None = None
    uom_id: UUID | None = None


@dataclass(frozen=True)
class ReceiptQuantity:
    """Quantities counted at the dock for one PO line."""

    po_detail_id: UUID
    accepted_qty: Decimal
    received_qty: Decimal | None = None

    @property
    def effective_received(self) -> Decimal:
        return self.accepted_qty if self.received_qty is None else self.received_qty


@dataclass(frozen=True)
class ReceivedLine:
    """A PO line after one receipt line was applied."""

    po_detail_id: UUID
    received_qty: Decimal
    accepted_qty: Decimal
    rejected_qty: Decimal
    new_received_quantity: Decimal
    new_pending_quantity: Decimal
    new_line_status: LineStatus

    @property
    def posts_stock(self) -> bool:
        return self.accepted_qty > _ZERO


@traced_engine("receiving", "1.0")
def apply_receipt(
    po_id: UUID,
    order_lines: Mapping[UUID, OpenOrderLine],
    receipts: Sequence[ReceiptQuantity],
) -> tuple[ReceivedLine, ...]:
    """
    Apply each receipt line to its PO line, in order.

    Raises:
        OrderLineMismatchError: A receipt names a line not on ``po_id``.
        InvalidQuantityError: Negative quantity, or accepted > received.
        OverReceiptError: Accepted exceeds what is still pending.
    """
    pending: dict[UUID, Decimal] = {}
    received: dict[UUID, Decimal] = {}
    statuses: dict[UUID, LineStatus] = {}
    results: list[ReceivedLine] = []

    for receipt in receipts:
        line = order_lines.get(receipt.po_detail_id)
        if line is None or line.po_id != po_id:
            raise OrderLineMismatchError(str(po_id), str(receipt.po_detail_id))

        accepted = receipt.accepted_qty
        received_qty = receipt.effective_received
        if accepted < _ZERO:
            raise InvalidQuantityError(str(line.product_id), str(accepted))
        if received_qty < accepted:
            raise InvalidQuantityError(str(line.product_id), str(received_qty))

        before_pending = pending.get(line.po_detail_id, line.pending_quantity)
        before_received = received.get(line.po_detail_id, line.received_quantity)
        if accepted > before_pending:
            raise OverReceiptError(
                str(line.po_detail_id), str(before_pending), str(accepted)
            )

        new_pending = before_pending - accepted
        new_received = before_received + accepted
        pending[line.po_detail_id] = new_pending
        received[line.po_detail_id] = new_received
        if accepted > _ZERO:
            statuses[line.po_detail_id] = (
                LineStatus.FULLY_RECEIVED
                if new_pending <= _ZERO
                else LineStatus.PARTIALLY_RECEIVED
            )

        results.append(
            ReceivedLine(
                po_detail_id=line.po_detail_id,
                received_qty=received_qty,
                accepted_qty=accepted,
                rejected_qty=received_qty - accepted,
                new_received_quantity=new_received,
                new_pending_quantity=new_pending,
                # A fully rejected line leaves the PO line as it was
                new_line_status=statuses.get(line.po_detail_id, line.line_status),
            )
        )

    return tuple(results)
