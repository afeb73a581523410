"""
Goods Receiving Domain Models.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_engines.receiving import ReceiptQuantity, ReceivedLine
from ledger_kernel.domain.movement import MovementTransaction


class QualityStatus(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    PARTIAL = "partial"


class GrnStatus(str, Enum):
    DRAFT = "draft"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ReceivingLine:
    """
    What arrived at the dock for one purchase-order line.

    ``received_qty`` defaults to ``accepted_qty`` (nothing rejected).
    """
    po_detail_id: UUID
    accepted_qty: Decimal
    received_qty: Decimal | None = None
    bin_id: UUID | None = None
    reason_for_rejection: str | None = None
    batch_lot_number: str | None = None

    def to_receipt_quantity(self) -> ReceiptQuantity:
        return ReceiptQuantity(
            po_detail_id=self.po_detail_id,
            accepted_qty=self.accepted_qty,
            received_qty=self.received_qty,
        )


@dataclass(frozen=True)
class GrnParticulars:
    """Header particulars of a goods receipt note."""
    vendor_id: UUID | None = None
    delivery_challan_number: str | None = None
    delivery_challan_date: date | None = None
    vehicle_number: str | None = None
    received_by: UUID | None = None
    quality_status: QualityStatus = QualityStatus.ACCEPTED
    quality_remarks: str | None = None
    freight_charges: Decimal = Decimal("0")
    other_charges: Decimal = Decimal("0")
    remarks: str | None = None


@dataclass(frozen=True)
class ReceivingOutcome:
    """A recorded goods receipt and the PO lines it moved."""
    grn_id: UUID
    grn_number: str
    lines: tuple[ReceivedLine, ...]
    subtotal: Decimal
    total_amount: Decimal
    inventory_txn: MovementTransaction | None = None
