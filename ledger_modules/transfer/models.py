"""
Transfer Domain Models.

Frozen request/result types for warehouse-to-warehouse transfers.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from ledger_kernel.domain.movement import LineRequest, MovementTransaction


@dataclass(frozen=True)
class TransferLine:
    """One product moved by a transfer.  Bins are per side."""
    product_id: UUID
    quantity: Decimal
    unit_cost: Decimal = Decimal("0")
    uom_id: UUID | None = None
    variant_id: UUID | None = None
    from_bin_id: UUID | None = None
    to_bin_id: UUID | None = None

    def outbound_request(self, reason: str | None) -> LineRequest:
        return LineRequest(
            product_id=self.product_id,
            quantity=self.quantity,
            unit_cost=self.unit_cost,
            uom_id=self.uom_id,
            variant_id=self.variant_id,
            bin_id=self.from_bin_id,
            reason_code=reason,
        )

    def inbound_request(self, reason: str | None) -> LineRequest:
        return LineRequest(
            product_id=self.product_id,
            quantity=self.quantity,
            unit_cost=self.unit_cost,
            uom_id=self.uom_id,
            variant_id=self.variant_id,
            bin_id=self.to_bin_id,
            reason_code=reason,
        )


@dataclass(frozen=True)
class TransferResult:
    """Both legs of a posted transfer, joinable by ``transfer_number``."""
    transfer_number: str
    out_txn: MovementTransaction
    in_txn: MovementTransaction
