"""
Stock reservation DTOs.

A reservation earmarks stock for a sales order, work order or similar
document.  It moves no stock: the ledger is untouched, but outward
movements may only draw on stock that is not reserved.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class ReservationStatus(str, Enum):
    ACTIVE = "active"
    RELEASED = "released"


@dataclass(frozen=True)
class ReservationRequest:
    """What to reserve, and for which document."""

    product_id: UUID
    quantity: Decimal
    variant_id: UUID | None = None
    bin_id: UUID | None = None
    reference_type: str | None = None
    reference_id: UUID | None = None
    reference_number: str | None = None
    expiry_date: date | None = None
    notes: str | None = None


@dataclass(frozen=True)
class StockReservation:
    id: UUID
    product_id: UUID
    warehouse_id: UUID
    reserved_quantity: Decimal
    reservation_date: date
    status: ReservationStatus
    variant_id: UUID | None = None
    bin_id: UUID | None = None
    reference_type: str | None = None
    reference_id: UUID | None = None
    reference_number: str | None = None
    expiry_date: date | None = None
    notes: str | None = None

    def is_active_on(self, as_of: date) -> bool:
        """Active and not past its expiry date."""
        if self.status is not ReservationStatus.ACTIVE:
            return False
        return self.expiry_date is None or self.expiry_date >= as_of
