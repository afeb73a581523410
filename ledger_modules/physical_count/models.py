"""
Physical Count Domain Models.

The nouns of stock counting: the setup an operator submits, the lines
they count, and what completion produced.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, time
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_engines.count_variance import AdjustmentDecision, CountLineDerivation
from ledger_kernel.domain.movement import MovementTransaction
from ledger_modules.physical_count.config import VALID_COUNT_METHODS, VALID_COUNT_TYPES


class CountState(str, Enum):
    SETUP = "setup"
    COUNTING = "counting"
    COMPLETED = "completed"


class CountRecordStatus(str, Enum):
    """Status column of the persisted count record."""
    COUNTING = "counting"
    COMPLETED = "completed"
    DISCARDED = "discarded"


@dataclass(frozen=True)
class CountSetup:
    """What an operator chooses before counting starts."""
    warehouse_id: UUID | None
    count_date: date
    count_time: time
    count_type: str = "full"
    method: str = "full"
    scheduled_by: UUID | None = None
    counted_by: UUID | None = None
    remarks: str | None = None

    def __post_init__(self):
        if self.count_type not in VALID_COUNT_TYPES:
            raise ValueError(
                f"count_type must be one of {sorted(VALID_COUNT_TYPES)}, got '{self.count_type}'"
            )
        if self.method not in VALID_COUNT_METHODS:
            raise ValueError(
                f"method must be one of {sorted(VALID_COUNT_METHODS)}, got '{self.method}'"
            )


@dataclass(frozen=True)
class CountLine:
    """One counted product/variant/bin with its derived variance fields."""
    line_id: UUID
    product_id: UUID
    system_quantity: Decimal
    counted_quantity: Decimal
    variance_quantity: Decimal
    adjustment_decision: AdjustmentDecision
    adjustment_quantity: Decimal
    variant_id: UUID | None = None
    uom_id: UUID | None = None
    bin_id: UUID | None = None
    reason_for_variance: str | None = None

    @property
    def key(self) -> tuple[UUID, UUID | None, UUID | None]:
        return (self.product_id, self.variant_id, self.bin_id)

    @property
    def requires_adjustment(self) -> bool:
        return (
            self.adjustment_decision is AdjustmentDecision.ADJUST_TO_COUNT
            and self.adjustment_quantity != 0
        )

    def with_derivation(self, derivation: CountLineDerivation, **changes) -> CountLine:
        return replace(
            self,
            variance_quantity=derivation.variance_quantity,
            adjustment_decision=derivation.adjustment_decision,
            adjustment_quantity=derivation.adjustment_quantity,
            **changes,
        )


@dataclass(frozen=True)
class CountCompletion:
    """Outcome of completing a count."""
    count_id: UUID
    count_number: str
    total_items_counted: int
    total_variance: Decimal
    adjusted_line_count: int
    adjustment_txn: MovementTransaction | None = None
