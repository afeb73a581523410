"""
Module: ledger_engines.count_variance
Responsibility:
    Derive a physical count line's variance, adjustment decision and
    adjustment quantity from its system and counted quantities.  This is
    the only place the decision rule lives; the count session, its tests
    and any UI all call it.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Purity: the same (system, counted, threshold) always gives the same
      derivation.
    - adjustment_quantity is the variance only when the decision is
      adjust_to_count, else zero.

Rule:
    variance == 0                    -> no_change
    |variance| > threshold           -> investigate (not auto-applied)
    otherwise                        -> adjust_to_count

Usage:
    from ledger_engines.count_variance import derive_count_line

    d = derive_count_line(system_quantity=Decimal("100"),
                          counted_quantity=Decimal("105"))
    d.variance_quantity      # Decimal("5")
    d.adjustment_decision    # AdjustmentDecision.ADJUST_TO_COUNT
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from ledger_engines.tracer import traced_engine

DEFAULT_INVESTIGATION_THRESHOLD = Decimal("10")

_ZERO = Decimal("0")


class AdjustmentDecision(str, Enum):
    """What to do about a count line's variance."""

    NO_CHANGE = "no_change"
    ADJUST_TO_COUNT = "adjust_to_count"
    INVESTIGATE = "investigate"


@dataclass(frozen=True)
class CountLineDerivation:
    """Derived fields of one count line."""

    variance_quantity: Decimal
    adjustment_decision: AdjustmentDecision
    adjustment_quantity: Decimal

    @property
    def requires_adjustment(self) -> bool:
        return (
            self.adjustment_decision is AdjustmentDecision.ADJUST_TO_COUNT
            and self.adjustment_quantity != _ZERO
        )


def decide(
    variance_quantity: Decimal,
    investigation_threshold: Decimal = DEFAULT_INVESTIGATION_THRESHOLD,
) -> AdjustmentDecision:
    if variance_quantity == _ZERO:
        return AdjustmentDecision.NO_CHANGE
    if abs(variance_quantity) > investigation_threshold:
        return AdjustmentDecision.INVESTIGATE
    return AdjustmentDecision.ADJUST_TO_COUNT


def with_decision(
    variance_quantity: Decimal,
    decision: AdjustmentDecision | str,
) -> CountLineDerivation:
    """Apply an explicit decision (operator override) to a variance."""
    decision = AdjustmentDecision(decision)
    adjustment = (
        variance_quantity if decision is AdjustmentDecision.ADJUST_TO_COUNT else _ZERO
    )
    return CountLineDerivation(
        variance_quantity=variance_quantity,
        adjustment_decision=decision,
        adjustment_quantity=adjustment,
    )


@traced_engine(
    "count_variance",
    "1.0",
    fingerprint_fields=("system_quantity", "counted_quantity", "investigation_threshold"),
)
def derive_count_line(
    system_quantity: Decimal,
    counted_quantity: Decimal,
    investigation_threshold: Decimal = DEFAULT_INVESTIGATION_THRESHOLD,
) -> CountLineDerivation:
    """
    Derive variance, decision and adjustment quantity.

    Args:
        system_quantity: Stock the system held when the line was entered.
        counted_quantity: Quantity the operator counted.
        investigation_threshold: Absolute variance above which the line is
            flagged for investigation instead of adjusted.
    """
    if investigation_threshold < _ZERO:
        raise ValueError("investigation_threshold cannot be negative")
    variance = counted_quantity - system_quantity
    return with_decision(variance, decide(variance, investigation_threshold))
