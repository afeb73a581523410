"""
Pure domain layer.

Immutable data transfer objects and the clock abstraction, with no
dependencies on the ORM, the database or I/O.
"""

from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.movement import (
    INWARD_TYPES,
    OUTWARD_TYPES,
    LineRequest,
    MovementDirection,
    MovementReference,
    MovementTransaction,
    MovementType,
    StockLine,
)
from ledger_kernel.domain.reservation import (
    ReservationRequest,
    ReservationStatus,
    StockReservation,
)
from ledger_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "MovementType",
    "MovementDirection",
    "INWARD_TYPES",
    "OUTWARD_TYPES",
    "LineRequest",
    "MovementReference",
    "StockLine",
    "MovementTransaction",
    "ReservationStatus",
    "ReservationRequest",
    "StockReservation",
    "Guard",
    "Transition",
    "Workflow",
]
