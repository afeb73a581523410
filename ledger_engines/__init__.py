"""
Module: ledger_engines
Responsibility:
    Package entrypoint that re-exports the pure calculation engines used by
    the ledger modules.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  May import the kernel's
    exception and logging modules.  MUST NOT import ledger_modules.

Invariants enforced:
    - Purity: engines never read the clock or the database; every input is
      passed in explicitly.
    - Decimal-only arithmetic for quantities and money.

Usage:
    from ledger_engines import derive_count_line, ReceiptAllocationEngine
    from ledger_engines import apply_receipt
"""

from ledger_engines.allocation import (
    AllocationMethod,
    InvoiceAllocation,
    OutstandingInvoice,
    PaymentStatus,
    ReceiptAllocationEngine,
    ReceiptAllocationResult,
)
from ledger_engines.count_variance import (
    DEFAULT_INVESTIGATION_THRESHOLD,
    AdjustmentDecision,
    CountLineDerivation,
    derive_count_line,
    with_decision,
)
from ledger_engines.receiving import (
    LineStatus,
    OpenOrderLine,
    ReceiptQuantity,
    ReceivedLine,
    apply_receipt,
)
from ledger_engines.tracer import traced_engine

__all__ = [
    "traced_engine",
    # count variance
    "AdjustmentDecision",
    "CountLineDerivation",
    "DEFAULT_INVESTIGATION_THRESHOLD",
    "derive_count_line",
    "with_decision",
    # receipt allocation
    "AllocationMethod",
    "OutstandingInvoice",
    "InvoiceAllocation",
    "PaymentStatus",
    "ReceiptAllocationEngine",
    "ReceiptAllocationResult",
    # receiving
    "LineStatus",
    "OpenOrderLine",
    "ReceiptQuantity",
    "ReceivedLine",
    "apply_receipt",
]
