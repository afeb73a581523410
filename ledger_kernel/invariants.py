"""
Ledger Invariants Contract.

These invariants are structural law.  They are checked by LedgerRecorder
before any row is written and by the ORM immutability listeners.  No
LedgerSettings value may switch them off.

This module exists solely to declare these invariants explicitly.  The
enforcement is distributed across LedgerRecorder, TransferCoordinator,
the immutability listeners, and SequenceService.
"""

from enum import Enum, unique


@unique
class LedgerInvariant(str, Enum):
    """Non-configurable invariants enforced by the ledger kernel."""

    SNAPSHOT_CONSISTENCY = "snapshot_consistency"
    """new_stock == previous_stock + qty for inward lines and
    previous_stock - qty for outward lines."""

    HEADER_SUMS = "header_sums"
    """Header total_quantity and total_value equal the sums over the
    transaction's lines."""

    SINGLE_WAREHOUSE_FIELD = "single_warehouse_field"
    """Each line sets exactly one of from_warehouse / to_warehouse,
    consistent with its direction."""

    TRANSFER_SYMMETRY = "transfer_symmetry"
    """Per product, the quantity leaving the source equals the quantity
    arriving at the destination."""

    IMMUTABILITY = "immutability"
    """Recorded transactions and lines are append-only.  Corrections are
    new transactions (see LedgerRecorder.reverse)."""

    SEQUENCE_MONOTONICITY = "sequence_monotonicity"
    """Document numbers are strictly increasing within a scope/type/day.
    Enforced by SequenceService with a locked counter row."""


ALL_LEDGER_INVARIANTS: frozenset[LedgerInvariant] = frozenset(LedgerInvariant)

# The kernel package may not import from these packages.  create_tables()
# loads ledger_modules._orm_registry lazily so module tables are created too.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = ("ledger_config",)
