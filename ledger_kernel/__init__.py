"""
Ledger Kernel

An append-only inventory movement ledger with:
- Per-line before/after stock snapshots
- Header totals summed from lines
- Resumable multi-row writes over a single-row store
- Monotonic human-readable document numbers
- Reversal as the only correction path
"""

__version__ = "0.1.0"
