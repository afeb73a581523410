"""Read-only selectors over the movement ledger."""

from ledger_kernel.selectors.base import BaseSelector
from ledger_kernel.selectors.ledger_selector import LedgerSelector, StockPosition

__all__ = [
    "BaseSelector",
    "LedgerSelector",
    "StockPosition",
]
