"""Goods receipt notes recorded against purchase-order lines."""

from ledger_modules.receiving.models import (
    GrnParticulars,
    GrnStatus,
    QualityStatus,
    ReceivingLine,
    ReceivingOutcome,
)
from ledger_modules.receiving.service import ReceivingAllocator

__all__ = [
    "GrnParticulars",
    "GrnStatus",
    "QualityStatus",
    "ReceivingAllocator",
    "ReceivingLine",
    "ReceivingOutcome",
]
