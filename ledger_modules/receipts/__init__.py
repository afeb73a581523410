"""Customer receipts allocated across outstanding sales invoices."""

from ledger_modules.receipts.config import ReceiptConfig
from ledger_modules.receipts.models import PaymentMode, ReceiptDetails, ReceiptOutcome
from ledger_modules.receipts.service import ReceiptAllocator

__all__ = [
    "PaymentMode",
    "ReceiptAllocator",
    "ReceiptConfig",
    "ReceiptDetails",
    "ReceiptOutcome",
]
