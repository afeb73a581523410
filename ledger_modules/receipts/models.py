"""
Customer Receipt Domain Models.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_engines.allocation import ReceiptAllocationResult


class PaymentMode(str, Enum):
    CASH = "cash"
    BANK = "bank"
    CHEQUE = "cheque"
    ONLINE = "online"


@dataclass(frozen=True)
class ReceiptDetails:
    """
    Payment particulars stored on the receipt.

    ``bank_account`` and ``reference_number`` (cheque number or transaction
    id) are kept only for non-cash payments.
    """
    payment_mode: PaymentMode = PaymentMode.CASH
    bank_account: str | None = None
    reference_number: str | None = None
    currency: str | None = None
    exchange_rate: Decimal = Decimal("1")
    discount_allowed: Decimal = Decimal("0")
    advance_adjustment: Decimal = Decimal("0")
    remarks: str | None = None


@dataclass(frozen=True)
class ReceiptOutcome:
    """A recorded receipt and how it was spread over invoices."""
    receipt_id: UUID
    receipt_number: str
    allocation: ReceiptAllocationResult
    financial_transaction_id: UUID

    @property
    def balance_after_receipt(self) -> Decimal:
        return self.allocation.balance_after_receipt
