"""
LedgerSettings schema.

The per-company business constants the ledger and its modules read.
Defaults equal the long-standing hard-coded values, so a company without a
settings file behaves exactly as before.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class LedgerSettings:
    """
    Runtime settings for one company.

    Attributes:
        company_code: Scope segment of every document number
            (``<company_code>-<TYPE>-<YYYYMMDD>-<seq>``).
        investigation_threshold: Count variances with an absolute value
            above this are flagged ``investigate`` instead of adjusted.
        amount_decimal_places: Money amounts are rounded to this many
            places (ROUND_HALF_UP).
        allow_negative_stock: Let outward movements take stock below zero.
        default_currency: Currency for receipts that name none.
    """

    company_code: str = "COMP"
    investigation_threshold: Decimal = Decimal("10")
    amount_decimal_places: int = 2
    allow_negative_stock: bool = False
    default_currency: str = "INR"

    def __post_init__(self) -> None:
        if not self.company_code or "-" in self.company_code:
            raise ValueError(
                f"company_code must be non-empty and contain no '-': {self.company_code!r}"
            )
        if not isinstance(self.investigation_threshold, Decimal):
            raise ValueError("investigation_threshold must be a Decimal")
        if self.investigation_threshold < 0:
            raise ValueError("investigation_threshold cannot be negative")
        if not 0 <= self.amount_decimal_places <= 9:
            raise ValueError("amount_decimal_places must be between 0 and 9")
        if len(self.default_currency) != 3 or not self.default_currency.isalpha():
            raise ValueError(
                f"default_currency must be a 3-letter code: {self.default_currency!r}"
            )
