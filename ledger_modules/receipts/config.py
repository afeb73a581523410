"""
Customer Receipt Configuration Schema.
"""

from dataclasses import dataclass
from typing import Self

from ledger_config.schema import LedgerSettings
from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.receipts.config")


@dataclass(frozen=True)
class ReceiptConfig:
    """
    Configuration schema for customer receipts.

        config = ReceiptConfig.from_settings(get_active_settings())
    """

    # Money is rounded ROUND_HALF_UP to this many places
    decimal_places: int = 2
    default_currency: str = "INR"
    # Module tag on the financial-transaction stub left for the bookkeeping side
    financial_module: str = "receipt"

    def __post_init__(self):
        if not 0 <= self.decimal_places <= 9:
            raise ValueError("decimal_places must be between 0 and 9")
        if len(self.default_currency) != 3:
            raise ValueError(f"default_currency must be a 3-letter code, got '{self.default_currency}'")

    @classmethod
    def from_settings(cls, settings: LedgerSettings) -> Self:
        return cls(
            decimal_places=settings.amount_decimal_places,
            default_currency=settings.default_currency,
        )
