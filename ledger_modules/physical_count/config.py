"""
Physical Count Configuration Schema.

Defaults are the long-standing business constants; company values come
from ``ledger_config.LedgerSettings`` via ``from_settings``.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Self

from ledger_config.schema import LedgerSettings
from ledger_engines.count_variance import DEFAULT_INVESTIGATION_THRESHOLD
from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.physical_count.config")

VALID_COUNT_TYPES = {"full", "partial", "cycle"}
VALID_COUNT_METHODS = {"full", "partial", "abc"}


@dataclass(frozen=True)
class PhysicalCountConfig:
    """
    Configuration schema for physical counts.

        config = PhysicalCountConfig.from_settings(get_active_settings())
    """

    # Variances with an absolute value above this are flagged for
    # investigation rather than adjusted automatically.
    investigation_threshold: Decimal = DEFAULT_INVESTIGATION_THRESHOLD
    adjustment_remarks: str = "Physical Count Adjustment"
    reason_prefix: str = "Physical Count Adjustment"

    def __post_init__(self):
        if not isinstance(self.investigation_threshold, Decimal):
            raise ValueError("investigation_threshold must be a Decimal")
        if self.investigation_threshold < 0:
            raise ValueError("investigation_threshold cannot be negative")
        if not self.reason_prefix:
            raise ValueError("reason_prefix must be non-empty")

    @classmethod
    def from_settings(cls, settings: LedgerSettings) -> Self:
        config = cls(investigation_threshold=settings.investigation_threshold)
        logger.info(
            "physical_count_config_loaded",
            extra={"investigation_threshold": str(config.investigation_threshold)},
        )
        return config
