"""Physical stock counts: count, reconcile against the ledger, adjust."""

from ledger_modules.physical_count.config import PhysicalCountConfig
from ledger_modules.physical_count.models import (
    CountCompletion,
    CountLine,
    CountRecordStatus,
    CountSetup,
    CountState,
)
from ledger_modules.physical_count.service import PhysicalCountSession
from ledger_modules.physical_count.workflows import PHYSICAL_COUNT_WORKFLOW

__all__ = [
    "CountCompletion",
    "CountLine",
    "CountRecordStatus",
    "CountSetup",
    "CountState",
    "PHYSICAL_COUNT_WORKFLOW",
    "PhysicalCountConfig",
    "PhysicalCountSession",
]
