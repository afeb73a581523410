"""Warehouse-to-warehouse transfers posted as two symmetric ledger legs."""

from ledger_modules.transfer.models import TransferLine, TransferResult
from ledger_modules.transfer.service import INBOUND_SUFFIX, TransferCoordinator

__all__ = [
    "INBOUND_SUFFIX",
    "TransferCoordinator",
    "TransferLine",
    "TransferResult",
]
