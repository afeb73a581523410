"""ORM models owned by the ledger kernel."""

from ledger_kernel.models.master import WarehouseModel
from ledger_kernel.models.movement import (
    InventoryTransactionLineModel,
    InventoryTransactionModel,
)
from ledger_kernel.models.reservation import StockReservationModel

__all__ = [
    "WarehouseModel",
    "InventoryTransactionModel",
    "InventoryTransactionLineModel",
    "StockReservationModel",
]
