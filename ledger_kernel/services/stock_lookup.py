"""
Stock lookup -- the "current stock before this movement" collaborator.

LedgerRecorder never invents a stock figure: every previous_stock comes
from a StockLookup.  Two implementations:

    LedgerStockLookup     derives stock from persisted ledger lines
                          (LedgerSelector.current_stock), one short
                          read-only session per call.
    SnapshotStockLookup   serves fixed figures captured earlier, e.g. the
                          system quantities frozen on a physical count,
                          falling back to another lookup for anything it
                          was not given.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from ledger_kernel.selectors.ledger_selector import LedgerSelector

SnapshotKey = tuple[UUID, UUID, UUID | None, UUID | None]
"""(product_id, warehouse_id, bin_id, variant_id)"""


class StockLookup(ABC):
    """Current stock of a product in a warehouse, before the pending movement."""

    @abstractmethod
    def current_stock(
        self,
        product_id: UUID,
        warehouse_id: UUID,
        bin_id: UUID | None = None,
        variant_id: UUID | None = None,
    ) -> Decimal:
        ...


class LedgerStockLookup(StockLookup):
    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def current_stock(
        self,
        product_id: UUID,
        warehouse_id: UUID,
        bin_id: UUID | None = None,
        variant_id: UUID | None = None,
    ) -> Decimal:
        with self._session_factory() as session:
            return LedgerSelector(session).current_stock(
                product_id, warehouse_id, bin_id=bin_id, variant_id=variant_id
            )


class SnapshotStockLookup(StockLookup):
    """Fixed stock figures keyed by (product, warehouse, bin, variant)."""

    def __init__(
        self,
        snapshots: Mapping[SnapshotKey, Decimal],
        fallback: StockLookup | None = None,
    ):
        self._snapshots = dict(snapshots)
        self._fallback = fallback

    def current_stock(
        self,
        product_id: UUID,
        warehouse_id: UUID,
        bin_id: UUID | None = None,
        variant_id: UUID | None = None,
    ) -> Decimal:
        key = (product_id, warehouse_id, bin_id, variant_id)
        if key in self._snapshots:
            return self._snapshots[key]
        if self._fallback is None:
            raise KeyError(f"No stock snapshot for {key}")
        return self._fallback.current_stock(
            product_id, warehouse_id, bin_id=bin_id, variant_id=variant_id
        )
