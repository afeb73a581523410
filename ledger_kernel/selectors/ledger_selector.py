"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Read-only ledger queries: current stock per product and
    warehouse, transaction lookups, and reversal lookups.  Stock is a
    derived view over persisted stock lines; there are no stored balances.
Architecture position: Kernel > Selectors.
Invariants enforced:
    - No stored balances: every stock figure is the signed sum of lines,
      +quantity where to_warehouse_id matches and -quantity where
      from_warehouse_id matches.
    - All quantities are Decimal.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, or_, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.movement import MovementTransaction
from ledger_kernel.models.movement import (
    InventoryTransactionLineModel,
    InventoryTransactionModel,
)
from ledger_kernel.selectors.base import BaseSelector

_ZERO = Decimal("0")


@dataclass(frozen=True)
class StockPosition:
    """Net stock of one product (and variant) in one warehouse."""

    product_id: UUID
    variant_id: UUID | None
    warehouse_id: UUID
    quantity: Decimal


class LedgerSelector(BaseSelector[InventoryTransactionLineModel]):
    """
    Selector for stock and movement queries.

    ``bin_id=None`` means the whole warehouse; ``variant_id`` always
    matches exactly (None matches lines without a variant).
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def _signed_quantity(self, warehouse_id: UUID):
        line = InventoryTransactionLineModel
        return case(
            (line.to_warehouse_id == warehouse_id, line.quantity),
            (line.from_warehouse_id == warehouse_id, -line.quantity),
            else_=_ZERO,
        )

    def current_stock(
        self,
        product_id: UUID,
        warehouse_id: UUID,
        bin_id: UUID | None = None,
        variant_id: UUID | None = None,
    ) -> Decimal:
        line = InventoryTransactionLineModel
        stmt = select(
            func.coalesce(func.sum(self._signed_quantity(warehouse_id)), _ZERO)
        ).where(
            line.product_id == product_id,
            or_(
                line.to_warehouse_id == warehouse_id,
                line.from_warehouse_id == warehouse_id,
            ),
        )
        if variant_id is None:
            stmt = stmt.where(line.variant_id.is_(None))
        else:
            stmt = stmt.where(line.variant_id == variant_id)
        if bin_id is not None:
            stmt = stmt.where(line.bin_id == bin_id)

        total = self.session.execute(stmt).scalar_one()
        return Decimal(str(total)) if not isinstance(total, Decimal) else total

    def stock_positions(self, warehouse_id: UUID) -> list[StockPosition]:
        """Every product/variant with non-zero stock in the warehouse."""
        line = InventoryTransactionLineModel
        qty = func.sum(self._signed_quantity(warehouse_id))
        stmt = (
            select(line.product_id, line.variant_id, qty)
            .where(
                or_(
                    line.to_warehouse_id == warehouse_id,
                    line.from_warehouse_id == warehouse_id,
                )
            )
            .group_by(line.product_id, line.variant_id)
            .order_by(line.product_id)
        )
        positions = []
        for product_id, variant_id, total in self.session.execute(stmt):
            quantity = total if isinstance(total, Decimal) else Decimal(str(total))
            if quantity != _ZERO:
                positions.append(
                    StockPosition(product_id, variant_id, warehouse_id, quantity)
                )
        return positions

    def _to_dto(self, header: InventoryTransactionModel) -> MovementTransaction:
        lines = self.session.execute(
            select(InventoryTransactionLineModel).where(
                InventoryTransactionLineModel.txn_id == header.id
            )
        ).scalars().all()
        return header.to_dto(list(lines))

    def get_transaction(self, txn_id: UUID) -> MovementTransaction | None:
        header = self.session.get(InventoryTransactionModel, txn_id)
        if header is None:
            return None
        return self._to_dto(header)

    def get_by_number(self, txn_number: str) -> MovementTransaction | None:
        header = self.session.execute(
            select(InventoryTransactionModel).where(
                InventoryTransactionModel.txn_number == txn_number
            )
        ).scalar_one_or_none()
        if header is None:
            return None
        return self._to_dto(header)

    def transactions_for_reference(
        self, reference_document: str
    ) -> list[MovementTransaction]:
        """All transactions sharing a reference document, in number order."""
        headers = self.session.execute(
            select(InventoryTransactionModel)
            .where(InventoryTransactionModel.reference_document == reference_document)
            .order_by(InventoryTransactionModel.txn_number)
        ).scalars().all()
        return [self._to_dto(h) for h in headers]

    def find_reversal(self, txn_id: UUID) -> MovementTransaction | None:
        header = self.session.execute(
            select(InventoryTransactionModel).where(
                InventoryTransactionModel.reverses_txn_id == txn_id
            )
        ).scalar_one_or_none()
        if header is None:
            return None
        return self._to_dto(header)
