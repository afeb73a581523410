"""
Module: ledger_kernel.models.movement
Responsibility: ORM persistence for movement transaction headers and their
    stock lines -- the single source of truth for stock positions.
Architecture position: Kernel > Models.  May import from db/base.py and the
    pure domain DTOs it converts to and from.
Invariants enforced:
    - txn_number is unique.
    - (txn_id, line_no) is unique.
    - Immutability: ORM listeners in db/immutability.py block UPDATE/DELETE
      on both tables from the moment a row exists.
Failure modes:
    - IntegrityError on duplicate txn_number or duplicate pre-assigned id.
    - ImmutabilityViolationError on any UPDATE/DELETE.
Audit relevance:
    Every stock figure the system reports is derived from these rows.
"""

from datetime import date, time
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.movement import (
    MovementTransaction,
    MovementType,
    StockLine,
)


class InventoryTransactionModel(TrackedBase):
    """Movement transaction header.  Append-only."""

    __tablename__ = "inventory_transactions"
    __table_args__ = (
        UniqueConstraint("txn_number", name="uq_inventory_txn_number"),
        Index("idx_inventory_txn_warehouse", "warehouse_id"),
        Index("idx_inventory_txn_reference", "reference_document"),
        Index("idx_inventory_txn_reverses", "reverses_txn_id"),
    )

    txn_number: Mapped[str] = mapped_column(String(100), nullable=False)
    txn_type: Mapped[str] = mapped_column(String(30), nullable=False)
    txn_date: Mapped[date] = mapped_column(Date, nullable=False)
    txn_time: Mapped[time] = mapped_column(Time, nullable=False)
    warehouse_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    total_items: Mapped[int] = mapped_column(Integer, nullable=False)
    total_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    total_value: Mapped[Decimal] = mapped_column(nullable=False)
    reference_document: Mapped[str | None] = mapped_column(String(200))
    related_id: Mapped[UUID | None] = mapped_column(UUIDString())
    remarks: Mapped[str | None] = mapped_column(Text)
    # Set on reversal transactions; points at the transaction being undone
    reverses_txn_id: Mapped[UUID | None] = mapped_column(UUIDString())

    @classmethod
    def row_from_dto(cls, txn: MovementTransaction) -> dict:
        return {
            "id": txn.id,
            "txn_number": txn.txn_number,
            "txn_type": txn.txn_type.value,
            "txn_date": txn.txn_date,
            "txn_time": txn.txn_time,
            "warehouse_id": txn.warehouse_id,
            "total_items": txn.total_items,
            "total_quantity": txn.total_quantity,
            "total_value": txn.total_value,
            "reference_document": txn.reference_document,
            "related_id": txn.related_id,
            "remarks": txn.remarks,
            "reverses_txn_id": txn.reverses_txn_id,
        }

    def to_dto(self, lines: list["InventoryTransactionLineModel"]) -> MovementTransaction:
        ordered = sorted(lines, key=lambda ln: ln.line_no)
        return MovementTransaction(
            id=self.id,
            txn_number=self.txn_number,
            txn_type=MovementType(self.txn_type),
            txn_date=self.txn_date,
            txn_time=self.txn_time,
            warehouse_id=self.warehouse_id,
            lines=tuple(ln.to_dto() for ln in ordered),
            total_items=self.total_items,
            total_quantity=self.total_quantity,
            total_value=self.total_value,
            reference_document=self.reference_document,
            related_id=self.related_id,
            remarks=self.remarks,
            reverses_txn_id=self.reverses_txn_id,
        )

    def __repr__(self) -> str:
        return (
            f"<InventoryTransactionModel {self.txn_number} "
            f"type={self.txn_type} items={self.total_items}>"
        )


class InventoryTransactionLineModel(TrackedBase):
    """One stock line with its before/after snapshot.  Append-only."""

    __tablename__ = "inventory_transaction_details"
    __table_args__ = (
        UniqueConstraint("txn_id", "line_no", name="uq_inventory_txn_line_no"),
        Index("idx_inventory_line_product_to", "product_id", "to_warehouse_id"),
        Index("idx_inventory_line_product_from", "product_id", "from_warehouse_id"),
    )

    txn_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_transactions.id"),
        nullable=False,
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    variant_id: Mapped[UUID | None] = mapped_column(UUIDString())
    uom_id: Mapped[UUID | None] = mapped_column(UUIDString())
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)
    total_cost: Mapped[Decimal] = mapped_column(nullable=False)
    from_warehouse_id: Mapped[UUID | None] = mapped_column(UUIDString())
    to_warehouse_id: Mapped[UUID | None] = mapped_column(UUIDString())
    bin_id: Mapped[UUID | None] = mapped_column(UUIDString())
    previous_stock: Mapped[Decimal] = mapped_column(nullable=False)
    new_stock: Mapped[Decimal] = mapped_column(nullable=False)
    reason_code: Mapped[str | None] = mapped_column(Text)

    @classmethod
    def row_from_dto(cls, txn_id: UUID, line: StockLine) -> dict:
        return {
            "txn_id": txn_id,
            "line_no": line.line_no,
            "product_id": line.product_id,
            "variant_id": line.variant_id,
            "uom_id": line.uom_id,
            "quantity": line.quantity,
            "unit_cost": line.unit_cost,
            "total_cost": line.total_cost,
            "from_warehouse_id": line.from_warehouse_id,
            "to_warehouse_id": line.to_warehouse_id,
            "bin_id": line.bin_id,
            "previous_stock": line.previous_stock,
            "new_stock": line.new_stock,
            "reason_code": line.reason_code,
        }

    def to_dto(self) -> StockLine:
        return StockLine(
            line_no=self.line_no,
            product_id=self.product_id,
            variant_id=self.variant_id,
            uom_id=self.uom_id,
            quantity=self.quantity,
            unit_cost=self.unit_cost,
            total_cost=self.total_cost,
            from_warehouse_id=self.from_warehouse_id,
            to_warehouse_id=self.to_warehouse_id,
            bin_id=self.bin_id,
            previous_stock=self.previous_stock,
            new_stock=self.new_stock,
            reason_code=self.reason_code,
        )

    def __repr__(self) -> str:
        return (
            f"<InventoryTransactionLineModel txn={self.txn_id} #{self.line_no} "
            f"product={self.product_id} qty={self.quantity}>"
        )
