"""
Module: ledger_modules.receiving.orm
Responsibility: SQLAlchemy ORM persistence for purchase-order lines and the
    goods receipt notes (GRNs) recorded against them.

Architecture position: Modules > Receiving > ORM.  Inherits from
    TrackedBase.  Vendors, products and bins are referenced by id with NO
    foreign key constraints.

Invariants enforced:
    - All quantity and money fields use Decimal (Numeric(38,9)).
    - grn_number is unique; it is also the number of the purchase_in
      ledger transaction the GRN posts.
    - pending_quantity on a PO line is never written negative (the
      receiving engine rejects over-receipts first).
"""

from datetime import date, time
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, String, Text, Time, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_engines.receiving import LineStatus, OpenOrderLine
from ledger_kernel.db.base import TrackedBase, UUIDString


class PurchaseOrderLineModel(TrackedBase):
    """One line of a purchase order with its running received quantities."""

    __tablename__ = "purchase_order_details"

    __table_args__ = (
        Index("idx_po_detail_po", "po_id"),
        Index("idx_po_detail_status", "line_status"),
    )

    po_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    variant_id: Mapped[UUID | None] = mapped_column(UUIDString())
    uom_id: Mapped[UUID | None] = mapped_column(UUIDString())
    ordered_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    received_quantity: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    pending_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    rate: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    # LineStatus value: open / partially_received / fully_received
    line_status: Mapped[str] = mapped_column(
        String(30), default=LineStatus.OPEN.value, nullable=False,
    )

    def to_open_line(self) -> OpenOrderLine:
        return OpenOrderLine(
            po_detail_id=self.id,
            po_id=self.po_id,
            product_id=self.product_id,
            ordered_quantity=self.ordered_quantity,
            received_quantity=self.received_quantity,
            pending_quantity=self.pending_quantity,
            rate=self.rate,
            line_status=LineStatus(self.line_status),
            variant_id=self.variant_id,
            uom_id=self.uom_id,
        )

    def __repr__(self) -> str:
        return f"<PurchaseOrderLineModel po={self.po_id} pending={self.pending_quantity}>"


class GoodsReceiptModel(TrackedBase):
    """Goods receipt note header."""

    __tablename__ = "goods_receipt_notes"

    __table_args__ = (
        UniqueConstraint("grn_number", name="uq_goods_receipt_number"),
        Index("idx_grn_po", "po_id"),
        Index("idx_grn_warehouse", "warehouse_id"),
    )

    grn_number: Mapped[str] = mapped_column(String(100), nullable=False)
    grn_date: Mapped[date] = mapped_column(Date, nullable=False)
    grn_time: Mapped[time] = mapped_column(Time, nullable=False)
    po_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    vendor_id: Mapped[UUID | None] = mapped_column(UUIDString())
    warehouse_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    delivery_challan_number: Mapped[str | None] = mapped_column(String(100))
    delivery_challan_date: Mapped[date | None] = mapped_column(Date)
    vehicle_number: Mapped[str | None] = mapped_column(String(50))
    received_by: Mapped[UUID | None] = mapped_column(UUIDString())
    quality_status: Mapped[str] = mapped_column(String(20), nullable=False)
    quality_remarks: Mapped[str | None] = mapped_column(Text)
    subtotal: Mapped[Decimal] = mapped_column(nullable=False)
    freight_charges: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    other_charges: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    grn_status: Mapped[str] = mapped_column(String(20), nullable=False)
    inventory_txn_id: Mapped[UUID | None] = mapped_column(UUIDString())
    remarks: Mapped[str | None] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<GoodsReceiptModel {self.grn_number} status={self.grn_status}>"


class GoodsReceiptLineModel(TrackedBase):
    """One received PO line on a GRN.  Rejected quantity never reaches stock."""

    __tablename__ = "goods_receipt_note_details"

    __table_args__ = (
        UniqueConstraint("grn_id", "line_no", name="uq_grn_line_no"),
        Index("idx_grn_line_po_detail", "po_detail_id"),
    )

    grn_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("goods_receipt_notes.id"), nullable=False,
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    po_detail_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    variant_id: Mapped[UUID | None] = mapped_column(UUIDString())
    uom_id: Mapped[UUID | None] = mapped_column(UUIDString())
    received_qty: Mapped[Decimal] = mapped_column(nullable=False)
    accepted_qty: Mapped[Decimal] = mapped_column(nullable=False)
    rejected_qty: Mapped[Decimal] = mapped_column(nullable=False)
    rate: Mapped[Decimal] = mapped_column(nullable=False)
    line_amount: Mapped[Decimal] = mapped_column(nullable=False)
    bin_id: Mapped[UUID | None] = mapped_column(UUIDString())
    reason_for_rejection: Mapped[str | None] = mapped_column(Text)
    batch_lot_number: Mapped[str | None] = mapped_column(String(100))
