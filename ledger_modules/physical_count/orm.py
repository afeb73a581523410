"""
Module: ledger_modules.physical_count.orm
Responsibility: SQLAlchemy ORM persistence for physical count records and
    their counted lines.

Architecture position: Modules > Physical count > ORM.  Inherits from
    TrackedBase.  Products, variants, units and bins are referenced by id
    with NO foreign key constraints.

Invariants enforced:
    - All quantities use Decimal (Numeric(38,9)) -- never float.
    - count_number is unique.
    - Count lines are written once, at completion, with their derived
      variance fields.
"""

from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, String, Text, Time, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_modules.physical_count.models import CountLine


class PhysicalCountModel(TrackedBase):
    """One count session's record.  Created when counting starts."""

    __tablename__ = "physical_counts"

    __table_args__ = (
        UniqueConstraint("count_number", name="uq_physical_count_number"),
        Index("idx_physical_count_warehouse", "warehouse_id"),
        Index("idx_physical_count_status", "status"),
    )

    count_number: Mapped[str] = mapped_column(String(100), nullable=False)
    warehouse_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    count_date: Mapped[date] = mapped_column(Date, nullable=False)
    count_time: Mapped[time] = mapped_column(Time, nullable=False)
    count_type: Mapped[str] = mapped_column(String(20), nullable=False)
    method: Mapped[str] = mapped_column(String(20), nullable=False)
    scheduled_by: Mapped[UUID | None] = mapped_column(UUIDString())
    counted_by: Mapped[UUID | None] = mapped_column(UUIDString())
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    total_items_counted: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_variance: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    adjustment_txn_id: Mapped[UUID | None] = mapped_column(UUIDString())
    started_at: Mapped[datetime | None] = mapped_column()
    completed_at: Mapped[datetime | None] = mapped_column()
    remarks: Mapped[str | None] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<PhysicalCountModel {self.count_number} status={self.status}>"


class PhysicalCountLineModel(TrackedBase):
    """One counted line of a completed count."""

    __tablename__ = "physical_count_details"

    __table_args__ = (
        UniqueConstraint("count_id", "line_no", name="uq_physical_count_line_no"),
        Index("idx_physical_count_line_product", "product_id"),
    )

    count_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("physical_counts.id"), nullable=False,
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    variant_id: Mapped[UUID | None] = mapped_column(UUIDString())
    uom_id: Mapped[UUID | None] = mapped_column(UUIDString())
    bin_id: Mapped[UUID | None] = mapped_column(UUIDString())
    system_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    counted_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    variance_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    adjustment_decision: Mapped[str] = mapped_column(String(20), nullable=False)
    adjustment_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    reason_for_variance: Mapped[str | None] = mapped_column(Text)

    @classmethod
    def row_from_dto(cls, count_id: UUID, line_no: int, line: CountLine) -> dict:
        return {
            "id": line.line_id,
            "count_id": count_id,
            "line_no": line_no,
            "product_id": line.product_id,
            "variant_id": line.variant_id,
            "uom_id": line.uom_id,
            "bin_id": line.bin_id,
            "system_quantity": line.system_quantity,
            "counted_quantity": line.counted_quantity,
            "variance_quantity": line.variance_quantity,
            "adjustment_decision": line.adjustment_decision.value,
            "adjustment_quantity": line.adjustment_quantity,
            "reason_for_variance": line.reason_for_variance,
        }

    def __repr__(self) -> str:
        return (
            f"<PhysicalCountLineModel count={self.count_id} #{self.line_no} "
            f"variance={self.variance_quantity}>"
        )
