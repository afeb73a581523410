"""
Module: ledger_kernel.models.reservation
Responsibility: ORM persistence for stock reservations.
Architecture position: Kernel > Models.
Invariants enforced:
    - reserved_quantity is positive (checked by StockReservationService).
    - Only ``status`` changes after insert; a released reservation stays
      on file.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.reservation import ReservationStatus, StockReservation


class StockReservationModel(TrackedBase):
    __tablename__ = "stock_reservations"
    __table_args__ = (
        Index("idx_reservation_product_wh", "product_id", "warehouse_id", "status"),
        Index("idx_reservation_reference", "reference_type", "reference_id"),
    )

    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    variant_id: Mapped[UUID | None] = mapped_column(UUIDString())
    warehouse_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    bin_id: Mapped[UUID | None] = mapped_column(UUIDString())
    reserved_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    reference_type: Mapped[str | None] = mapped_column(String(50))
    reference_id: Mapped[UUID | None] = mapped_column(UUIDString())
    reference_number: Mapped[str | None] = mapped_column(String(100))
    reservation_date: Mapped[date] = mapped_column(Date, nullable=False)
    expiry_date: Mapped[date | None] = mapped_column(Date)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ReservationStatus.ACTIVE.value
    )
    notes: Mapped[str | None] = mapped_column(Text)

    def to_dto(self) -> StockReservation:
        return StockReservation(
            id=self.id,
            product_id=self.product_id,
            warehouse_id=self.warehouse_id,
            reserved_quantity=self.reserved_quantity,
            reservation_date=self.reservation_date,
            status=ReservationStatus(self.status),
            variant_id=self.variant_id,
            bin_id=self.bin_id,
            reference_type=self.reference_type,
            reference_id=self.reference_id,
            reference_number=self.reference_number,
            expiry_date=self.expiry_date,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return (
            f"<StockReservationModel product={self.product_id} "
            f"qty={self.reserved_quantity} status={self.status}>"
        )
