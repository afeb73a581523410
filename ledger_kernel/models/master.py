"""
Module: ledger_kernel.models.master
Responsibility: Warehouse master rows the ledger validates against.
Architecture position: Kernel > Models.  Other masters (products, units,
    bins, customers, suppliers) live in the surrounding application and are
    referenced by id only, with no foreign keys.
"""

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase


class WarehouseModel(TrackedBase):
    """A stock-holding warehouse.  Inactive warehouses accept no movements."""

    __tablename__ = "warehouses"
    __table_args__ = (
        Index("idx_warehouse_code", "code", unique=True),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<WarehouseModel {self.code} active={self.is_active}>"
