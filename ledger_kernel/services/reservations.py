"""
StockReservationService -- earmarks stock without moving it.

Responsibility:
    Creates, releases and lists stock reservations, and answers how much of
    a product is reserved, so LedgerRecorder can refuse outward movements
    that would draw on reserved stock.
Architecture position:
    Kernel > Services -- imperative shell over the Store.
Invariants enforced:
    - reserved_quantity > 0.
    - A reservation is only released once.
    - Expired reservations (expiry_date before the as-of date) reserve
      nothing, whatever their status.
    - Bin matching follows the stock lookups: a bin-level question counts
      that bin's reservations; a whole-warehouse question counts every
      reservation for the product in the warehouse.
Failure modes:
    - InvalidQuantityError, InvalidWarehouseError, InsufficientStockError
      from ``reserve`` before anything is written.
    - ReservationNotFoundError, ReservationNotActiveError from ``release``.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal, InvalidOperation
from uuid import UUID

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.reservation import (
    ReservationRequest,
    ReservationStatus,
    StockReservation,
)
from ledger_kernel.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    InvalidWarehouseError,
    ReservationNotActiveError,
    ReservationNotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.master import WarehouseModel
from ledger_kernel.models.reservation import StockReservationModel
from ledger_kernel.services.stock_lookup import StockLookup
from ledger_kernel.services.store import Store

logger = get_logger("services.reservations")

_ZERO = Decimal("0")


class StockReservationService:
    """
    Reservations on a single-row store.

    When built with a ``stock_lookup``, ``reserve`` refuses to reserve more
    than the unreserved stock of the requested product/variant/bin.
    """

    def __init__(
        self,
        store: Store,
        stock_lookup: StockLookup | None = None,
        clock: Clock | None = None,
    ):
        self._store = store
        self._stock_lookup = stock_lookup
        self._clock = clock or SystemClock()

    def reserve(self, warehouse_id: UUID, request: ReservationRequest) -> StockReservation:
        try:
            quantity = Decimal(str(request.quantity))
        except InvalidOperation:
            quantity = None
        if quantity is None or not quantity.is_finite() or quantity <= _ZERO:
            raise InvalidQuantityError(str(request.product_id), str(request.quantity))

        warehouse = self._store.get(WarehouseModel, warehouse_id)
        if warehouse is None or not warehouse.is_active:
            raise InvalidWarehouseError(str(warehouse_id))

        today = self._clock.today()
        if self._stock_lookup is not None:
            available = self.available_stock(
                request.product_id,
                warehouse_id,
                bin_id=request.bin_id,
                variant_id=request.variant_id,
                as_of=today,
            )
            if quantity > available:
                raise InsufficientStockError(
                    product_id=str(request.product_id),
                    warehouse_id=str(warehouse_id),
                    available=str(available),
                    required=str(quantity),
                )

        row = {
            "product_id": request.product_id,
            "variant_id": request.variant_id,
            "warehouse_id": warehouse_id,
            "bin_id": request.bin_id,
            "reserved_quantity": quantity,
            "reference_type": request.reference_type,
            "reference_id": request.reference_id,
            "reference_number": request.reference_number,
            "reservation_date": today,
            "expiry_date": request.expiry_date,
            "status": ReservationStatus.ACTIVE.value,
            "notes": request.notes,
        }
        reservation_id = self._store.insert(StockReservationModel, row)
        logger.info(
            "stock_reserved",
            extra={
                "reservation_id": reservation_id,
                "product_id": request.product_id,
                "warehouse_id": warehouse_id,
                "quantity": quantity,
                "reference_number": request.reference_number,
            },
        )
        return StockReservation(
            id=reservation_id,
            product_id=request.product_id,
            warehouse_id=warehouse_id,
            reserved_quantity=quantity,
            reservation_date=today,
            status=ReservationStatus.ACTIVE,
            variant_id=request.variant_id,
            bin_id=request.bin_id,
            reference_type=request.reference_type,
            reference_id=request.reference_id,
            reference_number=request.reference_number,
            expiry_date=request.expiry_date,
            notes=request.notes,
        )

    def release(self, reservation_id: UUID) -> StockReservation:
        row = self._store.get(StockReservationModel, reservation_id)
        if row is None:
            raise ReservationNotFoundError(str(reservation_id))
        if row.status != ReservationStatus.ACTIVE.value:
            raise ReservationNotActiveError(str(reservation_id), row.status)

        self._store.update(
            StockReservationModel,
            reservation_id,
            {"status": ReservationStatus.RELEASED.value},
        )
        logger.info("reservation_released", extra={"reservation_id": reservation_id})
        return replace(row.to_dto(), status=ReservationStatus.RELEASED)

    def active_reservations(
        self,
        product_id: UUID,
        warehouse_id: UUID,
        variant_id: UUID | None = None,
        *,
        as_of: date | None = None,
    ) -> list[StockReservation]:
        """Unexpired active reservations, oldest first.  No variant lists all variants."""
        filters = {}
        if variant_id is not None:
            filters["variant_id"] = variant_id
        return self._active(product_id, warehouse_id, as_of, **filters)

    def reserved_quantity(
        self,
        product_id: UUID,
        warehouse_id: UUID,
        bin_id: UUID | None = None,
        variant_id: UUID | None = None,
        *,
        as_of: date | None = None,
    ) -> Decimal:
        filters = {"variant_id": variant_id}
        if bin_id is not None:
            filters["bin_id"] = bin_id
        return sum(
            (r.reserved_quantity for r in self._active(product_id, warehouse_id, as_of, **filters)),
            _ZERO,
        )

    def available_stock(
        self,
        product_id: UUID,
        warehouse_id: UUID,
        bin_id: UUID | None = None,
        variant_id: UUID | None = None,
        *,
        as_of: date | None = None,
    ) -> Decimal:
        """Current stock less active reservations.  Needs a stock lookup."""
        if self._stock_lookup is None:
            raise RuntimeError("StockReservationService was built without a stock lookup")
        current = self._stock_lookup.current_stock(
            product_id, warehouse_id, bin_id=bin_id, variant_id=variant_id
        )
        return current - self.reserved_quantity(
            product_id, warehouse_id, bin_id=bin_id, variant_id=variant_id, as_of=as_of
        )

    def _active(
        self, product_id: UUID, warehouse_id: UUID, as_of: date | None, **filters
    ) -> list[StockReservation]:
        as_of = as_of or self._clock.today()
        rows = self._store.query(
            StockReservationModel,
            order_by=["reservation_date", "created_at"],
            product_id=product_id,
            warehouse_id=warehouse_id,
            status=ReservationStatus.ACTIVE.value,
            **filters,
        )
        return [dto for dto in (row.to_dto() for row in rows) if dto.is_active_on(as_of)]
