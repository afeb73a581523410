"""
LedgerRecorder -- builds and persists movement transactions.

Responsibility:
    Turns a requested movement (type, warehouse, date/time, lines,
    reference) into a MovementTransaction with per-line before/after stock
    snapshots and summed header totals, and persists it as one header row
    plus one row per line.  Also posts reversals, the only correction path
    an append-only ledger has.

Architecture position:
    Kernel > Services -- imperative shell.  Consumes Store, StockLookup and
    DocumentNumberService.  Called by TransferCoordinator,
    PhysicalCountSession, ReceivingAllocator and stock-entry callers.

Invariants enforced:
    - Snapshot consistency: previous_stock comes from the StockLookup (never
      invented) plus what earlier lines of the same transaction moved;
      new_stock = previous +/- quantity.  A whole-warehouse line (no bin)
      sees every earlier line for its product/variant, a bin-level line
      sees earlier lines for its bin.
    - Sufficient stock: unless negative stock is allowed, an outward line
      may not exceed its key's stock less active reservations, and a
      bin-level outward line may not exceed the whole-warehouse figure
      either.
    - Header sums: totals are summed from the built lines, never re-queried.
    - Append-only: there is no update path; ``reverse`` posts a new
      transaction linked by reverses_txn_id.

Failure modes (all raised by ``prepare``, before any write):
    - EmptyLinesError, InvalidQuantityError, InvalidUnitCostError,
      LineDirectionError, InvalidWarehouseError, InsufficientStockError.
    - InvariantViolationError if a built transaction fails its own checks.
Failure modes of ``post``:
    - PersistenceFailure if the header write fails (nothing written).
    - PartialPostingFailure if a line write fails after the header was
      written; ``resume(failure)`` writes the remaining lines.

Audit relevance:
    ``movement_posted`` is logged with the transaction number, type,
    warehouse and totals.  Partial failures are logged at ERROR with every
    written id by the saga.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from datetime import date, time
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from ledger_kernel.domain.movement import (
    LineRequest,
    MovementDirection,
    MovementReference,
    MovementTransaction,
    MovementType,
    StockKey,
    StockLine,
)
from ledger_kernel.exceptions import (
    EmptyLinesError,
    InsufficientStockError,
    InvalidQuantityError,
    InvalidUnitCostError,
    InvalidWarehouseError,
    InvariantViolationError,
    LineDirectionError,
    PartialFailure,
    TransactionAlreadyReversedError,
    TransactionNotFoundError,
)
from ledger_kernel.invariants import LedgerInvariant
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.master import WarehouseModel
from ledger_kernel.models.movement import (
    InventoryTransactionLineModel,
    InventoryTransactionModel,
)
from ledger_kernel.services.document_numbers import DocumentNumberService
from ledger_kernel.services.reservations import StockReservationService
from ledger_kernel.services.saga import Saga
from ledger_kernel.services.stock_lookup import StockLookup
from ledger_kernel.services.store import Store

logger = get_logger("services.ledger_recorder")

_ZERO = Decimal("0")


def _as_decimal(value: Any) -> Decimal | None:
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, float):
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


class LedgerRecorder:
    """
    Records movement transactions on a single-row store.

    ``record`` is ``post(prepare(...))``.  Callers that write other rows
    around a movement (count completion, goods receiving) call ``prepare``
    up front so every validation error surfaces before their first write,
    and run ``post`` as a step of their own saga.
    """

    def __init__(
        self,
        store: Store,
        numbers: DocumentNumberService,
        stock_lookup: StockLookup,
        *,
        allow_negative_stock: bool = False,
        reservations: StockReservationService | None = None,
    ):
        self._store = store
        self._numbers = numbers
        self._stock_lookup = stock_lookup
        self._allow_negative_stock = allow_negative_stock
        self._reservations = reservations

    @property
    def stock_lookup(self) -> StockLookup:
        return self._stock_lookup

    # -- validation & build -------------------------------------------------

    def require_warehouse(self, warehouse_id: UUID | None) -> None:
        """Raise InvalidWarehouseError unless the id is an active warehouse."""
        if warehouse_id is None:
            raise InvalidWarehouseError(None)
        warehouse = self._store.get(WarehouseModel, warehouse_id)
        if warehouse is None or not warehouse.is_active:
            raise InvalidWarehouseError(str(warehouse_id))

    def prepare(
        self,
        txn_type: MovementType | str,
        warehouse_id: UUID,
        txn_date: date,
        txn_time: time,
        lines: Sequence[LineRequest],
        reference: MovementReference | None = None,
        *,
        txn_number: str | None = None,
        stock_lookup: StockLookup | None = None,
        reverses_txn_id: UUID | None = None,
        honor_reservations: bool = True,
    ) -> MovementTransaction:
        """
        Validate a movement and build its transaction without writing it.

        Args:
            txn_type: Movement type; fixes the default line direction.
            warehouse_id: Warehouse the movement happens in.
            lines: Requested lines, in posting order.
            reference: Source document, related id and remarks.
            txn_number: Pre-allocated number (transfers, goods receipts).
                A new number is allocated when omitted.
            stock_lookup: Overrides the recorder's lookup for this movement.
            honor_reservations: When False, outward lines may draw on
                reserved stock.  Count adjustments pass False: the count
                is the physical truth whatever was promised.

        Raises:
            ValidationError subclasses and InvariantViolationError.
        """
        txn_type = MovementType(txn_type)
        if not lines:
            raise EmptyLinesError(txn_type.value)

        self._validate_lines(txn_type, lines)
        self.require_warehouse(warehouse_id)

        stock_lines = self._build_lines(
            txn_type,
            warehouse_id,
            txn_date,
            lines,
            stock_lookup or self._stock_lookup,
            honor_reservations,
        )

        if txn_number is None:
            txn_number = self._numbers.next_for_movement(txn_type, txn_date)

        txn = MovementTransaction.build(
            txn_number=txn_number,
            txn_type=txn_type,
            txn_date=txn_date,
            txn_time=txn_time,
            warehouse_id=warehouse_id,
            lines=stock_lines,
            reference=reference,
            reverses_txn_id=reverses_txn_id,
        )
        violations = txn.header_sum_violations()
        if violations:
            raise InvariantViolationError(
                LedgerInvariant.HEADER_SUMS.value, "; ".join(violations)
            )
        return txn

    def _validate_lines(
        self, txn_type: MovementType, lines: Sequence[LineRequest]
    ) -> None:
        for req in lines:
            quantity = _as_decimal(req.quantity)
            if quantity is None or quantity <= _ZERO:
                raise InvalidQuantityError(str(req.product_id), str(req.quantity))
            unit_cost = _as_decimal(req.unit_cost)
            if unit_cost is None or unit_cost < _ZERO:
                raise InvalidUnitCostError(str(req.product_id), str(req.unit_cost))
            if (
                req.direction is not None
                and req.direction != txn_type.direction
                and not txn_type.is_adjustment
            ):
                raise LineDirectionError(txn_type.value, str(req.product_id))

    def _build_lines(
        self,
        txn_type: MovementType,
        warehouse_id: UUID,
        txn_date: date,
        lines: Sequence[LineRequest],
        lookup: StockLookup,
        honor_reservations: bool,
    ) -> tuple[StockLine, ...]:
        # Signed quantity already moved per key by earlier lines of this movement
        pending: dict[StockKey, Decimal] = {}
        built: list[StockLine] = []

        def stock_before(product_id, variant_id, bin_id) -> Decimal:
            current = lookup.current_stock(
                product_id, warehouse_id, bin_id=bin_id, variant_id=variant_id
            )
            return current + sum(
                (
                    moved
                    for (p, v, b), moved in pending.items()
                    if p == product_id and v == variant_id
                    and (bin_id is None or b == bin_id)
                ),
                _ZERO,
            )

        for line_no, req in enumerate(lines, start=1):
            quantity = _as_decimal(req.quantity)
            unit_cost = _as_decimal(req.unit_cost)
            direction = req.direction or txn_type.direction

            previous = stock_before(req.product_id, req.variant_id, req.bin_id)
            new_stock = StockLine.expected_new_stock(direction, previous, quantity)

            if direction is MovementDirection.OUTWARD and not self._allow_negative_stock:
                self._check_sufficient(
                    req, warehouse_id, txn_date, previous, quantity, honor_reservations
                )
                if req.bin_id is not None:
                    # The bin may hold stock the whole-warehouse figure no longer has
                    whole = stock_before(req.product_id, req.variant_id, None)
                    self._check_sufficient(
                        replace(req, bin_id=None), warehouse_id, txn_date,
                        whole, quantity, honor_reservations,
                    )

            inward = direction is MovementDirection.INWARD
            built.append(
                StockLine(
                    line_no=line_no,
                    product_id=req.product_id,
                    variant_id=req.variant_id,
                    uom_id=req.uom_id,
                    quantity=quantity,
                    unit_cost=unit_cost,
                    total_cost=quantity * unit_cost,
                    from_warehouse_id=None if inward else warehouse_id,
                    to_warehouse_id=warehouse_id if inward else None,
                    bin_id=req.bin_id,
                    previous_stock=previous,
                    new_stock=new_stock,
                    reason_code=req.reason_code,
                )
            )
            key: StockKey = (req.product_id, req.variant_id, req.bin_id)
            pending[key] = pending.get(key, _ZERO) + (new_stock - previous)

        return tuple(built)

    def _check_sufficient(
        self,
        req: LineRequest,
        warehouse_id: UUID,
        txn_date: date,
        stock: Decimal,
        quantity: Decimal,
        honor_reservations: bool,
    ) -> None:
        available = stock
        if honor_reservations and self._reservations is not None:
            available -= self._reservations.reserved_quantity(
                req.product_id,
                warehouse_id,
                bin_id=req.bin_id,
                variant_id=req.variant_id,
                as_of=txn_date,
            )
        if quantity > available:
            raise InsufficientStockError(
                product_id=str(req.product_id),
                warehouse_id=str(warehouse_id),
                available=str(available),
                required=str(quantity),
            )

    # -- persistence --------------------------------------------------------

    def posting_saga(self, txn: MovementTransaction) -> Saga:
        """Header step then one step per line; finalizes to ``txn``.

        Callers that post a movement as one step of a larger operation add
        this saga to their own with ``Saga.add_saga``.
        """
        saga = Saga(
            "post_movement", txn.txn_number, finalize=lambda _: self._posted(txn)
        )
        saga.add_step(
            "header",
            lambda: self._store.insert(
                InventoryTransactionModel,
                InventoryTransactionModel.row_from_dto(txn),
            ),
        )
        for line in txn.lines:
            saga.add_step(
                f"line:{line.line_no}",
                lambda line=line: self._store.insert(
                    InventoryTransactionLineModel,
                    InventoryTransactionLineModel.row_from_dto(txn.id, line),
                ),
            )
        return saga

    def post(self, txn: MovementTransaction) -> MovementTransaction:
        """Persist a prepared transaction: one header row, then each line."""
        with LogContext.bind(
            txn_number=txn.txn_number, reference=txn.reference_document
        ):
            logger.info(
                "movement_posting_started",
                extra={
                    "txn_id": txn.id,
                    "txn_type": txn.txn_type.value,
                    "total_items": txn.total_items,
                },
            )
            return self.posting_saga(txn).execute()

    def record(
        self,
        txn_type: MovementType | str,
        warehouse_id: UUID,
        txn_date: date,
        txn_time: time,
        lines: Sequence[LineRequest],
        reference: MovementReference | None = None,
        **kwargs: Any,
    ) -> MovementTransaction:
        """Validate, build and persist a movement transaction."""
        txn = self.prepare(
            txn_type, warehouse_id, txn_date, txn_time, lines, reference, **kwargs
        )
        return self.post(txn)

    def resume(self, failure: PartialFailure) -> Any:
        """Write the steps a partial posting left pending."""
        with LogContext.bind(reference=failure.reference):
            logger.info(
                "movement_posting_resumed",
                extra={"pending_steps": failure.pending_steps},
            )
            return failure.saga.execute()

    def _posted(self, txn: MovementTransaction) -> MovementTransaction:
        logger.info(
            "movement_posted",
            extra={
                "txn_id": txn.id,
                "txn_number": txn.txn_number,
                "txn_type": txn.txn_type.value,
                "warehouse_id": txn.warehouse_id,
                "total_items": txn.total_items,
                "total_quantity": txn.total_quantity,
                "total_value": txn.total_value,
            },
        )
        return txn

    # -- reads & reversal ---------------------------------------------------

    def load(self, txn_id: UUID) -> MovementTransaction | None:
        header = self._store.get(InventoryTransactionModel, txn_id)
        if header is None:
            return None
        lines = self._store.query(InventoryTransactionLineModel, txn_id=txn_id)
        return header.to_dto(lines)

    def reverse(
        self,
        txn_id: UUID,
        txn_date: date,
        txn_time: time,
        reason: str,
    ) -> MovementTransaction:
        """
        Undo a recorded transaction by posting its mirror image.

        Every line is re-posted with its direction flipped as an adjustment
        (adjustment_out for an inward original, adjustment_in for an
        outward one), with snapshots taken from current stock.  The
        original rows are not touched.

        Raises:
            TransactionNotFoundError: No transaction with ``txn_id``.
            TransactionAlreadyReversedError: A reversal already exists.
            InsufficientStockError: The stock an inward original brought in
                has since been issued.
        """
        original = self.load(txn_id)
        if original is None:
            raise TransactionNotFoundError(str(txn_id))

        existing = self._store.query(InventoryTransactionModel, reverses_txn_id=txn_id)
        if existing:
            raise TransactionAlreadyReversedError(str(txn_id), str(existing[0].id))

        if original.txn_type.direction is MovementDirection.INWARD:
            reversal_type = MovementType.ADJUSTMENT_OUT
        else:
            reversal_type = MovementType.ADJUSTMENT_IN

        requests = [
            LineRequest(
                product_id=line.product_id,
                quantity=line.quantity,
                unit_cost=line.unit_cost,
                uom_id=line.uom_id,
                variant_id=line.variant_id,
                bin_id=line.bin_id,
                reason_code=f"Reversal of {original.txn_number}: {reason}",
                direction=line.direction.flipped(),
            )
            for line in original.lines
        ]
        txn = self.prepare(
            reversal_type,
            original.warehouse_id,
            txn_date,
            txn_time,
            requests,
            MovementReference(
                reference_document=original.txn_number,
                related_id=original.id,
                remarks=reason,
            ),
            reverses_txn_id=original.id,
        )
        logger.info(
            "movement_reversal_prepared",
            extra={"original_txn_number": original.txn_number, "txn_number": txn.txn_number},
        )
        return self.post(txn)
