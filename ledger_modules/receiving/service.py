"""
Receiving Allocator (``ledger_modules.receiving.service``).

Responsibility
--------------
Records a goods receipt note (GRN) against a purchase order: applies the
accepted quantities to the open PO lines, posts the accepted stock as one
``purchase_in`` ledger transaction, and records received / accepted /
rejected quantities per line.

Architecture
------------
Layer: **Modules** -- thin orchestration.

1. ``apply_receipt`` (``ledger_engines.receiving``) computes each PO line's
   new received / pending quantity and status, rejecting over-receipts.
2. ``LedgerRecorder.prepare`` builds the ``purchase_in`` transaction from
   lines with accepted quantity > 0, unit cost = PO rate.  The GRN number
   is the transaction number and its reference document.
3. Writes run as a saga: ``grn``, ``grn_line:<n>``, ``ledger`` (header +
   lines sub-saga), then ``po_line:<id>`` per PO line that moved.

Invariants
----------
- Receiving bound: no PO line's pending quantity goes negative.
- Rejected quantity is recorded on the GRN line and never posted.
- Every receipt line belongs to the named purchase order.

Failure Modes
-------------
- ``EmptyLinesError``, ``OrderLineMismatchError``, ``InvalidQuantityError``,
  ``OverReceiptError``, ``InvalidWarehouseError`` -- nothing written.
- ``PersistenceFailure`` -- the GRN header could not be written.
- ``PartialPostingFailure`` -- ``resume(failure)`` writes the rest.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, time
from decimal import Decimal
from uuid import UUID, uuid4

from ledger_engines.receiving import OpenOrderLine, ReceivedLine, apply_receipt
from ledger_kernel.domain.movement import (
    LineRequest,
    MovementReference,
    MovementTransaction,
    MovementType,
)
from ledger_kernel.exceptions import EmptyLinesError, InvalidAmountError, PartialFailure
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.services.document_numbers import (
    DocumentNumberService,
    DocumentType,
)
from ledger_kernel.services.ledger_recorder import LedgerRecorder
from ledger_kernel.services.saga import Saga
from ledger_kernel.services.store import Store
from ledger_modules.receiving.models import (
    GrnParticulars,
    GrnStatus,
    QualityStatus,
    ReceivingLine,
    ReceivingOutcome,
)
from ledger_modules.receiving.orm import (
    GoodsReceiptLineModel,
    GoodsReceiptModel,
    PurchaseOrderLineModel,
)

logger = get_logger("modules.receiving.service")

_ZERO = Decimal("0")


class ReceivingAllocator:
    """Records goods receipts against open purchase-order lines."""

    def __init__(
        self,
        store: Store,
        recorder: LedgerRecorder,
        numbers: DocumentNumberService,
    ):
        self._store = store
        self._recorder = recorder
        self._numbers = numbers

    def open_lines(self, po_id: UUID) -> list[OpenOrderLine]:
        """PO lines that still have quantity pending."""
        rows = self._store.query(PurchaseOrderLineModel, po_id=po_id)
        return [row.to_open_line() for row in rows if row.pending_quantity > _ZERO]

    def receive(
        self,
        po_id: UUID,
        lines: Sequence[ReceivingLine],
        warehouse_id: UUID,
        receipt_date: date,
        receipt_time: time,
        particulars: GrnParticulars | None = None,
    ) -> ReceivingOutcome:
        """
        Receive goods against ``po_id`` into ``warehouse_id``.

        Returns:
            The GRN id and number, each PO line's updated quantities and
            status, and the ``purchase_in`` transaction (None when nothing
            was accepted).
        """
        particulars = particulars or GrnParticulars()
        if not lines:
            raise EmptyLinesError("goods_receipt")
        for field_name in ("freight_charges", "other_charges"):
            amount = getattr(particulars, field_name)
            if amount < _ZERO:
                raise InvalidAmountError(field_name, str(amount))

        order_rows = self._store.query(
            PurchaseOrderLineModel, id=[line.po_detail_id for line in lines]
        )
        order_lines = {row.id: row.to_open_line() for row in order_rows}
        received = apply_receipt(
            po_id=po_id,
            order_lines=order_lines,
            receipts=[line.to_receipt_quantity() for line in lines],
        )
        self._recorder.require_warehouse(warehouse_id)

        grn_id = uuid4()
        grn_number = self._numbers.next_number(DocumentType.GOODS_RECEIPT, receipt_date)
        subtotal = sum(
            (r.accepted_qty * order_lines[r.po_detail_id].rate for r in received), _ZERO
        )
        total_amount = subtotal + particulars.freight_charges + particulars.other_charges

        stock_lines = [
            LineRequest(
                product_id=order_lines[r.po_detail_id].product_id,
                quantity=r.accepted_qty,
                unit_cost=order_lines[r.po_detail_id].rate,
                uom_id=order_lines[r.po_detail_id].uom_id,
                variant_id=order_lines[r.po_detail_id].variant_id,
                bin_id=line.bin_id,
            )
            for line, r in zip(lines, received)
            if r.posts_stock
        ]
        txn = None
        if stock_lines:
            txn = self._recorder.prepare(
                MovementType.PURCHASE_IN,
                warehouse_id,
                receipt_date,
                receipt_time,
                stock_lines,
                MovementReference(
                    reference_document=grn_number,
                    related_id=grn_id,
                    remarks=particulars.remarks,
                ),
                txn_number=grn_number,
            )

        saga = Saga(
            "goods_receipt",
            grn_number,
            finalize=lambda _: ReceivingOutcome(
                grn_id=grn_id,
                grn_number=grn_number,
                lines=received,
                subtotal=subtotal,
                total_amount=total_amount,
                inventory_txn=txn,
            ),
        )
        saga.add_step(
            "grn",
            lambda: self._store.insert(
                GoodsReceiptModel,
                {
                    "id": grn_id,
                    "grn_number": grn_number,
                    "grn_date": receipt_date,
                    "grn_time": receipt_time,
                    "po_id": po_id,
                    "vendor_id": particulars.vendor_id,
                    "warehouse_id": warehouse_id,
                    "delivery_challan_number": particulars.delivery_challan_number,
                    "delivery_challan_date": particulars.delivery_challan_date,
                    "vehicle_number": particulars.vehicle_number,
                    "received_by": particulars.received_by,
                    "quality_status": QualityStatus(particulars.quality_status).value,
                    "quality_remarks": particulars.quality_remarks,
                    "subtotal": subtotal,
                    "freight_charges": particulars.freight_charges,
                    "other_charges": particulars.other_charges,
                    "total_amount": total_amount,
                    "grn_status": GrnStatus.COMPLETED.value,
                    "inventory_txn_id": txn.id if txn is not None else None,
                    "remarks": particulars.remarks,
                },
            ),
        )
        for line_no, (line, r) in enumerate(zip(lines, received), start=1):
            order_line = order_lines[r.po_detail_id]
            saga.add_step(
                f"grn_line:{line_no}",
                lambda line_no=line_no, line=line, r=r, order_line=order_line: self._store.insert(
                    GoodsReceiptLineModel,
                    {
                        "grn_id": grn_id,
                        "line_no": line_no,
                        "po_detail_id": r.po_detail_id,
                        "product_id": order_line.product_id,
                        "variant_id": order_line.variant_id,
                        "uom_id": order_line.uom_id,
                        "received_qty": r.received_qty,
                        "accepted_qty": r.accepted_qty,
                        "rejected_qty": r.rejected_qty,
                        "rate": order_line.rate,
                        "line_amount": r.accepted_qty * order_line.rate,
                        "bin_id": line.bin_id,
                        "reason_for_rejection": line.reason_for_rejection,
                        "batch_lot_number": line.batch_lot_number,
                    },
                ),
            )
        if txn is not None:
            saga.add_saga("ledger", self._recorder.posting_saga(txn))
        for po_detail_id, final in _final_po_states(received).items():
            saga.add_step(
                f"po_line:{po_detail_id}",
                lambda po_detail_id=po_detail_id, final=final: self._update_po_line(
                    po_detail_id, final
                ),
            )

        with LogContext.bind(reference=grn_number):
            logger.info(
                "goods_receipt_started",
                extra={
                    "po_id": po_id,
                    "warehouse_id": warehouse_id,
                    "line_count": len(lines),
                    "posted_line_count": len(stock_lines),
                },
            )
            return self._run(saga)

    def resume(self, failure: PartialFailure) -> ReceivingOutcome:
        """Write whatever a half-recorded goods receipt left pending."""
        with LogContext.bind(reference=failure.reference):
            logger.info(
                "goods_receipt_resumed",
                extra={"pending_steps": failure.pending_steps},
            )
            return self._run(failure.saga)

    # -- internals ----------------------------------------------------------

    def _update_po_line(self, po_detail_id: UUID, final: ReceivedLine) -> UUID:
        self._store.update(
            PurchaseOrderLineModel,
            po_detail_id,
            {
                "received_quantity": final.new_received_quantity,
                "pending_quantity": final.new_pending_quantity,
                "line_status": final.new_line_status.value,
            },
        )
        return po_detail_id

    def _run(self, saga: Saga) -> ReceivingOutcome:
        try:
            outcome = saga.execute()
        except PartialFailure as exc:
            logger.error(
                "goods_receipt_partial_failure",
                extra={"written_ids": exc.written_ids, "pending_steps": exc.pending_steps},
            )
            raise
        logger.info(
            "goods_receipt_recorded",
            extra={
                "grn_id": outcome.grn_id,
                "grn_number": outcome.grn_number,
                "subtotal": outcome.subtotal,
                "inventory_txn_id": (
                    outcome.inventory_txn.id if outcome.inventory_txn is not None else None
                ),
            },
        )
        return outcome


def _final_po_states(received: Sequence[ReceivedLine]) -> dict[UUID, ReceivedLine]:
    """Last cumulative state per PO line that accepted anything."""
    finals: dict[UUID, ReceivedLine] = {}
    for r in received:
        if r.posts_stock:
            finals[r.po_detail_id] = r
    return finals
