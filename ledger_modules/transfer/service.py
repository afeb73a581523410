"""
Transfer Coordinator (``ledger_modules.transfer.service``).

Responsibility
--------------
Posts one logical warehouse-to-warehouse transfer as a matched pair of
ledger transactions: a ``transfer_out`` leg at the source and a
``transfer_in`` leg at the destination.  The outbound leg carries the
transfer number, the inbound leg the same number with an ``-IN`` suffix,
and both carry the transfer number as ``reference_document``.

Architecture
------------
Layer: **Modules** -- thin orchestration over ``LedgerRecorder``.

1. Validates the request and prepares BOTH legs (snapshots, totals,
   numbers) before anything is written.  Each leg reads the real current
   stock of its own warehouse.
2. Checks per-product quantity symmetry of the prepared legs.
3. Writes the legs as one saga (``outbound`` then ``inbound``), each leg a
   sub-saga of header + lines.

Invariants
----------
- Transfer symmetry: for every product/variant the outbound quantity equals
  the inbound quantity, checked before the first write.
- Source and destination differ.

Failure Modes
-------------
- ``SameWarehouseTransferError``, ``EmptyLinesError``,
  ``InvalidWarehouseError``, ``InsufficientStockError`` -- nothing written.
- ``PersistenceFailure`` -- the very first write failed; nothing written.
- ``PartialTransferFailure`` -- some rows written.  ``outbound_txn_id`` is
  set once the outbound leg is complete.  ``complete_transfer`` writes the
  rest; ``rollback_transfer`` reverses whatever was written.

Audit Relevance
---------------
``transfer_posted`` carries the transfer number and both transaction ids;
``transfer_partial_failure`` carries every id written so far.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, time
from uuid import UUID

from ledger_kernel.domain.movement import (
    MovementReference,
    MovementTransaction,
    MovementType,
)
from ledger_kernel.exceptions import (
    EmptyLinesError,
    InvariantViolationError,
    PartialTransferFailure,
    SameWarehouseTransferError,
)
from ledger_kernel.invariants import LedgerInvariant
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.movement import InventoryTransactionModel
from ledger_kernel.services.document_numbers import (
    DocumentNumberService,
    DocumentType,
)
from ledger_kernel.services.ledger_recorder import LedgerRecorder
from ledger_kernel.services.saga import Saga
from ledger_kernel.services.store import Store
from ledger_modules.transfer.models import TransferLine, TransferResult

logger = get_logger("modules.transfer.service")

INBOUND_SUFFIX = "-IN"
LEG_STEPS = ("outbound", "inbound")


class TransferCoordinator:
    """
    Posts two-leg transfers through a LedgerRecorder.

    Contract
    --------
    ``transfer`` returns a ``TransferResult`` or raises; it never returns a
    half-posted transfer.  A half-posted transfer is only ever visible as a
    ``PartialTransferFailure``.
    """

    def __init__(
        self,
        store: Store,
        recorder: LedgerRecorder,
        numbers: DocumentNumberService,
    ):
        self._store = store
        self._recorder = recorder
        self._numbers = numbers

    def transfer(
        self,
        from_warehouse_id: UUID,
        to_warehouse_id: UUID,
        transfer_date: date,
        transfer_time: time,
        lines: Sequence[TransferLine],
        reason: str | None = None,
    ) -> TransferResult:
        """
        Move stock from one warehouse to another.

        Raises:
            SameWarehouseTransferError: Source equals destination.
            EmptyLinesError: No lines.
            InvalidWarehouseError: Either warehouse unknown or inactive.
            InsufficientStockError: Source stock too low for a line.
            InvariantViolationError: Prepared legs are not symmetric.
            PersistenceFailure / PartialTransferFailure: write failures.
        """
        if from_warehouse_id == to_warehouse_id:
            raise SameWarehouseTransferError(str(from_warehouse_id))
        if not lines:
            raise EmptyLinesError("transfer")
        self._recorder.require_warehouse(from_warehouse_id)
        self._recorder.require_warehouse(to_warehouse_id)

        transfer_number = self._numbers.next_number(DocumentType.TRANSFER, transfer_date)
        out_txn = self._recorder.prepare(
            MovementType.TRANSFER_OUT,
            from_warehouse_id,
            transfer_date,
            transfer_time,
            [line.outbound_request(reason) for line in lines],
            MovementReference(reference_document=transfer_number, remarks=reason),
            txn_number=transfer_number,
        )
        in_txn = self._recorder.prepare(
            MovementType.TRANSFER_IN,
            to_warehouse_id,
            transfer_date,
            transfer_time,
            [line.inbound_request(reason) for line in lines],
            MovementReference(
                reference_document=transfer_number,
                related_id=out_txn.id,
                remarks=reason,
            ),
            txn_number=f"{transfer_number}{INBOUND_SUFFIX}",
        )
        self._check_symmetry(transfer_number, out_txn, in_txn)

        saga = Saga(
            "transfer",
            transfer_number,
            partial_error=PartialTransferFailure,
            finalize=lambda _: TransferResult(transfer_number, out_txn, in_txn),
        )
        saga.add_saga("outbound", self._recorder.posting_saga(out_txn))
        saga.add_saga("inbound", self._recorder.posting_saga(in_txn))

        with LogContext.bind(reference=transfer_number):
            logger.info(
                "transfer_started",
                extra={
                    "from_warehouse_id": from_warehouse_id,
                    "to_warehouse_id": to_warehouse_id,
                    "line_count": len(lines),
                },
            )
            return self._run(saga)

    def complete_transfer(self, failure: PartialTransferFailure) -> TransferResult:
        """Write whatever a half-posted transfer left pending."""
        with LogContext.bind(reference=failure.reference):
            logger.info(
                "transfer_completion_started",
                extra={"pending_steps": failure.pending_steps},
            )
            return self._run(failure.saga)

    def rollback_transfer(
        self,
        failure: PartialTransferFailure,
        reversal_date: date,
        reversal_time: time,
        reason: str | None = None,
    ) -> tuple[MovementTransaction, ...]:
        """
        Undo a half-posted transfer by reversing every leg that was written.

        A leg whose header exists but whose lines are incomplete is first
        finished, so that its reversal mirrors the whole leg.  The inbound
        leg is reversed before the outbound one.  The failed transfer can
        not be completed afterwards.

        Returns:
            The reversal transactions, inbound first.
        """
        saga = failure.saga
        reason = reason or f"Rollback of transfer {failure.reference}"
        reversals: list[MovementTransaction] = []

        with LogContext.bind(reference=failure.reference):
            for step in reversed(LEG_STEPS):
                leg = saga.nested(step)
                if leg is None or not leg.written_record_ids:
                    continue
                txn = leg.execute()
                reversals.append(
                    self._recorder.reverse(txn.id, reversal_date, reversal_time, reason)
                )
            saga.abandon()
            logger.info(
                "transfer_rolled_back",
                extra={"reversal_txn_numbers": [r.txn_number for r in reversals]},
            )
        return tuple(reversals)

    def find_legs(self, transfer_number: str) -> tuple[MovementTransaction, ...]:
        """Both legs of a posted transfer, outbound first."""
        headers = self._store.query(
            InventoryTransactionModel,
            reference_document=transfer_number,
            txn_type=[MovementType.TRANSFER_OUT.value, MovementType.TRANSFER_IN.value],
            order_by="txn_number",
        )
        return tuple(self._recorder.load(h.id) for h in headers)

    # -- internals ----------------------------------------------------------

    def _run(self, saga: Saga) -> TransferResult:
        try:
            result = saga.execute()
        except PartialTransferFailure as exc:
            logger.error(
                "transfer_partial_failure",
                extra={
                    "outbound_txn_id": exc.outbound_txn_id,
                    "outbound_txn_number": exc.outbound_txn_number,
                    "written_ids": exc.written_ids,
                    "pending_steps": exc.pending_steps,
                },
            )
            raise
        logger.info(
            "transfer_posted",
            extra={
                "transfer_number": result.transfer_number,
                "out_txn_id": result.out_txn.id,
                "in_txn_id": result.in_txn.id,
            },
        )
        return result

    @staticmethod
    def _check_symmetry(
        transfer_number: str,
        out_txn: MovementTransaction,
        in_txn: MovementTransaction,
    ) -> None:
        outbound = out_txn.quantity_by_product()
        inbound = in_txn.quantity_by_product()
        if outbound != inbound:
            raise InvariantViolationError(
                LedgerInvariant.TRANSFER_SYMMETRY.value,
                f"transfer {transfer_number}: outbound {outbound} != inbound {inbound}",
            )
