"""
Physical Count Session (``ledger_modules.physical_count.service``).

Responsibility
--------------
Drives one physical stock count through its lifecycle: setup -> counting
-> completed.  Holds the counted lines, derives every line's variance and
adjustment decision through ``ledger_engines.count_variance``, and on
completion posts ONE ``adjustment_in`` transaction for the lines that need
correcting.

Architecture
------------
Layer: **Modules** -- stateful orchestration wrapper.

1. ``PHYSICAL_COUNT_WORKFLOW`` decides which actions are allowed from the
   current state.
2. ``derive_count_line`` / ``with_decision`` compute the derived fields;
   the session never computes a variance itself.
3. Completion runs as a saga: ``count_line:<n>`` for each counted line,
   ``adjustment`` (the ledger posting, when any line needs one), then
   ``close_count`` which marks the record completed.

Invariants
----------
- Adjustment lines use the frozen system quantity as ``previous_stock`` and
  land exactly on the counted quantity as ``new_stock``.  Increases are
  inward lines, shortages outward lines, so every line's snapshot holds.
- No line edits once completion has started or finished.
- ``completed`` is terminal.

Failure Modes
-------------
- ``NoWarehouseSelectedError`` / ``InvalidWarehouseError`` on ``start``.
- ``DuplicateCountLineError``, ``MixedBinLevelCountLineError`` (a product
  counted both for the whole warehouse and by bin),
  ``CountLineNotFoundError``,
  ``InvalidQuantityError`` on line edits.
- ``CountIdMissingError`` completing before ``start``;
  ``EmptyCountError`` completing with no lines.
- ``InvalidCountTransitionError`` for any action the workflow forbids.
- ``PartialPostingFailure`` from completion; calling ``complete()`` again
  writes only the remaining steps.

Audit Relevance
---------------
The adjustment transaction references ``Physical Count <count_number>``
and carries the count id as ``related_id``; the count record stores the
adjustment transaction id.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from ledger_engines.count_variance import (
    AdjustmentDecision,
    CountLineDerivation,
    derive_count_line,
    with_decision,
)
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.movement import (
    LineRequest,
    MovementDirection,
    MovementReference,
    MovementTransaction,
    MovementType,
)
from ledger_kernel.domain.workflow import Transition, Workflow
from ledger_kernel.exceptions import (
    CountIdMissingError,
    CountLineNotFoundError,
    DuplicateCountLineError,
    EmptyCountError,
    InvalidCountTransitionError,
    InvalidQuantityError,
    MixedBinLevelCountLineError,
    NoWarehouseSelectedError,
    PartialFailure,
    PersistenceFailure,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.services.document_numbers import (
    DocumentNumberService,
    DocumentType,
)
from ledger_kernel.services.ledger_recorder import LedgerRecorder
from ledger_kernel.services.saga import Saga
from ledger_kernel.services.stock_lookup import SnapshotStockLookup
from ledger_kernel.services.store import Store
from ledger_modules.physical_count.config import PhysicalCountConfig
from ledger_modules.physical_count.models import (
    CountCompletion,
    CountLine,
    CountRecordStatus,
    CountSetup,
    CountState,
)
from ledger_modules.physical_count.orm import PhysicalCountLineModel, PhysicalCountModel
from ledger_modules.physical_count.workflows import PHYSICAL_COUNT_WORKFLOW

logger = get_logger("modules.physical_count.service")

_ZERO = Decimal("0")


def _as_quantity(product_id: UUID, value: Any) -> Decimal:
    if isinstance(value, float) or not isinstance(value, (Decimal, int)):
        raise InvalidQuantityError(str(product_id), str(value))
    quantity = Decimal(value)
    if not quantity.is_finite() or quantity < _ZERO:
        raise InvalidQuantityError(str(product_id), str(value))
    return quantity


class PhysicalCountSession:
    """
    One physical count, from setup to its adjustment posting.

    Lines live in the session until completion, where they are written
    together with the adjustment.  A session object is not shared between
    callers; operations on one count must be serialized.
    """

    def __init__(
        self,
        store: Store,
        recorder: LedgerRecorder,
        numbers: DocumentNumberService,
        config: PhysicalCountConfig | None = None,
        workflow: Workflow = PHYSICAL_COUNT_WORKFLOW,
        clock: Clock | None = None,
    ):
        self._store = store
        self._recorder = recorder
        self._numbers = numbers
        self._config = config or PhysicalCountConfig()
        self._workflow = workflow
        self._clock = clock or SystemClock()
        self._state = CountState(workflow.initial_state)
        self._setup: CountSetup | None = None
        self._count_id: UUID | None = None
        self._count_number: str | None = None
        self._lines: dict[UUID, CountLine] = {}
        self._completion: Saga | None = None
        self._result: CountCompletion | None = None

    # -- state --------------------------------------------------------------

    @property
    def state(self) -> CountState:
        return self._state

    @property
    def count_id(self) -> UUID | None:
        return self._count_id

    @property
    def count_number(self) -> str | None:
        return self._count_number

    @property
    def setup(self) -> CountSetup | None:
        return self._setup

    @property
    def lines(self) -> tuple[CountLine, ...]:
        return tuple(self._lines.values())

    @property
    def result(self) -> CountCompletion | None:
        return self._result

    @property
    def completion_pending(self) -> bool:
        return self._completion is not None

    def _require(self, action: str) -> Transition:
        if self._completion is not None and action != "complete":
            raise InvalidCountTransitionError(
                _str_or_none(self._count_id), "completion_pending", action
            )
        transition = self._workflow.transition_for(self._state.value, action)
        if transition is None:
            raise InvalidCountTransitionError(
                _str_or_none(self._count_id), self._state.value, action
            )
        return transition

    # -- setup --------------------------------------------------------------

    def start(self, setup: CountSetup) -> UUID:
        """Create the count record and move to counting.  Returns the count id."""
        transition = self._require("start")
        if setup.warehouse_id is None:
            raise NoWarehouseSelectedError()
        self._recorder.require_warehouse(setup.warehouse_id)

        count_number = self._numbers.next_number(
            DocumentType.PHYSICAL_COUNT, setup.count_date
        )
        count_id = self._store.insert(
            PhysicalCountModel,
            {
                "count_number": count_number,
                "warehouse_id": setup.warehouse_id,
                "count_date": setup.count_date,
                "count_time": setup.count_time,
                "count_type": setup.count_type,
                "method": setup.method,
                "scheduled_by": setup.scheduled_by,
                "counted_by": setup.counted_by,
                "status": CountRecordStatus.COUNTING.value,
                "total_items_counted": 0,
                "total_variance": _ZERO,
                "started_at": self._clock.now(),
                "remarks": setup.remarks,
            },
        )
        self._setup = setup
        self._count_id = count_id
        self._count_number = count_number
        self._state = CountState(transition.to_state)

        logger.info(
            "physical_count_started",
            extra={
                "count_id": count_id,
                "count_number": count_number,
                "warehouse_id": setup.warehouse_id,
                "count_type": setup.count_type,
                "method": setup.method,
            },
        )
        return count_id

    def discard(self) -> None:
        """Abandon an open count: mark its record discarded and go back to setup."""
        transition = self._require("discard")
        self._store.update(
            PhysicalCountModel,
            self._count_id,
            {"status": CountRecordStatus.DISCARDED.value},
        )
        logger.info(
            "physical_count_discarded",
            extra={"count_id": self._count_id, "line_count": len(self._lines)},
        )
        self._setup = None
        self._count_id = None
        self._count_number = None
        self._lines.clear()
        self._state = CountState(transition.to_state)

    # -- lines --------------------------------------------------------------

    def add_line(
        self,
        product_id: UUID,
        counted_quantity: Decimal,
        system_quantity: Decimal | None = None,
        *,
        variant_id: UUID | None = None,
        uom_id: UUID | None = None,
        bin_id: UUID | None = None,
        reason_for_variance: str | None = None,
    ) -> CountLine:
        """
        Add a counted line.

        ``system_quantity`` defaults to the ledger's current stock for the
        product/variant/bin, read now and frozen on the line.
        """
        self._require("edit_lines")
        counted = _as_quantity(product_id, counted_quantity)
        if system_quantity is None:
            system = self._recorder.stock_lookup.current_stock(
                product_id, self._setup.warehouse_id, bin_id=bin_id, variant_id=variant_id
            )
        else:
            system = _as_quantity(product_id, system_quantity)

        key = (product_id, variant_id, bin_id)
        if any(line.key == key for line in self._lines.values()):
            raise DuplicateCountLineError(str(self._count_id), str(product_id))
        if any(
            line.product_id == product_id
            and line.variant_id == variant_id
            and (line.bin_id is None) != (bin_id is None)
            for line in self._lines.values()
        ):
            raise MixedBinLevelCountLineError(str(self._count_id), str(product_id))

        derivation = self._derive(system, counted)
        line = CountLine(
            line_id=uuid4(),
            product_id=product_id,
            variant_id=variant_id,
            uom_id=uom_id,
            bin_id=bin_id,
            system_quantity=system,
            counted_quantity=counted,
            variance_quantity=derivation.variance_quantity,
            adjustment_decision=derivation.adjustment_decision,
            adjustment_quantity=derivation.adjustment_quantity,
            reason_for_variance=reason_for_variance,
        )
        self._lines[line.line_id] = line
        logger.debug(
            "count_line_added",
            extra={
                "count_id": self._count_id,
                "line_id": line.line_id,
                "product_id": product_id,
                "variance_quantity": line.variance_quantity,
                "adjustment_decision": line.adjustment_decision.value,
            },
        )
        return line

    def update_line(
        self,
        line_id: UUID,
        *,
        system_quantity: Decimal | None = None,
        counted_quantity: Decimal | None = None,
        reason_for_variance: str | None = None,
    ) -> CountLine:
        """Edit quantities or reason.  A quantity edit re-derives the decision."""
        self._require("edit_lines")
        line = self._line(line_id)
        changes: dict[str, Any] = {}
        if reason_for_variance is not None:
            changes["reason_for_variance"] = reason_for_variance

        if system_quantity is None and counted_quantity is None:
            updated = replace(line, **changes)
        else:
            system = (
                line.system_quantity
                if system_quantity is None
                else _as_quantity(line.product_id, system_quantity)
            )
            counted = (
                line.counted_quantity
                if counted_quantity is None
                else _as_quantity(line.product_id, counted_quantity)
            )
            updated = line.with_derivation(
                self._derive(system, counted),
                system_quantity=system,
                counted_quantity=counted,
                **changes,
            )
        self._lines[line_id] = updated
        return updated

    def set_decision(self, line_id: UUID, decision: AdjustmentDecision | str) -> CountLine:
        """Override a line's derived decision."""
        self._require("edit_lines")
        line = self._line(line_id)
        updated = line.with_derivation(with_decision(line.variance_quantity, decision))
        self._lines[line_id] = updated
        logger.info(
            "count_decision_overridden",
            extra={
                "count_id": self._count_id,
                "line_id": line_id,
                "adjustment_decision": updated.adjustment_decision.value,
                "adjustment_quantity": updated.adjustment_quantity,
            },
        )
        return updated

    def remove_line(self, line_id: UUID) -> None:
        self._require("edit_lines")
        self._line(line_id)
        del self._lines[line_id]

    def _line(self, line_id: UUID) -> CountLine:
        line = self._lines.get(line_id)
        if line is None:
            raise CountLineNotFoundError(str(self._count_id), str(line_id))
        return line

    def _derive(self, system: Decimal, counted: Decimal) -> CountLineDerivation:
        return derive_count_line(
            system_quantity=system,
            counted_quantity=counted,
            investigation_threshold=self._config.investigation_threshold,
        )

    # -- completion ---------------------------------------------------------

    def complete(self) -> CountCompletion:
        """
        Reconcile the count: write its lines, post the adjustment, close it.

        Re-calling after a PartialPostingFailure writes only what is
        still pending.
        """
        if self._count_id is None:
            raise CountIdMissingError()
        if self._completion is not None:
            return self._run_completion(self._completion)

        self._require("complete")
        if not self._lines:
            raise EmptyCountError(str(self._count_id))

        lines = tuple(self._lines.values())
        to_adjust = [line for line in lines if line.requires_adjustment]
        total_variance = sum((abs(line.variance_quantity) for line in lines), _ZERO)
        adjustment = self._prepare_adjustment(to_adjust) if to_adjust else None

        count_id = self._count_id
        count_number = self._count_number
        saga = Saga(
            "complete_count",
            count_number,
            finalize=lambda _: CountCompletion(
                count_id=count_id,
                count_number=count_number,
                total_items_counted=len(lines),
                total_variance=total_variance,
                adjusted_line_count=len(to_adjust),
                adjustment_txn=adjustment,
            ),
        )
        for line_no, line in enumerate(lines, start=1):
            saga.add_step(
                f"count_line:{line_no}",
                lambda line_no=line_no, line=line: self._store.insert(
                    PhysicalCountLineModel,
                    PhysicalCountLineModel.row_from_dto(count_id, line_no, line),
                ),
            )
        if adjustment is not None:
            saga.add_saga("adjustment", self._recorder.posting_saga(adjustment))
        saga.add_step(
            "close_count",
            lambda: self._close_record(len(lines), total_variance, adjustment),
        )

        self._completion = saga
        return self._run_completion(saga)

    def _prepare_adjustment(self, lines: list[CountLine]) -> MovementTransaction:
        setup = self._setup
        snapshots = {
            (line.product_id, setup.warehouse_id, line.bin_id, line.variant_id): line.system_quantity
            for line in lines
        }
        requests = [
            LineRequest(
                product_id=line.product_id,
                quantity=abs(line.adjustment_quantity),
                unit_cost=_ZERO,
                uom_id=line.uom_id,
                variant_id=line.variant_id,
                bin_id=line.bin_id,
                reason_code=self._reason(line),
                direction=(
                    MovementDirection.INWARD
                    if line.adjustment_quantity > _ZERO
                    else MovementDirection.OUTWARD
                ),
            )
            for line in lines
        ]
        return self._recorder.prepare(
            MovementType.ADJUSTMENT_IN,
            setup.warehouse_id,
            setup.count_date,
            setup.count_time,
            requests,
            MovementReference(
                reference_document=f"Physical Count {self._count_number}",
                related_id=self._count_id,
                remarks=self._config.adjustment_remarks,
            ),
            stock_lookup=SnapshotStockLookup(snapshots, fallback=self._recorder.stock_lookup),
            honor_reservations=False,
        )

    def _reason(self, line: CountLine) -> str:
        return f"{self._config.reason_prefix}: {line.reason_for_variance or ''}"

    def _close_record(
        self,
        total_items: int,
        total_variance: Decimal,
        adjustment: MovementTransaction | None,
    ) -> UUID:
        self._store.update(
            PhysicalCountModel,
            self._count_id,
            {
                "status": CountRecordStatus.COMPLETED.value,
                "total_items_counted": total_items,
                "total_variance": total_variance,
                "adjustment_txn_id": adjustment.id if adjustment is not None else None,
                "completed_at": self._clock.now(),
            },
        )
        return self._count_id

    def _run_completion(self, saga: Saga) -> CountCompletion:
        with LogContext.bind(count_id=str(self._count_id), reference=self._count_number):
            try:
                result = saga.execute()
            except PartialFailure as exc:
                logger.error(
                    "physical_count_partial_failure",
                    extra={"written_ids": exc.written_ids, "pending_steps": exc.pending_steps},
                )
                raise
            except PersistenceFailure:
                # Nothing was written; the count stays open and editable.
                self._completion = None
                raise
            self._completion = None
            self._state = CountState.COMPLETED
            self._result = result
            logger.info(
                "physical_count_completed",
                extra={
                    "total_items_counted": result.total_items_counted,
                    "total_variance": result.total_variance,
                    "adjusted_line_count": result.adjusted_line_count,
                    "adjustment_txn_number": (
                        result.adjustment_txn.txn_number
                        if result.adjustment_txn is not None
                        else None
                    ),
                },
            )
        return result


def _str_or_none(value: UUID | None) -> str | None:
    return str(value) if value is not None else None
