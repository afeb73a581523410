"""
Tests for PhysicalCountSession: count lifecycle and adjustment posting.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_engines.count_variance import AdjustmentDecision
from ledger_kernel.domain.movement import MovementDirection, MovementType
from ledger_kernel.domain.reservation import ReservationRequest
from ledger_kernel.exceptions import (
    CountIdMissingError,
    CountLineNotFoundError,
    DuplicateCountLineError,
    EmptyCountError,
    InvalidCountTransitionError,
    InvalidQuantityError,
    InvalidWarehouseError,
    MixedBinLevelCountLineError,
    NoWarehouseSelectedError,
)
from ledger_kernel.models.movement import InventoryTransactionModel
from ledger_kernel.services.ledger_recorder import LedgerRecorder
from ledger_kernel.services.reservations import StockReservationService
from ledger_modules.physical_count import (
    CountRecordStatus,
    CountSetup,
    CountState,
    PhysicalCountConfig,
    PhysicalCountSession,
)
from ledger_modules.physical_count.orm import PhysicalCountLineModel, PhysicalCountModel


@pytest.fixture
def count_session(store, recorder, numbers, deterministic_clock):
    return PhysicalCountSession(store, recorder, numbers, clock=deterministic_clock)


@pytest.fixture
def count_setup(warehouse_a, txn_date, txn_time):
    return CountSetup(warehouse_id=warehouse_a, count_date=txn_date, count_time=txn_time)


class TestCountSetup:

    def test_start_creates_record(self, count_session, count_setup, store, deterministic_clock):
        count_id = count_session.start(count_setup)

        record = store.get(PhysicalCountModel, count_id)
        assert count_session.state is CountState.COUNTING
        assert count_session.count_number == "COMP-CNT-20240115-0001"
        assert record.status == CountRecordStatus.COUNTING.value
        assert record.started_at.replace(tzinfo=None) == (
            deterministic_clock.now().replace(tzinfo=None)
        )
        assert record.completed_at is None

    def test_start_without_warehouse(self, count_session, txn_date, txn_time):
        with pytest.raises(NoWarehouseSelectedError):
            count_session.start(CountSetup(warehouse_id=None, count_date=txn_date, count_time=txn_time))
        assert count_session.state is CountState.SETUP

    def test_start_with_inactive_warehouse(self, count_session, inactive_warehouse, txn_date, txn_time):
        with pytest.raises(InvalidWarehouseError):
            count_session.start(
                CountSetup(warehouse_id=inactive_warehouse, count_date=txn_date, count_time=txn_time)
            )

    def test_start_twice_rejected(self, count_session, count_setup):
        count_session.start(count_setup)
        with pytest.raises(InvalidCountTransitionError):
            count_session.start(count_setup)

    def test_invalid_count_type(self, warehouse_a, txn_date, txn_time):
        with pytest.raises(ValueError):
            CountSetup(warehouse_id=warehouse_a, count_date=txn_date, count_time=txn_time,
                       count_type="random")

    def test_lines_need_open_count(self, count_session, product_id):
        with pytest.raises(InvalidCountTransitionError):
            count_session.add_line(product_id, Decimal("1"), Decimal("1"))


class TestCountLines:

    def test_system_quantity_read_from_ledger(
        self, count_session, count_setup, seed_stock, warehouse_a, product_id
    ):
        seed_stock(warehouse_a, product_id, 50)
        count_session.start(count_setup)

        line = count_session.add_line(product_id, Decimal("45"))

        assert line.system_quantity == Decimal("50")
        assert line.variance_quantity == Decimal("-5")
        assert line.adjustment_decision is AdjustmentDecision.ADJUST_TO_COUNT

    def test_duplicate_line_rejected(self, count_session, count_setup, product_id):
        count_session.start(count_setup)
        count_session.add_line(product_id, Decimal("1"), Decimal("1"))
        with pytest.raises(DuplicateCountLineError):
            count_session.add_line(product_id, Decimal("2"), Decimal("1"))

    def test_same_product_other_bin_allowed(self, count_session, count_setup, product_id):
        count_session.start(count_setup)
        count_session.add_line(product_id, Decimal("1"), Decimal("1"), bin_id=uuid4())
        count_session.add_line(product_id, Decimal("2"), Decimal("2"), bin_id=uuid4())
        assert len(count_session.lines) == 2

    def test_bin_line_after_whole_warehouse_line_rejected(
        self, count_session, count_setup, product_id
    ):
        count_session.start(count_setup)
        count_session.add_line(product_id, Decimal("1"), Decimal("1"))
        with pytest.raises(MixedBinLevelCountLineError):
            count_session.add_line(product_id, Decimal("2"), Decimal("2"), bin_id=uuid4())
        assert len(count_session.lines) == 1

    def test_whole_warehouse_line_after_bin_line_rejected(
        self, count_session, count_setup, product_id
    ):
        count_session.start(count_setup)
        count_session.add_line(product_id, Decimal("2"), Decimal("2"), bin_id=uuid4())
        with pytest.raises(MixedBinLevelCountLineError):
            count_session.add_line(product_id, Decimal("1"), Decimal("1"))

    def test_other_variant_may_mix_bin_levels(self, count_session, count_setup, product_id):
        count_session.start(count_setup)
        count_session.add_line(product_id, Decimal("1"), Decimal("1"))
        count_session.add_line(
            product_id, Decimal("2"), Decimal("2"), bin_id=uuid4(), variant_id=uuid4()
        )
        assert len(count_session.lines) == 2

    @pytest.mark.parametrize("bad", [Decimal("-1"), 1.5, "3"])
    def test_invalid_counted_quantity(self, count_session, count_setup, product_id, bad):
        count_session.start(count_setup)
        with pytest.raises(InvalidQuantityError):
            count_session.add_line(product_id, bad, Decimal("1"))

    def test_update_line_rederives(self, count_session, count_setup, product_id):
        count_session.start(count_setup)
        line = count_session.add_line(product_id, Decimal("100"), Decimal("100"))

        updated = count_session.update_line(line.line_id, counted_quantity=Decimal("130"))

        assert updated.variance_quantity == Decimal("30")
        assert updated.adjustment_decision is AdjustmentDecision.INVESTIGATE
        assert updated.adjustment_quantity == Decimal("0")

    def test_update_reason_only(self, count_session, count_setup, product_id):
        count_session.start(count_setup)
        line = count_session.add_line(product_id, Decimal("4"), Decimal("5"))

        updated = count_session.update_line(line.line_id, reason_for_variance="breakage")

        assert updated.reason_for_variance == "breakage"
        assert updated.variance_quantity == Decimal("-1")

    def test_set_decision_override(self, count_session, count_setup, product_id):
        count_session.start(count_setup)
        line = count_session.add_line(product_id, Decimal("130"), Decimal("100"))

        updated = count_session.set_decision(line.line_id, AdjustmentDecision.ADJUST_TO_COUNT)

        assert updated.adjustment_quantity == Decimal("30")

    def test_remove_line(self, count_session, count_setup, product_id):
        count_session.start(count_setup)
        line = count_session.add_line(product_id, Decimal("1"), Decimal("1"))
        count_session.remove_line(line.line_id)
        assert count_session.lines == ()
        with pytest.raises(CountLineNotFoundError):
            count_session.remove_line(line.line_id)


class TestCountCompletion:

    def test_shortage_posts_outward_adjustment(
        self, count_session, count_setup, seed_stock, store, stock_lookup,
        warehouse_a, product_id, deterministic_clock,
    ):
        seed_stock(warehouse_a, product_id, 50)
        count_id = count_session.start(count_setup)
        count_session.add_line(product_id, Decimal("45"), reason_for_variance="damaged")
        deterministic_clock.advance(60)

        result = count_session.complete()

        txn = result.adjustment_txn
        assert txn.txn_type is MovementType.ADJUSTMENT_IN
        assert txn.txn_number == "COMP-ADJ-20240115-0002"
        assert txn.reference_document == "Physical Count COMP-CNT-20240115-0001"
        assert txn.related_id == count_id
        (line,) = txn.lines
        assert line.direction is MovementDirection.OUTWARD
        assert line.quantity == Decimal("5")
        assert (line.previous_stock, line.new_stock) == (Decimal("50"), Decimal("45"))
        assert line.reason_code == "Physical Count Adjustment: damaged"
        assert stock_lookup.current_stock(product_id, warehouse_a) == Decimal("45")

        record = store.get(PhysicalCountModel, count_id)
        assert record.status == CountRecordStatus.COMPLETED.value
        assert record.adjustment_txn_id == txn.id
        assert record.total_items_counted == 1
        assert record.total_variance == Decimal("5")
        assert record.completed_at.replace(tzinfo=None) == (
            deterministic_clock.now().replace(tzinfo=None)
        )
        assert count_session.state is CountState.COMPLETED

    def test_surplus_posts_inward_line(
        self, count_session, count_setup, seed_stock, warehouse_a, product_id
    ):
        seed_stock(warehouse_a, product_id, 100)
        count_session.start(count_setup)
        count_session.add_line(product_id, Decimal("105"))

        (line,) = count_session.complete().adjustment_txn.lines

        assert line.direction is MovementDirection.INWARD
        assert (line.previous_stock, line.new_stock) == (Decimal("100"), Decimal("105"))
        assert line.reason_code == "Physical Count Adjustment: "

    def test_bin_level_shortage(
        self, count_session, count_setup, seed_stock, stock_lookup, warehouse_a, product_id
    ):
        bin_b = uuid4()
        seed_stock(warehouse_a, product_id, 10, bin_id=bin_b)
        count_session.start(count_setup)
        count_session.add_line(product_id, Decimal("6"), bin_id=bin_b)

        (line,) = count_session.complete().adjustment_txn.lines

        assert line.direction is MovementDirection.OUTWARD
        assert (line.previous_stock, line.new_stock) == (Decimal("10"), Decimal("6"))
        assert stock_lookup.current_stock(product_id, warehouse_a, bin_id=bin_b) == Decimal("6")

    def test_reserved_stock_does_not_block_adjustment(
        self, store, numbers, stock_lookup, seed_stock, count_setup, warehouse_a,
        product_id, deterministic_clock,
    ):
        reservations = StockReservationService(store, stock_lookup, deterministic_clock)
        recorder = LedgerRecorder(store, numbers, stock_lookup, reservations=reservations)
        seed_stock(warehouse_a, product_id, 10)
        reservations.reserve(warehouse_a, ReservationRequest(product_id, Decimal("8")))
        session = PhysicalCountSession(store, recorder, numbers, clock=deterministic_clock)
        session.start(count_setup)
        session.add_line(product_id, Decimal("5"))

        (line,) = session.complete().adjustment_txn.lines

        assert line.quantity == Decimal("5")
        assert stock_lookup.current_stock(product_id, warehouse_a) == Decimal("5")

    def test_investigate_lines_not_posted(
        self, count_session, count_setup, store, product_id, other_product_id
    ):
        count_session.start(count_setup)
        count_session.add_line(product_id, Decimal("120"), Decimal("100"))
        count_session.add_line(other_product_id, Decimal("7"), Decimal("7"))

        result = count_session.complete()

        assert result.adjustment_txn is None
        assert result.adjusted_line_count == 0
        assert result.total_variance == Decimal("20")
        assert store.query(InventoryTransactionModel) == []
        rows = store.query(PhysicalCountLineModel, count_id=result.count_id, order_by="line_no")
        assert [r.adjustment_decision for r in rows] == ["investigate", "no_change"]

    def test_only_adjusting_lines_posted(
        self, count_session, count_setup, product_id, other_product_id
    ):
        count_session.start(count_setup)
        count_session.add_line(product_id, Decimal("3"), Decimal("1"))
        count_session.add_line(other_product_id, Decimal("99"), Decimal("1"))

        result = count_session.complete()

        assert result.adjusted_line_count == 1
        assert [ln.product_id for ln in result.adjustment_txn.lines] == [product_id]

    def test_empty_count_rejected(self, count_session, count_setup):
        count_session.start(count_setup)
        with pytest.raises(EmptyCountError):
            count_session.complete()

    def test_complete_before_start(self, count_session):
        with pytest.raises(CountIdMissingError):
            count_session.complete()

    def test_completed_is_terminal(self, count_session, count_setup, product_id):
        count_session.start(count_setup)
        line = count_session.add_line(product_id, Decimal("1"), Decimal("1"))
        count_session.complete()

        with pytest.raises(InvalidCountTransitionError):
            count_session.update_line(line.line_id, counted_quantity=Decimal("2"))
        with pytest.raises(InvalidCountTransitionError):
            count_session.discard()

    def test_custom_threshold(self, store, recorder, numbers, count_setup, product_id):
        session = PhysicalCountSession(
            store, recorder, numbers, PhysicalCountConfig(investigation_threshold=Decimal("50"))
        )
        session.start(count_setup)
        line = session.add_line(product_id, Decimal("130"), Decimal("100"))
        assert line.adjustment_decision is AdjustmentDecision.ADJUST_TO_COUNT

    def test_completion_logged(self, count_session, count_setup, product_id, captured_logs):
        count_id = count_session.start(count_setup)
        count_session.add_line(product_id, Decimal("2"), Decimal("1"))
        count_session.complete()

        record = next(r for r in captured_logs() if r["message"] == "physical_count_completed")
        assert record["count_id"] == str(count_id)
        assert record["adjustment_txn_number"] == "COMP-ADJ-20240115-0001"


class TestDiscard:

    def test_discard_returns_to_setup(self, count_session, count_setup, store, product_id):
        count_id = count_session.start(count_setup)
        count_session.add_line(product_id, Decimal("1"), Decimal("1"))

        count_session.discard()

        assert count_session.state is CountState.SETUP
        assert count_session.count_id is None
        assert count_session.lines == ()
        assert store.get(PhysicalCountModel, count_id).status == "discarded"

    def test_restart_after_discard(self, count_session, count_setup):
        count_session.start(count_setup)
        count_session.discard()
        count_session.start(count_setup)
        assert count_session.count_number == "COMP-CNT-20240115-0002"
