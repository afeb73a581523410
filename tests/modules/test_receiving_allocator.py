"""
Tests for ReceivingAllocator: goods receipts against purchase orders.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.movement import MovementType
from ledger_kernel.exceptions import (
    EmptyLinesError,
    InvalidAmountError,
    InvalidWarehouseError,
    OrderLineMismatchError,
    OverReceiptError,
)
from ledger_kernel.models.movement import InventoryTransactionModel
from ledger_modules.receiving import GrnParticulars, ReceivingAllocator, ReceivingLine
from ledger_modules.receiving.orm import (
    GoodsReceiptLineModel,
    GoodsReceiptModel,
    PurchaseOrderLineModel,
)


@pytest.fixture
def receiver(store, recorder, numbers):
    return ReceivingAllocator(store, recorder, numbers)


@pytest.fixture
def po_id():
    return uuid4()


@pytest.fixture
def create_po_line(store, po_id):
    def _create(product_id, ordered, rate="0", received="0"):
        ordered = Decimal(ordered)
        received = Decimal(received)
        return store.insert(
            PurchaseOrderLineModel,
            {
                "po_id": po_id,
                "product_id": product_id,
                "ordered_quantity": ordered,
                "received_quantity": received,
                "pending_quantity": ordered - received,
                "rate": Decimal(rate),
                "line_status": "open",
            },
        )

    return _create


class TestReceive:

    def test_accepted_stock_posted(
        self, receiver, create_po_line, po_id, store, stock_lookup,
        warehouse_a, product_id, txn_date, txn_time,
    ):
        po_line = create_po_line(product_id, "100", rate="4.50")

        outcome = receiver.receive(
            po_id,
            [ReceivingLine(po_line, accepted_qty=Decimal("60"), received_qty=Decimal("64"),
                           reason_for_rejection="crushed")],
            warehouse_a,
            txn_date,
            txn_time,
        )

        txn = outcome.inventory_txn
        assert outcome.grn_number == "COMP-GRN-20240115-0001"
        assert txn.txn_number == outcome.grn_number
        assert txn.txn_type is MovementType.PURCHASE_IN
        assert txn.reference_document == outcome.grn_number
        assert txn.related_id == outcome.grn_id
        assert txn.lines[0].quantity == Decimal("60")
        assert txn.lines[0].unit_cost == Decimal("4.50")
        assert outcome.subtotal == Decimal("270.00")
        assert stock_lookup.current_stock(product_id, warehouse_a) == Decimal("60")

        (grn_line,) = store.query(GoodsReceiptLineModel, grn_id=outcome.grn_id)
        assert grn_line.received_qty == Decimal("64")
        assert grn_line.rejected_qty == Decimal("4")
        assert grn_line.reason_for_rejection == "crushed"

        po = store.get(PurchaseOrderLineModel, po_line)
        assert po.received_quantity == Decimal("60")
        assert po.pending_quantity == Decimal("40")
        assert po.line_status == "partially_received"

    def test_grn_header(
        self, receiver, create_po_line, po_id, store, warehouse_a, product_id, txn_date, txn_time,
    ):
        po_line = create_po_line(product_id, "10", rate="2")
        vendor = uuid4()

        outcome = receiver.receive(
            po_id,
            [ReceivingLine(po_line, accepted_qty=Decimal("10"))],
            warehouse_a, txn_date, txn_time,
            GrnParticulars(vendor_id=vendor, freight_charges=Decimal("5"),
                           vehicle_number="KA-01-1234"),
        )

        grn = store.get(GoodsReceiptModel, outcome.grn_id)
        assert grn.grn_number == outcome.grn_number
        assert grn.vendor_id == vendor
        assert grn.subtotal == Decimal("20")
        assert grn.total_amount == Decimal("25")
        assert grn.inventory_txn_id == outcome.inventory_txn.id
        assert grn.grn_status == "completed"
        assert store.get(PurchaseOrderLineModel, po_line).line_status == "fully_received"

    def test_fully_rejected_line_not_posted(
        self, receiver, create_po_line, po_id, store, warehouse_a,
        product_id, other_product_id, txn_date, txn_time,
    ):
        good = create_po_line(product_id, "10", rate="1")
        bad = create_po_line(other_product_id, "10", rate="1")

        outcome = receiver.receive(
            po_id,
            [
                ReceivingLine(good, accepted_qty=Decimal("10")),
                ReceivingLine(bad, accepted_qty=Decimal("0"), received_qty=Decimal("10")),
            ],
            warehouse_a, txn_date, txn_time,
        )

        assert [ln.product_id for ln in outcome.inventory_txn.lines] == [product_id]
        assert store.get(PurchaseOrderLineModel, bad).pending_quantity == Decimal("10")
        rejected = next(r for r in outcome.lines if r.po_detail_id == bad)
        assert rejected.new_line_status.value == store.get(PurchaseOrderLineModel, bad).line_status
        assert len(store.query(GoodsReceiptLineModel, grn_id=outcome.grn_id)) == 2

    def test_nothing_accepted_posts_no_transaction(
        self, receiver, create_po_line, po_id, store, warehouse_a, product_id, txn_date, txn_time,
    ):
        po_line = create_po_line(product_id, "10")

        outcome = receiver.receive(
            po_id,
            [ReceivingLine(po_line, accepted_qty=Decimal("0"), received_qty=Decimal("3"))],
            warehouse_a, txn_date, txn_time,
        )

        assert outcome.inventory_txn is None
        assert store.query(InventoryTransactionModel) == []
        assert store.get(GoodsReceiptModel, outcome.grn_id).inventory_txn_id is None

    def test_rejected_line_reports_stored_status(
        self, receiver, create_po_line, po_id, store, warehouse_a, product_id, txn_date, txn_time,
    ):
        po_line = create_po_line(product_id, "10", received="4")
        store.update(PurchaseOrderLineModel, po_line, {"line_status": "partially_received"})

        outcome = receiver.receive(
            po_id,
            [ReceivingLine(po_line, accepted_qty=Decimal("0"), received_qty=Decimal("2"))],
            warehouse_a, txn_date, txn_time,
        )

        (line,) = outcome.lines
        po = store.get(PurchaseOrderLineModel, po_line)
        assert line.new_line_status.value == po.line_status == "partially_received"
        assert po.pending_quantity == Decimal("6")

    def test_repeated_po_line_uses_final_state(
        self, receiver, create_po_line, po_id, store, warehouse_a, product_id, txn_date, txn_time,
    ):
        po_line = create_po_line(product_id, "10")

        receiver.receive(
            po_id,
            [
                ReceivingLine(po_line, accepted_qty=Decimal("4")),
                ReceivingLine(po_line, accepted_qty=Decimal("6")),
            ],
            warehouse_a, txn_date, txn_time,
        )

        po = store.get(PurchaseOrderLineModel, po_line)
        assert po.received_quantity == Decimal("10")
        assert po.pending_quantity == Decimal("0")

    def test_open_lines(self, receiver, create_po_line, po_id, product_id, other_product_id):
        open_line = create_po_line(product_id, "10")
        create_po_line(other_product_id, "5", received="5")

        assert [line.po_detail_id for line in receiver.open_lines(po_id)] == [open_line]


class TestReceiveValidation:

    def test_over_receipt_writes_nothing(
        self, receiver, create_po_line, po_id, store, warehouse_a, product_id, txn_date, txn_time,
    ):
        po_line = create_po_line(product_id, "10", received="8")

        with pytest.raises(OverReceiptError):
            receiver.receive(
                po_id, [ReceivingLine(po_line, accepted_qty=Decimal("3"))],
                warehouse_a, txn_date, txn_time,
            )

        assert store.query(GoodsReceiptModel) == []
        assert store.get(PurchaseOrderLineModel, po_line).pending_quantity == Decimal("2")

    def test_line_from_other_po(
        self, receiver, create_po_line, warehouse_a, product_id, txn_date, txn_time,
    ):
        po_line = create_po_line(product_id, "10")
        with pytest.raises(OrderLineMismatchError):
            receiver.receive(
                uuid4(), [ReceivingLine(po_line, accepted_qty=Decimal("1"))],
                warehouse_a, txn_date, txn_time,
            )

    def test_empty_lines(self, receiver, po_id, warehouse_a, txn_date, txn_time):
        with pytest.raises(EmptyLinesError):
            receiver.receive(po_id, [], warehouse_a, txn_date, txn_time)

    def test_negative_charges(
        self, receiver, create_po_line, po_id, warehouse_a, product_id, txn_date, txn_time,
    ):
        po_line = create_po_line(product_id, "10")
        with pytest.raises(InvalidAmountError):
            receiver.receive(
                po_id, [ReceivingLine(po_line, accepted_qty=Decimal("1"))],
                warehouse_a, txn_date, txn_time,
                GrnParticulars(other_charges=Decimal("-1")),
            )

    def test_inactive_warehouse(
        self, receiver, create_po_line, po_id, inactive_warehouse, product_id, txn_date, txn_time,
    ):
        po_line = create_po_line(product_id, "10")
        with pytest.raises(InvalidWarehouseError):
            receiver.receive(
                po_id, [ReceivingLine(po_line, accepted_qty=Decimal("1"))],
                inactive_warehouse, txn_date, txn_time,
            )
