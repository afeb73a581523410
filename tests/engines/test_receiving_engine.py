"""Tests for the goods-receipt engine (apply_receipt)."""

from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_engines.receiving import (
    LineStatus,
    OpenOrderLine,
    ReceiptQuantity,
    apply_receipt,
)
from ledger_kernel.exceptions import (
    InvalidQuantityError,
    OrderLineMismatchError,
    OverReceiptError,
)


@pytest.fixture
def po_id():
    return uuid4()


@pytest.fixture
def order_line(po_id):
    return OpenOrderLine(
        po_detail_id=uuid4(),
        po_id=po_id,
        product_id=uuid4(),
        ordered_quantity=Decimal("100"),
        received_quantity=Decimal("0"),
        pending_quantity=Decimal("100"),
        rate=Decimal("4.50"),
    )


def _lines(*lines):
    return {line.po_detail_id: line for line in lines}


class TestApplyReceipt:

    def test_partial_receipt(self, po_id, order_line):
        (result,) = apply_receipt(
            po_id,
            _lines(order_line),
            [ReceiptQuantity(order_line.po_detail_id, accepted_qty=Decimal("60"))],
        )

        assert result.new_received_quantity == Decimal("60")
        assert result.new_pending_quantity == Decimal("40")
        assert result.new_line_status is LineStatus.PARTIALLY_RECEIVED
        assert result.rejected_qty == Decimal("0")
        assert result.posts_stock

    def test_full_receipt_with_rejects(self, po_id, order_line):
        (result,) = apply_receipt(
            po_id,
            _lines(order_line),
            [
                ReceiptQuantity(
                    order_line.po_detail_id,
                    accepted_qty=Decimal("100"),
                    received_qty=Decimal("104"),
                )
            ],
        )

        assert result.rejected_qty == Decimal("4")
        assert result.new_pending_quantity == Decimal("0")
        assert result.new_line_status is LineStatus.FULLY_RECEIVED

    def test_all_rejected_posts_no_stock(self, po_id, order_line):
        (result,) = apply_receipt(
            po_id,
            _lines(order_line),
            [
                ReceiptQuantity(
                    order_line.po_detail_id,
                    accepted_qty=Decimal("0"),
                    received_qty=Decimal("5"),
                )
            ],
        )
        assert not result.posts_stock
        assert result.new_pending_quantity == Decimal("100")
        assert result.new_line_status is LineStatus.OPEN

    def test_all_rejected_keeps_existing_status(self, po_id, order_line):
        partly = replace(
            order_line,
            received_quantity=Decimal("40"),
            pending_quantity=Decimal("60"),
            line_status=LineStatus.PARTIALLY_RECEIVED,
        )
        (result,) = apply_receipt(
            po_id,
            _lines(partly),
            [ReceiptQuantity(partly.po_detail_id, accepted_qty=Decimal("0"),
                             received_qty=Decimal("5"))],
        )
        assert result.new_line_status is LineStatus.PARTIALLY_RECEIVED

    def test_rejected_after_accepted_keeps_new_status(self, po_id, order_line):
        first, second = apply_receipt(
            po_id,
            _lines(order_line),
            [
                ReceiptQuantity(order_line.po_detail_id, accepted_qty=Decimal("100")),
                ReceiptQuantity(order_line.po_detail_id, accepted_qty=Decimal("0"),
                                received_qty=Decimal("2")),
            ],
        )
        assert first.new_line_status is LineStatus.FULLY_RECEIVED
        assert second.new_line_status is LineStatus.FULLY_RECEIVED

    def test_repeated_line_is_cumulative(self, po_id, order_line):
        first, second = apply_receipt(
            po_id,
            _lines(order_line),
            [
                ReceiptQuantity(order_line.po_detail_id, accepted_qty=Decimal("30")),
                ReceiptQuantity(order_line.po_detail_id, accepted_qty=Decimal("70")),
            ],
        )
        assert first.new_pending_quantity == Decimal("70")
        assert second.new_pending_quantity == Decimal("0")
        assert second.new_received_quantity == Decimal("100")

    def test_over_receipt_rejected(self, po_id, order_line):
        with pytest.raises(OverReceiptError) as exc_info:
            apply_receipt(
                po_id,
                _lines(order_line),
                [ReceiptQuantity(order_line.po_detail_id, accepted_qty=Decimal("101"))],
            )
        assert exc_info.value.pending == "100"

    def test_over_receipt_across_lines(self, po_id, order_line):
        with pytest.raises(OverReceiptError):
            apply_receipt(
                po_id,
                _lines(order_line),
                [
                    ReceiptQuantity(order_line.po_detail_id, accepted_qty=Decimal("60")),
                    ReceiptQuantity(order_line.po_detail_id, accepted_qty=Decimal("60")),
                ],
            )

    def test_line_on_other_po_rejected(self, order_line):
        with pytest.raises(OrderLineMismatchError):
            apply_receipt(
                uuid4(),
                _lines(order_line),
                [ReceiptQuantity(order_line.po_detail_id, accepted_qty=Decimal("1"))],
            )

    def test_unknown_line_rejected(self, po_id, order_line):
        with pytest.raises(OrderLineMismatchError):
            apply_receipt(
                po_id,
                _lines(order_line),
                [ReceiptQuantity(uuid4(), accepted_qty=Decimal("1"))],
            )

    @pytest.mark.parametrize(
        "accepted, received",
        [(Decimal("-1"), None), (Decimal("5"), Decimal("4"))],
    )
    def test_invalid_quantities(self, po_id, order_line, accepted, received):
        with pytest.raises(InvalidQuantityError):
            apply_receipt(
                po_id,
                _lines(order_line),
                [ReceiptQuantity(order_line.po_detail_id, accepted, received)],
            )

    def test_original_line_not_mutated(self, po_id, order_line):
        apply_receipt(
            po_id,
            _lines(order_line),
            [ReceiptQuantity(order_line.po_detail_id, accepted_qty=Decimal("10"))],
        )
        assert order_line.pending_quantity == Decimal("100")
