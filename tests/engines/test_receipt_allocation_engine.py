"""Tests for ReceiptAllocationEngine (SPECIFIC and FIFO allocation)."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_engines.allocation import (
    AllocationMethod,
    OutstandingInvoice,
    PaymentStatus,
    ReceiptAllocationEngine,
)
from ledger_kernel.exceptions import InvalidAmountError, OverAllocationError


@pytest.fixture
def engine():
    return ReceiptAllocationEngine()


@pytest.fixture
def customer_id():
    return uuid4()


@pytest.fixture
def invoice_a():
    return OutstandingInvoice(
        invoice_id=uuid4(),
        invoice_number="INV-001",
        grand_total=Decimal("1000"),
        advance_received=Decimal("0"),
        invoice_date=date(2024, 1, 1),
    )


@pytest.fixture
def invoice_b():
    return OutstandingInvoice(
        invoice_id=uuid4(),
        invoice_number="INV-002",
        grand_total=Decimal("500"),
        advance_received=Decimal("300"),
        invoice_date=date(2024, 1, 5),
    )


class TestSpecificAllocation:

    def test_two_invoices(self, engine, customer_id, invoice_a, invoice_b):
        result = engine.allocate(
            customer_id=customer_id,
            total_received=Decimal("700"),
            invoices=[invoice_a, invoice_b],
            requested={invoice_a.invoice_id: Decimal("500"), invoice_b.invoice_id: Decimal("200")},
        )

        a, b = result.lines
        assert result.method is AllocationMethod.SPECIFIC
        assert a.amount_applied == Decimal("500.00")
        assert a.new_balance == Decimal("500.00")
        assert a.new_status is PaymentStatus.PARTIAL
        assert b.new_advance_received == Decimal("500.00")
        assert b.new_balance == Decimal("0.00")
        assert b.new_status is PaymentStatus.PAID
        assert result.total_applied == Decimal("700.00")
        assert result.unapplied == Decimal("0.00")
        assert result.total_outstanding_before == Decimal("1200")
        assert result.balance_after_receipt == Decimal("500.00")

    def test_request_clamped_to_outstanding(self, engine, customer_id, invoice_b):
        result = engine.allocate(
            customer_id=customer_id,
            total_received=Decimal("500"),
            invoices=[invoice_b],
            requested={invoice_b.invoice_id: Decimal("450")},
        )

        assert result.lines[0].amount_applied == Decimal("200")
        assert result.unapplied == Decimal("300.00")

    def test_unnamed_invoice_untouched(self, engine, customer_id, invoice_a, invoice_b):
        result = engine.allocate(
            customer_id=customer_id,
            total_received=Decimal("100"),
            invoices=[invoice_a, invoice_b],
            requested={invoice_a.invoice_id: Decimal("100")},
        )

        untouched = result.lines[1]
        assert untouched.amount_applied == Decimal("0")
        assert untouched.new_status is PaymentStatus.PARTIAL
        assert result.applied_lines == (result.lines[0],)

    def test_over_allocation_rejected(self, engine, customer_id, invoice_a, invoice_b):
        with pytest.raises(OverAllocationError) as exc_info:
            engine.allocate(
                customer_id=customer_id,
                total_received=Decimal("300"),
                invoices=[invoice_a, invoice_b],
                requested={invoice_a.invoice_id: Decimal("250"), invoice_b.invoice_id: Decimal("100")},
            )
        assert exc_info.value.total_applied == "350.00"

    def test_negative_request_rejected(self, engine, customer_id, invoice_a):
        with pytest.raises(InvalidAmountError):
            engine.allocate(
                customer_id=customer_id,
                total_received=Decimal("10"),
                invoices=[invoice_a],
                requested={invoice_a.invoice_id: Decimal("-1")},
            )

    def test_unknown_invoice_rejected(self, engine, customer_id, invoice_a):
        with pytest.raises(ValueError):
            engine.allocate(
                customer_id=customer_id,
                total_received=Decimal("10"),
                invoices=[invoice_a],
                requested={uuid4(): Decimal("10")},
            )


class TestFifoAllocation:

    def test_oldest_first(self, engine, customer_id, invoice_a, invoice_b):
        result = engine.allocate(
            customer_id=customer_id,
            total_received=Decimal("1100"),
            invoices=[invoice_b, invoice_a],
        )

        assert result.method is AllocationMethod.FIFO
        assert [line.invoice_number for line in result.lines] == ["INV-001", "INV-002"]
        assert result.lines[0].amount_applied == Decimal("1000.00")
        assert result.lines[0].new_status is PaymentStatus.PAID
        assert result.lines[1].amount_applied == Decimal("100.00")
        assert result.unapplied == Decimal("0.00")

    def test_surplus_left_unapplied(self, engine, customer_id, invoice_b):
        result = engine.allocate(
            customer_id=customer_id,
            total_received=Decimal("250"),
            invoices=[invoice_b],
        )
        assert result.total_applied == Decimal("200.00")
        assert result.unapplied == Decimal("50.00")


class TestInputChecks:

    def test_negative_receipt_rejected(self, engine, customer_id, invoice_a):
        with pytest.raises(InvalidAmountError):
            engine.allocate(
                customer_id=customer_id, total_received=Decimal("-5"), invoices=[invoice_a]
            )

    def test_duplicate_invoice_rejected(self, engine, customer_id, invoice_a):
        with pytest.raises(ValueError, match="listed twice"):
            engine.allocate(
                customer_id=customer_id,
                total_received=Decimal("5"),
                invoices=[invoice_a, invoice_a],
            )

    def test_rounding_half_up(self, customer_id, invoice_a):
        result = ReceiptAllocationEngine(decimal_places=2).allocate(
            customer_id=customer_id,
            total_received=Decimal("10.005"),
            invoices=[invoice_a],
            requested={invoice_a.invoice_id: Decimal("10.005")},
        )
        assert result.total_received == Decimal("10.01")
        assert result.lines[0].amount_applied == Decimal("10.01")

    def test_fine_balance_never_overpaid_specific(self, engine, customer_id):
        invoice = OutstandingInvoice(
            invoice_id=uuid4(), invoice_number="INV-FINE", grand_total=Decimal("10.005"),
        )

        result = engine.allocate(
            customer_id=customer_id,
            total_received=Decimal("20"),
            invoices=[invoice],
            requested={invoice.invoice_id: Decimal("20")},
        )

        line = result.lines[0]
        assert line.amount_applied == Decimal("10.00")
        assert line.amount_applied <= line.outstanding_before
        assert line.new_balance == Decimal("0.005")

    def test_fine_balance_never_overpaid_fifo(self, engine, customer_id):
        invoice = OutstandingInvoice(
            invoice_id=uuid4(), invoice_number="INV-FINE", grand_total=Decimal("33.335"),
        )

        result = engine.allocate(customer_id=customer_id, total_received=Decimal("100"),
                                 invoices=[invoice])

        assert result.lines[0].amount_applied == Decimal("33.33")
        assert result.unapplied == Decimal("66.67")

    def test_negative_decimal_places_rejected(self):
        with pytest.raises(ValueError):
            ReceiptAllocationEngine(decimal_places=-1)

    def test_unpaid_status_without_advance(self, engine, customer_id, invoice_a):
        result = engine.allocate(
            customer_id=customer_id,
            total_received=Decimal("0"),
            invoices=[invoice_a],
        )
        assert result.lines[0].new_status is PaymentStatus.UNPAID
