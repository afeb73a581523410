"""
Module: ledger_engines.allocation
Responsibility:
    Distribute a received customer payment across that customer's
    outstanding invoices and compute each invoice's new running totals and
    payment status.  Two methods: SPECIFIC (caller names an amount per
    invoice, each clamped to what the invoice still owes) and FIFO (oldest
    invoice first until the payment is used up).

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Called by
    ledger_modules.receipts.ReceiptAllocator.

Invariants enforced:
    - amount_applied <= outstanding balance before the receipt, per invoice.
    - total applied <= total received.  Violations raise
      OverAllocationError; nothing is partially allocated.
    - Amounts are quantized to the configured decimal places with
      ROUND_HALF_UP.  The cap is the balance rounded down, so a balance
      finer than the precision is never overpaid.

Failure modes:
    - InvalidAmountError for a negative received or requested amount.
    - OverAllocationError when the clamped amounts exceed the receipt.
    - ValueError on a repeated invoice id.

Usage:
    engine = ReceiptAllocationEngine()
    result = engine.allocate(
        customer_id=customer_id,
        total_received=Decimal("700"),
        invoices=[inv_a, inv_b],
        requested={inv_a.invoice_id: Decimal("500"), inv_b.invoice_id: Decimal("200")},
    )
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from enum import Enum
from uuid import UUID

from ledger_engines.tracer import traced_engine
from ledger_kernel.exceptions import InvalidAmountError, OverAllocationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")

_ZERO = Decimal("0")


class AllocationMethod(str, Enum):
    """How a receipt is spread over invoices."""

    SPECIFIC = "specific"  # Caller-designated amount per invoice
    FIFO = "fifo"  # Oldest invoice first


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


@dataclass(frozen=True)
class OutstandingInvoice:
    """An invoice that still has a balance to collect."""

    invoice_id: UUID
    invoice_number: str
    grand_total: Decimal
    advance_received: Decimal = Decimal("0")
    invoice_date: date | None = None

    @property
    def outstanding_balance(self) -> Decimal:
        return self.grand_total - self.advance_received


@dataclass(frozen=True)
class InvoiceAllocation:
    """
    Outcome for one invoice.

    Guarantees:
        - ``new_advance_received = advance_received + amount_applied``.
        - ``new_balance = grand_total - new_advance_received``.
    """

    invoice_id: UUID
    invoice_number: str
    outstanding_before: Decimal
    amount_applied: Decimal
    new_advance_received: Decimal
    new_balance: Decimal
    new_status: PaymentStatus

    @property
    def is_applied(self) -> bool:
        return self.amount_applied > _ZERO


@dataclass(frozen=True)
class ReceiptAllocationResult:
    """Complete allocation of one receipt."""

    customer_id: UUID
    method: AllocationMethod
    total_received: Decimal
    lines: tuple[InvoiceAllocation, ...]
    total_applied: Decimal
    unapplied: Decimal
    total_outstanding_before: Decimal
    balance_after_receipt: Decimal

    @property
    def applied_lines(self) -> tuple[InvoiceAllocation, ...]:
        return tuple(line for line in self.lines if line.is_applied)


class ReceiptAllocationEngine:
    """
    Allocate a customer receipt across outstanding invoices.

    Contract:
        Pure functions with deterministic rounding.  No I/O.
    """

    def __init__(self, decimal_places: int = 2):
        if decimal_places < 0:
            raise ValueError("decimal_places cannot be negative")
        self._quantum = Decimal(10) ** -decimal_places

    def _round(self, amount: Decimal) -> Decimal:
        return amount.quantize(self._quantum, rounding=ROUND_HALF_UP)

    def _payable(self, invoice: OutstandingInvoice) -> Decimal:
        """Outstanding balance rounded down, so rounding never overpays an invoice."""
        return max(invoice.outstanding_balance, _ZERO).quantize(self._quantum, rounding=ROUND_DOWN)

    @traced_engine("receipt_allocation", "1.0", fingerprint_fields=("total_received", "requested"))
    def allocate(
        self,
        customer_id: UUID,
        total_received: Decimal,
        invoices: Sequence[OutstandingInvoice],
        requested: Mapping[UUID, Decimal] | None = None,
    ) -> ReceiptAllocationResult:
        """
        Allocate ``total_received`` over ``invoices``.

        Args:
            customer_id: Customer the receipt belongs to.
            total_received: Amount received; must be >= 0.
            invoices: The customer's outstanding invoices.
            requested: Amount to apply per invoice id (SPECIFIC).  Invoices
                not named get nothing.  When None, FIFO by invoice date.

        Raises:
            InvalidAmountError, OverAllocationError, ValueError.
        """
        if total_received < _ZERO:
            raise InvalidAmountError("total_received", str(total_received))
        total_received = self._round(total_received)

        seen: set[UUID] = set()
        for invoice in invoices:
            if invoice.invoice_id in seen:
                raise ValueError(f"Invoice {invoice.invoice_id} listed twice")
            seen.add(invoice.invoice_id)

        method = AllocationMethod.FIFO if requested is None else AllocationMethod.SPECIFIC
        logger.info("allocation_started", extra={
            "customer_id": customer_id,
            "total_received": str(total_received),
            "method": method.value,
            "invoice_count": len(invoices),
        })

        if requested is None:
            applied = self._fifo_amounts(total_received, invoices)
            ordered = sorted(invoices, key=lambda inv: (inv.invoice_date or date.min, inv.invoice_number))
        else:
            applied = self._specific_amounts(requested, invoices)
            ordered = list(invoices)

        total_applied = sum(applied.values(), _ZERO)
        if total_applied > total_received:
            logger.warning("allocation_over_allocated", extra={
                "customer_id": customer_id,
                "total_received": str(total_received),
                "total_applied": str(total_applied),
            })
            raise OverAllocationError(
                str(customer_id), str(total_received), str(total_applied)
            )

        lines = tuple(
            self._line(invoice, applied.get(invoice.invoice_id, _ZERO))
            for invoice in ordered
        )
        total_outstanding = sum((inv.outstanding_balance for inv in invoices), _ZERO)

        result = ReceiptAllocationResult(
            customer_id=customer_id,
            method=method,
            total_received=total_received,
            lines=lines,
            total_applied=total_applied,
            unapplied=total_received - total_applied,
            total_outstanding_before=total_outstanding,
            balance_after_receipt=total_outstanding - total_received,
        )

        assert result.total_applied + result.unapplied == total_received, (
            "allocation conservation violated"
        )

        logger.info("allocation_completed", extra={
            "customer_id": customer_id,
            "method": method.value,
            "total_applied": str(total_applied),
            "unapplied": str(result.unapplied),
            "invoices_funded": len(result.applied_lines),
        })
        return result

    def _specific_amounts(
        self,
        requested: Mapping[UUID, Decimal],
        invoices: Sequence[OutstandingInvoice],
    ) -> dict[UUID, Decimal]:
        known = {inv.invoice_id: inv for inv in invoices}
        amounts: dict[UUID, Decimal] = {}
        for invoice_id, amount in requested.items():
            if invoice_id not in known:
                raise ValueError(f"Invoice {invoice_id} is not outstanding for this customer")
            if amount < _ZERO:
                raise InvalidAmountError(f"amount_applied[{invoice_id}]", str(amount))
            amounts[invoice_id] = min(self._round(amount), self._payable(known[invoice_id]))
        return amounts

    def _fifo_amounts(
        self,
        total_received: Decimal,
        invoices: Sequence[OutstandingInvoice],
    ) -> dict[UUID, Decimal]:
        remaining = total_received
        amounts: dict[UUID, Decimal] = {}
        ordered = sorted(
            invoices, key=lambda inv: (inv.invoice_date or date.min, inv.invoice_number)
        )
        for invoice in ordered:
            if remaining <= _ZERO:
                break
            to_apply = min(remaining, self._payable(invoice))
            if to_apply > _ZERO:
                amounts[invoice.invoice_id] = to_apply
                remaining -= to_apply
        return amounts

    def _line(self, invoice: OutstandingInvoice, amount: Decimal) -> InvoiceAllocation:
        if amount > _ZERO:
            new_advance = invoice.advance_received + amount
            new_balance = invoice.grand_total - new_advance
            status = PaymentStatus.PAID if new_balance <= _ZERO else PaymentStatus.PARTIAL
        else:
            new_advance = invoice.advance_received
            new_balance = invoice.outstanding_balance
            status = (
                PaymentStatus.UNPAID if new_advance == _ZERO else PaymentStatus.PARTIAL
            )
        return InvoiceAllocation(
            invoice_id=invoice.invoice_id,
            invoice_number=invoice.invoice_number,
            outstanding_before=invoice.outstanding_balance,
            amount_applied=amount,
            new_advance_received=new_advance,
            new_balance=new_balance,
            new_status=status,
        )
