"""
Receipt Allocator (``ledger_modules.receipts.service``).

Responsibility
--------------
Records a customer payment and spreads it over the customer's outstanding
invoices.  The split is computed by ``ReceiptAllocationEngine``; this
service validates the request, loads outstanding invoices, and writes the
outcome as a saga: ``receipt``, one ``invoice:<id>`` update per funded
invoice, then ``financial_transaction`` (an unposted stub for the
bookkeeping side).

Invariants
----------
- Total applied never exceeds total received; each invoice receives at
  most its outstanding balance.  Both are checked by the engine before the
  first write, so a rejected allocation writes nothing.
- Invoice updates write absolute values (new advance, balance, status)
  computed up front, so resuming a half-written receipt is safe.

Failure Modes
-------------
- ``InvalidAmountError`` (negative amount, non-positive exchange rate),
  ``OverAllocationError``, ``ValueError`` (unknown invoice or payment mode).
- ``PersistenceFailure`` -- the receipt row itself could not be written.
- ``PartialPostingFailure`` -- receipt written, some invoice updates or the
  stub missing; ``resume(failure)`` writes the rest.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date, time
from decimal import Decimal
from uuid import UUID, uuid4

from ledger_engines.allocation import (
    InvoiceAllocation,
    OutstandingInvoice,
    PaymentStatus,
    ReceiptAllocationEngine,
    ReceiptAllocationResult,
)
from ledger_kernel.exceptions import InvalidAmountError, PartialFailure
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.services.document_numbers import (
    DocumentNumberService,
    DocumentType,
)
from ledger_kernel.services.saga import Saga
from ledger_kernel.services.store import Store
from ledger_modules.receipts.config import ReceiptConfig
from ledger_modules.receipts.models import PaymentMode, ReceiptDetails, ReceiptOutcome
from ledger_modules.receipts.orm import (
    CustomerReceiptModel,
    FinancialTransactionModel,
    SalesInvoiceModel,
)

logger = get_logger("modules.receipts.service")

_ZERO = Decimal("0")


class ReceiptAllocator:
    """Records customer receipts against outstanding invoices."""

    def __init__(
        self,
        store: Store,
        numbers: DocumentNumberService,
        config: ReceiptConfig | None = None,
    ):
        self._store = store
        self._numbers = numbers
        self._config = config or ReceiptConfig()
        self._engine = ReceiptAllocationEngine(decimal_places=self._config.decimal_places)

    def outstanding_invoices(self, customer_id: UUID) -> list[OutstandingInvoice]:
        """The customer's invoices that are not fully paid, oldest first."""
        rows = self._store.query(
            SalesInvoiceModel,
            customer_id=customer_id,
            payment_status=[PaymentStatus.UNPAID.value, PaymentStatus.PARTIAL.value],
            order_by=("invoice_date", "invoice_number"),
        )
        return [row.to_outstanding() for row in rows]

    def allocate(
        self,
        customer_id: UUID,
        total_received: Decimal,
        receipt_date: date,
        receipt_time: time,
        invoices: Sequence[OutstandingInvoice] | None = None,
        requested: Mapping[UUID, Decimal] | None = None,
        details: ReceiptDetails | None = None,
    ) -> ReceiptOutcome:
        """
        Record a receipt and apply it to invoices.

        Args:
            invoices: Outstanding invoices to allocate over; loaded with
                ``outstanding_invoices`` when omitted.
            requested: Amount to apply per invoice id.  When omitted the
                receipt is applied oldest invoice first.
            details: Payment mode, bank particulars, currency and so on.

        Raises:
            InvalidAmountError, OverAllocationError, ValueError,
            PersistenceFailure, PartialPostingFailure.
        """
        details = details or ReceiptDetails()
        payment_mode = PaymentMode(details.payment_mode)
        self._validate_details(details)
        if invoices is None:
            invoices = self.outstanding_invoices(customer_id)

        allocation = self._engine.allocate(
            customer_id=customer_id,
            total_received=total_received,
            invoices=invoices,
            requested=requested,
        )

        receipt_number = self._numbers.next_number(DocumentType.CUSTOMER_RECEIPT, receipt_date)
        receipt_id = uuid4()
        financial_txn_id = uuid4()
        currency = (details.currency or self._config.default_currency).upper()

        saga = Saga(
            "customer_receipt",
            receipt_number,
            finalize=lambda _: ReceiptOutcome(
                receipt_id=receipt_id,
                receipt_number=receipt_number,
                allocation=allocation,
                financial_transaction_id=financial_txn_id,
            ),
        )
        saga.add_step(
            "receipt",
            lambda: self._store.insert(
                CustomerReceiptModel,
                self._receipt_row(
                    receipt_id, receipt_number, customer_id, receipt_date,
                    receipt_time, payment_mode, currency, details, allocation,
                ),
            ),
        )
        for line in allocation.applied_lines:
            saga.add_step(
                f"invoice:{line.invoice_id}",
                lambda line=line: self._update_invoice(line),
            )
        saga.add_step(
            "financial_transaction",
            lambda: self._store.insert(
                FinancialTransactionModel,
                {
                    "id": financial_txn_id,
                    "module": self._config.financial_module,
                    "module_reference_id": receipt_id,
                    "transaction_date": receipt_date,
                    "transaction_time": receipt_time,
                    "amount": allocation.total_received,
                    "currency": currency,
                    "gl_entry_created": False,
                },
            ),
        )

        with LogContext.bind(reference=receipt_number):
            logger.info(
                "receipt_recording_started",
                extra={
                    "customer_id": customer_id,
                    "total_received": allocation.total_received,
                    "invoices_funded": len(allocation.applied_lines),
                },
            )
            return self._run(saga)

    def resume(self, failure: PartialFailure) -> ReceiptOutcome:
        """Write whatever a half-recorded receipt left pending."""
        with LogContext.bind(reference=failure.reference):
            logger.info(
                "receipt_recording_resumed",
                extra={"pending_steps": failure.pending_steps},
            )
            return self._run(failure.saga)

    # -- internals ----------------------------------------------------------

    @staticmethod
    def _validate_details(details: ReceiptDetails) -> None:
        if details.exchange_rate <= _ZERO:
            raise InvalidAmountError("exchange_rate", str(details.exchange_rate))
        if details.discount_allowed < _ZERO:
            raise InvalidAmountError("discount_allowed", str(details.discount_allowed))
        if details.advance_adjustment < _ZERO:
            raise InvalidAmountError("advance_adjustment", str(details.advance_adjustment))

    @staticmethod
    def _receipt_row(
        receipt_id: UUID,
        receipt_number: str,
        customer_id: UUID,
        receipt_date: date,
        receipt_time: time,
        payment_mode: PaymentMode,
        currency: str,
        details: ReceiptDetails,
        allocation: ReceiptAllocationResult,
    ) -> dict:
        non_cash = payment_mode is not PaymentMode.CASH
        return {
            "id": receipt_id,
            "receipt_number": receipt_number,
            "customer_id": customer_id,
            "receipt_date": receipt_date,
            "receipt_time": receipt_time,
            "payment_mode": payment_mode.value,
            "bank_account": details.bank_account if non_cash else None,
            "reference_number": details.reference_number if non_cash else None,
            "total_amount_received": allocation.total_received,
            "currency": currency,
            "exchange_rate": details.exchange_rate,
            "discount_allowed": details.discount_allowed,
            "advance_adjustment": details.advance_adjustment,
            "allocation_method": allocation.method.value,
            "allocation_details": [
                {
                    "invoice_id": str(line.invoice_id),
                    "invoice_number": line.invoice_number,
                    "amount_applied": str(line.amount_applied),
                }
                for line in allocation.applied_lines
            ],
            "total_applied": allocation.total_applied,
            "unapplied_amount": allocation.unapplied,
            "balance_after_receipt": allocation.balance_after_receipt,
            "remarks": details.remarks,
        }

    def _update_invoice(self, line: InvoiceAllocation) -> UUID:
        self._store.update(
            SalesInvoiceModel,
            line.invoice_id,
            {
                "advance_received": line.new_advance_received,
                "balance_amount": line.new_balance,
                "payment_status": line.new_status.value,
            },
        )
        return line.invoice_id

    def _run(self, saga: Saga) -> ReceiptOutcome:
        try:
            outcome = saga.execute()
        except PartialFailure as exc:
            logger.error(
                "receipt_partial_failure",
                extra={"written_ids": exc.written_ids, "pending_steps": exc.pending_steps},
            )
            raise
        logger.info(
            "receipt_recorded",
            extra={
                "receipt_id": outcome.receipt_id,
                "receipt_number": outcome.receipt_number,
                "total_applied": outcome.allocation.total_applied,
                "unapplied": outcome.allocation.unapplied,
                "balance_after_receipt": outcome.balance_after_receipt,
            },
        )
        return outcome
