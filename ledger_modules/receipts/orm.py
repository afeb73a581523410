"""
Module: ledger_modules.receipts.orm
Responsibility: SQLAlchemy ORM persistence for customer receipts, the
    sales invoices they settle, and the financial-transaction stubs left
    for the bookkeeping side.

Architecture position: Modules > Receipts > ORM.  Inherits from
    TrackedBase.  Customers are referenced by id with NO foreign key.

Invariants enforced:
    - All monetary fields use Decimal (Numeric(38,9)) -- never float.
    - receipt_number and invoice_number are unique.
    - A financial-transaction stub is written with gl_entry_created False;
      the general ledger is somebody else's job.
"""

from datetime import date, time
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Boolean, Date, Index, String, Text, Time, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_engines.allocation import OutstandingInvoice
from ledger_kernel.db.base import TrackedBase, UUIDString


class SalesInvoiceModel(TrackedBase):
    """A customer invoice with its running amount received and balance."""

    __tablename__ = "sales_invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_sales_invoice_number"),
        Index("idx_sales_invoice_customer", "customer_id", "payment_status"),
    )

    customer_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    grand_total: Mapped[Decimal] = mapped_column(nullable=False)
    advance_received: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    balance_amount: Mapped[Decimal] = mapped_column(nullable=False)
    # PaymentStatus value: unpaid / partial / paid
    payment_status: Mapped[str] = mapped_column(String(20), default="unpaid", nullable=False)

    def to_outstanding(self) -> OutstandingInvoice:
        return OutstandingInvoice(
            invoice_id=self.id,
            invoice_number=self.invoice_number,
            grand_total=self.grand_total,
            advance_received=self.advance_received or Decimal("0"),
            invoice_date=self.invoice_date,
        )

    def __repr__(self) -> str:
        return f"<SalesInvoiceModel {self.invoice_number} status={self.payment_status}>"


class CustomerReceiptModel(TrackedBase):
    """One payment received from a customer."""

    __tablename__ = "customer_receipts"

    __table_args__ = (
        UniqueConstraint("receipt_number", name="uq_customer_receipt_number"),
        Index("idx_customer_receipt_customer", "customer_id"),
        Index("idx_customer_receipt_date", "receipt_date"),
    )

    receipt_number: Mapped[str] = mapped_column(String(100), nullable=False)
    customer_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    receipt_date: Mapped[date] = mapped_column(Date, nullable=False)
    receipt_time: Mapped[time] = mapped_column(Time, nullable=False)
    payment_mode: Mapped[str] = mapped_column(String(20), nullable=False)
    bank_account: Mapped[str | None] = mapped_column(String(100))
    reference_number: Mapped[str | None] = mapped_column(String(100))
    total_amount_received: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    exchange_rate: Mapped[Decimal] = mapped_column(nullable=False)
    discount_allowed: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    advance_adjustment: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    allocation_method: Mapped[str] = mapped_column(String(20), nullable=False)
    # [{"invoice_id", "invoice_number", "amount_applied"}], amounts as strings
    allocation_details: Mapped[list] = mapped_column(JSON, nullable=False)
    total_applied: Mapped[Decimal] = mapped_column(nullable=False)
    unapplied_amount: Mapped[Decimal] = mapped_column(nullable=False)
    balance_after_receipt: Mapped[Decimal] = mapped_column(nullable=False)
    remarks: Mapped[str | None] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<CustomerReceiptModel {self.receipt_number} amount={self.total_amount_received}>"


class FinancialTransactionModel(TrackedBase):
    """Unposted bookkeeping stub pointing back at a module document."""

    __tablename__ = "financial_transactions"

    __table_args__ = (
        Index("idx_financial_txn_module_ref", "module", "module_reference_id"),
    )

    module: Mapped[str] = mapped_column(String(50), nullable=False)
    module_reference_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    transaction_time: Mapped[time] = mapped_column(Time, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    gl_entry_created: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
