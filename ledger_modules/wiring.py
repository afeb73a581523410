"""
Service wiring (``ledger_modules.wiring``).

Responsibility
--------------
Builds the kernel services and every module service for one company from
``LedgerSettings``: the document-number scope, the negative-stock policy,
the count investigation threshold and the receipt rounding all come from
the settings, so callers never assemble the collaborators by hand.

Architecture position
---------------------
**Modules layer** -- composition root.  The only modules file that reads
``ledger_config``; everything it builds receives plain config objects.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from ledger_config import LedgerSettings, get_active_settings
from ledger_kernel.domain.clock import Clock
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.document_numbers import DocumentNumberService
from ledger_kernel.services.ledger_recorder import LedgerRecorder
from ledger_kernel.services.reservations import StockReservationService
from ledger_kernel.services.sequence_service import SequenceService
from ledger_kernel.services.stock_lookup import LedgerStockLookup
from ledger_kernel.services.store import SqlAlchemyStore
from ledger_modules.physical_count import PhysicalCountConfig, PhysicalCountSession
from ledger_modules.receipts import ReceiptAllocator, ReceiptConfig
from ledger_modules.receiving import ReceivingAllocator
from ledger_modules.transfer import TransferCoordinator

logger = get_logger("modules.wiring")


@dataclass(frozen=True)
class LedgerServices:
    """Everything one actor needs to work the ledger of one company."""

    settings: LedgerSettings
    store: SqlAlchemyStore
    numbers: DocumentNumberService
    recorder: LedgerRecorder
    reservations: StockReservationService
    transfers: TransferCoordinator
    receipts: ReceiptAllocator
    receiving: ReceivingAllocator
    count_config: PhysicalCountConfig

    def new_count_session(self, clock: Clock | None = None) -> PhysicalCountSession:
        """A fresh physical count session; sessions are never shared."""
        return PhysicalCountSession(
            self.store,
            self.recorder,
            self.numbers,
            config=self.count_config,
            clock=clock,
        )


def build_ledger_services(
    session_factory: sessionmaker[Session],
    actor_id: UUID,
    settings: LedgerSettings | None = None,
) -> LedgerServices:
    """
    Wire the ledger for ``actor_id``.

    ``settings`` defaults to ``ledger_config.get_active_settings()``.
    """
    settings = settings or get_active_settings()

    store = SqlAlchemyStore(session_factory, actor_id)
    numbers = DocumentNumberService(
        SequenceService(session_factory), scope=settings.company_code
    )
    stock_lookup = LedgerStockLookup(session_factory)
    reservations = StockReservationService(store, stock_lookup)
    recorder = LedgerRecorder(
        store,
        numbers,
        stock_lookup,
        allow_negative_stock=settings.allow_negative_stock,
        reservations=reservations,
    )
    services = LedgerServices(
        settings=settings,
        store=store,
        numbers=numbers,
        recorder=recorder,
        reservations=reservations,
        transfers=TransferCoordinator(store, recorder, numbers),
        receipts=ReceiptAllocator(store, numbers, ReceiptConfig.from_settings(settings)),
        receiving=ReceivingAllocator(store, recorder, numbers),
        count_config=PhysicalCountConfig.from_settings(settings),
    )
    logger.info(
        "ledger_services_built",
        extra={
            "company_code": settings.company_code,
            "actor_id": actor_id,
            "allow_negative_stock": settings.allow_negative_stock,
        },
    )
    return services
