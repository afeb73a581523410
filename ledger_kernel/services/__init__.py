"""Kernel services - the imperative shell around the pure domain."""

from ledger_kernel.services.document_numbers import DocumentNumberService, DocumentType
from ledger_kernel.services.ledger_recorder import LedgerRecorder
from ledger_kernel.services.reservations import StockReservationService
from ledger_kernel.services.saga import Saga, SagaStep
from ledger_kernel.services.sequence_service import SequenceCounter, SequenceService
from ledger_kernel.services.stock_lookup import (
    LedgerStockLookup,
    SnapshotStockLookup,
    StockLookup,
)
from ledger_kernel.services.store import SqlAlchemyStore, Store

__all__ = [
    "Store",
    "SqlAlchemyStore",
    "Saga",
    "SagaStep",
    "SequenceCounter",
    "SequenceService",
    "DocumentNumberService",
    "DocumentType",
    "StockLookup",
    "LedgerStockLookup",
    "SnapshotStockLookup",
    "LedgerRecorder",
    "StockReservationService",
]
