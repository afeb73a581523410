"""
DocumentNumberService -- human-readable document numbers.

Numbers have the form ``<SCOPE>-<TYPE>-<YYYYMMDD>-<seq>``, e.g.
``COMP-TRF-20240115-0003``.  ``seq`` restarts at 1 for every
scope/type/day and comes from SequenceService, never from counting rows.
The surrogate UUID id remains the true key of every record; the number is
unique because the counter is.
"""

from datetime import date
from enum import Enum

from ledger_kernel.domain.movement import MovementType
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.document_numbers")


class DocumentType(str, Enum):
    """Type segment of a document number."""

    GOODS_RECEIPT = "GRN"
    SALE_OUT = "OUT"
    ADJUSTMENT = "ADJ"
    TRANSFER = "TRF"
    PHYSICAL_COUNT = "CNT"
    CUSTOMER_RECEIPT = "RCT"

    @classmethod
    def for_movement(cls, txn_type: MovementType) -> "DocumentType":
        match txn_type:
            case MovementType.PURCHASE_IN:
                return cls.GOODS_RECEIPT
            case MovementType.SALE_OUT:
                return cls.SALE_OUT
            case MovementType.ADJUSTMENT_IN | MovementType.ADJUSTMENT_OUT:
                return cls.ADJUSTMENT
            case MovementType.TRANSFER_IN | MovementType.TRANSFER_OUT:
                return cls.TRANSFER
        raise ValueError(f"No document type for movement {txn_type}")


class DocumentNumberService:
    """Allocates document numbers for one company scope."""

    SEQ_WIDTH = 4

    def __init__(self, sequences: SequenceService, scope: str = "COMP"):
        if not scope:
            raise ValueError("Document number scope must be non-empty")
        self._sequences = sequences
        self._scope = scope

    @property
    def scope(self) -> str:
        return self._scope

    def sequence_key(self, doc_type: DocumentType, on_date: date) -> str:
        return f"{self._scope}-{doc_type.value}-{on_date:%Y%m%d}"

    def next_number(self, doc_type: DocumentType, on_date: date) -> str:
        key = self.sequence_key(doc_type, on_date)
        seq = self._sequences.next_value(key)
        number = f"{key}-{seq:0{self.SEQ_WIDTH}d}"
        logger.debug(
            "document_number_allocated",
            extra={"doc_type": doc_type.value, "document_number": number},
        )
        return number

    def next_for_movement(self, txn_type: MovementType, on_date: date) -> str:
        return self.next_number(DocumentType.for_movement(txn_type), on_date)
