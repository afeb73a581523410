"""
Tests for SequenceService and DocumentNumberService.

Numbers come from a dedicated counter row per scope/type/day, never from
counting existing rows.
"""

from datetime import date

import pytest

from ledger_kernel.domain.movement import MovementType
from ledger_kernel.services.document_numbers import DocumentNumberService, DocumentType


class TestSequenceService:

    def test_starts_at_one_and_increments(self, sequences):
        assert [sequences.next_value("S") for _ in range(3)] == [1, 2, 3]

    def test_sequences_are_independent(self, sequences):
        sequences.next_value("A")
        sequences.next_value("A")
        assert sequences.next_value("B") == 1
        assert sequences.current_value("A") == 2

    def test_current_value_unknown(self, sequences):
        assert sequences.current_value("never-used") is None

    def test_reset(self, sequences):
        sequences.next_value("R")
        sequences.reset("R", 41)
        assert sequences.next_value("R") == 42

    def test_reset_creates_counter(self, sequences):
        sequences.reset("NEW", 9)
        assert sequences.next_value("NEW") == 10


class TestDocumentNumberService:

    def test_format(self, numbers):
        number = numbers.next_number(DocumentType.TRANSFER, date(2024, 1, 15))
        assert number == "COMP-TRF-20240115-0001"

    def test_sequence_restarts_per_day(self, numbers):
        numbers.next_number(DocumentType.TRANSFER, date(2024, 1, 15))
        numbers.next_number(DocumentType.TRANSFER, date(2024, 1, 15))
        assert numbers.next_number(DocumentType.TRANSFER, date(2024, 1, 16)) == (
            "COMP-TRF-20240116-0001"
        )

    def test_sequence_is_per_type(self, numbers):
        numbers.next_number(DocumentType.TRANSFER, date(2024, 1, 15))
        assert numbers.next_number(DocumentType.PHYSICAL_COUNT, date(2024, 1, 15)) == (
            "COMP-CNT-20240115-0001"
        )

    def test_scope(self, sequences):
        acme = DocumentNumberService(sequences, scope="ACME")
        assert acme.next_number(DocumentType.CUSTOMER_RECEIPT, date(2024, 3, 1)) == (
            "ACME-RCT-20240301-0001"
        )

    def test_empty_scope_rejected(self, sequences):
        with pytest.raises(ValueError):
            DocumentNumberService(sequences, scope="")

    def test_numbers_are_never_reused(self, numbers, sequences):
        first = numbers.next_number(DocumentType.ADJUSTMENT, date(2024, 1, 15))
        second = numbers.next_number(DocumentType.ADJUSTMENT, date(2024, 1, 15))
        assert first != second
        assert sequences.current_value("COMP-ADJ-20240115") == 2

    @pytest.mark.parametrize(
        "txn_type, doc_type",
        [
            (MovementType.PURCHASE_IN, DocumentType.GOODS_RECEIPT),
            (MovementType.SALE_OUT, DocumentType.SALE_OUT),
            (MovementType.ADJUSTMENT_IN, DocumentType.ADJUSTMENT),
            (MovementType.ADJUSTMENT_OUT, DocumentType.ADJUSTMENT),
            (MovementType.TRANSFER_IN, DocumentType.TRANSFER),
            (MovementType.TRANSFER_OUT, DocumentType.TRANSFER),
        ],
    )
    def test_document_type_for_movement(self, txn_type, doc_type):
        assert DocumentType.for_movement(txn_type) is doc_type
