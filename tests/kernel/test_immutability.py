"""
Tests for ORM-level immutability of ledger rows.

Recorded headers and lines can never be updated or deleted; audit
metadata (updated_at / updated_by_id) is the only exception.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from ledger_kernel.db.immutability import (
    immutability_listeners_registered,
    register_immutability_listeners,
)
from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.models.movement import (
    InventoryTransactionLineModel,
    InventoryTransactionModel,
)


@pytest.fixture
def recorded(seed_stock, warehouse_a, product_id):
    return seed_stock(warehouse_a, product_id, 10, unit_cost="2")


class TestTransactionImmutability:

    def test_listeners_registered_by_store(self, store):
        assert immutability_listeners_registered()

    def test_register_is_idempotent(self, store):
        register_immutability_listeners()
        register_immutability_listeners()
        assert immutability_listeners_registered()

    def test_header_update_rejected(self, store, recorded):
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            store.update(InventoryTransactionModel, recorded.id, {"remarks": "edited"})

        assert exc_info.value.entity_type == "InventoryTransaction"
        assert "remarks" in exc_info.value.reason
        assert store.get(InventoryTransactionModel, recorded.id).remarks is None

    def test_line_update_rejected(self, store, recorded):
        line = store.query(InventoryTransactionLineModel, txn_id=recorded.id)[0]

        with pytest.raises(ImmutabilityViolationError):
            store.update(
                InventoryTransactionLineModel, line.id, {"quantity": Decimal("99")}
            )

        reread = store.get(InventoryTransactionLineModel, line.id)
        assert reread.quantity == Decimal("10")

    def test_header_delete_rejected(self, session, recorded):
        header = session.get(InventoryTransactionModel, recorded.id)
        session.delete(header)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

        assert session.get(InventoryTransactionModel, recorded.id) is not None

    def test_line_delete_rejected(self, session, recorded):
        line = session.execute(
            select(InventoryTransactionLineModel).where(
                InventoryTransactionLineModel.txn_id == recorded.id
            )
        ).scalar_one()
        session.delete(line)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_violation_logged(self, store, recorded, captured_logs):
        with pytest.raises(ImmutabilityViolationError):
            store.update(InventoryTransactionModel, recorded.id, {"remarks": "x"})

        record = next(
            r for r in captured_logs() if r["message"] == "immutability_violation_blocked"
        )
        assert record["operation"] == "UPDATE"
        assert record["entity_id"] == str(recorded.id)
