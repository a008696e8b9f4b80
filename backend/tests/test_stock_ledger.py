# Overview: Pytest coverage for the variant stock ledger: writes, snapshots, immutability and reads.

"""
Stock Ledger Tests

Every accepted movement changes ProductVariant.stock by exactly its delta and
appends one VariantMovement with matching snapshots. Rejected movements leave
both the variant and the ledger untouched.
"""

import pytest
from sqlalchemy import func

from backoffice.errors import (
    ImmutableRecordError,
    InsufficientStock,
    NegativeStockAdjustment,
    VariantNotFound,
)
from backoffice.models import MovementKind, ProductVariant, VariantMovement
from backoffice.services import movement_policy


def _movement_count(db_session, variant_id):
    return db_session.query(func.count(VariantMovement.id)).filter_by(variant_id=variant_id).scalar()


class TestRecordMovement:
    def test_sale_decrements_and_snapshots(self, db_session, services, variant):
        movement = services.ledger.record_movement(variant.id, "SALE", 3, reason="Counter sale", user_id=9)

        db_session.refresh(variant)
        assert variant.stock == 7
        assert movement.kind is MovementKind.SALE
        assert movement.quantity == 3
        assert movement.previous_stock == 10
        assert movement.new_stock == 7
        assert movement.user_id == 9
        assert movement.delta == -3

    def test_purchase_with_reference(self, db_session, services, variant):
        movement = services.ledger.record_movement(
            variant.id,
            MovementKind.PURCHASE,
            5,
            unit_cost_cents=1500,
            reference_type="purchase_order",
            reference_id=42,
        )
        assert movement.new_stock == 15
        assert movement.unit_cost_cents == 1500
        assert (movement.reference_type, movement.reference_id) == ("purchase_order", 42)

    def test_insufficient_stock_leaves_state_untouched(self, db_session, services, variant):
        with pytest.raises(InsufficientStock) as exc:
            services.ledger.record_movement(variant.id, "SALE", 11)

        assert exc.value.context["current_stock"] == 10
        db_session.refresh(variant)
        assert variant.stock == 10
        assert _movement_count(db_session, variant.id) == 0

    def test_negative_adjustment_rejected(self, db_session, services, variant):
        with pytest.raises(NegativeStockAdjustment):
            services.ledger.record_movement(variant.id, "ADJUSTMENT", -20)
        db_session.refresh(variant)
        assert variant.stock == 10

    def test_unknown_variant(self, db_session, services):
        with pytest.raises(VariantNotFound) as exc:
            services.ledger.record_movement(999, "PURCHASE", 1)
        assert exc.value.status_code == 404

    def test_stock_equals_baseline_plus_sum_of_deltas(self, db_session, services, variant):
        baseline = variant.stock
        for kind, qty in [("PURCHASE", 6), ("SALE", 4), ("DAMAGE", 1), ("ADJUSTMENT", -2), ("RETURN", 1)]:
            services.ledger.record_movement(variant.id, kind, qty)

        movements = services.ledger.variant_movements(variant.id)
        total = sum(movement_policy.delta(m.kind, m.quantity) for m in movements)
        db_session.refresh(variant)
        assert variant.stock == baseline + total == 10

    def test_snapshots_chain(self, db_session, services, variant):
        services.ledger.record_movement(variant.id, "SALE", 2)
        services.ledger.record_movement(variant.id, "PURCHASE", 8)

        oldest_first = list(reversed(services.ledger.variant_movements(variant.id)))
        assert oldest_first[0].new_stock == oldest_first[1].previous_stock

    def test_uncommitted_movement_rolls_back_with_caller(self, db_session, services, variant):
        services.ledger.record_movement(variant.id, "PURCHASE", 5, commit=False)
        db_session.rollback()

        db_session.refresh(variant)
        assert variant.stock == 10
        assert _movement_count(db_session, variant.id) == 0


class TestAdjustTo:
    def test_writes_difference_to_counted_stock(self, db_session, services, variant):
        movement = services.ledger.adjust_to(variant.id, 4, reason="Recount", user_id=2)

        db_session.refresh(variant)
        assert variant.stock == 4
        assert movement.kind is MovementKind.ADJUSTMENT
        assert movement.quantity == -6
        assert (movement.previous_stock, movement.new_stock) == (10, 4)
        assert movement.reason == "Recount"

    def test_matching_count_writes_nothing(self, db_session, services, variant):
        assert services.ledger.adjust_to(variant.id, 10) is None
        assert _movement_count(db_session, variant.id) == 0

    def test_negative_target_rejected(self, db_session, services, variant):
        with pytest.raises(NegativeStockAdjustment):
            services.ledger.adjust_to(variant.id, -1)
        db_session.refresh(variant)
        assert variant.stock == 10

    def test_unknown_variant(self, db_session, services):
        with pytest.raises(VariantNotFound):
            services.ledger.adjust_to(999, 3)


class TestImmutability:
    def test_movement_cannot_be_modified(self, db_session, services, variant):
        movement = services.ledger.record_movement(variant.id, "PURCHASE", 1)
        movement.reason = "rewritten"
        with pytest.raises(ImmutableRecordError):
            db_session.commit()
        db_session.rollback()

    def test_movement_cannot_be_deleted(self, db_session, services, variant):
        movement = services.ledger.record_movement(variant.id, "PURCHASE", 1)
        db_session.delete(movement)
        with pytest.raises(ImmutableRecordError):
            db_session.commit()
        db_session.rollback()


class TestReads:
    def test_list_movements_filters(self, db_session, services, variant, second_variant):
        services.ledger.record_movement(variant.id, "SALE", 1, reason="Walk-in")
        services.ledger.record_movement(second_variant.id, "PURCHASE", 2, reason="Restock")
        services.ledger.record_movement(variant.id, "PURCHASE", 3, reason="Restock")

        assert len(services.ledger.list_movements()) == 3
        assert len(services.ledger.list_movements(variant_id=variant.id)) == 2
        assert len(services.ledger.list_movements(kind="PURCHASE")) == 2
        assert len(services.ledger.list_movements(search="Walk")) == 1
        assert len(services.ledger.list_movements(search="WHT-M")) == 1

    def test_list_movements_newest_first_and_capped(self, db_session, services, variant):
        for _ in range(4):
            services.ledger.record_movement(variant.id, "PURCHASE", 1)
        services.ledger.list_limit = 3

        movements = services.ledger.list_movements(limit=50)
        assert len(movements) == 3
        assert [m.new_stock for m in movements] == [14, 13, 12]

    def test_movements_summary(self, db_session, services, variant):
        services.ledger.record_movement(variant.id, "SALE", 2)
        services.ledger.record_movement(variant.id, "SALE", 3)
        services.ledger.record_movement(variant.id, "PURCHASE", 4)

        summary = {row["movement_type"]: row for row in services.ledger.movements_summary()}
        assert summary["SALE"]["count"] == 2
        assert summary["SALE"]["total_quantity"] == 5
        assert summary["PURCHASE"]["total_quantity"] == 4

    def test_low_stock_and_stats(self, db_session, services, variant, second_variant):
        services.ledger.record_movement(second_variant.id, "SALE", 4)   # 1 left, min 2
        services.ledger.record_movement(variant.id, "SALE", 10)         # 0 left

        low = services.ledger.low_stock_variants()
        assert [v.id for v in low] == [variant.id, second_variant.id]

        stats = services.ledger.inventory_stats()
        assert stats["total_variants"] == 2
        assert stats["out_of_stock"] == 1
        assert stats["low_stock"] == 1
        assert stats["total_stock"] == 1
        assert stats["today_movements"] == 2

    def test_get_variant(self, db_session, services, variant):
        assert services.ledger.get_variant(variant.id).sku == "TEE-001-BLK-S"
        with pytest.raises(VariantNotFound):
            services.ledger.get_variant(12345)
