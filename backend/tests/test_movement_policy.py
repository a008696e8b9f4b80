# Overview: Pytest coverage for the movement kind -> stock delta policy.

import pytest

from backoffice.errors import (
    InsufficientStock,
    InvalidMovementKind,
    NegativeStockAdjustment,
    ValidationError,
)
from backoffice.models import MovementKind
from backoffice.services import movement_policy


class TestDelta:
    @pytest.mark.parametrize("kind", ["PURCHASE", "TRANSFER_IN", "RETURN", "INITIAL"])
    def test_inbound_kinds_add(self, kind):
        assert movement_policy.apply(kind, 4, 10) == 4

    @pytest.mark.parametrize("kind", ["SALE", "TRANSFER_OUT", "DAMAGE"])
    def test_outbound_kinds_subtract(self, kind):
        assert movement_policy.apply(kind, 4, 10) == -4

    def test_adjustment_carries_signed_delta(self):
        assert movement_policy.apply(MovementKind.ADJUSTMENT, -3, 10) == -3
        assert movement_policy.apply(MovementKind.ADJUSTMENT, 7, 10) == 7

    def test_outbound_to_exactly_zero_is_allowed(self):
        assert movement_policy.apply("SALE", 10, 10) == -10


class TestRejections:
    def test_unknown_kind(self):
        with pytest.raises(InvalidMovementKind) as exc:
            movement_policy.apply("TELEPORT", 1, 10)
        assert exc.value.context["kind"] == "TELEPORT"

    def test_sale_beyond_stock_is_insufficient_stock(self):
        """SALE of 3 against stock 2 fails with the current and requested amounts."""
        with pytest.raises(InsufficientStock) as exc:
            movement_policy.apply("SALE", 3, 2, variant_id=7)
        assert exc.value.context == {"variant_id": 7, "current_stock": 2, "requested": 3}

    def test_adjustment_below_zero(self):
        with pytest.raises(NegativeStockAdjustment) as exc:
            movement_policy.apply("ADJUSTMENT", -11, 10, variant_id=7)
        assert exc.value.context["delta"] == -11

    def test_negative_quantity_for_non_adjustment(self):
        with pytest.raises(ValidationError):
            movement_policy.apply("PURCHASE", -1, 10)


def test_parse_kind_accepts_enum_and_value():
    assert movement_policy.parse_kind(MovementKind.DAMAGE) is MovementKind.DAMAGE
    assert movement_policy.parse_kind("DAMAGE") is MovementKind.DAMAGE
