# Overview: Pytest coverage for raw-material batch creation, recounts, reservations and consumption.

import pytest

from backoffice.errors import (
    BatchNotFound,
    InsufficientBatchQuantity,
    SupplierOrInputNotFound,
    ValidationError,
)
from backoffice.models import InputBatchMovement, InputMovementKind


@pytest.fixture
def batch(services, raw_input):
    """Batch of 100 units at 250 cents each."""
    return services.batches.create_batch(
        input_id=raw_input.id,
        batch_number="L-001",
        initial_quantity=100,
        unit_cost_cents=250,
        supplier_name="Tintas SA",
    )


def _kinds(db_session, batch_id):
    rows = (
        db_session.query(InputBatchMovement)
        .filter_by(input_batch_id=batch_id)
        .order_by(InputBatchMovement.id)
        .all()
    )
    return [(m.kind, m.quantity) for m in rows]


class TestCreateBatch:
    def test_create_sets_quantities_cost_and_stock(self, db_session, services, raw_input, batch):
        assert batch.current_quantity == 100
        assert batch.reserved_quantity == 0
        assert batch.total_cost_cents == 25000
        assert batch.purchase_date is not None

        db_session.refresh(raw_input)
        assert raw_input.current_stock == 100
        assert _kinds(db_session, batch.id) == [(InputMovementKind.ENTRADA, 100)]

    def test_unknown_input(self, db_session, services):
        with pytest.raises(SupplierOrInputNotFound):
            services.batches.create_batch(input_id=404, batch_number="X", initial_quantity=1, unit_cost_cents=1)

    def test_non_positive_quantity(self, db_session, services, raw_input):
        with pytest.raises(ValidationError):
            services.batches.create_batch(
                input_id=raw_input.id, batch_number="X", initial_quantity=0, unit_cost_cents=1
            )

    def test_input_stock_sums_active_batches(self, db_session, services, raw_input, batch):
        services.batches.create_batch(
            input_id=raw_input.id, batch_number="L-002", initial_quantity=40, unit_cost_cents=260
        )
        db_session.refresh(raw_input)
        assert raw_input.current_stock == 140
        assert [b.batch_number for b in services.batches.batches_for_input(raw_input.id)] == ["L-002", "L-001"]


class TestAdjust:
    def test_recount_logs_absolute_difference(self, db_session, services, raw_input, batch):
        services.batches.adjust_batch_quantity(batch.id, 93, reason="Recount", user_id=2)

        db_session.refresh(batch)
        db_session.refresh(raw_input)
        assert batch.current_quantity == 93
        assert raw_input.current_stock == 93
        assert _kinds(db_session, batch.id)[-1] == (InputMovementKind.AJUSTE, 7)

    def test_negative_target_rejected(self, db_session, services, batch):
        with pytest.raises(ValidationError):
            services.batches.adjust_batch_quantity(batch.id, -1, reason="typo")

    def test_unknown_batch(self, db_session, services):
        with pytest.raises(BatchNotFound):
            services.batches.adjust_batch_quantity(999, 1, reason="Recount")


class TestReservations:
    def test_reserve_release_and_consume(self, db_session, services, raw_input, batch):
        services.batches.reserve(batch.id, 30, reference_type="production_order", reference_id=5)
        db_session.refresh(batch)
        db_session.refresh(raw_input)
        assert (batch.current_quantity, batch.reserved_quantity) == (70, 30)
        assert raw_input.current_stock == 70

        services.batches.release(batch.id, 10)
        db_session.refresh(batch)
        assert (batch.current_quantity, batch.reserved_quantity) == (80, 20)

        services.batches.record_output(batch.id, 20)
        db_session.refresh(batch)
        db_session.refresh(raw_input)
        assert (batch.current_quantity, batch.reserved_quantity) == (80, 0)
        assert raw_input.current_stock == 80

        assert [kind for kind, _ in _kinds(db_session, batch.id)] == [
            InputMovementKind.ENTRADA,
            InputMovementKind.RESERVA,
            InputMovementKind.LIBERACION,
            InputMovementKind.SALIDA,
        ]

    def test_cannot_reserve_more_than_available(self, db_session, services, batch):
        with pytest.raises(InsufficientBatchQuantity) as exc:
            services.batches.reserve(batch.id, 101)
        assert exc.value.context == {"batch_id": batch.id, "available": 100, "requested": 101}

    def test_cannot_release_or_consume_unreserved(self, db_session, services, batch):
        with pytest.raises(InsufficientBatchQuantity):
            services.batches.release(batch.id, 1)
        with pytest.raises(InsufficientBatchQuantity):
            services.batches.record_output(batch.id, 1)

        db_session.refresh(batch)
        assert batch.current_quantity == 100
        assert _kinds(db_session, batch.id) == [(InputMovementKind.ENTRADA, 100)]


class TestReads:
    def test_movement_listings(self, db_session, services, raw_input, batch):
        services.batches.reserve(batch.id, 5)

        by_batch = services.batches.movements_for_batch(batch.id)
        by_input = services.batches.movements_for_input(raw_input.id)
        assert [m.kind for m in by_batch] == [InputMovementKind.RESERVA, InputMovementKind.ENTRADA]
        assert [m.id for m in by_input] == [m.id for m in by_batch]

    def test_get_batch(self, db_session, services, batch):
        assert services.batches.get_batch(batch.id).batch_number == "L-001"
        with pytest.raises(BatchNotFound):
            services.batches.get_batch(999)
