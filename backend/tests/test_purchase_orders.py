# Overview: Pytest coverage for purchase order numbering, drafting rules and the status lifecycle.

"""
Purchase Order Tests

- Numbers are "OC-<year>-<NNNN>", increasing and gap-free within a year.
- Only DRAFT/CANCELLED orders can be edited or deleted.
- Status moves only along the lifecycle table; RECEIVED stamps received_date.
"""

from datetime import datetime

import pytest

from backoffice.errors import (
    IllegalTransition,
    OrderNotDeletable,
    OrderNotEditable,
    OrderNotFound,
    SupplierOrInputNotFound,
    ValidationError,
    VariantNotFound,
)
from backoffice.models import (
    InputTarget,
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseOrderStatus,
    VariantTarget,
)
from backoffice.services.purchase_order_service import (
    ALLOWED_TRANSITIONS,
    OrderLineInput,
    can_transition,
    derive_received_status,
)
from backoffice.time_utils import utcnow


def _create(services, supplier, variant, *, quantity=10, unit_cost_cents=1500):
    return services.orders.create_order(
        supplier_id=supplier.id,
        items=[OrderLineInput(VariantTarget(variant.id), quantity, unit_cost_cents)],
    )


PATH_TO = {
    PurchaseOrderStatus.DRAFT: (),
    PurchaseOrderStatus.SENT: ("SENT",),
    PurchaseOrderStatus.CONFIRMED: ("SENT", "CONFIRMED"),
    PurchaseOrderStatus.PARTIAL: ("SENT", "CONFIRMED", "PARTIAL"),
    PurchaseOrderStatus.RECEIVED: ("SENT", "CONFIRMED", "RECEIVED"),
    PurchaseOrderStatus.CANCELLED: ("CANCELLED",),
}


def _walk(services, order, *statuses):
    for status in statuses:
        services.orders.update_status(order.id, status)
    return services.orders.get_order(order.id)


class TestNumbering:
    def test_sequential_numbers_for_current_year(self, db_session, services, supplier, variant):
        year = utcnow().year
        numbers = [_create(services, supplier, variant).order_number for _ in range(3)]
        assert numbers == [f"OC-{year}-0001", f"OC-{year}-0002", f"OC-{year}-0003"]

    def test_preview_does_not_consume(self, db_session, services, supplier, variant):
        year = utcnow().year
        assert services.orders.preview_order_number() == f"OC-{year}-0001"
        assert services.orders.preview_order_number() == f"OC-{year}-0001"

        _create(services, supplier, variant)
        assert services.orders.preview_order_number() == f"OC-{year}-0002"

    def test_sequence_seeds_from_existing_numbers(self, db_session, services, supplier, variant):
        """Orders imported before the sequence row existed are not reissued."""
        year = utcnow().year
        legacy = PurchaseOrder(order_number=f"OC-{year}-0041", supplier_id=supplier.id)
        db_session.add(legacy)
        db_session.commit()

        assert _create(services, supplier, variant).order_number == f"OC-{year}-0042"

    def test_seed_compares_suffixes_numerically(self, db_session, services, supplier, variant):
        year = utcnow().year
        db_session.add_all([
            PurchaseOrder(order_number=f"OC-{year}-9999", supplier_id=supplier.id),
            PurchaseOrder(order_number=f"OC-{year}-10000", supplier_id=supplier.id),
        ])
        db_session.commit()

        assert services.orders.preview_order_number() == f"OC-{year}-10001"
        assert _create(services, supplier, variant).order_number == f"OC-{year}-10001"

    def test_numbering_restarts_per_year(self, db_session, services, supplier):
        assert services.orders.preview_order_number(now=datetime(2031, 1, 1)) == "OC-2031-0001"

    def test_configured_prefix(self, db_session, services, supplier, variant):
        services.orders.prefix = "PO"
        assert _create(services, supplier, variant).order_number.startswith(f"PO-{utcnow().year}-")


class TestCreate:
    def test_draft_with_totals(self, db_session, services, supplier, variant, raw_input):
        order = services.orders.create_order(
            supplier_id=supplier.id,
            items=[
                OrderLineInput(VariantTarget(variant.id), 10, 1500, description="Tees"),
                OrderLineInput(InputTarget(raw_input.id), 4, 250),
            ],
            notes="Rush",
            created_by_user_id=3,
        )

        assert order.status is PurchaseOrderStatus.DRAFT
        assert order.subtotal_cents == 16000
        assert order.total_cents == 16000
        assert [item.target for item in order.items] == [VariantTarget(variant.id), InputTarget(raw_input.id)]
        assert all(item.quantity_received == 0 for item in order.items)
        assert order.created_by_user_id == 3

    def test_unknown_supplier(self, db_session, services, variant):
        with pytest.raises(SupplierOrInputNotFound):
            services.orders.create_order(
                supplier_id=999, items=[OrderLineInput(VariantTarget(variant.id), 1, 1)]
            )

    def test_unknown_targets(self, db_session, services, supplier):
        with pytest.raises(VariantNotFound):
            services.orders.create_order(
                supplier_id=supplier.id, items=[OrderLineInput(VariantTarget(999), 1, 1)]
            )
        with pytest.raises(SupplierOrInputNotFound) as exc:
            services.orders.create_order(
                supplier_id=supplier.id, items=[OrderLineInput(InputTarget(999), 1, 1)]
            )
        assert exc.value.context["entity"] == "Input"

    @pytest.mark.parametrize("quantity,cost", [(0, 100), (-1, 100), (1, -5)])
    def test_invalid_lines(self, db_session, services, supplier, variant, quantity, cost):
        with pytest.raises(ValidationError):
            services.orders.create_order(
                supplier_id=supplier.id,
                items=[OrderLineInput(VariantTarget(variant.id), quantity, cost)],
            )
        assert db_session.query(PurchaseOrder).count() == 0

    def test_requires_items(self, db_session, services, supplier):
        with pytest.raises(ValidationError):
            services.orders.create_order(supplier_id=supplier.id, items=[])


class TestEditing:
    def test_replace_items_recomputes_totals(self, db_session, services, supplier, variant, second_variant):
        order = _create(services, supplier, variant)

        updated = services.orders.update_order(
            order.id,
            items=[
                OrderLineInput(VariantTarget(second_variant.id), 2, 700),
                OrderLineInput(VariantTarget(variant.id), 1, 300),
            ],
            notes="Revised",
        )

        assert updated.subtotal_cents == 1700
        assert updated.notes == "Revised"
        assert len(updated.items) == 2
        assert db_session.query(PurchaseOrderItem).count() == 2

    def test_cancelled_order_is_editable(self, db_session, services, supplier, variant):
        order = _create(services, supplier, variant)
        _walk(services, order, "CANCELLED")

        updated = services.orders.update_order(order.id, supplier_invoice="F-991")
        assert updated.supplier_invoice == "F-991"

    def test_omitted_fields_kept_and_none_clears(self, db_session, services, supplier, variant):
        order = services.orders.create_order(
            supplier_id=supplier.id,
            items=[OrderLineInput(VariantTarget(variant.id), 1, 100)],
            expected_date=datetime(2031, 3, 1),
            notes="Rush",
        )
        services.orders.update_order(order.id, supplier_invoice="F-12")

        updated = services.orders.update_order(order.id, notes=None)
        assert updated.notes is None
        assert updated.expected_date == datetime(2031, 3, 1)
        assert updated.supplier_invoice == "F-12"

        updated = services.orders.update_order(order.id, expected_date=None, supplier_invoice=None)
        assert updated.expected_date is None
        assert updated.supplier_invoice is None

    def test_sent_order_is_frozen(self, db_session, services, supplier, variant):
        order = _walk(services, _create(services, supplier, variant), "SENT")

        with pytest.raises(OrderNotEditable):
            services.orders.update_order(order.id, notes="late change")
        with pytest.raises(OrderNotDeletable):
            services.orders.delete_order(order.id)

    def test_delete_draft(self, db_session, services, supplier, variant):
        order = _create(services, supplier, variant)
        services.orders.delete_order(order.id)

        assert db_session.query(PurchaseOrder).count() == 0
        assert db_session.query(PurchaseOrderItem).count() == 0
        with pytest.raises(OrderNotFound):
            services.orders.get_order(order.id)


class TestLifecycle:
    def test_happy_path_to_confirmed(self, db_session, services, supplier, variant):
        order = _walk(services, _create(services, supplier, variant), "SENT", "CONFIRMED")
        assert order.status is PurchaseOrderStatus.CONFIRMED
        assert order.received_date is None

    def test_received_stamps_date(self, db_session, services, supplier, variant):
        order = _walk(services, _create(services, supplier, variant), "SENT", "CONFIRMED", "RECEIVED")
        assert order.status is PurchaseOrderStatus.RECEIVED
        assert order.received_date is not None

    @pytest.mark.parametrize("path,target", [
        ((), "CONFIRMED"),
        ((), "PARTIAL"),
        ((), "RECEIVED"),
        (("SENT",), "DRAFT"),
        (("SENT",), "PARTIAL"),
        (("SENT", "CONFIRMED"), "SENT"),
        (("SENT", "CONFIRMED", "PARTIAL"), "CONFIRMED"),
        (("CANCELLED",), "SENT"),
        (("SENT", "CONFIRMED", "RECEIVED"), "CANCELLED"),
    ])
    def test_illegal_transitions(self, db_session, services, supplier, variant, path, target):
        order = _walk(services, _create(services, supplier, variant), *path)
        before = order.status

        with pytest.raises(IllegalTransition) as exc:
            services.orders.update_status(order.id, target)

        assert exc.value.context["target_status"] == target
        assert services.orders.get_order(order.id).status is before

    @pytest.mark.parametrize("current", list(PurchaseOrderStatus), ids=lambda s: s.value)
    @pytest.mark.parametrize("target", list(PurchaseOrderStatus), ids=lambda s: s.value)
    def test_transition_follows_table(self, db_session, services, supplier, variant, current, target):
        order = _walk(services, _create(services, supplier, variant), *PATH_TO[current])
        assert order.status is current

        if target in ALLOWED_TRANSITIONS[current]:
            assert services.orders.transition(order, target).status is target
        else:
            with pytest.raises(IllegalTransition):
                services.orders.transition(order, target)
            assert services.orders.get_order(order.id).status is current

    def test_unknown_status_value(self, db_session, services, supplier, variant):
        order = _create(services, supplier, variant)
        with pytest.raises(ValidationError):
            services.orders.update_status(order.id, "SHIPPED")

    def test_terminal_states_have_no_exits(self):
        assert not ALLOWED_TRANSITIONS[PurchaseOrderStatus.RECEIVED]
        assert not ALLOWED_TRANSITIONS[PurchaseOrderStatus.CANCELLED]
        for status in PurchaseOrderStatus:
            if status not in (PurchaseOrderStatus.RECEIVED, PurchaseOrderStatus.CANCELLED):
                assert can_transition(status, PurchaseOrderStatus.CANCELLED)

    def test_derive_received_status(self):
        class Line:
            def __init__(self, quantity, quantity_received):
                self.quantity = quantity
                self.quantity_received = quantity_received

        confirmed = PurchaseOrderStatus.CONFIRMED
        assert derive_received_status([Line(10, 0), Line(5, 0)], confirmed) is confirmed
        assert derive_received_status([Line(10, 4), Line(5, 0)], confirmed) is PurchaseOrderStatus.PARTIAL
        assert derive_received_status([Line(10, 10), Line(5, 5)], confirmed) is PurchaseOrderStatus.RECEIVED


class TestReads:
    def test_list_filters(self, db_session, services, supplier, variant):
        first = _create(services, supplier, variant)
        second = _create(services, supplier, variant)
        _walk(services, second, "SENT")

        assert [o.id for o in services.orders.list_orders()] == [second.id, first.id]
        assert [o.id for o in services.orders.list_orders(status="SENT")] == [second.id]
        assert [o.id for o in services.orders.list_orders(search=first.order_number)] == [first.id]
        assert len(services.orders.list_orders(search="Norte")) == 2
        assert services.orders.list_orders(supplier_id=supplier.id + 1) == []

    def test_stats(self, db_session, services, supplier, variant):
        _create(services, supplier, variant)
        _walk(services, _create(services, supplier, variant), "SENT")
        _walk(services, _create(services, supplier, variant, quantity=2, unit_cost_cents=1000),
              "SENT", "CONFIRMED", "RECEIVED")
        _walk(services, _create(services, supplier, variant), "CANCELLED")

        stats = services.orders.order_stats()
        assert stats["total"] == 4
        assert stats["by_status"]["draft"] == 1
        assert stats["by_status"]["sent"] == 1
        assert stats["by_status"]["received"] == 1
        assert stats["by_status"]["cancelled"] == 1
        assert stats["pending_count"] == 2
        assert stats["monthly_total_cents"] == 2000
