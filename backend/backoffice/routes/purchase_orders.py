# Overview: Flask API routes for purchase orders: drafting, status changes and goods receipt.

"""
Purchase Order Routes

Status changes go through PATCH /<id>/status and the lifecycle table in
purchase_order_service. Goods receipt goes through POST /<id>/receive and is
all-or-nothing.
"""

from flask import Blueprint, request, g, current_app

from ..extensions import db
from ..decorators import with_actor
from ..errors import InventoryError, ValidationError
from ..models import InputTarget, InputVariantTarget, VariantTarget
from ..responses import ok, error_response, server_error
from ..services.factory import current_services
from ..services.purchase_order_service import UNCHANGED, OrderLineInput
from ..services.receiving import ReceiptLine
from ..time_utils import parse_iso_datetime
from ..validation import (
    optional_datetime,
    optional_int,
    optional_str,
    require_cost_cents,
    require_int,
    require_list,
)


purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/purchase-orders")

_TARGET_FIELDS = (
    ("variant_id", VariantTarget),
    ("input_id", InputTarget),
    ("input_variant_id", InputVariantTarget),
)


def _parse_line(index: int, entry: dict) -> OrderLineInput:
    present = [(field, cls) for field, cls in _TARGET_FIELDS if entry.get(field) is not None]
    if len(present) != 1:
        raise ValidationError(
            f"items[{index}] must set exactly one of variant_id, input_id, input_variant_id",
            index=index,
        )
    field, cls = present[0]
    return OrderLineInput(
        target=cls(require_int(entry, field, minimum=1)),
        quantity=require_int(entry, "quantity", minimum=1),
        unit_cost_cents=require_cost_cents(entry, "unit_cost_cents"),
        description=optional_str(entry, "description", max_length=255),
        notes=optional_str(entry, "notes"),
    )


def _parse_lines(payload: dict) -> list[OrderLineInput]:
    return [_parse_line(i, entry) for i, entry in enumerate(require_list(payload, "items"))]


def _sent_or_unchanged(payload: dict, field: str, parse):
    # Absent key keeps the stored value; null or "" clears it
    if field not in payload:
        return UNCHANGED
    return parse(payload, field)


def _date_arg(name: str):
    raw = request.args.get(name)
    if not raw:
        return None
    parsed = parse_iso_datetime(raw)
    if parsed is None:
        raise ValidationError(f"Invalid {name} format", field=name)
    return parsed


@purchase_orders_bp.get("")
def list_orders_route():
    """
    List purchase orders, newest first.

    Query parameters:
    - search: order number, supplier name or supplier invoice
    - status, supplier_id: optional filters
    - from_date / to_date: order_date range (ISO-8601)
    """
    try:
        orders = current_services().orders.list_orders(
            search=request.args.get("search") or None,
            status=request.args.get("status") or None,
            supplier_id=request.args.get("supplier_id", type=int),
            from_date=_date_arg("from_date"),
            to_date=_date_arg("to_date"),
        )
        return ok([o.to_dict(include_items=False) for o in orders])
    except InventoryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list purchase orders")
        return server_error()


@purchase_orders_bp.get("/stats")
def order_stats_route():
    try:
        return ok(current_services().orders.order_stats())
    except Exception:
        current_app.logger.exception("Failed to compute purchase order stats")
        return server_error()


@purchase_orders_bp.get("/generate-number")
def preview_number_route():
    """Next order number, for display only; nothing is reserved."""
    try:
        return ok({"order_number": current_services().orders.preview_order_number()})
    except Exception:
        current_app.logger.exception("Failed to preview purchase order number")
        return server_error()


@purchase_orders_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    try:
        return ok(current_services().orders.get_order(order_id).to_dict())
    except InventoryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load purchase order")
        return server_error()


@purchase_orders_bp.post("")
@with_actor
def create_order_route():
    """
    Create a DRAFT purchase order.

    Request body:
    {
        "supplier_id": 1,                  // required
        "expected_date": "2026-03-01",     // optional
        "notes": "...",                    // optional
        "items": [                         // required, at least one
            {"variant_id": 5, "quantity": 10, "unit_cost_cents": 1500},
            {"input_id": 2, "quantity": 40, "unit_cost_cents": 300},
            {"input_variant_id": 9, "quantity": 12, "unit_cost_cents": 450}
        ]
    }
    """
    payload = request.get_json(silent=True) or {}

    try:
        order = current_services().orders.create_order(
            supplier_id=require_int(payload, "supplier_id", minimum=1),
            items=_parse_lines(payload),
            expected_date=optional_datetime(payload, "expected_date"),
            notes=optional_str(payload, "notes"),
            created_by_user_id=g.actor_id,
        )
        return ok(order.to_dict(), 201, f"Purchase order {order.order_number} created")
    except InventoryError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create purchase order")
        return server_error()


@purchase_orders_bp.put("/<int:order_id>")
@with_actor
def update_order_route(order_id: int):
    """Edit a DRAFT or CANCELLED order. Sending "items" replaces all lines."""
    payload = request.get_json(silent=True) or {}

    try:
        order = current_services().orders.update_order(
            order_id,
            supplier_id=optional_int(payload, "supplier_id", minimum=1),
            items=_parse_lines(payload) if "items" in payload else None,
            expected_date=_sent_or_unchanged(payload, "expected_date", optional_datetime),
            notes=_sent_or_unchanged(payload, "notes", optional_str),
            supplier_invoice=_sent_or_unchanged(
                payload, "supplier_invoice", lambda p, f: optional_str(p, f, max_length=128)
            ),
        )
        return ok(order.to_dict(), message="Purchase order updated")
    except InventoryError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update purchase order")
        return server_error()


@purchase_orders_bp.patch("/<int:order_id>/status")
@with_actor
def update_status_route(order_id: int):
    """
    Move an order to a new status.

    Request body: {"status": "SENT"}
    """
    payload = request.get_json(silent=True) or {}
    status = payload.get("status")

    try:
        if not status:
            raise ValidationError("status is required", field="status")
        order = current_services().orders.update_status(order_id, status)
        return ok(order.to_dict(), message=f"Status changed to {order.status.value}")
    except InventoryError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to change purchase order status")
        return server_error()


@purchase_orders_bp.post("/<int:order_id>/receive")
@with_actor
def receive_order_route(order_id: int):
    """
    Record a goods receipt.

    Request body:
    {
        "items": [{"item_id": 11, "quantity_received": 4}, ...]
    }

    All lines apply or none do.
    """
    payload = request.get_json(silent=True) or {}

    try:
        lines = [
            ReceiptLine(
                item_id=require_int(entry, "item_id", minimum=1),
                quantity_received=require_int(entry, "quantity_received", minimum=0),
            )
            for entry in require_list(payload, "items")
        ]
        order = current_services().receiving.receive(order_id, lines, user_id=g.actor_id)
        return ok(order.to_dict(), message="Goods received")
    except InventoryError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to receive purchase order")
        return server_error()


@purchase_orders_bp.delete("/<int:order_id>")
def delete_order_route(order_id: int):
    try:
        current_services().orders.delete_order(order_id)
        return ok(None, message="Purchase order deleted")
    except InventoryError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete purchase order")
        return server_error()
