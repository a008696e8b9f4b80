# Overview: Flask API routes for variant stock movements, counts and stock reports.

"""
Inventory routes.

Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- from_date / to_date filters are inclusive.
"""
from flask import Blueprint, request, g, current_app

from ..extensions import db
from ..decorators import with_actor
from ..errors import InventoryError, ValidationError
from ..responses import ok, error_response, server_error
from ..services.bulk_adjustment import RESULT_ADJUSTED, AdjustmentRequest
from ..services.factory import current_services
from ..time_utils import parse_iso_datetime
from ..validation import (
    optional_int,
    optional_str,
    require_int,
    require_list,
)


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _date_arg(name: str):
    raw = request.args.get(name)
    if not raw:
        return None
    parsed = parse_iso_datetime(raw)
    if parsed is None:
        raise ValidationError(f"Invalid {name} format", field=name)
    return parsed


@inventory_bp.get("/movements")
def list_movements_route():
    """
    List stock movements, newest first.

    Query parameters:
    - variant_id, product_id: optional filters
    - movement_type: one of the movement kinds
    - from_date / to_date: ISO-8601
    - search: matches reason, notes, variant SKU or product name
    - limit: capped at MOVEMENT_LIST_LIMIT
    """
    try:
        movements = current_services().ledger.list_movements(
            variant_id=request.args.get("variant_id", type=int),
            product_id=request.args.get("product_id", type=int),
            kind=request.args.get("movement_type") or None,
            from_date=_date_arg("from_date"),
            to_date=_date_arg("to_date"),
            search=request.args.get("search") or None,
            limit=request.args.get("limit", type=int),
        )
        return ok([m.to_dict(include_variant=True) for m in movements])
    except InventoryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list movements")
        return server_error()


@inventory_bp.get("/movements/variant/<int:variant_id>")
def variant_movements_route(variant_id: int):
    try:
        services = current_services()
        variant = services.ledger.get_variant(variant_id)
        movements = services.ledger.variant_movements(variant_id)
        return ok({
            "variant": variant.to_dict(),
            "movements": [m.to_dict() for m in movements],
        })
    except InventoryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load variant movements")
        return server_error()


@inventory_bp.post("/movements")
@with_actor
def create_movement_route():
    """
    Record a single stock movement.

    Request body:
    {
        "variant_id": 1,              // required
        "movement_type": "SALE",      // required
        "quantity": 3,                // required; signed delta for ADJUSTMENT
        "reason": "...",              // optional
        "notes": "...",               // optional
        "unit_cost_cents": 1200,      // optional
        "reference_type": "sale",     // optional
        "reference_id": 42            // optional
    }
    """
    payload = request.get_json(silent=True) or {}

    try:
        variant_id = require_int(payload, "variant_id", minimum=1)
        kind = payload.get("movement_type")
        if not kind:
            raise ValidationError("movement_type is required", field="movement_type")
        quantity = require_int(payload, "quantity")

        movement = current_services().ledger.record_movement(
            variant_id,
            kind,
            quantity,
            reason=optional_str(payload, "reason", max_length=255),
            notes=optional_str(payload, "notes"),
            unit_cost_cents=optional_int(payload, "unit_cost_cents", minimum=0),
            reference_type=optional_str(payload, "reference_type", max_length=32),
            reference_id=optional_int(payload, "reference_id"),
            user_id=g.actor_id,
        )
        return ok(movement.to_dict(include_variant=True), 201, "Movement recorded")
    except InventoryError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record movement")
        return server_error()


@inventory_bp.post("/bulk-adjustment")
@with_actor
def bulk_adjustment_route():
    """
    Apply a physical count. Each entry is processed independently.

    Request body:
    {
        "reason": "Cycle count",      // optional default for every entry
        "adjustments": [{"variant_id": 1, "new_stock": 10, "reason": "..."}]
    }

    Returns one result per entry, in order; failed entries do not fail the request.
    """
    payload = request.get_json(silent=True) or {}

    try:
        entries = require_list(payload, "adjustments")
        default_reason = optional_str(payload, "reason", max_length=255)
        requests = [
            AdjustmentRequest(
                variant_id=require_int(entry, "variant_id", minimum=1),
                new_stock=require_int(entry, "new_stock", minimum=0),
                reason=optional_str(entry, "reason", max_length=255) or default_reason,
            )
            for entry in entries
        ]

        results = current_services().bulk.apply(requests, user_id=g.actor_id)
        adjusted = sum(1 for r in results if r.outcome == RESULT_ADJUSTED)
        failed = sum(1 for r in results if not r.success)
        return ok(
            [r.to_dict() for r in results],
            message=f"{adjusted} adjusted, {failed} failed",
        )
    except InventoryError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to apply bulk adjustment")
        return server_error()


@inventory_bp.get("/summary")
def movements_summary_route():
    try:
        summary = current_services().ledger.movements_summary(
            from_date=_date_arg("from_date"),
            to_date=_date_arg("to_date"),
        )
        return ok(summary)
    except InventoryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build movement summary")
        return server_error()


@inventory_bp.get("/low-stock")
def low_stock_route():
    try:
        variants = current_services().ledger.low_stock_variants()
        return ok([v.to_dict() for v in variants])
    except Exception:
        current_app.logger.exception("Failed to list low-stock variants")
        return server_error()


@inventory_bp.get("/stats")
def inventory_stats_route():
    try:
        return ok(current_services().ledger.inventory_stats())
    except Exception:
        current_app.logger.exception("Failed to compute inventory stats")
        return server_error()
