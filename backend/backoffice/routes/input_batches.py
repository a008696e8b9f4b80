# Overview: Flask API routes for raw-material batches and their movements.

from flask import Blueprint, request, g, current_app

from ..extensions import db
from ..decorators import with_actor
from ..errors import InventoryError, ValidationError
from ..responses import ok, error_response, server_error
from ..services.factory import current_services
from ..validation import (
    optional_datetime,
    optional_int,
    optional_str,
    require_cost_cents,
    require_int,
)


input_batches_bp = Blueprint("input_batches", __name__, url_prefix="/api/input-batches")


@input_batches_bp.get("/input/<int:input_id>")
def batches_for_input_route(input_id: int):
    """Batches of one input; ?include_inactive=true adds closed batches."""
    include_inactive = request.args.get("include_inactive", "").lower() in ("1", "true", "yes")
    try:
        batches = current_services().batches.batches_for_input(input_id, include_inactive=include_inactive)
        return ok([b.to_dict() for b in batches])
    except Exception:
        current_app.logger.exception("Failed to list batches")
        return server_error()


@input_batches_bp.get("/input/<int:input_id>/movements")
def input_movements_route(input_id: int):
    try:
        movements = current_services().batches.movements_for_input(input_id)
        return ok([m.to_dict() for m in movements])
    except Exception:
        current_app.logger.exception("Failed to list input movements")
        return server_error()


@input_batches_bp.get("/<int:batch_id>")
def get_batch_route(batch_id: int):
    try:
        tracker = current_services().batches
        data = tracker.get_batch(batch_id).to_dict()
        data["movements"] = [m.to_dict() for m in tracker.movements_for_batch(batch_id)]
        return ok(data)
    except InventoryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load batch")
        return server_error()


@input_batches_bp.post("")
@with_actor
def create_batch_route():
    """
    Open a batch by hand (outside purchase order receiving).

    Request body:
    {
        "input_id": 1,               // required
        "batch_number": "L-0042",    // required
        "initial_quantity": 100,     // required, positive
        "unit_cost_cents": 250,      // required
        "supplier_name": "...", "invoice_ref": "...",
        "purchase_date": "...", "expiry_date": "...", "notes": "..."
    }
    """
    payload = request.get_json(silent=True) or {}

    try:
        batch_number = optional_str(payload, "batch_number", max_length=64)
        if not batch_number:
            raise ValidationError("batch_number is required", field="batch_number")

        batch = current_services().batches.create_batch(
            input_id=require_int(payload, "input_id", minimum=1),
            batch_number=batch_number,
            initial_quantity=require_int(payload, "initial_quantity", minimum=1),
            unit_cost_cents=require_cost_cents(payload, "unit_cost_cents"),
            supplier_name=optional_str(payload, "supplier_name", max_length=255),
            invoice_ref=optional_str(payload, "invoice_ref", max_length=128),
            purchase_date=optional_datetime(payload, "purchase_date"),
            expiry_date=optional_datetime(payload, "expiry_date"),
            notes=optional_str(payload, "notes"),
            user_id=g.actor_id,
        )
        return ok(batch.to_dict(), 201, "Batch created")
    except InventoryError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create batch")
        return server_error()


@input_batches_bp.post("/<int:batch_id>/adjust")
@with_actor
def adjust_batch_route(batch_id: int):
    """
    Request body: {"new_quantity": 37, "reason": "Recount"}
    """
    payload = request.get_json(silent=True) or {}

    try:
        reason = optional_str(payload, "reason", max_length=255)
        if not reason:
            raise ValidationError("reason is required", field="reason")
        batch = current_services().batches.adjust_batch_quantity(
            batch_id,
            require_int(payload, "new_quantity", minimum=0),
            reason=reason,
            user_id=g.actor_id,
        )
        return ok(batch.to_dict(), message="Batch adjusted")
    except InventoryError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to adjust batch")
        return server_error()


def _quantity_operation(batch_id: int, operation: str):
    payload = request.get_json(silent=True) or {}

    try:
        tracker = current_services().batches
        handler = {
            "reserve": tracker.reserve,
            "release": tracker.release,
            "output": tracker.record_output,
        }[operation]
        batch = handler(
            batch_id,
            require_int(payload, "quantity", minimum=1),
            reference_type=optional_str(payload, "reference_type", max_length=32),
            reference_id=optional_int(payload, "reference_id"),
            user_id=g.actor_id,
        )
        return ok(batch.to_dict())
    except InventoryError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to %s batch quantity", operation)
        return server_error()


@input_batches_bp.post("/<int:batch_id>/reserve")
@with_actor
def reserve_batch_route(batch_id: int):
    return _quantity_operation(batch_id, "reserve")


@input_batches_bp.post("/<int:batch_id>/release")
@with_actor
def release_batch_route(batch_id: int):
    return _quantity_operation(batch_id, "release")


@input_batches_bp.post("/<int:batch_id>/output")
@with_actor
def output_batch_route(batch_id: int):
    return _quantity_operation(batch_id, "output")


@input_batches_bp.get("/<int:batch_id>/movements")
def batch_movements_route(batch_id: int):
    try:
        movements = current_services().batches.movements_for_batch(batch_id)
        return ok([m.to_dict() for m in movements])
    except InventoryError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list batch movements")
        return server_error()
