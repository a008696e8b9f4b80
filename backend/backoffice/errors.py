# Overview: Error taxonomy for the stock ledger, purchasing workflow and batch tracking.

"""
Inventory error taxonomy.

Every error carries an HTTP-ish status_code and a context dict with the ids,
statuses and quantities an operator needs to correct the request. None of
these are transient: retrying without changing the request fails the same way.
"""

from __future__ import annotations

from typing import Any


class InventoryError(Exception):
    """Base class for domain failures surfaced to callers."""

    status_code = 400

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "context": self.context,
        }


class ValidationError(InventoryError):
    """Malformed request payload."""


class InvalidMovementKind(InventoryError):
    def __init__(self, kind: Any):
        super().__init__(f"Invalid movement kind: {kind!r}", kind=str(kind))


class VariantNotFound(InventoryError):
    status_code = 404

    def __init__(self, variant_id: int):
        super().__init__(f"Variant {variant_id} not found", variant_id=variant_id)


class InsufficientStock(InventoryError):
    status_code = 409

    def __init__(self, variant_id: int | None, current_stock: int, requested: int):
        super().__init__(
            f"Insufficient stock for variant {variant_id}: "
            f"current stock {current_stock}, requested {requested}",
            variant_id=variant_id,
            current_stock=current_stock,
            requested=requested,
        )


class NegativeStockAdjustment(InventoryError):
    status_code = 409

    def __init__(self, variant_id: int | None, current_stock: int, delta: int):
        super().__init__(
            f"Adjustment of {delta} would leave variant {variant_id} "
            f"with negative stock (current {current_stock})",
            variant_id=variant_id,
            current_stock=current_stock,
            delta=delta,
        )


class OrderNotFound(InventoryError):
    status_code = 404

    def __init__(self, order_id: int):
        super().__init__(f"Purchase order {order_id} not found", order_id=order_id)


class IllegalTransition(InventoryError):
    status_code = 409

    def __init__(self, order_id: int | None, current_status: str, target_status: str):
        super().__init__(
            f"Purchase order {order_id} cannot move from {current_status} to {target_status}",
            order_id=order_id,
            current_status=current_status,
            target_status=target_status,
        )


class OrderNotEditable(InventoryError):
    status_code = 409

    def __init__(self, order_id: int, status: str):
        super().__init__(
            f"Purchase order {order_id} is {status}; only DRAFT or CANCELLED orders can be edited",
            order_id=order_id,
            status=status,
        )


class OrderNotDeletable(InventoryError):
    status_code = 409

    def __init__(self, order_id: int, status: str):
        super().__init__(
            f"Purchase order {order_id} is {status}; only DRAFT or CANCELLED orders can be deleted",
            order_id=order_id,
            status=status,
        )


class OrderNotReceivable(InventoryError):
    status_code = 409

    def __init__(self, order_id: int, status: str):
        super().__init__(
            f"Purchase order {order_id} is {status}; goods can only be received "
            f"on CONFIRMED or PARTIAL orders",
            order_id=order_id,
            status=status,
        )


class OverReceipt(InventoryError):
    status_code = 409

    def __init__(self, order_id: int, item_id: int, ordered: int, already_received: int, receiving: int):
        super().__init__(
            f"Cannot receive {receiving} more units for item {item_id} of purchase order "
            f"{order_id}: ordered {ordered}, already received {already_received}",
            order_id=order_id,
            item_id=item_id,
            ordered=ordered,
            already_received=already_received,
            receiving=receiving,
        )


class SupplierOrInputNotFound(InventoryError):
    status_code = 404

    def __init__(self, entity: str, entity_id: int | None):
        super().__init__(f"{entity} {entity_id} not found", entity=entity, entity_id=entity_id)


class BatchNotFound(InventoryError):
    status_code = 404

    def __init__(self, batch_id: int):
        super().__init__(f"Input batch {batch_id} not found", batch_id=batch_id)


class InsufficientBatchQuantity(InventoryError):
    status_code = 409

    def __init__(self, batch_id: int, available: int, requested: int):
        super().__init__(
            f"Insufficient quantity in batch {batch_id}: available {available}, requested {requested}",
            batch_id=batch_id,
            available=available,
            requested=requested,
        )


class ImmutableRecordError(InventoryError):
    """Raised when code tries to rewrite or delete an append-only ledger row."""

    status_code = 500

    def __init__(self, entity: str, entity_id: int | None, action: str):
        super().__init__(
            f"{entity} {entity_id} is append-only and cannot be {action}",
            entity=entity,
            entity_id=entity_id,
            action=action,
        )
