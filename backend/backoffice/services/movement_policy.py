# Overview: Pure mapping from a movement kind and quantity to a signed stock delta.

"""
Movement policy (authoritative)

- PURCHASE, TRANSFER_IN, RETURN, INITIAL add `quantity`.
- SALE, TRANSFER_OUT, DAMAGE subtract `quantity`; the result may not go
  below zero (InsufficientStock).
- ADJUSTMENT carries the signed delta itself (caller computed
  target - current); the result may not go below zero
  (NegativeStockAdjustment).
- Anything else is InvalidMovementKind.

No I/O here. The stock ledger is the only caller that turns a delta into a
write.
"""

from __future__ import annotations

from backoffice.errors import (
    InsufficientStock,
    InvalidMovementKind,
    NegativeStockAdjustment,
    ValidationError,
)
from backoffice.models import MovementKind


INBOUND_KINDS = frozenset({
    MovementKind.PURCHASE,
    MovementKind.TRANSFER_IN,
    MovementKind.RETURN,
    MovementKind.INITIAL,
})

OUTBOUND_KINDS = frozenset({
    MovementKind.SALE,
    MovementKind.TRANSFER_OUT,
    MovementKind.DAMAGE,
})


def parse_kind(kind) -> MovementKind:
    """Accept a MovementKind or its string value; anything else is rejected."""
    if isinstance(kind, MovementKind):
        return kind
    try:
        return MovementKind(kind)
    except ValueError:
        raise InvalidMovementKind(kind) from None


def delta(kind, quantity: int) -> int:
    """Signed stock delta for (kind, quantity), without legality checks."""
    kind = parse_kind(kind)
    if kind in INBOUND_KINDS:
        return quantity
    if kind in OUTBOUND_KINDS:
        return -quantity
    return quantity  # ADJUSTMENT


def apply(kind, quantity: int, previous_stock: int, *, variant_id: int | None = None) -> int:
    """
    Return the signed delta for a movement against `previous_stock`.

    Raises:
        InvalidMovementKind: unknown kind
        InsufficientStock: decrement kind would drive stock negative
        NegativeStockAdjustment: adjustment would drive stock negative
        ValidationError: negative quantity on a non-adjustment kind
    """
    kind = parse_kind(kind)
    if kind is not MovementKind.ADJUSTMENT and quantity < 0:
        raise ValidationError(
            f"quantity must be >= 0 for {kind.value} movements",
            kind=kind.value,
            quantity=quantity,
        )
    signed = delta(kind, quantity)
    if previous_stock + signed < 0:
        if kind is MovementKind.ADJUSTMENT:
            raise NegativeStockAdjustment(variant_id, previous_stock, signed)
        raise InsufficientStock(variant_id, previous_stock, quantity)
    return signed
