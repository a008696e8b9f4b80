from __future__ import annotations

import enum

from sqlalchemy import event

from ..extensions import db
from backoffice.errors import ImmutableRecordError
from backoffice.time_utils import to_utc_z


class MovementKind(str, enum.Enum):
    """Closed set of stock ledger movement kinds (persisted by name)."""
    PURCHASE = "PURCHASE"
    SALE = "SALE"
    ADJUSTMENT = "ADJUSTMENT"
    TRANSFER_IN = "TRANSFER_IN"
    TRANSFER_OUT = "TRANSFER_OUT"
    RETURN = "RETURN"
    DAMAGE = "DAMAGE"
    INITIAL = "INITIAL"


class VariantMovement(db.Model):
    """
    Immutable stock ledger entry for a product variant.

    INVARIANT: new_stock == previous_stock + delta, where delta is derived
    by services/movement_policy.py from (kind, quantity).

    quantity is non-negative for every kind except ADJUSTMENT, which stores
    the signed delta itself.

    APPEND-ONLY: rows are never updated or deleted (enforced by ORM listeners
    below).
    """
    __tablename__ = "variant_movements"
    __table_args__ = (
        db.Index("ix_variant_movements_variant_created", "variant_id", "created_at"),
        db.Index("ix_variant_movements_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False, index=True)

    kind = db.Column(
        db.Enum(MovementKind, name="movement_kind", native_enum=False, length=16),
        nullable=False,
        index=True,
    )
    quantity = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    unit_cost_cents = db.Column(db.Integer, nullable=True)

    # Originating document, e.g. ("purchase_order", 12)
    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)

    # Opaque actor id; nullable by contract
    user_id = db.Column(db.Integer, nullable=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    variant = db.relationship("ProductVariant", backref=db.backref("movements", lazy=True))

    @property
    def delta(self) -> int:
        return self.new_stock - self.previous_stock

    def to_dict(self, *, include_variant: bool = False) -> dict:
        data = {
            "id": self.id,
            "variant_id": self.variant_id,
            "movement_type": self.kind.value,
            "quantity": self.quantity,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "reason": self.reason,
            "notes": self.notes,
            "unit_cost_cents": self.unit_cost_cents,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_variant:
            data["variant"] = self.variant.to_summary() if self.variant else None
        return data


@event.listens_for(VariantMovement, "before_update")
def _prevent_movement_update(mapper, connection, target):
    raise ImmutableRecordError("VariantMovement", target.id, "modified")


@event.listens_for(VariantMovement, "before_delete")
def _prevent_movement_delete(mapper, connection, target):
    raise ImmutableRecordError("VariantMovement", target.id, "deleted")
