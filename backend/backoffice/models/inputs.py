from __future__ import annotations

import enum

from sqlalchemy import event

from ..extensions import db
from backoffice.errors import ImmutableRecordError
from backoffice.time_utils import to_utc_z


class InputMovementKind(str, enum.Enum):
    """Raw-material ledger kinds."""
    ENTRADA = "ENTRADA"
    SALIDA = "SALIDA"
    AJUSTE = "AJUSTE"
    RESERVA = "RESERVA"
    LIBERACION = "LIBERACION"


class Input(db.Model):
    """
    Raw material consumed in production (e.g. a blank garment).

    current_stock is an aggregate: either the sum of active batches
    (batch-tracked inputs) or the sum of active sub-variants (inputs sold by
    color/size). Only the receiving processor and the batch tracker write it.
    """
    __tablename__ = "inputs"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_inputs_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    unit_of_measure = db.Column(db.String(16), nullable=False, default="UNIT")

    current_stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "unit_of_measure": self.unit_of_measure,
        }

    def to_dict(self) -> dict:
        return {
            **self.to_summary(),
            "current_stock": self.current_stock,
            "min_stock": self.min_stock,
            "is_active": self.is_active,
        }


class InputVariant(db.Model):
    """Color/size specific raw material (e.g. blank tee, black, M)."""
    __tablename__ = "input_variants"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_input_variants_sku"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    input_id = db.Column(db.Integer, db.ForeignKey("inputs.id"), nullable=False, index=True)
    color_id = db.Column(db.Integer, db.ForeignKey("colors.id"), nullable=True)
    size_id = db.Column(db.Integer, db.ForeignKey("sizes.id"), nullable=True)
    sku = db.Column(db.String(64), nullable=False)

    current_stock = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    input = db.relationship("Input", backref=db.backref("variants", lazy=True))
    color = db.relationship("Color")
    size = db.relationship("Size")

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "input": self.input.to_summary() if self.input else None,
            "color": self.color.to_summary() if self.color else None,
            "size": self.size.to_summary() if self.size else None,
        }


class InputBatch(db.Model):
    """
    Cost-tracked lot of a raw material.

    current_quantity is what remains available; reserved_quantity has been
    set aside for production orders but not yet consumed.
    """
    __tablename__ = "input_batches"
    __table_args__ = (
        db.Index("ix_input_batches_input_active", "input_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    input_id = db.Column(db.Integer, db.ForeignKey("inputs.id"), nullable=False, index=True)
    batch_number = db.Column(db.String(64), nullable=False)

    supplier_name = db.Column(db.String(255), nullable=True)
    invoice_ref = db.Column(db.String(128), nullable=True)

    initial_quantity = db.Column(db.Integer, nullable=False)
    current_quantity = db.Column(db.Integer, nullable=False)
    reserved_quantity = db.Column(db.Integer, nullable=False, default=0)

    unit_cost_cents = db.Column(db.Integer, nullable=False)
    # Sum of unit cost x quantity over every receipt into this batch
    total_cost_cents = db.Column(db.Integer, nullable=False)

    purchase_date = db.Column(db.DateTime(timezone=True), nullable=True)
    expiry_date = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    input = db.relationship("Input", backref=db.backref("batches", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "input_id": self.input_id,
            "input": self.input.to_summary() if self.input else None,
            "batch_number": self.batch_number,
            "supplier_name": self.supplier_name,
            "invoice_ref": self.invoice_ref,
            "initial_quantity": self.initial_quantity,
            "current_quantity": self.current_quantity,
            "reserved_quantity": self.reserved_quantity,
            "unit_cost_cents": self.unit_cost_cents,
            "total_cost_cents": self.total_cost_cents,
            "purchase_date": to_utc_z(self.purchase_date),
            "expiry_date": to_utc_z(self.expiry_date),
            "notes": self.notes,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class InputBatchMovement(db.Model):
    """Append-only raw-material ledger entry, one per batch-level change."""
    __tablename__ = "input_batch_movements"
    __table_args__ = (
        db.Index("ix_input_batch_movements_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    input_id = db.Column(db.Integer, db.ForeignKey("inputs.id"), nullable=False, index=True)
    input_batch_id = db.Column(db.Integer, db.ForeignKey("input_batches.id"), nullable=False, index=True)
    kind = db.Column(
        db.Enum(InputMovementKind, name="input_movement_kind", native_enum=False, length=16),
        nullable=False,
        index=True,
    )
    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)
    user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    input = db.relationship("Input")
    batch = db.relationship("InputBatch", backref=db.backref("movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "input_id": self.input_id,
            "input_batch_id": self.input_batch_id,
            "batch_number": self.batch.batch_number if self.batch else None,
            "movement_type": self.kind.value,
            "quantity": self.quantity,
            "reason": self.reason,
            "notes": self.notes,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }


class InputVariantMovement(db.Model):
    """Append-only ledger entry for a raw-material sub-variant."""
    __tablename__ = "input_variant_movements"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    input_variant_id = db.Column(db.Integer, db.ForeignKey("input_variants.id"), nullable=False, index=True)
    kind = db.Column(
        db.Enum(InputMovementKind, name="input_movement_kind", native_enum=False, length=16),
        nullable=False,
    )
    quantity = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=True)
    reason = db.Column(db.String(255), nullable=True)
    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)
    user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    input_variant = db.relationship("InputVariant", backref=db.backref("movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "input_variant_id": self.input_variant_id,
            "movement_type": self.kind.value,
            "quantity": self.quantity,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "unit_cost_cents": self.unit_cost_cents,
            "reason": self.reason,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(InputBatchMovement, "before_update")
@event.listens_for(InputVariantMovement, "before_update")
def _prevent_input_movement_update(mapper, connection, target):
    raise ImmutableRecordError(type(target).__name__, target.id, "modified")


@event.listens_for(InputBatchMovement, "before_delete")
@event.listens_for(InputVariantMovement, "before_delete")
def _prevent_input_movement_delete(mapper, connection, target):
    raise ImmutableRecordError(type(target).__name__, target.id, "deleted")
