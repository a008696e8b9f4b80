from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Union

from ..extensions import db
from backoffice.time_utils import to_utc_z


class PurchaseOrderStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    CONFIRMED = "CONFIRMED"
    PARTIAL = "PARTIAL"
    RECEIVED = "RECEIVED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class VariantTarget:
    """Line buys a sellable product variant."""
    variant_id: int


@dataclass(frozen=True)
class InputTarget:
    """Line buys a batch-tracked raw material."""
    input_id: int


@dataclass(frozen=True)
class InputVariantTarget:
    """Line buys a color/size specific raw material."""
    input_variant_id: int


LineTarget = Union[VariantTarget, InputTarget, InputVariantTarget]


class Supplier(db.Model):
    __tablename__ = "suppliers"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_suppliers_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_summary(self) -> dict:
        return {"id": self.id, "code": self.code, "name": self.name}


class PurchaseOrder(db.Model):
    """
    Procurement document sent to a supplier.

    LIFECYCLE (services/purchase_order_service.py owns `status`):
        DRAFT -> SENT -> CONFIRMED -> PARTIAL -> RECEIVED
        any non-terminal state -> CANCELLED

    Editable (wholesale item replace) and deletable only while DRAFT or
    CANCELLED. Once past DRAFT, items change only through receiving.

    Totals are derived: subtotal_cents = sum(item.subtotal_cents),
    total_cents = subtotal_cents (no taxes or discounts).
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_purchase_orders_order_number"),
        db.Index("ix_purchase_orders_status", "status"),
        db.Index("ix_purchase_orders_supplier", "supplier_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number, e.g. "OC-2026-0042"
    order_number = db.Column(db.String(32), nullable=False)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False)
    status = db.Column(
        db.Enum(PurchaseOrderStatus, name="purchase_order_status", native_enum=False, length=16),
        nullable=False,
        default=PurchaseOrderStatus.DRAFT,
    )

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    order_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expected_date = db.Column(db.DateTime(timezone=True), nullable=True)
    received_date = db.Column(db.DateTime(timezone=True), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    supplier_invoice = db.Column(db.String(128), nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    supplier = db.relationship("Supplier", backref=db.backref("purchase_orders", lazy=True))
    items = db.relationship(
        "PurchaseOrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderItem.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<PurchaseOrder id={self.id} number={self.order_number!r} status={self.status.value}>"

    def to_dict(self, *, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "supplier_id": self.supplier_id,
            "supplier": self.supplier.to_summary() if self.supplier else None,
            "status": self.status.value,
            "subtotal_cents": self.subtotal_cents,
            "total_cents": self.total_cents,
            "order_date": to_utc_z(self.order_date),
            "expected_date": to_utc_z(self.expected_date),
            "received_date": to_utc_z(self.received_date),
            "notes": self.notes,
            "supplier_invoice": self.supplier_invoice,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class PurchaseOrderItem(db.Model):
    """
    One ordered line. Exactly one of variant_id / input_id / input_variant_id
    is set; code reads it through `target`.

    quantity_received only grows, only through the receiving processor, and
    never exceeds quantity.
    """
    __tablename__ = "purchase_order_items"
    __table_args__ = (
        db.CheckConstraint(
            "(CASE WHEN variant_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN input_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN input_variant_id IS NULL THEN 0 ELSE 1 END) = 1",
            name="ck_po_items_single_target",
        ),
        db.CheckConstraint("quantity > 0", name="ck_po_items_quantity_positive"),
        db.CheckConstraint(
            "quantity_received >= 0 AND quantity_received <= quantity",
            name="ck_po_items_received_bounds",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(
        db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True
    )

    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=True, index=True)
    input_id = db.Column(db.Integer, db.ForeignKey("inputs.id"), nullable=True, index=True)
    input_variant_id = db.Column(db.Integer, db.ForeignKey("input_variants.id"), nullable=True, index=True)

    description = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    quantity_received = db.Column(db.Integer, nullable=False, default=0)
    unit_cost_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    order = db.relationship("PurchaseOrder", back_populates="items")
    variant = db.relationship("ProductVariant")
    input = db.relationship("Input")
    input_variant = db.relationship("InputVariant")

    @property
    def target(self) -> LineTarget:
        if self.variant_id is not None:
            return VariantTarget(self.variant_id)
        if self.input_id is not None:
            return InputTarget(self.input_id)
        return InputVariantTarget(self.input_variant_id)

    @target.setter
    def target(self, value: LineTarget) -> None:
        self.variant_id = value.variant_id if isinstance(value, VariantTarget) else None
        self.input_id = value.input_id if isinstance(value, InputTarget) else None
        self.input_variant_id = (
            value.input_variant_id if isinstance(value, InputVariantTarget) else None
        )

    @property
    def quantity_pending(self) -> int:
        return self.quantity - (self.quantity_received or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_order_id": self.purchase_order_id,
            "variant_id": self.variant_id,
            "input_id": self.input_id,
            "input_variant_id": self.input_variant_id,
            "variant": self.variant.to_summary() if self.variant else None,
            "input": self.input.to_summary() if self.input else None,
            "input_variant": self.input_variant.to_summary() if self.input_variant else None,
            "description": self.description,
            "quantity": self.quantity,
            "quantity_received": self.quantity_received,
            "unit_cost_cents": self.unit_cost_cents,
            "subtotal_cents": self.subtotal_cents,
            "notes": self.notes,
        }
