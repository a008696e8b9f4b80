from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


class Product(db.Model):
    """Catalog product. Stock lives on its variants, never on the product row."""
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_summary(self) -> dict:
        return {"id": self.id, "sku": self.sku, "name": self.name}


class Color(db.Model):
    __tablename__ = "colors"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    hex_code = db.Column(db.String(7), nullable=True)

    def to_summary(self) -> dict:
        return {"id": self.id, "name": self.name, "hex_code": self.hex_code}


class Size(db.Model):
    __tablename__ = "sizes"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(32), nullable=False, unique=True)
    abbreviation = db.Column(db.String(8), nullable=True)

    def to_summary(self) -> dict:
        return {"id": self.id, "name": self.name, "abbreviation": self.abbreviation}


class ProductVariant(db.Model):
    """
    Sellable SKU: product x color x size.

    OWNERSHIP: `stock` is written exclusively by the stock ledger
    (services/stock_ledger.py). Every change is explained by a VariantMovement
    whose new_stock equals the value written here.
    """
    __tablename__ = "product_variants"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_product_variants_sku"),
        db.UniqueConstraint("product_id", "color_id", "size_id", name="uq_product_variants_combo"),
        db.Index("ix_product_variants_active_stock", "is_active", "stock"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    color_id = db.Column(db.Integer, db.ForeignKey("colors.id"), nullable=True)
    size_id = db.Column(db.Integer, db.ForeignKey("sizes.id"), nullable=True)
    sku = db.Column(db.String(64), nullable=False)

    stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("variants", lazy=True))
    color = db.relationship("Color")
    size = db.relationship("Size")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<ProductVariant id={self.id} sku={self.sku!r} stock={self.stock}>"

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "product": self.product.to_summary() if self.product else None,
            "color": self.color.to_summary() if self.color else None,
            "size": self.size.to_summary() if self.size else None,
        }

    def to_dict(self) -> dict:
        return {
            **self.to_summary(),
            "product_id": self.product_id,
            "color_id": self.color_id,
            "size_id": self.size_id,
            "stock": self.stock,
            "min_stock": self.min_stock,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
