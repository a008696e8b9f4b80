# Overview: Stock ledger for sellable variants; the only writer of ProductVariant.stock.

"""
Stock Ledger Invariants (authoritative)

- ProductVariant.stock is written ONLY here.
- Every write is paired with exactly one immutable VariantMovement carrying
  previous_stock and new_stock snapshots; both land in the same commit.
- new_stock == previous_stock + delta, with delta derived by
  movement_policy.apply() from (kind, quantity).
- A rejected movement (unknown variant, illegal delta) leaves the variant
  row untouched.
- Current stock == stock at the INITIAL baseline + sum of movement deltas.

Transactions:
- commit=True (default): the call owns its unit of work, commits it, and
  retries lock/optimistic-version conflicts.
- commit=False: the caller owns the transaction (e.g. a multi-line goods
  receipt); the ledger only flushes and never retries or rolls back.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, or_

from backoffice.errors import VariantNotFound
from backoffice.models import MovementKind, Product, ProductVariant, VariantMovement
from backoffice.time_utils import start_of_day, utcnow
from . import movement_policy
from .concurrency import lock_for_update, run_with_retry


class StockLedger:
    def __init__(
        self,
        session,
        *,
        retry_attempts: int = 3,
        retry_backoff: float = 0.1,
        list_limit: int = 500,
    ):
        self.session = session
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff
        self.list_limit = list_limit

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def record_movement(
        self,
        variant_id: int,
        kind,
        quantity: int,
        *,
        reason: str | None = None,
        notes: str | None = None,
        unit_cost_cents: int | None = None,
        reference_type: str | None = None,
        reference_id: int | None = None,
        user_id: int | None = None,
        commit: bool = True,
    ) -> VariantMovement:
        """
        Apply one stock movement to a variant and append its ledger entry.

        Raises:
            VariantNotFound: no variant with that id
            InvalidMovementKind / InsufficientStock / NegativeStockAdjustment:
                rejected by the movement policy
        """
        kind = movement_policy.parse_kind(kind)
        return self._write(
            variant_id,
            kind,
            lambda previous_stock: quantity,
            commit=commit,
            reason=reason,
            notes=notes,
            unit_cost_cents=unit_cost_cents,
            reference_type=reference_type,
            reference_id=reference_id,
            user_id=user_id,
        )

    def adjust_to(
        self,
        variant_id: int,
        new_stock: int,
        *,
        reason: str | None = None,
        notes: str | None = None,
        user_id: int | None = None,
        commit: bool = True,
    ) -> VariantMovement | None:
        """
        Set a variant's stock to a counted absolute value.

        The ADJUSTMENT delta is taken against the stock read under the row
        lock and recomputed on every retry. Returns None when the variant
        already holds `new_stock`.
        """
        return self._write(
            variant_id,
            MovementKind.ADJUSTMENT,
            lambda previous_stock: (new_stock - previous_stock) or None,
            commit=commit,
            reason=reason,
            notes=notes,
            user_id=user_id,
        )

    def _write(self, variant_id: int, kind, quantity_for, *, commit: bool, **fields):
        # quantity_for(previous_stock) -> quantity, or None for no movement
        def _apply() -> VariantMovement | None:
            variant = lock_for_update(
                self.session.query(ProductVariant).filter_by(id=variant_id)
            ).first()
            if variant is None:
                raise VariantNotFound(variant_id)

            previous_stock = variant.stock
            quantity = quantity_for(previous_stock)
            if quantity is None:
                return None
            signed = movement_policy.apply(kind, quantity, previous_stock, variant_id=variant_id)
            new_stock = previous_stock + signed

            variant.stock = new_stock
            movement = VariantMovement(
                variant_id=variant.id,
                kind=kind,
                quantity=quantity,
                previous_stock=previous_stock,
                new_stock=new_stock,
                **fields,
            )
            self.session.add(movement)
            self.session.flush()
            return movement

        if not commit:
            return _apply()

        def _op() -> VariantMovement | None:
            try:
                movement = _apply()
                self.session.commit()
            except Exception:
                self.session.rollback()
                raise
            return movement

        return run_with_retry(
            self.session,
            _op,
            attempts=self.retry_attempts,
            backoff_base=self.retry_backoff,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_variant(self, variant_id: int) -> ProductVariant:
        variant = self.session.get(ProductVariant, variant_id)
        if variant is None:
            raise VariantNotFound(variant_id)
        return variant

    def list_movements(
        self,
        *,
        variant_id: int | None = None,
        product_id: int | None = None,
        kind=None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
        search: str | None = None,
        limit: int | None = None,
    ) -> list[VariantMovement]:
        """Movements newest first, filtered; capped at the configured list limit."""
        query = (
            self.session.query(VariantMovement)
            .join(ProductVariant, VariantMovement.variant_id == ProductVariant.id)
            .join(Product, ProductVariant.product_id == Product.id)
        )

        if variant_id:
            query = query.filter(VariantMovement.variant_id == variant_id)
        if product_id:
            query = query.filter(ProductVariant.product_id == product_id)
        if kind:
            query = query.filter(VariantMovement.kind == movement_policy.parse_kind(kind))
        if from_date:
            query = query.filter(VariantMovement.created_at >= from_date)
        if to_date:
            query = query.filter(VariantMovement.created_at <= to_date)
        if search:
            query = query.filter(or_(
                VariantMovement.reason.contains(search),
                VariantMovement.notes.contains(search),
                ProductVariant.sku.contains(search),
                Product.name.contains(search),
            ))

        cap = min(limit or self.list_limit, self.list_limit)
        return (
            query.order_by(VariantMovement.created_at.desc(), VariantMovement.id.desc())
            .limit(cap)
            .all()
        )

    def variant_movements(self, variant_id: int) -> list[VariantMovement]:
        return (
            self.session.query(VariantMovement)
            .filter(VariantMovement.variant_id == variant_id)
            .order_by(VariantMovement.created_at.desc(), VariantMovement.id.desc())
            .all()
        )

    def movements_summary(
        self,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
    ) -> list[dict]:
        """Count and summed quantity per movement kind."""
        query = self.session.query(
            VariantMovement.kind,
            func.count(VariantMovement.id),
            func.coalesce(func.sum(VariantMovement.quantity), 0),
        )
        if from_date:
            query = query.filter(VariantMovement.created_at >= from_date)
        if to_date:
            query = query.filter(VariantMovement.created_at <= to_date)

        rows = query.group_by(VariantMovement.kind).all()
        return [
            {"movement_type": kind.value, "count": int(count), "total_quantity": int(total)}
            for kind, count, total in rows
        ]

    def low_stock_variants(self) -> list[ProductVariant]:
        return (
            self.session.query(ProductVariant)
            .filter(
                ProductVariant.is_active.is_(True),
                ProductVariant.stock <= ProductVariant.min_stock,
            )
            .order_by(ProductVariant.stock.asc(), ProductVariant.id.asc())
            .all()
        )

    def inventory_stats(self) -> dict:
        active = self.session.query(ProductVariant).filter(ProductVariant.is_active.is_(True))

        total_variants = active.count()
        low_stock = active.filter(
            ProductVariant.min_stock > 0,
            ProductVariant.stock > 0,
            ProductVariant.stock <= ProductVariant.min_stock,
        ).count()
        out_of_stock = active.filter(ProductVariant.stock == 0).count()
        total_stock = (
            self.session.query(func.coalesce(func.sum(ProductVariant.stock), 0))
            .filter(ProductVariant.is_active.is_(True))
            .scalar()
        )
        today_movements = (
            self.session.query(func.count(VariantMovement.id))
            .filter(VariantMovement.created_at >= start_of_day(utcnow()))
            .scalar()
        )

        return {
            "total_variants": total_variants,
            "low_stock": low_stock,
            "out_of_stock": out_of_stock,
            "total_stock": int(total_stock or 0),
            "today_movements": int(today_movements or 0),
        }
