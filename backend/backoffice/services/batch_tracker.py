# Overview: Cost-tracked raw-material lots and their append-only movement ledger.

"""
Batch tracker

Quantities on a batch:
- current_quantity: on hand and free to use
- reserved_quantity: set aside for a production order, not yet consumed

RESERVA moves units from current to reserved, LIBERACION moves them back,
SALIDA consumes reserved units. AJUSTE overwrites current_quantity after a
recount. ENTRADA adds to current_quantity (goods receipt or new batch).

Input.current_stock for batch-tracked inputs is the sum of current_quantity
over active batches; recalculate_input_stock() restores it after any
batch-level change.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func

from backoffice.errors import (
    BatchNotFound,
    InsufficientBatchQuantity,
    SupplierOrInputNotFound,
    ValidationError,
)
from backoffice.models import Input, InputBatch, InputBatchMovement, InputMovementKind
from backoffice.time_utils import utcnow
from .concurrency import lock_for_update

logger = logging.getLogger(__name__)


class BatchTracker:
    def __init__(self, session):
        self.session = session

    # ------------------------------------------------------------------
    # Internal helpers (caller owns the transaction)
    # ------------------------------------------------------------------

    def _require_input(self, input_id: int, *, lock: bool = False) -> Input:
        query = self.session.query(Input).filter_by(id=input_id)
        if lock:
            query = lock_for_update(query)
        item = query.first()
        if item is None:
            raise SupplierOrInputNotFound("Input", input_id)
        return item

    def _require_batch(self, batch_id: int, *, lock: bool = False) -> InputBatch:
        query = self.session.query(InputBatch).filter_by(id=batch_id)
        if lock:
            query = lock_for_update(query)
        batch = query.first()
        if batch is None:
            raise BatchNotFound(batch_id)
        return batch

    @staticmethod
    def _require_positive(quantity: int) -> None:
        if quantity <= 0:
            raise ValidationError("quantity must be positive", quantity=quantity)

    def record_movement(
        self,
        batch: InputBatch,
        kind: InputMovementKind,
        quantity: int,
        *,
        reason: str | None = None,
        notes: str | None = None,
        reference_type: str | None = None,
        reference_id: int | None = None,
        user_id: int | None = None,
    ) -> InputBatchMovement:
        movement = InputBatchMovement(
            input_id=batch.input_id,
            input_batch_id=batch.id,
            kind=kind,
            quantity=quantity,
            reason=reason,
            notes=notes,
            reference_type=reference_type,
            reference_id=reference_id,
            user_id=user_id,
        )
        self.session.add(movement)
        self.session.flush()
        return movement

    def active_batch(self, input_id: int, *, lock: bool = False) -> InputBatch | None:
        """Most recently created active batch for the input, if any."""
        query = (
            self.session.query(InputBatch)
            .filter(InputBatch.input_id == input_id, InputBatch.is_active.is_(True))
            .order_by(InputBatch.created_at.desc(), InputBatch.id.desc())
        )
        if lock:
            query = lock_for_update(query)
        return query.first()

    def open_or_extend_batch(
        self,
        input_id: int,
        quantity: int,
        *,
        unit_cost_cents: int,
        batch_number: str,
        supplier_name: str | None = None,
        invoice_ref: str | None = None,
    ) -> InputBatch:
        """
        Add `quantity` to the input's most recent active batch, or open a new
        batch when none is active. Flushes only; the caller commits.
        """
        self._require_positive(quantity)
        batch = self.active_batch(input_id, lock=True)
        if batch is not None:
            batch.current_quantity += quantity
            batch.total_cost_cents += unit_cost_cents * quantity
            self.session.flush()
            return batch

        batch = InputBatch(
            input_id=input_id,
            batch_number=batch_number,
            supplier_name=supplier_name,
            invoice_ref=invoice_ref,
            initial_quantity=quantity,
            current_quantity=quantity,
            reserved_quantity=0,
            unit_cost_cents=unit_cost_cents,
            total_cost_cents=unit_cost_cents * quantity,
            purchase_date=utcnow(),
            is_active=True,
        )
        self.session.add(batch)
        self.session.flush()
        logger.info("Opened batch %s for input %s (qty=%s)", batch.batch_number, input_id, quantity)
        return batch

    def recalculate_input_stock(self, input_id: int) -> Input:
        """Set Input.current_stock to the sum of its active batches."""
        item = self._require_input(input_id, lock=True)
        total = (
            self.session.query(func.coalesce(func.sum(InputBatch.current_quantity), 0))
            .filter(InputBatch.input_id == input_id, InputBatch.is_active.is_(True))
            .scalar()
        )
        item.current_stock = int(total or 0)
        self.session.flush()
        return item

    def _commit(self) -> None:
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    # ------------------------------------------------------------------
    # Batch operations (each commits its own unit of work)
    # ------------------------------------------------------------------

    def create_batch(
        self,
        *,
        input_id: int,
        batch_number: str,
        initial_quantity: int,
        unit_cost_cents: int,
        supplier_name: str | None = None,
        invoice_ref: str | None = None,
        purchase_date: datetime | None = None,
        expiry_date: datetime | None = None,
        notes: str | None = None,
        user_id: int | None = None,
    ) -> InputBatch:
        try:
            self._require_input(input_id)
            self._require_positive(initial_quantity)
            if unit_cost_cents < 0:
                raise ValidationError("unit_cost_cents cannot be negative", unit_cost_cents=unit_cost_cents)

            batch = InputBatch(
                input_id=input_id,
                batch_number=batch_number,
                supplier_name=supplier_name,
                invoice_ref=invoice_ref,
                initial_quantity=initial_quantity,
                current_quantity=initial_quantity,
                reserved_quantity=0,
                unit_cost_cents=unit_cost_cents,
                total_cost_cents=unit_cost_cents * initial_quantity,
                purchase_date=purchase_date or utcnow(),
                expiry_date=expiry_date,
                notes=notes,
                is_active=True,
            )
            self.session.add(batch)
            self.session.flush()

            self.record_movement(
                batch,
                InputMovementKind.ENTRADA,
                initial_quantity,
                reason="Batch created",
                user_id=user_id,
            )
            self.recalculate_input_stock(input_id)
        except Exception:
            self.session.rollback()
            raise
        self._commit()
        logger.info("Created batch %s for input %s", batch.batch_number, input_id)
        return batch

    def adjust_batch_quantity(
        self,
        batch_id: int,
        new_quantity: int,
        *,
        reason: str,
        user_id: int | None = None,
    ) -> InputBatch:
        """Overwrite current_quantity after a recount; logs AJUSTE with |difference|."""
        try:
            if new_quantity < 0:
                raise ValidationError("new_quantity cannot be negative", new_quantity=new_quantity)
            batch = self._require_batch(batch_id, lock=True)
            difference = new_quantity - batch.current_quantity
            batch.current_quantity = new_quantity
            self.record_movement(
                batch,
                InputMovementKind.AJUSTE,
                abs(difference),
                reason=reason,
                notes=f"Adjusted by {difference:+d}",
                user_id=user_id,
            )
            self.recalculate_input_stock(batch.input_id)
        except Exception:
            self.session.rollback()
            raise
        self._commit()
        return batch

    def reserve(
        self,
        batch_id: int,
        quantity: int,
        *,
        reference_type: str | None = None,
        reference_id: int | None = None,
        user_id: int | None = None,
    ) -> InputBatch:
        try:
            self._require_positive(quantity)
            batch = self._require_batch(batch_id, lock=True)
            if batch.current_quantity < quantity:
                raise InsufficientBatchQuantity(batch.id, batch.current_quantity, quantity)
            batch.current_quantity -= quantity
            batch.reserved_quantity += quantity
            self.record_movement(
                batch,
                InputMovementKind.RESERVA,
                quantity,
                reason="Reserved",
                reference_type=reference_type,
                reference_id=reference_id,
                user_id=user_id,
            )
            self.recalculate_input_stock(batch.input_id)
        except Exception:
            self.session.rollback()
            raise
        self._commit()
        return batch

    def release(
        self,
        batch_id: int,
        quantity: int,
        *,
        reference_type: str | None = None,
        reference_id: int | None = None,
        user_id: int | None = None,
    ) -> InputBatch:
        try:
            self._require_positive(quantity)
            batch = self._require_batch(batch_id, lock=True)
            if batch.reserved_quantity < quantity:
                raise InsufficientBatchQuantity(batch.id, batch.reserved_quantity, quantity)
            batch.reserved_quantity -= quantity
            batch.current_quantity += quantity
            self.record_movement(
                batch,
                InputMovementKind.LIBERACION,
                quantity,
                reason="Reservation released",
                reference_type=reference_type,
                reference_id=reference_id,
                user_id=user_id,
            )
            self.recalculate_input_stock(batch.input_id)
        except Exception:
            self.session.rollback()
            raise
        self._commit()
        return batch

    def record_output(
        self,
        batch_id: int,
        quantity: int,
        *,
        reference_type: str | None = None,
        reference_id: int | None = None,
        user_id: int | None = None,
    ) -> InputBatch:
        """Consume previously reserved units."""
        try:
            self._require_positive(quantity)
            batch = self._require_batch(batch_id, lock=True)
            if batch.reserved_quantity < quantity:
                raise InsufficientBatchQuantity(batch.id, batch.reserved_quantity, quantity)
            batch.reserved_quantity -= quantity
            self.record_movement(
                batch,
                InputMovementKind.SALIDA,
                quantity,
                reason="Consumed",
                reference_type=reference_type,
                reference_id=reference_id,
                user_id=user_id,
            )
        except Exception:
            self.session.rollback()
            raise
        self._commit()
        return batch

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_batch(self, batch_id: int) -> InputBatch:
        return self._require_batch(batch_id)

    def batches_for_input(self, input_id: int, *, include_inactive: bool = False) -> list[InputBatch]:
        query = self.session.query(InputBatch).filter(InputBatch.input_id == input_id)
        if not include_inactive:
            query = query.filter(InputBatch.is_active.is_(True))
        return query.order_by(InputBatch.created_at.desc(), InputBatch.id.desc()).all()

    def movements_for_input(self, input_id: int) -> list[InputBatchMovement]:
        return (
            self.session.query(InputBatchMovement)
            .filter(InputBatchMovement.input_id == input_id)
            .order_by(InputBatchMovement.created_at.desc(), InputBatchMovement.id.desc())
            .all()
        )

    def movements_for_batch(self, batch_id: int) -> list[InputBatchMovement]:
        self._require_batch(batch_id)
        return (
            self.session.query(InputBatchMovement)
            .filter(InputBatchMovement.input_batch_id == batch_id)
            .order_by(InputBatchMovement.created_at.desc(), InputBatchMovement.id.desc())
            .all()
        )
