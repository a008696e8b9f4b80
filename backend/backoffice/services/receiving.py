# Overview: Goods receipt against a purchase order, fanned out to the right stock ledger.

"""
Receiving Processor

A receipt is all-or-nothing:
1. The order must be CONFIRMED or PARTIAL (OrderNotReceivable otherwise).
2. Every line is checked for over-receipt before anything is written.
3. Each line increments quantity_received and moves stock for its target:
   - VariantTarget: PURCHASE movement through the stock ledger
   - InputTarget: input stock + most recent active batch (or a new one),
     one ENTRADA batch movement
   - InputVariantTarget: sub-variant stock with snapshots, one ENTRADA
     movement, parent input stock = sum of its active sub-variants
4. Status becomes RECEIVED when every line is complete, PARTIAL when any
   unit has arrived, through the purchase order state machine.
5. One commit. Any failure rolls the whole receipt back.

Line item ids that do not belong to the order are skipped with a warning.
Zero-quantity lines are accepted and do nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import func

from backoffice.errors import (
    OrderNotReceivable,
    OverReceipt,
    SupplierOrInputNotFound,
    ValidationError,
)
from backoffice.models import (
    Input,
    InputMovementKind,
    InputTarget,
    InputVariant,
    InputVariantMovement,
    InputVariantTarget,
    MovementKind,
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseOrderStatus,
    VariantTarget,
)
from .batch_tracker import BatchTracker
from .concurrency import lock_for_update, run_with_retry
from .purchase_order_service import PurchaseOrderService, derive_received_status
from .stock_ledger import StockLedger

logger = logging.getLogger(__name__)

RECEIVABLE_STATUSES = frozenset({PurchaseOrderStatus.CONFIRMED, PurchaseOrderStatus.PARTIAL})

REFERENCE_TYPE = "purchase_order"


@dataclass(frozen=True)
class ReceiptLine:
    item_id: int
    quantity_received: int


def receipt_reason(order: PurchaseOrder) -> str:
    return f"Recepción de OC {order.order_number}"


class ReceivingProcessor:
    def __init__(
        self,
        session,
        ledger: StockLedger,
        batches: BatchTracker,
        orders: PurchaseOrderService,
        *,
        retry_attempts: int = 3,
        retry_backoff: float = 0.1,
    ):
        self.session = session
        self.ledger = ledger
        self.batches = batches
        self.orders = orders
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff
        self._handlers = {
            VariantTarget: self._receive_variant,
            InputTarget: self._receive_input,
            InputVariantTarget: self._receive_input_variant,
        }

    def receive(
        self,
        order_id: int,
        lines: list[ReceiptLine],
        *,
        user_id: int | None = None,
    ) -> PurchaseOrder:
        """
        Record a goods receipt and return the updated order.

        Raises:
            OrderNotFound: unknown order
            OrderNotReceivable: order is not CONFIRMED or PARTIAL
            OverReceipt: a line would push quantity_received past quantity
            VariantNotFound / SupplierOrInputNotFound: line target vanished
        """
        def _op() -> PurchaseOrder:
            try:
                order = self.orders.get_order(order_id, lock=True)
                if order.status not in RECEIVABLE_STATUSES:
                    raise OrderNotReceivable(order.id, order.status.value)

                planned = self._plan(order, lines)
                for item, quantity in planned:
                    item.quantity_received += quantity
                    self._handlers[type(item.target)](order, item, quantity, user_id)

                self.session.flush()
                new_status = derive_received_status(order.items, order.status)
                if new_status is not order.status:
                    self.orders.transition(order, new_status, commit=False)

                self.session.commit()
            except Exception:
                self.session.rollback()
                raise

            logger.info(
                "Received %d line(s) on purchase order %s; status %s",
                len(planned),
                order.order_number,
                order.status.value,
            )
            return order

        return run_with_retry(
            self.session,
            _op,
            attempts=self.retry_attempts,
            backoff_base=self.retry_backoff,
        )

    def _plan(self, order: PurchaseOrder, lines: list[ReceiptLine]) -> list[tuple[PurchaseOrderItem, int]]:
        """Validate every line up front; returns (item, quantity) pairs to apply."""
        items_by_id = {item.id: item for item in order.items}
        running: dict[int, int] = {}
        planned = []

        for line in lines:
            item = items_by_id.get(line.item_id)
            if item is None:
                logger.warning(
                    "Skipping item %s: not part of purchase order %s", line.item_id, order.order_number
                )
                continue
            if line.quantity_received < 0:
                raise ValidationError(
                    "quantity_received cannot be negative",
                    item_id=line.item_id,
                    quantity_received=line.quantity_received,
                )
            if line.quantity_received == 0:
                continue

            already = running.get(item.id, item.quantity_received)
            if already + line.quantity_received > item.quantity:
                raise OverReceipt(order.id, item.id, item.quantity, already, line.quantity_received)
            running[item.id] = already + line.quantity_received
            planned.append((item, line.quantity_received))

        return planned

    # ------------------------------------------------------------------
    # Per-target handlers (flush only)
    # ------------------------------------------------------------------

    def _receive_variant(self, order: PurchaseOrder, item: PurchaseOrderItem, quantity: int, user_id) -> None:
        self.ledger.record_movement(
            item.variant_id,
            MovementKind.PURCHASE,
            quantity,
            reason=receipt_reason(order),
            unit_cost_cents=item.unit_cost_cents,
            reference_type=REFERENCE_TYPE,
            reference_id=order.id,
            user_id=user_id,
            commit=False,
        )

    def _receive_input(self, order: PurchaseOrder, item: PurchaseOrderItem, quantity: int, user_id) -> None:
        raw = lock_for_update(self.session.query(Input).filter_by(id=item.input_id)).first()
        if raw is None:
            raise SupplierOrInputNotFound("Input", item.input_id)
        raw.current_stock += quantity

        batch = self.batches.open_or_extend_batch(
            raw.id,
            quantity,
            unit_cost_cents=item.unit_cost_cents,
            batch_number=f"{order.order_number}-{item.id}",
            supplier_name=order.supplier.name if order.supplier else None,
            invoice_ref=order.supplier_invoice,
        )
        self.batches.record_movement(
            batch,
            InputMovementKind.ENTRADA,
            quantity,
            reason=receipt_reason(order),
            reference_type=REFERENCE_TYPE,
            reference_id=order.id,
            user_id=user_id,
        )

    def _receive_input_variant(
        self, order: PurchaseOrder, item: PurchaseOrderItem, quantity: int, user_id
    ) -> None:
        sub = lock_for_update(
            self.session.query(InputVariant).filter_by(id=item.input_variant_id)
        ).first()
        if sub is None:
            raise SupplierOrInputNotFound("InputVariant", item.input_variant_id)

        previous_stock = sub.current_stock
        sub.current_stock = previous_stock + quantity
        self.session.add(InputVariantMovement(
            input_variant_id=sub.id,
            kind=InputMovementKind.ENTRADA,
            quantity=quantity,
            previous_stock=previous_stock,
            new_stock=sub.current_stock,
            unit_cost_cents=item.unit_cost_cents,
            reason=receipt_reason(order),
            reference_type=REFERENCE_TYPE,
            reference_id=order.id,
            user_id=user_id,
        ))
        self.session.flush()

        # Parent aggregate counts the increment once, via the sum
        parent = lock_for_update(self.session.query(Input).filter_by(id=sub.input_id)).first()
        if parent is not None:
            total = (
                self.session.query(func.coalesce(func.sum(InputVariant.current_stock), 0))
                .filter(InputVariant.input_id == parent.id, InputVariant.is_active.is_(True))
                .scalar()
            )
            parent.current_stock = int(total or 0)
            self.session.flush()
