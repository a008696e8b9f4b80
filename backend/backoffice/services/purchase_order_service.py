# Overview: Purchase order lifecycle: numbering, drafting, status transitions and reads.

"""
Purchase Order Service

LIFECYCLE (this service is the only writer of PurchaseOrder.status):
    DRAFT      -> SENT, CANCELLED
    SENT       -> CONFIRMED, CANCELLED
    CONFIRMED  -> PARTIAL, RECEIVED, CANCELLED
    PARTIAL    -> RECEIVED, CANCELLED
    RECEIVED, CANCELLED: terminal

EDITING: DRAFT and CANCELLED orders may be edited wholesale (items replaced,
totals recomputed) or deleted. Anything else is OrderNotEditable /
OrderNotDeletable.

NUMBERING: "<prefix>-<year>-<NNNN>", gap-free and increasing within a year.
Allocation bumps a DocumentSequence row with one UPDATE; the row is seeded
from the highest existing number for the year the first time it is needed.
order_number is also UNIQUE, so a lost race surfaces as IntegrityError and
the whole create is retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError

from backoffice.errors import (
    IllegalTransition,
    OrderNotDeletable,
    OrderNotEditable,
    OrderNotFound,
    SupplierOrInputNotFound,
    ValidationError,
    VariantNotFound,
)
from backoffice.models import (
    DocumentSequence,
    Input,
    InputTarget,
    InputVariant,
    InputVariantTarget,
    LineTarget,
    ProductVariant,
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseOrderStatus,
    Supplier,
    VariantTarget,
)
from backoffice.time_utils import start_of_month, utcnow
from .concurrency import RETRYABLE_ERRORS, lock_for_update, run_with_retry

logger = logging.getLogger(__name__)

DOCUMENT_TYPE = "PURCHASE_ORDER"

ALLOWED_TRANSITIONS: dict[PurchaseOrderStatus, frozenset[PurchaseOrderStatus]] = {
    PurchaseOrderStatus.DRAFT: frozenset({PurchaseOrderStatus.SENT, PurchaseOrderStatus.CANCELLED}),
    PurchaseOrderStatus.SENT: frozenset({PurchaseOrderStatus.CONFIRMED, PurchaseOrderStatus.CANCELLED}),
    PurchaseOrderStatus.CONFIRMED: frozenset({
        PurchaseOrderStatus.PARTIAL,
        PurchaseOrderStatus.RECEIVED,
        PurchaseOrderStatus.CANCELLED,
    }),
    PurchaseOrderStatus.PARTIAL: frozenset({PurchaseOrderStatus.RECEIVED, PurchaseOrderStatus.CANCELLED}),
    PurchaseOrderStatus.RECEIVED: frozenset(),
    PurchaseOrderStatus.CANCELLED: frozenset(),
}

EDITABLE_STATUSES = frozenset({PurchaseOrderStatus.DRAFT, PurchaseOrderStatus.CANCELLED})

PENDING_STATUSES = frozenset({
    PurchaseOrderStatus.DRAFT,
    PurchaseOrderStatus.SENT,
    PurchaseOrderStatus.CONFIRMED,
    PurchaseOrderStatus.PARTIAL,
})

# update_order default for optional fields the caller did not send; None clears them
UNCHANGED = object()


@dataclass(frozen=True)
class OrderLineInput:
    target: LineTarget
    quantity: int
    unit_cost_cents: int
    description: str | None = None
    notes: str | None = None


def parse_status(value) -> PurchaseOrderStatus:
    if isinstance(value, PurchaseOrderStatus):
        return value
    try:
        return PurchaseOrderStatus(value)
    except ValueError:
        raise ValidationError(
            f"Invalid purchase order status: {value!r}. "
            f"Must be one of: {', '.join(s.value for s in PurchaseOrderStatus)}",
            status=str(value),
        ) from None


def can_transition(current: PurchaseOrderStatus, target: PurchaseOrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def derive_received_status(items, current: PurchaseOrderStatus) -> PurchaseOrderStatus:
    """
    Status implied by received quantities:
    RECEIVED if every item is fully received, PARTIAL if any unit has
    arrived, otherwise unchanged.
    """
    items = list(items)
    if items and all(item.quantity_received >= item.quantity for item in items):
        return PurchaseOrderStatus.RECEIVED
    if any(item.quantity_received > 0 for item in items):
        return PurchaseOrderStatus.PARTIAL
    return current


class PurchaseOrderService:
    def __init__(
        self,
        session,
        *,
        prefix: str = "OC",
        retry_attempts: int = 3,
        retry_backoff: float = 0.1,
    ):
        self.session = session
        self.prefix = prefix
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff

    # ------------------------------------------------------------------
    # Numbering
    # ------------------------------------------------------------------

    def _year_prefix(self, year: int) -> str:
        return f"{self.prefix}-{year}-"

    def _last_issued_number(self, year: int) -> int:
        """
        Highest sequence already used for `year`, by scanning order numbers.

        Suffixes grow past four digits after 9999, so longer numbers sort first.
        """
        prefix = self._year_prefix(year)
        last = (
            self.session.query(PurchaseOrder.order_number)
            .filter(PurchaseOrder.order_number.like(f"{prefix}%"))
            .order_by(func.length(PurchaseOrder.order_number).desc(), PurchaseOrder.order_number.desc())
            .first()
        )
        if last is None:
            return 0
        try:
            return int(last[0][len(prefix):])
        except ValueError:
            return 0

    def preview_order_number(self, now: datetime | None = None) -> str:
        """Number the next created order would get. Allocates nothing."""
        year = (now or utcnow()).year
        next_number = (
            self.session.query(DocumentSequence.next_number)
            .filter_by(document_type=DOCUMENT_TYPE, period=year)
            .scalar()
        )
        if next_number is None:
            next_number = self._last_issued_number(year) + 1
        return f"{self._year_prefix(year)}{next_number:04d}"

    def allocate_order_number(self, now: datetime | None = None) -> str:
        """
        Atomically allocate the next order number for the current year.

        Must run inside the caller's transaction so the bump and the order
        insert commit together.
        """
        year = (now or utcnow()).year

        stmt = (
            update(DocumentSequence)
            .where(
                DocumentSequence.document_type == DOCUMENT_TYPE,
                DocumentSequence.period == year,
            )
            .values(next_number=DocumentSequence.next_number + 1)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        if result.rowcount:
            current = (
                self.session.query(DocumentSequence.next_number)
                .filter_by(document_type=DOCUMENT_TYPE, period=year)
                .scalar()
            )
            number = current - 1
        else:
            # First order of the year: seed past anything already issued
            number = self._last_issued_number(year) + 1
            self.session.add(DocumentSequence(
                document_type=DOCUMENT_TYPE,
                period=year,
                next_number=number + 1,
            ))
            self.session.flush()

        return f"{self._year_prefix(year)}{number:04d}"

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_order(self, order_id: int, *, lock: bool = False) -> PurchaseOrder:
        query = self.session.query(PurchaseOrder).filter_by(id=order_id)
        if lock:
            query = lock_for_update(query)
        order = query.first()
        if order is None:
            raise OrderNotFound(order_id)
        return order

    def list_orders(
        self,
        *,
        search: str | None = None,
        status=None,
        supplier_id: int | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
    ) -> list[PurchaseOrder]:
        query = self.session.query(PurchaseOrder).join(Supplier, PurchaseOrder.supplier_id == Supplier.id)

        if search:
            query = query.filter(or_(
                PurchaseOrder.order_number.contains(search),
                Supplier.name.contains(search),
                PurchaseOrder.supplier_invoice.contains(search),
            ))
        if status:
            query = query.filter(PurchaseOrder.status == parse_status(status))
        if supplier_id:
            query = query.filter(PurchaseOrder.supplier_id == supplier_id)
        if from_date:
            query = query.filter(PurchaseOrder.order_date >= from_date)
        if to_date:
            query = query.filter(PurchaseOrder.order_date <= to_date)

        return query.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()).all()

    def order_stats(self) -> dict:
        counts = dict(
            self.session.query(PurchaseOrder.status, func.count(PurchaseOrder.id))
            .group_by(PurchaseOrder.status)
            .all()
        )
        by_status = {status.value.lower(): int(counts.get(status, 0)) for status in PurchaseOrderStatus}

        monthly_total = (
            self.session.query(func.coalesce(func.sum(PurchaseOrder.total_cents), 0))
            .filter(
                PurchaseOrder.status == PurchaseOrderStatus.RECEIVED,
                PurchaseOrder.received_date >= start_of_month(utcnow()),
            )
            .scalar()
        )

        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "pending_count": sum(int(counts.get(status, 0)) for status in PENDING_STATUSES),
            "monthly_total_cents": int(monthly_total or 0),
        }

    # ------------------------------------------------------------------
    # Drafting
    # ------------------------------------------------------------------

    def _require_supplier(self, supplier_id: int) -> Supplier:
        supplier = self.session.get(Supplier, supplier_id)
        if supplier is None:
            raise SupplierOrInputNotFound("Supplier", supplier_id)
        return supplier

    def _require_target(self, target: LineTarget) -> None:
        if isinstance(target, VariantTarget):
            if self.session.get(ProductVariant, target.variant_id) is None:
                raise VariantNotFound(target.variant_id)
        elif isinstance(target, InputTarget):
            if self.session.get(Input, target.input_id) is None:
                raise SupplierOrInputNotFound("Input", target.input_id)
        elif isinstance(target, InputVariantTarget):
            if self.session.get(InputVariant, target.input_variant_id) is None:
                raise SupplierOrInputNotFound("InputVariant", target.input_variant_id)
        else:
            raise ValidationError(f"Unsupported line target: {target!r}")

    def _build_items(self, lines: list[OrderLineInput]) -> list[PurchaseOrderItem]:
        if not lines:
            raise ValidationError("A purchase order needs at least one item")

        items = []
        for index, line in enumerate(lines):
            if line.quantity <= 0:
                raise ValidationError(
                    f"items[{index}].quantity must be positive", index=index, quantity=line.quantity
                )
            if line.unit_cost_cents < 0:
                raise ValidationError(
                    f"items[{index}].unit_cost_cents cannot be negative",
                    index=index,
                    unit_cost_cents=line.unit_cost_cents,
                )
            self._require_target(line.target)

            item = PurchaseOrderItem(
                description=line.description,
                quantity=line.quantity,
                quantity_received=0,
                unit_cost_cents=line.unit_cost_cents,
                subtotal_cents=line.quantity * line.unit_cost_cents,
                notes=line.notes,
            )
            item.target = line.target
            items.append(item)
        return items

    @staticmethod
    def _apply_totals(order: PurchaseOrder) -> None:
        # No taxes or discounts: total == subtotal
        order.subtotal_cents = sum(item.subtotal_cents for item in order.items)
        order.total_cents = order.subtotal_cents

    def create_order(
        self,
        *,
        supplier_id: int,
        items: list[OrderLineInput],
        expected_date: datetime | None = None,
        notes: str | None = None,
        created_by_user_id: int | None = None,
    ) -> PurchaseOrder:
        """
        Create a DRAFT purchase order with a freshly allocated number.

        Raises:
            SupplierOrInputNotFound / VariantNotFound: unknown supplier or line target
            ValidationError: no items, non-positive quantity or negative cost
        """
        def _op() -> PurchaseOrder:
            try:
                self._require_supplier(supplier_id)
                built = self._build_items(items)

                order = PurchaseOrder(
                    order_number=self.allocate_order_number(),
                    supplier_id=supplier_id,
                    status=PurchaseOrderStatus.DRAFT,
                    expected_date=expected_date,
                    notes=notes,
                    created_by_user_id=created_by_user_id,
                )
                order.items = built
                self._apply_totals(order)

                self.session.add(order)
                self.session.commit()
            except Exception:
                self.session.rollback()
                raise
            logger.info("Created purchase order %s (id=%s)", order.order_number, order.id)
            return order

        return run_with_retry(
            self.session,
            _op,
            attempts=self.retry_attempts,
            backoff_base=self.retry_backoff,
            retry_on=RETRYABLE_ERRORS + (IntegrityError,),
        )

    def update_order(
        self,
        order_id: int,
        *,
        supplier_id: int | None = None,
        items: list[OrderLineInput] | None = None,
        expected_date=UNCHANGED,
        notes=UNCHANGED,
        supplier_invoice=UNCHANGED,
    ) -> PurchaseOrder:
        """
        Edit a DRAFT/CANCELLED order.

        supplier_id and items left as None are unchanged. expected_date, notes
        and supplier_invoice are unchanged when omitted and cleared when None.
        """
        def _op() -> PurchaseOrder:
            try:
                order = self.get_order(order_id, lock=True)
                if order.status not in EDITABLE_STATUSES:
                    raise OrderNotEditable(order.id, order.status.value)

                if supplier_id is not None:
                    self._require_supplier(supplier_id)
                    order.supplier_id = supplier_id
                if items is not None:
                    built = self._build_items(items)
                    order.items.clear()
                    self.session.flush()
                    order.items.extend(built)
                    self._apply_totals(order)
                if expected_date is not UNCHANGED:
                    order.expected_date = expected_date
                if notes is not UNCHANGED:
                    order.notes = notes
                if supplier_invoice is not UNCHANGED:
                    order.supplier_invoice = supplier_invoice

                self.session.commit()
            except Exception:
                self.session.rollback()
                raise
            return order

        return run_with_retry(
            self.session,
            _op,
            attempts=self.retry_attempts,
            backoff_base=self.retry_backoff,
        )

    def delete_order(self, order_id: int) -> None:
        try:
            order = self.get_order(order_id, lock=True)
            if order.status not in EDITABLE_STATUSES:
                raise OrderNotDeletable(order.id, order.status.value)
            self.session.delete(order)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        logger.info("Deleted purchase order id=%s", order_id)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def transition(self, order: PurchaseOrder, target, *, commit: bool = True) -> PurchaseOrder:
        """
        Move `order` to `target` if the transition table allows it.

        Reaching RECEIVED stamps received_date.

        Raises:
            IllegalTransition: target not reachable from the current status
            ValidationError: target is not a known status
        """
        target = parse_status(target)
        current = order.status
        if not can_transition(current, target):
            raise IllegalTransition(order.id, current.value, target.value)

        order.status = target
        if target is PurchaseOrderStatus.RECEIVED:
            order.received_date = utcnow()

        if commit:
            self.session.commit()
        else:
            self.session.flush()
        logger.info(
            "Purchase order %s moved %s -> %s", order.order_number, current.value, target.value
        )
        return order

    def update_status(self, order_id: int, target) -> PurchaseOrder:
        def _op() -> PurchaseOrder:
            try:
                order = self.get_order(order_id, lock=True)
                return self.transition(order, target)
            except Exception:
                self.session.rollback()
                raise

        return run_with_retry(
            self.session,
            _op,
            attempts=self.retry_attempts,
            backoff_base=self.retry_backoff,
        )
