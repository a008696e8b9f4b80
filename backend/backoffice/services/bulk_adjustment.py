# Overview: Stock-count reconciliation that applies many independent ADJUSTMENT movements.

"""
Bulk adjustment

A physical count produces N target quantities. Each one is applied as its
own ADJUSTMENT movement in its own transaction, with the difference taken
against the stock read under the row lock. A failing item (unknown
variant, illegal delta, lock timeout) is reported on its own result and
leaves the other items applied.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError

from backoffice.errors import InventoryError
from backoffice.models import VariantMovement
from .stock_ledger import StockLedger

logger = logging.getLogger(__name__)

DEFAULT_REASON = "Bulk inventory adjustment"

RESULT_ADJUSTED = "ADJUSTED"
RESULT_UNCHANGED = "UNCHANGED"
RESULT_FAILED = "FAILED"


@dataclass(frozen=True)
class AdjustmentRequest:
    variant_id: int
    new_stock: int
    reason: str | None = None


@dataclass
class AdjustmentResult:
    variant_id: int
    outcome: str
    movement: VariantMovement | None = None
    error: str | None = None
    message: str | None = None
    context: dict = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.outcome != RESULT_FAILED

    def to_dict(self) -> dict:
        return {
            "variant_id": self.variant_id,
            "outcome": self.outcome,
            "success": self.success,
            "movement": self.movement.to_dict() if self.movement is not None else None,
            "error": self.error,
            "message": self.message,
            "context": self.context,
        }


class BulkAdjustmentProcessor:
    def __init__(self, session, ledger: StockLedger):
        self.session = session
        self.ledger = ledger

    def apply(self, items: list[AdjustmentRequest], user_id: int | None = None) -> list[AdjustmentResult]:
        return [self._apply_one(item, user_id) for item in items]

    def _apply_one(self, item: AdjustmentRequest, user_id: int | None) -> AdjustmentResult:
        try:
            movement = self.ledger.adjust_to(
                item.variant_id,
                item.new_stock,
                reason=item.reason or DEFAULT_REASON,
                user_id=user_id,
            )
        except InventoryError as e:
            self.session.rollback()
            return AdjustmentResult(
                variant_id=item.variant_id,
                outcome=RESULT_FAILED,
                error=type(e).__name__,
                message=e.message,
                context=e.context,
            )
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.exception("Bulk adjustment failed for variant %s", item.variant_id)
            return AdjustmentResult(
                variant_id=item.variant_id,
                outcome=RESULT_FAILED,
                error=type(e).__name__,
                message=str(e),
            )

        if movement is None:
            return AdjustmentResult(
                variant_id=item.variant_id,
                outcome=RESULT_UNCHANGED,
                message="No change",
            )
        return AdjustmentResult(
            variant_id=item.variant_id,
            outcome=RESULT_ADJUSTED,
            movement=movement,
        )
