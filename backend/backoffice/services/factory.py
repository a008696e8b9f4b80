# Overview: Builds the service graph for one session from Flask config.

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from .batch_tracker import BatchTracker
from .bulk_adjustment import BulkAdjustmentProcessor
from .purchase_order_service import PurchaseOrderService
from .receiving import ReceivingProcessor
from .stock_ledger import StockLedger


@dataclass
class Services:
    ledger: StockLedger
    bulk: BulkAdjustmentProcessor
    orders: PurchaseOrderService
    batches: BatchTracker
    receiving: ReceivingProcessor


def build_services(session, config) -> Services:
    retry = {
        "retry_attempts": config.get("RETRY_ATTEMPTS", 3),
        "retry_backoff": config.get("RETRY_BACKOFF_SECONDS", 0.1),
    }
    ledger = StockLedger(session, list_limit=config.get("MOVEMENT_LIST_LIMIT", 500), **retry)
    orders = PurchaseOrderService(session, prefix=config.get("PURCHASE_ORDER_PREFIX", "OC"), **retry)
    batches = BatchTracker(session)
    return Services(
        ledger=ledger,
        bulk=BulkAdjustmentProcessor(session, ledger),
        orders=orders,
        batches=batches,
        receiving=ReceivingProcessor(session, ledger, batches, orders, **retry),
    )


def current_services() -> Services:
    """Services bound to the Flask-SQLAlchemy scoped session of the current app."""
    return build_services(db.session, current_app.config)
