# Overview: Replenishment, per-product inventory summaries and reorder suggestions.

"""
Inventory Invariants & Time Semantics (authoritative)

Canonical time handling:
- All internal datetimes are UTC-naive (tzinfo=None).
- API responses serialize datetimes as ISO-8601 'Z' strings.

Replenishment:
- FIFO products: each replenishment is a new StockBatch. It is ACTIVE (merged
  into Product.quantity) only when the product has no active stock left,
  otherwise it waits as PENDING until the alert state machine activates it.
- WEIGHTED_AVERAGE products: the units join the pool and the product's
  cost_price_cents becomes the weighted average of old and new stock.
- Replenishment that leaves stock > 0 soft-resolves open LOW_STOCK and
  OUT_OF_STOCK alerts.
- A batch that goes ACTIVE raises REPLENISH_READY and notifies.

Valuation:
- Stock value at cost is SUM(remaining * unit_cost) over ACTIVE batches for
  FIFO products, quantity * cost_price_cents for pool products.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from math import ceil

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import (
    BatchStatus,
    CostingMethod,
    InventoryAlert,
    MovementAction,
    Product,
    Sale,
    StockBatch,
    StockMovement,
)
from ..notifications import PendingNotification, deliver
from ..validation import MAX_QUANTITY, positive_int, price_cents
from stockledger.time_utils import days_ago, to_utc_z, utcnow
from . import alert_service, batch_service
from .concurrency import run_with_retry
from .costing import get_strategy
from .products_service import get_product

URGENCY_ORDER = {"critical": 1, "high": 2, "medium": 3, "low": 4}


@dataclass
class ReplenishResult:
    product_id: int
    quantity: int
    current_stock: int
    batch: StockBatch | None = None
    movement: StockMovement | None = None
    alerts: list[InventoryAlert] = field(default_factory=list)
    cleared_alerts: int = 0

    @property
    def status(self) -> str:
        """Batch status, or ACTIVE for pool products (stock is usable at once)."""
        if self.batch is None:
            return BatchStatus.ACTIVE.value
        return self.batch.status.value

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "current_stock": self.current_stock,
            "status": self.status,
            "batch": self.batch.to_dict() if self.batch is not None else None,
            "movement": self.movement.to_dict() if self.movement is not None else None,
            "alerts": [a.to_dict() for a in self.alerts],
            "cleared_alerts": self.cleared_alerts,
        }


def replenish_inner(
    product: Product,
    quantity: int,
    unit_cost_cents: int,
    unit_price_cents: int,
    outbox: list[PendingNotification],
    *,
    reference: str | None = None,
    notes: str | None = None,
    actor: str | None = None,
) -> ReplenishResult:
    """Receive new stock for a locked product. No commit."""
    strategy = get_strategy(product)
    movement, batch = strategy.receive(
        product,
        quantity,
        unit_cost_cents=unit_cost_cents,
        unit_price_cents=unit_price_cents,
        action=MovementAction.ADD,
        replenishment=True,
        reference=reference,
        notes=notes or f"Replenished {quantity} units",
        actor=actor,
    )
    db.session.refresh(product, ["quantity"])

    result = ReplenishResult(product.id, quantity, product.quantity, batch=batch, movement=movement)

    if batch is not None and batch.status == BatchStatus.ACTIVE:
        product.cost_price_cents = batch.unit_cost_cents
        product.price_cents = batch.unit_price_cents
        alert = alert_service.raise_replenish_ready_inner(product, batch, outbox)
        result.alerts.append(alert)

    if product.quantity > 0:
        result.cleared_alerts = alert_service.clear_stock_alerts_inner(product)

    return result


def replenish(
    product_id: int,
    quantity: int,
    unit_cost_cents: int,
    unit_price_cents: int,
    *,
    reference: str | None = None,
    notes: str | None = None,
    actor: str | None = None,
) -> ReplenishResult:
    """
    Add a replenishment batch (or pool receipt) for a product.

    Raises InvalidInput when any of quantity / cost / price is <= 0 and
    NotFound for an unknown product; nothing is written in either case.
    """
    quantity = positive_int("quantity", quantity, maximum=MAX_QUANTITY)
    unit_cost_cents = price_cents("unit_cost_cents", unit_cost_cents)
    unit_price_cents = price_cents("unit_price_cents", unit_price_cents)

    outbox: list[PendingNotification] = []

    def _op():
        outbox.clear()
        product = get_product(product_id, lock=True)
        result = replenish_inner(
            product,
            quantity,
            unit_cost_cents,
            unit_price_cents,
            outbox,
            reference=reference,
            notes=notes,
            actor=actor,
        )
        db.session.commit()
        return result

    result = run_with_retry(_op)
    current_app.logger.info(
        "Replenished product %s with %s units (%s)", product_id, quantity, result.status
    )
    deliver(outbox)
    return result


def list_batches(product_id: int, status: BatchStatus | None = None) -> list[StockBatch]:
    get_product(product_id)
    return batch_service.list_batches(product_id, status=status)


def _stock_value_cents(product: Product) -> int:
    if product.costing_method == CostingMethod.FIFO and batch_service.has_batches(product.id):
        total = (
            db.session.query(
                func.coalesce(func.sum(StockBatch.quantity_remaining * StockBatch.unit_cost_cents), 0)
            )
            .filter(StockBatch.product_id == product.id, StockBatch.status == BatchStatus.ACTIVE)
            .scalar()
        )
        return int(total or 0)
    return product.quantity * product.cost_price_cents


def _retail_value_cents(product: Product) -> int:
    if product.costing_method == CostingMethod.FIFO and batch_service.has_batches(product.id):
        total = (
            db.session.query(
                func.coalesce(func.sum(StockBatch.quantity_remaining * StockBatch.unit_price_cents), 0)
            )
            .filter(StockBatch.product_id == product.id, StockBatch.status == BatchStatus.ACTIVE)
            .scalar()
        )
        return int(total or 0)
    return product.quantity * product.price_cents


def get_inventory_summary(product_id: int) -> dict:
    """Quantity, batch breakdown, valuation and status for one product."""
    product = get_product(product_id)

    batch_rows = (
        db.session.query(
            StockBatch.status,
            func.count(StockBatch.id),
            func.coalesce(func.sum(StockBatch.quantity_remaining), 0),
        )
        .filter(StockBatch.product_id == product.id)
        .group_by(StockBatch.status)
        .all()
    )
    batches = {s.value: {"count": 0, "quantity_remaining": 0} for s in BatchStatus}
    for status, count, remaining in batch_rows:
        batches[status.value] = {"count": int(count), "quantity_remaining": int(remaining)}

    open_alerts = (
        db.session.query(func.count(InventoryAlert.id))
        .filter(InventoryAlert.product_id == product.id, InventoryAlert.resolved.is_(False))
        .scalar()
    )

    stock_value = _stock_value_cents(product)
    retail_value = _retail_value_cents(product)

    return {
        "product_id": product.id,
        "sku": product.sku,
        "name": product.name,
        "costing_method": product.costing_method.value,
        "quantity": product.quantity,
        "pending_quantity": batches[BatchStatus.PENDING.value]["quantity_remaining"],
        "cost_price_cents": product.cost_price_cents,
        "price_cents": product.price_cents,
        "stock_value_cents": stock_value,
        "retail_value_cents": retail_value,
        "potential_profit_cents": retail_value - stock_value,
        "batches": batches,
        "open_alerts": int(open_alerts or 0),
        "status": alert_service.get_status(product).to_dict(),
        "generated_at": to_utc_z(utcnow()),
    }


def _sold_since(product_ids: list[int], since) -> dict[int, int]:
    if not product_ids:
        return {}
    rows = (
        db.session.query(Sale.product_id, func.coalesce(func.sum(Sale.quantity_sold), 0))
        .filter(Sale.product_id.in_(product_ids), Sale.sold_at >= since)
        .group_by(Sale.product_id)
        .all()
    )
    return {pid: int(qty) for pid, qty in rows}


def _suggest(quantity: int, average_daily_sales: float) -> tuple[int, str, float | None]:
    """
    (suggested_reorder, urgency, days_of_stock) for one product.

        out of stock     -> cover 30 days, at least 10 units, critical
        < 7 days left    -> cover 15 days, at least 5 units, high
        < 14 days left   -> cover 10 days, at least 3 units, medium
        otherwise        -> nothing yet, low
    """
    if quantity == 0:
        return max(ceil(average_daily_sales * 30), 10), "critical", 0.0
    if average_daily_sales <= 0:
        return 0, "low", None
    days_of_stock = quantity / average_daily_sales
    if days_of_stock < 7:
        return max(ceil(average_daily_sales * 15), 5), "high", days_of_stock
    if days_of_stock < 14:
        return max(ceil(average_daily_sales * 10), 3), "medium", days_of_stock
    return 0, "low", days_of_stock


def get_reorder_suggestions(low_threshold: int | None = None) -> dict:
    """
    Active products at or below the low threshold, with a reorder quantity
    sized from sales velocity over the configured lookback window.
    """
    threshold = low_threshold
    if threshold is None:
        threshold = int(current_app.config.get("LOW_STOCK_THRESHOLD", 5))
    lookback_days = int(current_app.config.get("REORDER_LOOKBACK_DAYS", 30))

    products = (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.quantity <= threshold)
        .order_by(Product.quantity.asc(), Product.id.asc())
        .all()
    )
    sold = _sold_since([p.id for p in products], days_ago(lookback_days))

    suggestions = []
    for product in products:
        units_sold = sold.get(product.id, 0)
        average_daily_sales = units_sold / lookback_days if lookback_days > 0 else 0.0
        suggested, urgency, days_of_stock = _suggest(product.quantity, average_daily_sales)
        unit_cost = product.cost_price_cents
        suggestions.append({
            "product": {
                "id": product.id,
                "sku": product.sku,
                "name": product.name,
                "current_stock": product.quantity,
                "low_stock_threshold": product.low_stock_threshold,
                "cost_price_cents": unit_cost,
                "price_cents": product.price_cents,
            },
            "sales": {
                "units_sold": units_sold,
                "lookback_days": lookback_days,
                "average_daily_sales": round(average_daily_sales, 1),
                "days_of_stock": None if days_of_stock is None else round(days_of_stock, 1),
            },
            "reorder": {
                "suggested_quantity": suggested,
                "urgency": urgency,
                "estimated_cost_cents": suggested * unit_cost,
                "estimated_revenue_cents": suggested * product.price_cents,
                "estimated_profit_cents": suggested * (product.price_cents - unit_cost),
            },
            "status": alert_service.get_status(product).to_dict(),
        })

    suggestions.sort(key=lambda s: URGENCY_ORDER[s["reorder"]["urgency"]])
    return {
        "threshold": threshold,
        "count": len(suggestions),
        "suggestions": suggestions,
        "by_urgency": {
            u: sum(1 for s in suggestions if s["reorder"]["urgency"] == u) for u in URGENCY_ORDER
        },
    }
