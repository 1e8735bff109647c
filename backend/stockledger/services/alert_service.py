# Overview: Stock-level alert state machine; raises, supersedes and resolves inventory alerts.

"""
Alert State Machine

================================================================================
TRIGGERS (evaluated after every operation that lowers Product.quantity):

    quantity == 0
        -> open REPLENISH_READY alerts are soft-resolved (their lots are gone)
        -> OUT_OF_STOCK alert
        -> every PENDING batch activates (oldest first), one REPLENISH_READY
           alert and one notify_replenishment_active per batch
        -> if anything was activated, every open LOW_STOCK / OUT_OF_STOCK
           alert is soft-resolved as superseded

    0 < quantity <= low threshold
        -> LOW_STOCK alert, unless one was raised within the cooldown window

Replenishment that leaves stock > 0 soft-resolves every open LOW_STOCK /
OUT_OF_STOCK alert for the product (clear_stock_alerts).
A new LOW_STOCK or OUT_OF_STOCK alert supersedes the open one of the same type.
================================================================================

The *_inner helpers queue notifications on an outbox list; callers deliver the
outbox after their commit (notifications.deliver).
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import InvalidInput, NotFound
from ..models import InventoryAlert, AlertType, MovementAction, Product, StockBatch
from ..notifications import PendingNotification
from stockledger.time_utils import utcnow, hours_ago
from . import batch_service
from .inventory_status import InventoryStatus, classify

SUPERSEDED_NOTE = "Superseded: stock replenished"
STOCK_ALERT_TYPES = (AlertType.LOW_STOCK, AlertType.OUT_OF_STOCK)
SYSTEM_ACTOR = "system"


def get_status(product: Product) -> InventoryStatus:
    """Classify a product using its own threshold or the configured defaults."""
    low = product.low_stock_threshold
    if low is None:
        low = current_app.config.get("LOW_STOCK_THRESHOLD")
    return classify(
        product.quantity,
        low_threshold=low,
        critical_threshold=current_app.config.get("CRITICAL_STOCK_THRESHOLD"),
    )


def _low_threshold(product: Product) -> int:
    if product.low_stock_threshold is not None:
        return product.low_stock_threshold
    return int(current_app.config.get("LOW_STOCK_THRESHOLD", 5))


def _raise_alert(
    product: Product,
    alert_type: AlertType,
    status: InventoryStatus,
    message: str,
    *,
    batch: StockBatch | None = None,
) -> InventoryAlert:
    """New alert; an open LOW_STOCK / OUT_OF_STOCK of the same type is superseded by it."""
    if alert_type in STOCK_ALERT_TYPES:
        _supersede_open_inner(product, [alert_type], f"Superseded: newer {alert_type.value} alert")
    alert = InventoryAlert(
        product_id=product.id,
        batch_id=batch.id if batch is not None else None,
        alert_type=alert_type,
        severity=status.priority,
        message=message,
        quantity_at_trigger=product.quantity,
        triggered_at=utcnow(),
    )
    db.session.add(alert)
    db.session.flush()
    return alert


def _soft_resolve(alert: InventoryAlert, notes: str, resolved_by: str | None = SYSTEM_ACTOR) -> None:
    alert.resolved = True
    alert.resolved_at = utcnow()
    alert.resolved_by = resolved_by
    alert.resolution_notes = notes


def _supersede_open_inner(product: Product, alert_types, notes: str) -> int:
    open_alerts = (
        db.session.query(InventoryAlert)
        .filter(
            InventoryAlert.product_id == product.id,
            InventoryAlert.alert_type.in_(list(alert_types)),
            InventoryAlert.resolved.is_(False),
        )
        .all()
    )
    for alert in open_alerts:
        _soft_resolve(alert, notes)
    return len(open_alerts)


def _low_stock_in_cooldown(product: Product) -> bool:
    hours = int(current_app.config.get("LOW_STOCK_ALERT_COOLDOWN_HOURS", 24))
    if hours <= 0:
        return False
    recent = (
        db.session.query(InventoryAlert.id)
        .filter(
            InventoryAlert.product_id == product.id,
            InventoryAlert.alert_type == AlertType.LOW_STOCK,
            InventoryAlert.triggered_at >= hours_ago(hours),
        )
        .first()
    )
    return recent is not None


def _low_stock_message(product: Product) -> str:
    if product.quantity == 1:
        return f"Only 1 {product.name} left, please replenish"
    return f"{product.name} is running low: {product.quantity} left"


def raise_replenish_ready_inner(product: Product, batch: StockBatch,
                               outbox: list[PendingNotification]) -> InventoryAlert:
    """REPLENISH_READY for a batch that just went ACTIVE, plus its notification."""
    db.session.refresh(product, ["quantity"])
    alert = _raise_alert(
        product,
        AlertType.REPLENISH_READY,
        get_status(product),
        f"Batch {batch.id} of {product.name} is now active ({batch.quantity_remaining} units)",
        batch=batch,
    )
    outbox.append(PendingNotification("notify_replenishment_active", (product, batch), alert))
    return alert


def _activate_pending_inner(product: Product, outbox: list[PendingNotification],
                            actor: str | None = None) -> list[InventoryAlert]:
    ready_alerts = []
    for batch in batch_service.pending_batches(product.id):
        batch_service.activate_batch_inner(product, batch, actor=actor)
        ready_alerts.append(raise_replenish_ready_inner(product, batch, outbox))
    return ready_alerts


def evaluate_stock_level_inner(product: Product, outbox: list[PendingNotification],
                               actor: str | None = None) -> list[InventoryAlert]:
    """
    Run the state machine for the product's current quantity.

    Returns the alerts raised. No commit: callers own the unit of work.
    """
    db.session.refresh(product, ["quantity"])
    raised: list[InventoryAlert] = []

    if product.quantity == 0:
        # Earlier lots are gone, so their REPLENISH_READY alerts are done.
        _supersede_open_inner(product, [AlertType.REPLENISH_READY], "Superseded: stock depleted")
        out_alert = _raise_alert(
            product,
            AlertType.OUT_OF_STOCK,
            get_status(product),
            f"{product.name} is out of stock",
        )
        raised.append(out_alert)

        ready_alerts = _activate_pending_inner(product, outbox, actor=actor)
        if ready_alerts:
            clear_stock_alerts_inner(
                product, f"Superseded: {len(ready_alerts)} pending batch(es) activated"
            )
            raised.extend(ready_alerts)
            current_app.logger.info(
                "Activated %s pending batch(es) for product %s", len(ready_alerts), product.id
            )
            # Activation can land the product in the low band straight away.
            raised.extend(_check_low_stock_inner(product, outbox))
        return raised

    raised.extend(_check_low_stock_inner(product, outbox))
    return raised


def _check_low_stock_inner(product: Product, outbox: list[PendingNotification]) -> list[InventoryAlert]:
    if not (0 < product.quantity <= _low_threshold(product)):
        return []
    if _low_stock_in_cooldown(product):
        return []
    status = get_status(product)
    alert = _raise_alert(product, AlertType.LOW_STOCK, status, _low_stock_message(product))
    outbox.append(PendingNotification("notify_low_stock", (product, status), alert))
    return [alert]


def clear_stock_alerts_inner(product: Product, notes: str = SUPERSEDED_NOTE) -> int:
    """Soft-resolve open LOW_STOCK / OUT_OF_STOCK alerts. Returns how many."""
    return _supersede_open_inner(product, STOCK_ALERT_TYPES, notes)


def get_alert(alert_id: int) -> InventoryAlert:
    alert = db.session.get(InventoryAlert, alert_id)
    if alert is None:
        raise NotFound("Alert not found", details={"alert_id": alert_id})
    return alert


def resolve_alert(
    alert_id: int,
    *,
    notes: str | None = None,
    restock_quantity: int | None = None,
    unit_cost_cents: int | None = None,
    resolved_by: str | None = None,
) -> InventoryAlert:
    """
    Mark an alert resolved, optionally restocking through the movement recorder.

    The restock is an ADD movement referenced ALERT_<id>; it commits on its own
    before the alert is flagged, so a failed restock leaves the alert open.
    """
    alert = get_alert(alert_id)
    if alert.resolved:
        raise InvalidInput("Alert is already resolved", details={"alert_id": alert_id})

    if restock_quantity is not None:
        if restock_quantity <= 0:
            raise InvalidInput("restock_quantity must be > 0")
        # Lazy import: movement_service imports this module.
        from .movement_service import update_stock

        update_stock(
            alert.product_id,
            restock_quantity,
            MovementAction.ADD,
            unit_cost_cents=unit_cost_cents,
            reference=f"ALERT_{alert.id}",
            notes=notes or f"Restock from alert {alert.id}",
            actor=resolved_by,
        )
        alert = get_alert(alert_id)

    alert.resolved = True
    alert.resolved_at = utcnow()
    alert.resolved_by = resolved_by
    alert.resolution_notes = notes
    db.session.commit()
    return alert


def list_alerts(
    *,
    product_id: int | None = None,
    alert_type: AlertType | None = None,
    resolved: bool | None = None,
    limit: int = 100,
) -> list[InventoryAlert]:
    query = db.session.query(InventoryAlert)
    if product_id is not None:
        query = query.filter(InventoryAlert.product_id == product_id)
    if alert_type is not None:
        query = query.filter(InventoryAlert.alert_type == alert_type)
    if resolved is not None:
        query = query.filter(InventoryAlert.resolved.is_(resolved))
    return (
        query.order_by(InventoryAlert.triggered_at.desc(), InventoryAlert.id.desc())
        .limit(min(max(limit, 1), 500))
        .all()
    )
