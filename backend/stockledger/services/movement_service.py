# Overview: Stock movement recorder; manual quantity changes and the movement history reads.

"""
Every change to Product.quantity outside a sale or a replenishment comes
through update_stock(). The product's allocation strategy decides where the
units come from or go to:

    ADD / RELEASE / RETURN    +quantity
    REMOVE / RESERVE / SOLD   -quantity
    SET                       target - current (a zero delta is still logged)

After any movement that lowers quantity the alert state machine runs once.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..errors import InvalidInput, LedgerError
from ..models import InventoryAlert, MovementAction, StockMovement
from ..notifications import PendingNotification, deliver
from ..validation import MAX_QUANTITY, non_negative_int, positive_int, coerce_enum
from .alert_service import evaluate_stock_level_inner
from .concurrency import run_with_retry
from .costing import get_strategy
from .ledger_service import apply_quantity_change
from .products_service import get_product

INCREASE_ACTIONS = {MovementAction.ADD, MovementAction.RELEASE, MovementAction.RETURN}
DECREASE_ACTIONS = {MovementAction.REMOVE, MovementAction.RESERVE, MovementAction.SOLD}


@dataclass
class StockUpdateResult:
    product_id: int
    action: MovementAction
    previous_quantity: int
    new_quantity: int
    movements: list[StockMovement] = field(default_factory=list)
    alerts: list[InventoryAlert] = field(default_factory=list)

    @property
    def movement(self) -> StockMovement:
        """Last movement written; the only one except for multi-batch issues."""
        return self.movements[-1]

    @property
    def quantity_changed(self) -> int:
        return self.new_quantity - self.previous_quantity

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "action": self.action.value,
            "previous_quantity": self.previous_quantity,
            "new_quantity": self.new_quantity,
            "quantity_changed": self.quantity_changed,
            "movements": [m.to_dict() for m in self.movements],
            "alerts": [a.to_dict() for a in self.alerts],
        }


def signed_delta(action: MovementAction, quantity: int, current: int) -> int:
    if action in INCREASE_ACTIONS:
        return quantity
    if action in DECREASE_ACTIONS:
        return -quantity
    return quantity - current


def update_stock_inner(
    product_id: int,
    quantity: int,
    action: MovementAction,
    outbox: list[PendingNotification],
    *,
    unit_cost_cents: int | None = None,
    reference: str | None = None,
    notes: str | None = None,
    actor: str | None = None,
) -> StockUpdateResult:
    """Apply one movement under the product lock. No commit."""
    product = get_product(product_id, lock=True)
    previous = product.quantity
    delta = signed_delta(action, quantity, previous)
    strategy = get_strategy(product)

    result = StockUpdateResult(product.id, action, previous, previous)
    if delta > 0:
        movement, _batch = strategy.receive(
            product,
            delta,
            unit_cost_cents=unit_cost_cents,
            unit_price_cents=None,
            action=action,
            reference=reference,
            notes=notes,
            actor=actor,
        )
        result.movements.append(movement)
    elif delta < 0:
        _allocations, movements = strategy.issue(
            product, -delta, action=action, reference=reference, notes=notes, actor=actor
        )
        result.movements.extend(movements)
    else:
        result.movements.append(
            apply_quantity_change(product, 0, action=action, reference=reference,
                                  notes=notes, actor=actor)
        )

    if delta < 0:
        result.alerts = evaluate_stock_level_inner(product, outbox, actor=actor)

    db.session.refresh(product, ["quantity"])
    result.new_quantity = product.quantity
    return result


def _validated_quantity(action: MovementAction, quantity) -> int:
    if action == MovementAction.SET:
        return non_negative_int("quantity", quantity, maximum=MAX_QUANTITY)
    return positive_int("quantity", quantity, maximum=MAX_QUANTITY)


def update_stock(
    product_id: int,
    quantity: int,
    action: MovementAction | str,
    *,
    unit_cost_cents: int | None = None,
    reference: str | None = None,
    notes: str | None = None,
    actor: str | None = None,
) -> StockUpdateResult:
    """
    Record a stock movement and commit it together with the quantity change.

    Raises InsufficientStock when the result would go below zero; nothing is
    written in that case.
    """
    action = coerce_enum("action", action, MovementAction)
    quantity = _validated_quantity(action, quantity)
    if unit_cost_cents is not None:
        unit_cost_cents = positive_int("unit_cost_cents", unit_cost_cents)

    outbox: list[PendingNotification] = []

    def _op():
        outbox.clear()
        result = update_stock_inner(
            product_id,
            quantity,
            action,
            outbox,
            unit_cost_cents=unit_cost_cents,
            reference=reference,
            notes=notes,
            actor=actor,
        )
        db.session.commit()
        return result

    result = run_with_retry(_op)
    deliver(outbox)
    return result


def batch_update_stock(updates: list[dict], *, actor: str | None = None) -> dict:
    """
    Apply several movements, each in its own transaction.

    A failing item does not stop the rest; its error is reported in
    `failed` with the item's index.
    """
    if not isinstance(updates, list) or not updates:
        raise InvalidInput("updates must be a non-empty list")

    succeeded, failed = [], []
    for index, item in enumerate(updates):
        if not isinstance(item, dict):
            failed.append({"index": index, "error": "Each update must be an object"})
            continue
        try:
            result = update_stock(
                positive_int("product_id", item.get("product_id")),
                item.get("quantity"),
                item.get("action"),
                unit_cost_cents=item.get("unit_cost_cents"),
                reference=item.get("reference"),
                notes=item.get("notes"),
                actor=actor,
            )
        except LedgerError as e:
            failed.append({"index": index, "product_id": item.get("product_id"), **e.to_dict()})
            continue
        succeeded.append({"index": index, **result.to_dict()})

    return {
        "succeeded": succeeded,
        "failed": failed,
        "success_count": len(succeeded),
        "failure_count": len(failed),
    }


def list_movements(
    product_id: int | None = None,
    *,
    action: MovementAction | None = None,
    reference: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 200,
) -> dict:
    """Movement history (newest first) with totals over the whole filtered set."""
    query = db.session.query(StockMovement)
    if product_id is not None:
        get_product(product_id)
        query = query.filter(StockMovement.product_id == product_id)
    if action is not None:
        query = query.filter(StockMovement.action == action)
    if reference:
        query = query.filter(StockMovement.reference == reference)
    if start is not None:
        query = query.filter(StockMovement.created_at >= start)
    if end is not None:
        query = query.filter(StockMovement.created_at <= end)

    totals = query.with_entities(
        func.count(StockMovement.id),
        func.coalesce(func.sum(StockMovement.quantity_changed), 0),
        func.coalesce(func.sum(StockMovement.total_value_cents), 0),
    ).one()

    movements = (
        query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .limit(min(max(limit, 1), 1000))
        .all()
    )
    return {
        "movements": [m.to_dict() for m in movements],
        "summary": {
            "count": int(totals[0]),
            "net_quantity_change": int(totals[1]),
            "total_value_cents": int(totals[2]),
        },
    }
