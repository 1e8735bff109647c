# Overview: Single write path for Product.quantity and its append-only movement log.

from __future__ import annotations

from ..extensions import db
from ..errors import InsufficientStock
from ..models import Product, StockMovement, MovementAction
from .concurrency import conditional_decrement, atomic_increment
"""
Stock Ledger Invariants (authoritative)

- Product.quantity changes ONLY through apply_quantity_change().
- Every change appends exactly one StockMovement in the same DB transaction,
  so SUM(StockMovement.quantity_changed) == Product.quantity per product.
- Decrements are conditional (quantity -= n WHERE quantity >= n); a failed
  precondition raises InsufficientStock and the caller's transaction rolls back.
- Movements are append-only: no updates, no deletes.
"""


def append_movement(
    *,
    product: Product,
    action: MovementAction,
    previous_quantity: int,
    new_quantity: int,
    unit_cost_cents: int,
    batch_id: int | None = None,
    reference: str | None = None,
    notes: str | None = None,
    actor: str | None = None,
) -> StockMovement:
    """Append-only movement row. No quantity logic here."""
    change = new_quantity - previous_quantity
    movement = StockMovement(
        product_id=product.id,
        batch_id=batch_id,
        action=action,
        previous_quantity=previous_quantity,
        new_quantity=new_quantity,
        quantity_changed=change,
        unit_cost_cents=unit_cost_cents,
        total_value_cents=abs(change) * unit_cost_cents,
        reference=reference,
        notes=notes or f"{action.value} {abs(change)} units",
        actor=actor,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def apply_quantity_change(
    product: Product,
    delta: int,
    *,
    action: MovementAction,
    unit_cost_cents: int | None = None,
    batch_id: int | None = None,
    reference: str | None = None,
    notes: str | None = None,
    actor: str | None = None,
) -> StockMovement:
    """
    Atomically move Product.quantity by `delta` and log the movement.

    The caller holds the product row lock (see products_service.get_product);
    the conditional decrement still guards against writers that do not.
    """
    db.session.flush()
    previous = product.quantity

    if delta < 0:
        if not conditional_decrement(product, "quantity", -delta):
            raise InsufficientStock(
                "Insufficient stock",
                details={"product_id": product.id, "requested": -delta, "available": product.quantity},
            )
    elif delta > 0:
        atomic_increment(product, "quantity", delta)

    # The conditional update already succeeded, so this is exact even under
    # concurrent writers on databases that honour the row lock.
    new_quantity = previous + delta

    return append_movement(
        product=product,
        action=action,
        previous_quantity=previous,
        new_quantity=new_quantity,
        unit_cost_cents=product.cost_price_cents if unit_cost_cents is None else unit_cost_cents,
        batch_id=batch_id,
        reference=reference,
        notes=notes,
        actor=actor,
    )
