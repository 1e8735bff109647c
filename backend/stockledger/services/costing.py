# Overview: Cost averaging and the per-product allocation strategies behind one interface.

"""
Two ledger styles, selected per product by Product.costing_method:

- FIFO: stock lives in batches with their own cost/price. Receipts become
  batches (PENDING while older stock remains), issues consume ACTIVE batches
  oldest-first.
- WEIGHTED_AVERAGE: one pool per product. Receipts blend into
  Product.cost_price_cents, issues decrement Product.quantity directly.

Both go through ledger_service.apply_quantity_change, so the movement log
and the non-negativity guard are identical for either style. A FIFO product
with no batches at all (stock loaded outside the ledger) is treated as a pool.
"""

from __future__ import annotations

from ..errors import InsufficientStock, InvalidInput
from ..models import Product, StockMovement, BatchSource, CostingMethod, MovementAction
from . import batch_service
from .batch_service import Allocation, AllocationResult
from .ledger_service import apply_quantity_change


def weighted_average_cost_cents(
    current_qty: int, current_cost_cents: int, added_qty: int, added_cost_cents: int
) -> int:
    """
    (current_qty * current_cost + added_qty * added_cost) / (current_qty + added_qty)

    Nearest-cent rounding (half-up). With nothing on hand the added cost wins.
    """
    if current_qty < 0 or added_qty < 0:
        raise InvalidInput("Quantities must be >= 0")
    total_qty = current_qty + added_qty
    if total_qty == 0:
        return current_cost_cents
    total_cost = current_qty * current_cost_cents + added_qty * added_cost_cents
    return (total_cost + total_qty // 2) // total_qty


class AllocationStrategy:
    """How stock enters and leaves a product."""

    method: CostingMethod

    def available(self, product: Product) -> int:
        raise NotImplementedError

    def receive(self, product: Product, quantity: int, *, unit_cost_cents: int | None,
                unit_price_cents: int | None, action: MovementAction,
                replenishment: bool = False, reference: str | None = None,
                notes: str | None = None, actor: str | None = None):
        raise NotImplementedError

    def issue(self, product: Product, quantity: int, *, action: MovementAction,
              reference: str | None = None, notes: str | None = None,
              actor: str | None = None) -> tuple[list[Allocation], list[StockMovement]]:
        raise NotImplementedError


class AveragePoolStrategy(AllocationStrategy):
    method = CostingMethod.WEIGHTED_AVERAGE

    def available(self, product: Product) -> int:
        return product.quantity

    def receive(self, product, quantity, *, unit_cost_cents, unit_price_cents, action,
                replenishment=False, reference=None, notes=None, actor=None):
        if unit_cost_cents is not None and action == MovementAction.ADD:
            product.cost_price_cents = weighted_average_cost_cents(
                product.quantity, product.cost_price_cents, quantity, unit_cost_cents
            )
        if replenishment and unit_price_cents is not None:
            product.price_cents = unit_price_cents
        movement = apply_quantity_change(
            product,
            quantity,
            action=action,
            unit_cost_cents=unit_cost_cents,
            reference=reference,
            notes=notes,
            actor=actor,
        )
        return movement, None

    def issue(self, product, quantity, *, action, reference=None, notes=None, actor=None):
        if product.quantity < quantity:
            raise InsufficientStock(
                "Insufficient stock",
                details={"product_id": product.id, "requested": quantity, "available": product.quantity},
            )
        unit_cost = product.cost_price_cents
        movement = apply_quantity_change(
            product,
            -quantity,
            action=action,
            unit_cost_cents=unit_cost,
            reference=reference,
            notes=notes,
            actor=actor,
        )
        return [Allocation(None, quantity, unit_cost, product.price_cents)], [movement]


def _adopt_pool_stock(product: Product) -> None:
    """
    Give pool stock on a batchless FIFO product an opening ACTIVE batch, so the
    first receipt does not strand it outside the batch ledger.
    """
    if product.quantity <= 0 or batch_service.has_batches(product.id):
        return
    batch_service.open_batch_for_pool_inner(product)


class FifoBatchStrategy(AllocationStrategy):
    method = CostingMethod.FIFO

    def available(self, product: Product) -> int:
        if not batch_service.has_batches(product.id):
            return product.quantity
        return batch_service.get_active_quantity(product.id)

    def receive(self, product, quantity, *, unit_cost_cents, unit_price_cents, action,
                replenishment=False, reference=None, notes=None, actor=None):
        unit_cost = unit_cost_cents if unit_cost_cents is not None else product.cost_price_cents
        unit_price = unit_price_cents if unit_price_cents is not None else product.price_cents
        _adopt_pool_stock(product)
        if replenishment:
            batch, movement = batch_service.add_batch_inner(
                product,
                quantity=quantity,
                unit_cost_cents=unit_cost,
                unit_price_cents=unit_price,
                source=BatchSource.REPLENISHMENT,
                reference=reference,
                notes=notes,
                actor=actor,
            )
            return movement, batch

        # Stock re-entering through a movement (ADD/RELEASE/RETURN/SET) is on
        # the shelf now, so it becomes an ACTIVE batch of its own.
        if unit_cost_cents is not None and action == MovementAction.ADD:
            product.cost_price_cents = weighted_average_cost_cents(
                product.quantity, product.cost_price_cents, quantity, unit_cost_cents
            )
        if unit_cost <= 0 or unit_price <= 0:
            raise InvalidInput(
                "unit_cost_cents is required when the product has no cost or price on file",
                details={"product_id": product.id},
            )
        batch, movement = batch_service.add_batch_inner(
            product,
            quantity=quantity,
            unit_cost_cents=unit_cost,
            unit_price_cents=unit_price,
            source=BatchSource.MOVEMENT,
            force_active=True,
            movement_action=action,
            reference=reference,
            notes=notes,
            actor=actor,
        )
        return movement, batch

    def issue(self, product, quantity, *, action, reference=None, notes=None, actor=None):
        if not batch_service.has_batches(product.id):
            return AveragePoolStrategy().issue(
                product, quantity, action=action, reference=reference, notes=notes, actor=actor
            )

        available = batch_service.get_active_quantity(product.id)
        if available < quantity:
            raise InsufficientStock(
                "Insufficient stock",
                details={"product_id": product.id, "requested": quantity, "available": available},
            )

        result: AllocationResult = batch_service.allocate_inner(product, quantity)
        if result.shortfall > 0:
            raise InsufficientStock(
                "Insufficient stock",
                details={"product_id": product.id, "requested": quantity,
                         "shortfall": result.shortfall},
            )
        movements = [
            apply_quantity_change(
                product,
                -allocation.quantity,
                action=action,
                unit_cost_cents=allocation.unit_cost_cents,
                batch_id=allocation.batch_id,
                reference=reference,
                notes=notes,
                actor=actor,
            )
            for allocation in result.allocations
        ]
        return result.allocations, movements


_STRATEGIES = {
    CostingMethod.FIFO: FifoBatchStrategy(),
    CostingMethod.WEIGHTED_AVERAGE: AveragePoolStrategy(),
}


def get_strategy(product: Product) -> AllocationStrategy:
    return _STRATEGIES[product.costing_method]
