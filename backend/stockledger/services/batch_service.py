# Overview: Batch ledger: batch lifecycle, FIFO allocation and activation of pending stock.

"""
Batch Ledger

================================================================================
STATE MACHINE (per batch):
    PENDING -> ACTIVE -> SOLD_OUT

    PENDING:  received while the product still had active stock; excluded
              from Product.quantity
    ACTIVE:   counted in Product.quantity; eligible for FIFO allocation
    SOLD_OUT: quantity_remaining == 0; terminal, kept for audit reads

RULES:
1. A batch is created ACTIVE only if the product has no active remaining
   stock; otherwise it is created PENDING.
2. PENDING -> ACTIVE happens only when active stock is exhausted.
3. Allocation consumes ACTIVE batches ordered by (replenished_at, id).
4. Every decrement is conditional: remaining -= n WHERE remaining >= n.
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import func

from ..extensions import db
from ..errors import InsufficientStock, InvalidInput, InvalidTransition
from ..models import Product, StockBatch, StockMovement, BatchStatus, BatchSource, MovementAction
from stockledger.time_utils import utcnow
from .concurrency import conditional_decrement
from .ledger_service import apply_quantity_change


BATCH_TRANSITIONS = {
    (BatchStatus.PENDING, BatchStatus.ACTIVE),
    (BatchStatus.ACTIVE, BatchStatus.SOLD_OUT),
}


@dataclass(frozen=True)
class Allocation:
    batch_id: int | None
    quantity: int
    unit_cost_cents: int
    unit_price_cents: int


@dataclass
class AllocationResult:
    allocations: list[Allocation] = field(default_factory=list)
    shortfall: int = 0

    @property
    def quantity_allocated(self) -> int:
        return sum(a.quantity for a in self.allocations)


def can_transition(from_status: BatchStatus, to_status: BatchStatus) -> bool:
    return (from_status, to_status) in BATCH_TRANSITIONS


def transition_batch(batch: StockBatch, to_status: BatchStatus) -> StockBatch:
    if not can_transition(batch.status, to_status):
        raise InvalidTransition(
            f"Cannot move batch from {batch.status.value} to {to_status.value}",
            details={"batch_id": batch.id},
        )
    batch.status = to_status
    if to_status == BatchStatus.ACTIVE:
        batch.activated_at = utcnow()
    elif to_status == BatchStatus.SOLD_OUT:
        batch.sold_out_at = utcnow()
    return batch


def _fifo_order(query):
    return query.order_by(StockBatch.replenished_at.asc(), StockBatch.id.asc())


def active_batches(product_id: int) -> list[StockBatch]:
    """ACTIVE batches with stock left, oldest first."""
    query = db.session.query(StockBatch).filter(
        StockBatch.product_id == product_id,
        StockBatch.status == BatchStatus.ACTIVE,
        StockBatch.quantity_remaining > 0,
    )
    return _fifo_order(query).all()


def pending_batches(product_id: int) -> list[StockBatch]:
    query = db.session.query(StockBatch).filter(
        StockBatch.product_id == product_id,
        StockBatch.status == BatchStatus.PENDING,
    )
    return _fifo_order(query).all()


def get_active_quantity(product_id: int) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(StockBatch.quantity_remaining), 0))
        .filter(
            StockBatch.product_id == product_id,
            StockBatch.status == BatchStatus.ACTIVE,
        )
        .scalar()
    )
    return int(total or 0)


def has_batches(product_id: int) -> bool:
    return db.session.query(StockBatch.id).filter_by(product_id=product_id).first() is not None


def list_batches(product_id: int, status: BatchStatus | None = None) -> list[StockBatch]:
    query = db.session.query(StockBatch).filter(StockBatch.product_id == product_id)
    if status is not None:
        query = query.filter(StockBatch.status == status)
    return _fifo_order(query).all()


def add_batch_inner(
    product: Product,
    *,
    quantity: int,
    unit_cost_cents: int,
    unit_price_cents: int,
    source: BatchSource = BatchSource.REPLENISHMENT,
    force_active: bool = False,
    movement_action: MovementAction = MovementAction.ADD,
    reference: str | None = None,
    notes: str | None = None,
    actor: str | None = None,
) -> tuple[StockBatch, StockMovement | None]:
    """
    Create a batch; ACTIVE when the product has no active stock, else PENDING.

    force_active is for stock that is physically back on the shelf (returns,
    released reservations) rather than a new lot waiting its turn.

    Returns the batch and, when it went ACTIVE, the movement that merged it
    into Product.quantity. No locking, retry or commit: callers own the unit
    of work.
    """
    if quantity <= 0 or unit_cost_cents <= 0 or unit_price_cents <= 0:
        raise InvalidInput(
            "Quantity and prices must be greater than zero",
            details={"quantity": quantity, "unit_cost_cents": unit_cost_cents,
                     "unit_price_cents": unit_price_cents},
        )

    activate = force_active or get_active_quantity(product.id) == 0
    now = utcnow()
    batch = StockBatch(
        product_id=product.id,
        quantity_received=quantity,
        quantity_remaining=quantity,
        unit_cost_cents=unit_cost_cents,
        unit_price_cents=unit_price_cents,
        status=BatchStatus.ACTIVE if activate else BatchStatus.PENDING,
        source=source,
        replenished_at=now,
        activated_at=now if activate else None,
    )
    db.session.add(batch)
    db.session.flush()

    movement = None
    if activate:
        movement = apply_quantity_change(
            product,
            quantity,
            action=movement_action,
            unit_cost_cents=unit_cost_cents,
            batch_id=batch.id,
            reference=reference or f"BATCH_{batch.id}",
            notes=notes,
            actor=actor,
        )
    return batch, movement


def open_batch_for_pool_inner(product: Product) -> StockBatch:
    """
    Wrap stock already counted in Product.quantity in an ACTIVE batch.

    No movement is written: the units are on the log already.
    """
    now = utcnow()
    batch = StockBatch(
        product_id=product.id,
        quantity_received=product.quantity,
        quantity_remaining=product.quantity,
        unit_cost_cents=product.cost_price_cents,
        unit_price_cents=product.price_cents,
        status=BatchStatus.ACTIVE,
        source=BatchSource.MOVEMENT,
        replenished_at=now,
        activated_at=now,
    )
    db.session.add(batch)
    db.session.flush()
    return batch


def activate_batch_inner(product: Product, batch: StockBatch, *, actor: str | None = None) -> StockBatch:
    """
    PENDING -> ACTIVE, merging the batch into Product.quantity.

    The batch becomes the current lot, so its cost and price become the
    product's current cost and selling price.
    """
    transition_batch(batch, BatchStatus.ACTIVE)
    product.cost_price_cents = batch.unit_cost_cents
    product.price_cents = batch.unit_price_cents
    db.session.flush()
    apply_quantity_change(
        product,
        batch.quantity_remaining,
        action=MovementAction.ADD,
        unit_cost_cents=batch.unit_cost_cents,
        batch_id=batch.id,
        reference=f"BATCH_{batch.id}",
        notes=f"Pending batch {batch.id} activated",
        actor=actor or "system",
    )
    return batch


def allocate_inner(product: Product, requested: int) -> AllocationResult:
    """
    Take `requested` units from ACTIVE batches, oldest first.

    Each batch is decremented before moving to the next. Running out of
    batches is reported as a positive shortfall; a batch whose conditional
    decrement fails at write time raises InsufficientStock.

    Product.quantity is not touched here; the caller records one movement per
    allocation.
    """
    if requested <= 0:
        raise InvalidInput("Quantity must be greater than zero", details={"quantity": requested})

    result = AllocationResult()
    still_needed = requested

    for batch in active_batches(product.id):
        if still_needed <= 0:
            break

        take = min(batch.quantity_remaining, still_needed)
        if not conditional_decrement(batch, "quantity_remaining", take):
            raise InsufficientStock(
                "Batch was depleted by a concurrent sale",
                details={"product_id": product.id, "batch_id": batch.id, "requested": take},
            )
        if batch.quantity_remaining == 0:
            transition_batch(batch, BatchStatus.SOLD_OUT)

        result.allocations.append(
            Allocation(
                batch_id=batch.id,
                quantity=take,
                unit_cost_cents=batch.unit_cost_cents,
                unit_price_cents=batch.unit_price_cents,
            )
        )
        still_needed -= take

    result.shortfall = still_needed
    db.session.flush()
    return result
