# Overview: Sale/allocation engine; turns a sell request into per-batch Sale rows.

"""
Sales Service - allocation-backed sale processing

A sell request walks the product's allocation strategy and writes one Sale row
per allocation (per batch for FIFO products, one row for pool products). All
rows of a request share a request_id.

ORDER OF WORK (one transaction):
1. Validate input; lock the product (and the customer for credit sales)
2. Pre-check availability; InsufficientStock with nothing written
3. Issue stock: batch decrements + one SOLD movement per allocation
4. One Sale per allocation, priced at the allocation's unit price
5. Credit sales: atomic balance increment + one BORROW transaction
6. Alert state machine on the new quantity
7. Commit, then deliver notifications
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..errors import InsufficientStock, InvalidInput
from ..models import Customer, InventoryAlert, MovementAction, Sale
from ..notifications import PendingNotification, deliver
from ..validation import MAX_QUANTITY, positive_int
from .alert_service import evaluate_stock_level_inner
from .concurrency import run_with_retry
from .costing import get_strategy
from .credit_service import get_customer, record_borrow_inner
from .products_service import get_product


@dataclass
class SaleResult:
    request_id: str
    sales: list[Sale] = field(default_factory=list)
    remaining_stock: int = 0
    customer_debt: int = 0
    alerts: list[InventoryAlert] = field(default_factory=list)

    @property
    def quantity_sold(self) -> int:
        return sum(s.quantity_sold for s in self.sales)

    @property
    def total_price_cents(self) -> int:
        return sum(s.total_price_cents for s in self.sales)

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "sales": [s.to_dict() for s in self.sales],
            "quantity_sold": self.quantity_sold,
            "total_price_cents": self.total_price_cents,
            "remaining_stock": self.remaining_stock,
            "customer_debt": self.customer_debt,
            "alerts": [a.to_dict() for a in self.alerts],
        }


def sell(
    product_id: int,
    quantity: int,
    *,
    customer_id: int | None = None,
    is_credit: bool = False,
    actor: str | None = None,
) -> SaleResult:
    """
    Sell `quantity` units of a product, oldest stock first.

    Raises:
        InvalidInput: quantity <= 0, inactive product, credit sale without customer
        NotFound: unknown product or customer
        InsufficientStock: not enough ACTIVE stock (nothing is written)
    """
    quantity = positive_int("quantity", quantity, maximum=MAX_QUANTITY)
    if is_credit and customer_id is None:
        raise InvalidInput("Customer ID required for credit sale")

    outbox: list[PendingNotification] = []

    def _op():
        outbox.clear()
        product = get_product(product_id, lock=True, require_active=True)
        customer: Customer | None = None
        if customer_id is not None:
            customer = get_customer(customer_id, lock=is_credit)

        strategy = get_strategy(product)
        available = strategy.available(product)
        if available < quantity:
            raise InsufficientStock(
                "Not enough stock available",
                details={"product_id": product.id, "requested": quantity, "available": available},
            )

        request_id = str(uuid.uuid4())
        allocations, _movements = strategy.issue(
            product,
            quantity,
            action=MovementAction.SOLD,
            reference=f"SALE_{request_id}",
            actor=actor,
        )

        result = SaleResult(request_id)
        for allocation in allocations:
            total = allocation.quantity * allocation.unit_price_cents
            sale = Sale(
                request_id=request_id,
                product_id=product.id,
                batch_id=allocation.batch_id,
                customer_id=customer.id if customer is not None else None,
                quantity_sold=allocation.quantity,
                unit_cost_cents=allocation.unit_cost_cents,
                unit_price_cents=allocation.unit_price_cents,
                total_price_cents=total,
                balance_cents=total if is_credit else 0,
                is_paid=not is_credit,
            )
            db.session.add(sale)
            result.sales.append(sale)
        db.session.flush()

        if is_credit and result.total_price_cents > 0:
            record_borrow_inner(
                customer,
                result.total_price_cents,
                product_id=product.id,
                quantity=quantity,
                sale_request_id=request_id,
                note=f"Credit sale of {quantity} x {product.name}",
            )

        result.alerts = evaluate_stock_level_inner(product, outbox, actor=actor)
        result.remaining_stock = product.quantity
        if customer is not None:
            db.session.refresh(customer, ["balance_cents"])
            result.customer_debt = customer.balance_cents

        db.session.commit()
        return result

    result = run_with_retry(_op)
    deliver(outbox)
    return result


def list_sales(
    *,
    product_id: int | None = None,
    customer_id: int | None = None,
    request_id: str | None = None,
    unpaid_only: bool = False,
    limit: int = 200,
) -> list[Sale]:
    query = db.session.query(Sale)
    if product_id is not None:
        query = query.filter(Sale.product_id == product_id)
    if customer_id is not None:
        query = query.filter(Sale.customer_id == customer_id)
    if request_id:
        query = query.filter(Sale.request_id == request_id)
    if unpaid_only:
        query = query.filter(Sale.is_paid.is_(False))
    return (
        query.order_by(Sale.sold_at.desc(), Sale.id.desc())
        .limit(min(max(limit, 1), 1000))
        .all()
    )


def get_sales_summary(
    product_id: int | None = None,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict:
    """Revenue, cost and profit aggregated from Sale rows only."""
    query = db.session.query(
        func.count(Sale.id),
        func.count(func.distinct(Sale.request_id)),
        func.coalesce(func.sum(Sale.quantity_sold), 0),
        func.coalesce(func.sum(Sale.total_price_cents), 0),
        func.coalesce(func.sum(Sale.quantity_sold * Sale.unit_cost_cents), 0),
        func.coalesce(func.sum(Sale.balance_cents), 0),
    )
    if product_id is not None:
        get_product(product_id)
        query = query.filter(Sale.product_id == product_id)
    if start is not None:
        query = query.filter(Sale.sold_at >= start)
    if end is not None:
        query = query.filter(Sale.sold_at <= end)

    rows, requests, units, revenue, cost, outstanding = query.one()
    revenue, cost = int(revenue), int(cost)
    return {
        "product_id": product_id,
        "sale_rows": int(rows),
        "sale_requests": int(requests),
        "units_sold": int(units),
        "revenue_cents": revenue,
        "cost_cents": cost,
        "profit_cents": revenue - cost,
        "profit_margin_pct": round((revenue - cost) * 100 / revenue, 2) if revenue > 0 else 0,
        "outstanding_credit_cents": int(outstanding),
    }
