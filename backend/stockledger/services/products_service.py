# Overview: Product lookup and master-data maintenance for the inventory ledger.

"""
Products carry the denormalized on-hand quantity, so this service deliberately
exposes no way to set `quantity`: it moves only through replenishment, sales
and stock movements.
"""
from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import InvalidInput, NotFound
from ..models import Product, StockBatch, CostingMethod
from ..validation import (
    MAX_PRICE_CENTS,
    coerce_enum,
    non_negative_int,
    optional_int,
    required_text,
)
from .concurrency import lock_for_update

PRODUCT_MUTABLE_FIELDS = {"name", "price_cents", "low_stock_threshold", "is_active"}


def get_product(product_id: int, *, lock: bool = False, require_active: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise NotFound("Product not found", details={"product_id": product_id})
    if require_active and not product.is_active:
        raise InvalidInput("Product is inactive", details={"product_id": product_id})
    return product


def create_product(
    *,
    sku: str,
    name: str,
    price_cents: int = 0,
    cost_price_cents: int = 0,
    low_stock_threshold: int | None = None,
    costing_method: CostingMethod | str = CostingMethod.FIFO,
) -> Product:
    """
    Create a product with zero stock.

    Stock enters only through replenish() or update_stock(), so the movement
    log accounts for every unit from the start.
    """
    product = Product(
        sku=required_text("sku", sku, max_length=64),
        name=required_text("name", name, max_length=255),
        price_cents=non_negative_int("price_cents", price_cents, maximum=MAX_PRICE_CENTS),
        cost_price_cents=non_negative_int("cost_price_cents", cost_price_cents, maximum=MAX_PRICE_CENTS),
        low_stock_threshold=(
            None if low_stock_threshold is None
            else non_negative_int("low_stock_threshold", low_stock_threshold)
        ),
        costing_method=coerce_enum("costing_method", costing_method, CostingMethod),
        quantity=0,
    )
    db.session.add(product)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise InvalidInput("SKU already exists", details={"sku": sku})
    return product


def update_product(product_id: int, patch: dict) -> Product:
    product = get_product(product_id)
    for key, value in patch.items():
        if key not in PRODUCT_MUTABLE_FIELDS:
            raise InvalidInput(f"Field not allowed: {key}")
        if key == "name":
            value = required_text("name", value, max_length=255)
        elif key == "price_cents":
            value = non_negative_int("price_cents", value, maximum=MAX_PRICE_CENTS)
        elif key == "low_stock_threshold":
            value = optional_int("low_stock_threshold", value)
            if value is not None and value < 0:
                raise InvalidInput("low_stock_threshold must be >= 0")
        elif key == "is_active":
            value = bool(value)
        setattr(product, key, value)
    db.session.commit()
    return product


def delete_product(product_id: int) -> None:
    """Hard delete, refused while any batch or the pool still holds stock."""
    product = get_product(product_id)
    remaining = (
        db.session.query(func.coalesce(func.sum(StockBatch.quantity_remaining), 0))
        .filter(StockBatch.product_id == product_id)
        .scalar()
    )
    if product.quantity > 0 or int(remaining or 0) > 0:
        raise InvalidInput(
            "Cannot delete a product that still holds stock; deactivate it instead",
            details={"product_id": product_id, "quantity": product.quantity,
                     "batch_remaining": int(remaining or 0)},
        )
    if product.batches or product.movements:
        # Ledger history references the product; keep the row for audit.
        product.is_active = False
    else:
        db.session.delete(product)
    db.session.commit()


def list_products(*, page: int | None = None, per_page: int | None = None,
                  include_inactive: bool = False) -> dict:
    base_query = db.session.query(Product).order_by(Product.name.asc(), Product.id.asc())
    if not include_inactive:
        base_query = base_query.filter(Product.is_active.is_(True))

    if page is None:
        products = base_query.all()
        return {"items": [p.to_dict() for p in products], "count": len(products)}

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }
