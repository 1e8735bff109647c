# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/stockledger/routes/products.py
"""
Product master-data routes.

Quantity is never writable here: stock moves only through /api/inventory and
/api/sales.
"""
from flask import Blueprint, request, current_app

from ..errors import LedgerError
from ..services import products_service
from ..validation import (
    require_payload,
    require_fields,
    reject_unknown_fields,
)

PRODUCT_CREATE_FIELDS = {
    "sku", "name", "price_cents", "cost_price_cents", "low_stock_threshold", "costing_method",
}

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    List products with optional pagination.

    Query params:
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    - include_inactive: bool (optional)
    """
    page = request.args.get("page", type=int)
    per_page = request.args.get("per_page", type=int)
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    return products_service.list_products(
        page=page, per_page=per_page, include_inactive=include_inactive
    )


@products_bp.post("")
def create_product_route():
    try:
        payload = require_payload(request.get_json(silent=True))
        reject_unknown_fields(payload, PRODUCT_CREATE_FIELDS)
        require_fields(payload, {"sku", "name"})
        created = products_service.create_product(
            sku=payload["sku"],
            name=payload["name"],
            price_cents=payload.get("price_cents", 0),
            cost_price_cents=payload.get("cost_price_cents", 0),
            low_stock_threshold=payload.get("low_stock_threshold"),
            costing_method=payload.get("costing_method", "FIFO"),
        )
    except LedgerError as e:
        return e.to_dict(), e.status_code
    return {"product": created.to_dict()}, 201


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id)
    except LedgerError as e:
        return e.to_dict(), e.status_code
    return {"product": product.to_dict()}


@products_bp.patch("/<int:product_id>")
def update_product_route(product_id: int):
    try:
        payload = require_payload(request.get_json(silent=True))
        product = products_service.update_product(product_id, payload)
    except LedgerError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product %s", product_id)
        return {"error": "Internal server error"}, 500
    return {"product": product.to_dict()}


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    """Delete a product, or deactivate it when ledger history references it."""
    try:
        products_service.delete_product(product_id)
    except LedgerError as e:
        return e.to_dict(), e.status_code
    return {"deleted": True, "product_id": product_id}
