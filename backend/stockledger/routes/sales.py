# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/stockledger/routes/sales.py
"""Sales API routes"""

from flask import Blueprint, request, current_app

from ..errors import LedgerError
from ..services import sales_service
from ..validation import (
    coerce_bool,
    optional_datetime,
    positive_int,
    require_payload,
    require_fields,
    reject_unknown_fields,
)


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")

SELL_FIELDS = {"product_id", "quantity", "customer_id", "is_credit", "actor"}


@sales_bp.post("")
def sell_route():
    """
    Sell a product, oldest stock first.

    Body: product_id, quantity, optional customer_id, is_credit (requires customer_id).
    """
    try:
        payload = require_payload(request.get_json(silent=True))
        reject_unknown_fields(payload, SELL_FIELDS)
        require_fields(payload, {"product_id", "quantity"})
        customer_id = payload.get("customer_id")
        result = sales_service.sell(
            positive_int("product_id", payload["product_id"]),
            payload["quantity"],
            customer_id=positive_int("customer_id", customer_id) if customer_id is not None else None,
            is_credit=coerce_bool("is_credit", payload.get("is_credit")),
            actor=payload.get("actor"),
        )
    except LedgerError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to complete sale")
        return {"error": "Internal server error"}, 500

    return {"message": "Sale completed successfully", **result.to_dict()}, 201


@sales_bp.get("")
def list_sales_route():
    """Query params: product_id, customer_id, request_id, unpaid (bool), limit."""
    sales = sales_service.list_sales(
        product_id=request.args.get("product_id", type=int),
        customer_id=request.args.get("customer_id", type=int),
        request_id=request.args.get("request_id"),
        unpaid_only=request.args.get("unpaid", "false").lower() == "true",
        limit=request.args.get("limit", 200, type=int),
    )
    return {"sales": [s.to_dict() for s in sales], "count": len(sales)}


@sales_bp.get("/summary")
def sales_summary_route():
    """Revenue / cost / profit. Query params: product_id, start, end (ISO-8601)."""
    try:
        return sales_service.get_sales_summary(
            request.args.get("product_id", type=int),
            start=optional_datetime("start", request.args.get("start")),
            end=optional_datetime("end", request.args.get("end")),
        )
    except LedgerError as e:
        return e.to_dict(), e.status_code
