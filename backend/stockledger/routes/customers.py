# Overview: Flask API routes for credit customers; parses input and returns JSON responses.

# backend/stockledger/routes/customers.py
"""
Credit customer routes.

A borrow is a credit sale; a payment settles open credit sales oldest-first
and is rejected with 409 when it exceeds the outstanding balance.
"""
from flask import Blueprint, request, current_app

from ..errors import LedgerError
from ..services import credit_service
from ..validation import (
    positive_int,
    require_payload,
    require_fields,
    reject_unknown_fields,
)


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.post("")
def create_customer_route():
    try:
        payload = require_payload(request.get_json(silent=True))
        reject_unknown_fields(payload, {"name", "phone"})
        require_fields(payload, {"name"})
        customer = credit_service.create_customer(name=payload["name"], phone=payload.get("phone"))
    except LedgerError as e:
        return e.to_dict(), e.status_code
    return {"customer": customer.to_dict()}, 201


@customers_bp.get("/debtors")
def list_debtors_route():
    debtors = credit_service.list_debtors()
    return {
        "debtors": [c.to_dict() for c in debtors],
        "count": len(debtors),
        "total_outstanding_cents": sum(c.balance_cents for c in debtors),
    }


@customers_bp.post("/<int:customer_id>/borrow")
def borrow_route(customer_id: int):
    """Body: product_id, quantity. Charges the sale to the customer's balance."""
    try:
        payload = require_payload(request.get_json(silent=True))
        reject_unknown_fields(payload, {"product_id", "quantity", "actor"})
        require_fields(payload, {"product_id", "quantity"})
        result = credit_service.borrow(
            customer_id,
            positive_int("product_id", payload["product_id"]),
            payload["quantity"],
            actor=payload.get("actor"),
        )
    except LedgerError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record borrow for customer %s", customer_id)
        return {"error": "Internal server error"}, 500
    return result.to_dict(), 201


@customers_bp.post("/<int:customer_id>/payments")
def pay_debt_route(customer_id: int):
    """Body: amount_cents, optional note."""
    try:
        payload = require_payload(request.get_json(silent=True))
        reject_unknown_fields(payload, {"amount_cents", "note"})
        require_fields(payload, {"amount_cents"})
        result = credit_service.pay_debt(customer_id, payload["amount_cents"], note=payload.get("note"))
    except LedgerError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record payment for customer %s", customer_id)
        return {"error": "Internal server error"}, 500
    return result.to_dict(), 201


@customers_bp.get("/<int:customer_id>/history")
def customer_history_route(customer_id: int):
    try:
        return credit_service.get_customer_history(customer_id)
    except LedgerError as e:
        return e.to_dict(), e.status_code
