# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/stockledger/routes/inventory.py
"""
Inventory routes: replenishment, stock movements and inventory reads.

Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- start/end filtering is inclusive.
"""
from flask import Blueprint, request, current_app

from ..errors import LedgerError
from ..models import BatchStatus, MovementAction
from ..services import inventory_service, movement_service
from ..validation import (
    coerce_enum,
    non_negative_int,
    optional_datetime,
    positive_int,
    require_payload,
    require_fields,
    reject_unknown_fields,
)


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

REPLENISH_FIELDS = {"product_id", "quantity", "unit_cost_cents", "unit_price_cents", "reference", "notes", "actor"}
STOCK_FIELDS = {"product_id", "quantity", "action", "unit_cost_cents", "reference", "notes", "actor"}


@inventory_bp.post("/replenish")
def replenish_route():
    """
    Receive a replenishment batch.

    The batch is ACTIVE when the product has no active stock, otherwise PENDING.
    """
    try:
        payload = require_payload(request.get_json(silent=True))
        reject_unknown_fields(payload, REPLENISH_FIELDS)
        require_fields(payload, {"product_id", "quantity", "unit_cost_cents", "unit_price_cents"})
        result = inventory_service.replenish(
            positive_int("product_id", payload["product_id"]),
            payload["quantity"],
            payload["unit_cost_cents"],
            payload["unit_price_cents"],
            reference=payload.get("reference"),
            notes=payload.get("notes"),
            actor=payload.get("actor"),
        )
    except LedgerError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to replenish stock")
        return {"error": "Internal server error"}, 500

    return {"message": "Stock replenished successfully", **result.to_dict()}, 201


@inventory_bp.post("/stock")
def update_stock_route():
    """
    Record a stock movement.

    Body: product_id, quantity, action (ADD/REMOVE/SET/RESERVE/RELEASE/SOLD/RETURN),
    optional unit_cost_cents, reference, notes, actor.
    Alternatively {"updates": [...]} applies several movements independently.
    """
    try:
        payload = require_payload(request.get_json(silent=True))
        if "updates" in payload:
            reject_unknown_fields(payload, {"updates", "actor"})
            result = movement_service.batch_update_stock(payload["updates"], actor=payload.get("actor"))
            status = 200 if result["failure_count"] == 0 else 207
            return result, status

        reject_unknown_fields(payload, STOCK_FIELDS)
        require_fields(payload, {"product_id", "quantity", "action"})
        result = movement_service.update_stock(
            positive_int("product_id", payload["product_id"]),
            payload["quantity"],
            payload["action"],
            unit_cost_cents=payload.get("unit_cost_cents"),
            reference=payload.get("reference"),
            notes=payload.get("notes"),
            actor=payload.get("actor"),
        )
    except LedgerError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update stock")
        return {"error": "Internal server error"}, 500

    return result.to_dict(), 201


@inventory_bp.get("/<int:product_id>/summary")
def inventory_summary_route(product_id: int):
    try:
        return inventory_service.get_inventory_summary(product_id)
    except LedgerError as e:
        return e.to_dict(), e.status_code


@inventory_bp.get("/<int:product_id>/batches")
def list_batches_route(product_id: int):
    """Batches in FIFO order. Query param: status (PENDING/ACTIVE/SOLD_OUT)."""
    try:
        status = request.args.get("status")
        status = coerce_enum("status", status, BatchStatus) if status else None
        batches = inventory_service.list_batches(product_id, status=status)
    except LedgerError as e:
        return e.to_dict(), e.status_code
    return {"product_id": product_id, "batches": [b.to_dict() for b in batches]}


@inventory_bp.get("/<int:product_id>/movements")
def list_movements_route(product_id: int):
    """
    Movement history for a product.

    Query params: action, reference, start, end (ISO-8601), limit.
    """
    try:
        action = request.args.get("action")
        result = movement_service.list_movements(
            product_id,
            action=coerce_enum("action", action, MovementAction) if action else None,
            reference=request.args.get("reference"),
            start=optional_datetime("start", request.args.get("start")),
            end=optional_datetime("end", request.args.get("end")),
            limit=request.args.get("limit", 200, type=int),
        )
    except LedgerError as e:
        return e.to_dict(), e.status_code
    return {"product_id": product_id, **result}


@inventory_bp.get("/reorder-suggestions")
def reorder_suggestions_route():
    """Query param: threshold (optional, defaults to LOW_STOCK_THRESHOLD)."""
    try:
        threshold = request.args.get("threshold")
        if threshold is not None:
            threshold = non_negative_int("threshold", threshold)
        return inventory_service.get_reorder_suggestions(threshold)
    except LedgerError as e:
        return e.to_dict(), e.status_code
