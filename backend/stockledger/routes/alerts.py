# Overview: Flask API routes for inventory alerts; lists and resolves alerts.

# backend/stockledger/routes/alerts.py
from flask import Blueprint, request, current_app

from ..errors import LedgerError
from ..models import AlertType
from ..services import alert_service
from ..validation import (
    coerce_bool,
    coerce_enum,
    optional_text,
    positive_int,
    require_payload,
    reject_unknown_fields,
)


alerts_bp = Blueprint("alerts", __name__, url_prefix="/api/alerts")


@alerts_bp.get("")
def list_alerts_route():
    """Query params: product_id, alert_type, resolved (true/false), limit."""
    try:
        alert_type = request.args.get("alert_type")
        resolved = request.args.get("resolved")
        alerts = alert_service.list_alerts(
            product_id=request.args.get("product_id", type=int),
            alert_type=coerce_enum("alert_type", alert_type, AlertType) if alert_type else None,
            resolved=coerce_bool("resolved", resolved) if resolved is not None else None,
            limit=request.args.get("limit", 100, type=int),
        )
    except LedgerError as e:
        return e.to_dict(), e.status_code
    return {"alerts": [a.to_dict() for a in alerts], "count": len(alerts)}


@alerts_bp.post("/<int:alert_id>/resolve")
def resolve_alert_route(alert_id: int):
    """
    Resolve an alert.

    Body (all optional): notes, restock_quantity, unit_cost_cents, resolved_by.
    restock_quantity re-enters stock as an ADD movement referenced ALERT_<id>.
    """
    try:
        payload = require_payload(request.get_json(silent=True))
        reject_unknown_fields(payload, {"notes", "restock_quantity", "unit_cost_cents", "resolved_by"})
        restock = payload.get("restock_quantity")
        unit_cost = payload.get("unit_cost_cents")
        alert = alert_service.resolve_alert(
            alert_id,
            notes=optional_text("notes", payload.get("notes"), max_length=255),
            restock_quantity=positive_int("restock_quantity", restock) if restock is not None else None,
            unit_cost_cents=positive_int("unit_cost_cents", unit_cost) if unit_cost is not None else None,
            resolved_by=optional_text("resolved_by", payload.get("resolved_by"), max_length=64),
        )
    except LedgerError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to resolve alert %s", alert_id)
        return {"error": "Internal server error"}, 500
    return {"alert": alert.to_dict()}
