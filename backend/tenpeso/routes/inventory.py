# backend/tenpeso/routes/inventory.py
"""
Admin inventory routes: batch receipts and lot drill-down.

Receipts are all-or-nothing; a bad line rejects the whole batch and the error
names the item index.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_admin
from ..errors import SettlementError
from ..services import ledger_service


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/admin/inventory")


@inventory_bp.post("/batches")
@require_admin
def receive_batch_route():
    """
    Body: {"items": [{product_id, qty, unit_cost_cents}], "note": optional}
    """
    payload = request.get_json(silent=True) or {}

    try:
        result = ledger_service.receive_batch(payload.get("items"), payload.get("note"), actor=g.actor)
        return jsonify(result), 201

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to receive batch")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/batches")
@require_admin
def list_batches_route():
    category = request.args.get("category") or None
    return jsonify({"batches": ledger_service.list_batches(category=category)}), 200


@inventory_bp.get("/batches/<int:batch_id>")
@require_admin
def get_batch_route(batch_id: int):
    try:
        return jsonify({"batch": ledger_service.get_batch(batch_id)}), 200
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code


@inventory_bp.get("/products/<int:product_id>/lots")
@require_admin
def list_lots_route(product_id: int):
    only_open = request.args.get("open", "false").lower() == "true"
    try:
        lots = ledger_service.list_lots(product_id, only_open=only_open)
        return jsonify({"product_id": product_id, "lots": [lot.to_dict() for lot in lots]}), 200
    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
